import asyncio

import httpx

from clinicqueue.display.client import QueueServiceClient


def _run(handler, call):
    async def scenario():
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://queue.test")
        client = QueueServiceClient(base_url="http://queue.test", http_client=http_client)
        try:
            return await call(client)
        finally:
            await client.aclose()
            await http_client.aclose()

    return asyncio.run(scenario())


def test_fetch_queue_parses_snapshot() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/queue"
        return httpx.Response(200, json=[{"_id": "a", "tokenNumber": 1, "status": "WAITING"}])

    snapshot = _run(handler, lambda client: client.fetch_queue())

    assert snapshot is not None
    assert [entry.id for entry in snapshot] == ["a"]


def test_fetch_queue_returns_none_on_server_error() -> None:
    snapshot = _run(lambda request: httpx.Response(503), lambda client: client.fetch_queue())

    assert snapshot is None


def test_fetch_queue_returns_none_on_malformed_payload() -> None:
    snapshot = _run(
        lambda request: httpx.Response(200, json=[{"_id": "a"}]),
        lambda client: client.fetch_queue(),
    )

    assert snapshot is None


def test_fetch_queue_returns_none_when_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert _run(handler, lambda client: client.fetch_queue()) is None


def test_fetch_served_today_reads_count() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/stats/done-today"
        return httpx.Response(200, json={"count": 9})

    assert _run(handler, lambda client: client.fetch_served_today()) == 9


def test_fetch_served_today_rejects_bad_payloads() -> None:
    assert _run(lambda request: httpx.Response(200, json={"count": "9"}), lambda c: c.fetch_served_today()) is None
    assert _run(lambda request: httpx.Response(200, json=[]), lambda c: c.fetch_served_today()) is None
    assert _run(lambda request: httpx.Response(200, text="oops"), lambda c: c.fetch_served_today()) is None
    assert _run(lambda request: httpx.Response(500), lambda c: c.fetch_served_today()) is None
