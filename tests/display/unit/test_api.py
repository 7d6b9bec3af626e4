import asyncio

import pytest

fastapi = pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from clinicqueue.display.announcer import AnnouncementCoordinator, UtteranceOutcome
from clinicqueue.display.api import SurfaceWebSocketHub, create_app
from clinicqueue.display.config import DisplaySettings
from clinicqueue.display.localization import VoiceDescriptor
from clinicqueue.display.models import SubscriptionScope
from clinicqueue.display.surface import DisplaySurface, SurfaceKind


class _FakeSpeechEngine:
    def __init__(self) -> None:
        self.spoken: list = []

    def is_available(self) -> bool:
        return True

    def voices(self) -> list[VoiceDescriptor]:
        return []

    def speak(self, utterance, on_finished) -> None:
        self.spoken.append(utterance)
        on_finished(UtteranceOutcome.COMPLETED)

    def cancel(self) -> None:
        return None


SETTINGS = DisplaySettings(
    server_url="http://queue.test",
    civil_offset_minutes=330,
    voice_language="te",
    audio_player=("mpg123", "-q", "-"),
    host="127.0.0.1",
    port=8100,
    surfaces=("lobby", "reception"),
    log_level="INFO",
)

QUEUE_UPDATE = {
    "event": "QUEUE_UPDATE",
    "data": [
        {"_id": "1", "tokenNumber": 1, "name": "ravi", "status": "DONE"},
        {"_id": "2", "tokenNumber": 2, "name": "sita", "status": "IN_PROGRESS", "phone": "9876543210"},
        {"_id": "3", "tokenNumber": 3, "name": "arjun", "status": "WAITING", "position": 0},
    ],
}


def _surfaces() -> dict[SurfaceKind, DisplaySurface]:
    return {
        SurfaceKind.LOBBY: DisplaySurface(
            kind=SurfaceKind.LOBBY,
            coordinator=AnnouncementCoordinator(engine=_FakeSpeechEngine()),
        ),
        SurfaceKind.RECEPTION: DisplaySurface(
            kind=SurfaceKind.RECEPTION,
            coordinator=AnnouncementCoordinator(engine=None, enabled=False),
            scope=SubscriptionScope(service_date="2024-03-02"),
        ),
    }


def test_get_surface_view_returns_projection() -> None:
    surfaces = _surfaces()
    surfaces[SurfaceKind.LOBBY].subscriber.received(QUEUE_UPDATE)
    client = TestClient(create_app(surfaces=surfaces, settings=SETTINGS))

    response = client.get("/api/surfaces/lobby")

    assert response.status_code == 200
    data = response.json()
    assert data["surface"] == "lobby"
    assert data["scope"] is None
    assert data["announcements"] is True
    assert data["view"]["current"]["tokenNumber"] == 2
    assert data["view"]["current"]["phone"] == "+91 98XXXXXX10"
    assert data["view"]["current"]["name"] == "Sita"
    assert [entry["tokenNumber"] for entry in data["view"]["upcoming"]] == [3]
    assert data["view"]["servedCount"] == 1


def test_unknown_or_stopped_surface_returns_404() -> None:
    client = TestClient(create_app(surfaces=_surfaces(), settings=SETTINGS))

    assert client.get("/api/surfaces/tracking").status_code == 404
    assert client.get("/api/surfaces/kitchen").status_code == 404


def test_voice_toggle_and_scope_change() -> None:
    surfaces = _surfaces()
    client = TestClient(create_app(surfaces=surfaces, settings=SETTINGS))

    voice = client.post("/api/surfaces/lobby/voice", json={"enabled": False})
    scope = client.post("/api/surfaces/lobby/scope", json={"date": "2024-03-05"})
    invalid = client.post("/api/surfaces/lobby/scope", json={"date": "05/03/2024"})
    cleared = client.post("/api/surfaces/reception/scope", json={"date": None})

    assert voice.json()["announcements"] is False
    assert surfaces[SurfaceKind.LOBBY].coordinator.enabled is False
    assert scope.json()["scope"] == "2024-03-05"
    assert invalid.status_code == 422
    assert cleared.json()["scope"] is None


def test_reset_to_today_scopes_surface_to_a_date() -> None:
    client = TestClient(create_app(surfaces=_surfaces(), settings=SETTINGS))

    response = client.post("/api/surfaces/lobby/today")

    assert response.status_code == 200
    assert len(response.json()["scope"]) == len("2024-03-02")


def test_track_token_found_and_not_found() -> None:
    surfaces = _surfaces()
    surfaces[SurfaceKind.LOBBY].subscriber.received(QUEUE_UPDATE)
    client = TestClient(create_app(surfaces=surfaces, settings=SETTINGS))

    found = client.get("/api/track/3")
    missing = client.get("/api/track/42")

    assert found.status_code == 200
    assert found.json()["message"] == "You are next in line"
    assert found.json()["current"]["tokenNumber"] == 2
    assert found.json()["current"]["phone"] == "+91 98XXXXXX10"
    assert found.json()["entry"]["name"] == "Arjun"
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Token not found"


def test_websocket_sends_view_on_connect_and_on_update() -> None:
    surfaces = _surfaces()
    lobby = surfaces[SurfaceKind.LOBBY]
    app = create_app(surfaces=surfaces, settings=SETTINGS)

    with TestClient(app) as client:
        with client.websocket_connect("/ws/surfaces/lobby") as websocket:
            initial = websocket.receive_json()
            lobby.subscriber.received(QUEUE_UPDATE)
            update = websocket.receive_json()

    assert initial["type"] == "view.full"
    assert initial["view"]["current"] is None
    assert update["type"] == "view.full"
    assert update["view"]["current"]["tokenNumber"] == 2


def test_websocket_rejects_unknown_surface() -> None:
    client = TestClient(create_app(surfaces=_surfaces(), settings=SETTINGS))

    with pytest.raises(Exception):
        with client.websocket_connect("/ws/surfaces/kitchen"):
            pass


class _RecordingWebSocket:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def accept(self) -> None:
        return None

    async def send_json(self, payload: dict) -> None:
        self.sent.append(payload)


def test_hub_broadcasts_only_changed_views() -> None:
    hub = SurfaceWebSocketHub()
    websocket = _RecordingWebSocket()

    async def scenario() -> list[bool]:
        await hub.connect(surface="lobby", websocket=websocket)
        return [
            await hub.broadcast_view(surface="lobby", payload={"view": 1}),
            await hub.broadcast_view(surface="lobby", payload={"view": 1}),
            await hub.broadcast_view(surface="lobby", payload={"view": 2}),
        ]

    assert asyncio.run(scenario()) == [True, False, True]
    assert [message["view"] for message in websocket.sent] == [1, 2]
