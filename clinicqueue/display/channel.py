"""Socket.IO push channel feeding a LiveFeedSubscriber."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
from typing import Any

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from .models import QUEUE_UPDATE, RESET_SUCCESS
from .subscriber import LiveFeedSubscriber

logger = logging.getLogger(__name__)

PUSH_EVENTS = (QUEUE_UPDATE, RESET_SUCCESS)


class SocketIOChannel:
    """Connects to the queue service's Socket.IO endpoint and relays pushes in arrival order.

    Once a session is up, ``socketio.AsyncClient`` reconnects it with its own backoff.
    The client does not retry a first connection that never succeeded, so ``run`` does.
    """

    def __init__(
        self,
        url: str,
        subscriber: LiveFeedSubscriber,
        client: socketio.AsyncClient | None = None,
        retry_delay: float = 1.0,
        retry_delay_max: float = 5.0,
        wait_timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._subscriber = subscriber
        self._client = client if client is not None else socketio.AsyncClient(
            reconnection=True,
            reconnection_delay=retry_delay,
            reconnection_delay_max=retry_delay_max,
        )
        self._retry_delay = retry_delay
        self._retry_delay_max = retry_delay_max
        self._wait_timeout = wait_timeout
        self._connected = False
        self._closing = False
        self._sends: set[asyncio.Task[None]] = set()
        self._client.on("connect", self._on_connect)
        self._client.on("disconnect", self._on_disconnect)
        for event in PUSH_EVENTS:
            self._client.on(event, self._relay(event))
        subscriber.attach(self)

    @property
    def connected(self) -> bool:
        return self._connected

    async def run(self) -> None:
        delay = self._retry_delay
        while not self._closing:
            try:
                await self._client.connect(self._url, wait_timeout=self._wait_timeout)
            except SocketConnectionError as exc:
                logger.warning("Feed connection to %s failed (%s); retrying in %.1fs", self._url, exc, delay)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._retry_delay_max)
                continue
            delay = self._retry_delay
            await self._client.wait()

    def send(self, message: dict[str, Any]) -> None:
        event = message["event"]
        if not self._connected:
            logger.debug("Dropping %s while disconnected", event)
            return
        if "data" in message:
            emit = self._client.emit(event, message["data"])
        else:
            emit = self._client.emit(event)
        task = asyncio.get_running_loop().create_task(emit)
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    def close(self) -> None:
        self._closing = True
        for task in list(self._sends):
            task.cancel()
        self._sends.clear()

    async def aclose(self) -> None:
        self.close()
        if self._client.connected:
            await self._client.disconnect()

    def _on_connect(self) -> None:
        self._connected = True
        self._subscriber.connected()

    def _on_disconnect(self, reason: Any = None) -> None:
        self._connected = False
        if self._closing:
            return
        logger.info("Feed connection to %s lost (%s)", self._url, reason or "unknown reason")
        self._subscriber.disconnected()

    def _relay(self, event: str) -> Callable[..., None]:
        def handler(data: Any = None) -> None:
            self._subscriber.received({"event": event, "data": data})

        return handler
