"""Push-channel lifecycle for one display surface."""

from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Protocol

from .models import ALL_DATES, QueueSnapshot, SubscriptionScope, parse_push_message

logger = logging.getLogger(__name__)


class PushChannel(Protocol):
    def send(self, message: dict[str, Any]) -> None:
        """Send one frame if connected; frames sent while disconnected are dropped."""

    def close(self) -> None:
        """Stop the channel; no events are delivered afterwards."""


class FeedListener(Protocol):
    def on_snapshot(self, snapshot: QueueSnapshot, reset: bool) -> None:
        """Handle a full snapshot; ``reset`` marks a server-issued queue reset."""

    def on_disconnect(self) -> None:
        """Handle loss of the push channel."""


class SubscriberState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    SCOPE_CHANGING = "scope_changing"
    CLOSED = "closed"


class LiveFeedSubscriber:
    """Reacts to channel events; the channel owns connect and backoff timing."""

    def __init__(self, listener: FeedListener, scope: SubscriptionScope = ALL_DATES) -> None:
        self.listener = listener
        self.scope = scope
        self.state = SubscriberState.DISCONNECTED
        self.last_snapshot: QueueSnapshot | None = None
        self._channel: PushChannel | None = None

    def attach(self, channel: PushChannel) -> None:
        self._channel = channel

    def connected(self) -> None:
        if self.state == SubscriberState.CLOSED:
            return
        logger.info("Feed connected; subscribing to %s", self.scope.service_date or "all dates")
        self.state = SubscriberState.CONNECTED
        self._send_subscription()

    def disconnected(self) -> None:
        if self.state in (SubscriberState.CLOSED, SubscriberState.RECONNECTING):
            return
        logger.warning("Feed disconnected; keeping last known view")
        self.state = SubscriberState.RECONNECTING
        self.listener.on_disconnect()

    def received(self, payload: Any) -> None:
        if self.state == SubscriberState.CLOSED:
            return
        push = parse_push_message(payload)
        if push is None:
            return
        if self.state == SubscriberState.SCOPE_CHANGING:
            self.state = SubscriberState.CONNECTED
        if push.reset:
            logger.info("Queue reset by server: %s", push.message or "")
        self.last_snapshot = push.snapshot
        self.listener.on_snapshot(push.snapshot, reset=push.reset)

    def change_scope(self, scope: SubscriptionScope) -> None:
        self.scope = scope
        if self.state in (SubscriberState.CONNECTED, SubscriberState.SCOPE_CHANGING):
            self.state = SubscriberState.SCOPE_CHANGING
            self._send_subscription()

    def close(self) -> None:
        if self.state == SubscriberState.CLOSED:
            return
        self.state = SubscriberState.CLOSED
        if self._channel is not None:
            self._channel.close()

    def _send_subscription(self) -> None:
        if self._channel is None:
            logger.debug("No channel attached; subscription deferred")
            return
        self._channel.send(self.scope.to_request())
