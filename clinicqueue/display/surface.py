"""Display surfaces: one subscriber, one coordinator and one projected view each."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
import itertools
import logging
from typing import Any

from .announcer import AnnouncementCoordinator, SpeechEngine
from .channel import SocketIOChannel
from .client import QueueServiceClient
from .formatting import PhoneFormat, format_phone_display, mask_phone
from .localization import TELUGU, Locale
from .models import ALL_DATES, QueueSnapshot, SubscriptionScope
from .projector import (
    DEFAULT_CIVIL_OFFSET,
    EMPTY_VIEW,
    QueueView,
    TrackingView,
    by_service_date,
    project,
    today_key,
    track,
)
from .subscriber import LiveFeedSubscriber, SubscriberState

logger = logging.getLogger(__name__)


class SurfaceKind(str, Enum):
    RECEPTION = "reception"
    ASSISTANT = "assistant"
    LOBBY = "lobby"
    TRACKING = "tracking"


@dataclass(frozen=True)
class SurfaceProfile:
    upcoming_limit: int
    voice: bool
    today_only: bool
    phone_format: PhoneFormat


SURFACE_PROFILES: dict[SurfaceKind, SurfaceProfile] = {
    SurfaceKind.RECEPTION: SurfaceProfile(upcoming_limit=10, voice=False, today_only=False, phone_format=mask_phone),
    SurfaceKind.ASSISTANT: SurfaceProfile(upcoming_limit=5, voice=True, today_only=False, phone_format=mask_phone),
    SurfaceKind.LOBBY: SurfaceProfile(upcoming_limit=3, voice=True, today_only=True, phone_format=format_phone_display),
    SurfaceKind.TRACKING: SurfaceProfile(upcoming_limit=0, voice=False, today_only=False, phone_format=format_phone_display),
}

SurfaceListener = Callable[["DisplaySurface"], None]
ChannelFactory = Callable[[str, LiveFeedSubscriber], SocketIOChannel]


class DisplaySurface:
    """Independent reactive unit; all state is mutated from its own message handler."""

    def __init__(
        self,
        kind: SurfaceKind,
        coordinator: AnnouncementCoordinator,
        client: QueueServiceClient | None = None,
        scope: SubscriptionScope = ALL_DATES,
        upcoming_limit: int | None = None,
        civil_offset: timedelta = DEFAULT_CIVIL_OFFSET,
        channel_factory: ChannelFactory = SocketIOChannel,
    ) -> None:
        self.kind = kind
        self.coordinator = coordinator
        self.client = client
        self.civil_offset = civil_offset
        self.channel_factory = channel_factory
        self.upcoming_limit = upcoming_limit if upcoming_limit is not None else SURFACE_PROFILES[kind].upcoming_limit
        self.subscriber = LiveFeedSubscriber(listener=self, scope=scope)
        self.snapshot: QueueSnapshot = ()
        self.view: QueueView = EMPTY_VIEW
        self.served_today: int | None = None
        self._listeners: list[SurfaceListener] = []
        self._snapshot_listeners: list[Callable[[QueueSnapshot], None]] = []
        self._channel: SocketIOChannel | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._refresh_again = False

    @property
    def scope(self) -> SubscriptionScope:
        return self.subscriber.scope

    @property
    def connection_state(self) -> SubscriberState:
        return self.subscriber.state

    def add_listener(self, listener: SurfaceListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SurfaceListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def add_snapshot_listener(self, listener: Callable[[QueueSnapshot], None]) -> None:
        self._snapshot_listeners.append(listener)

    def on_snapshot(self, snapshot: QueueSnapshot, reset: bool) -> None:
        if reset:
            self.coordinator.reset()
        scoped = self._apply_scope(snapshot)
        self.snapshot = scoped
        self.view = project(scoped, self.upcoming_limit)
        self.coordinator.announce_if_needed(scoped)
        for listener in list(self._snapshot_listeners):
            listener(scoped)
        self._notify()
        self._schedule_served_refresh()

    def on_disconnect(self) -> None:
        self.coordinator.stop()
        self._notify()

    def set_announcements_enabled(self, enabled: bool) -> None:
        self.coordinator.set_enabled(enabled)

    def select_date(self, service_date: str | None) -> None:
        self.subscriber.change_scope(SubscriptionScope(service_date=service_date))

    def reset_to_today(self, now: datetime | None = None) -> str:
        key = today_key(now, self.civil_offset)
        self.select_date(key)
        return key

    def track(self, token_number: int) -> TrackingView | None:
        return track(self.snapshot, token_number)

    def describe(self) -> dict[str, Any]:
        return {
            "surface": self.kind.value,
            "scope": self.scope.service_date,
            "connection": self.connection_state.value,
            "announcements": self.coordinator.enabled and self.coordinator.supported,
            "servedToday": self.served_today,
            "view": self.view.to_payload(phone_format=SURFACE_PROFILES[self.kind].phone_format),
        }

    async def start(self, server_url: str) -> None:
        if self.client is not None:
            initial = await self.client.fetch_queue()
            if initial is not None and self.subscriber.last_snapshot is None:
                # Render only; the first push decides what gets announced.
                self.snapshot = self._apply_scope(initial)
                self.view = project(self.snapshot, self.upcoming_limit)
                self._notify()
            await self._refresh_served_today()
        self._channel = self.channel_factory(server_url, self.subscriber)
        self._run_task = asyncio.get_running_loop().create_task(self._channel.run())
        self._run_task.add_done_callback(self._on_channel_stopped)

    async def aclose(self) -> None:
        self.subscriber.close()
        self.coordinator.stop()
        pending = [task for task in (self._run_task, self._refresh_task) if task is not None and not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if self._channel is not None:
            await self._channel.aclose()
        self._run_task = None
        self._refresh_task = None
        self._listeners.clear()
        self._snapshot_listeners.clear()

    def _apply_scope(self, snapshot: QueueSnapshot) -> QueueSnapshot:
        if self.scope.service_date is None:
            return snapshot
        return by_service_date(snapshot, self.scope.service_date, self.civil_offset)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _schedule_served_refresh(self) -> None:
        if self.client is None or self.subscriber.state == SubscriberState.CLOSED:
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_again = True
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._refresh_task = loop.create_task(self._refresh_served_today())

    async def _refresh_served_today(self) -> None:
        # Snapshots arriving mid-fetch ask for one more fetch once this one lands.
        while self.client is not None:
            self._refresh_again = False
            count = await self.client.fetch_served_today()
            if count is not None and count != self.served_today:
                self.served_today = count
                self._notify()
            if not self._refresh_again:
                return

    def _on_channel_stopped(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Feed channel for the %s surface stopped: %r", self.kind.value, exc)


def build_surface(
    kind: SurfaceKind,
    engine: SpeechEngine | None,
    client: QueueServiceClient | None = None,
    locale: Locale = TELUGU,
    civil_offset: timedelta = DEFAULT_CIVIL_OFFSET,
    now: datetime | None = None,
) -> DisplaySurface:
    profile = SURFACE_PROFILES[kind]
    scope = SubscriptionScope(service_date=today_key(now, civil_offset)) if profile.today_only else ALL_DATES
    coordinator = AnnouncementCoordinator(engine=engine if profile.voice else None, locale=locale)
    return DisplaySurface(kind=kind, coordinator=coordinator, client=client, scope=scope, civil_offset=civil_offset)


class SurfaceHub:
    """Handle-based access to independent surfaces."""

    def __init__(
        self,
        server_url: str,
        engine_factory: Callable[[], SpeechEngine | None],
        client_factory: Callable[[], QueueServiceClient | None] = lambda: None,
        locale: Locale = TELUGU,
        civil_offset: timedelta = DEFAULT_CIVIL_OFFSET,
    ) -> None:
        self._server_url = server_url
        self._engine_factory = engine_factory
        self._client_factory = client_factory
        self._locale = locale
        self._civil_offset = civil_offset
        self._surfaces: dict[int, DisplaySurface] = {}
        self._handles = itertools.count(1)

    def surface(self, handle: int) -> DisplaySurface:
        return self._surfaces[handle]

    def handles(self) -> list[int]:
        return list(self._surfaces)

    async def subscribe(self, scope: SubscriptionScope | None = None, kind: SurfaceKind = SurfaceKind.LOBBY) -> int:
        surface = build_surface(
            kind=kind,
            engine=self._engine_factory(),
            client=self._client_factory(),
            locale=self._locale,
            civil_offset=self._civil_offset,
        )
        if scope is not None:
            surface.subscriber.scope = scope
        handle = next(self._handles)
        self._surfaces[handle] = surface
        await surface.start(self._server_url)
        return handle

    async def unsubscribe(self, handle: int) -> None:
        surface = self._surfaces.pop(handle, None)
        if surface is None:
            return
        await surface.aclose()
        if surface.client is not None:
            await surface.client.aclose()

    def on_snapshot(self, handle: int, callback: Callable[[QueueSnapshot], None]) -> None:
        self._surfaces[handle].add_snapshot_listener(callback)

    def set_announcements_enabled(self, handle: int, enabled: bool) -> None:
        self._surfaces[handle].set_announcements_enabled(enabled)

    def announce_if_needed(self, handle: int, snapshot: QueueSnapshot) -> None:
        self._surfaces[handle].coordinator.announce_if_needed(snapshot)

    async def aclose(self) -> None:
        for handle in list(self._surfaces):
            await self.unsubscribe(handle)
