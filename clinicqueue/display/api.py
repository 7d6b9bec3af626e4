"""FastAPI endpoints exposing projected surface views, tracking lookups and view push."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
import logging
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .client import QueueServiceClient
from .config import DisplaySettings, load_settings
from .localization import get_locale
from .speech import GTTSSpeechEngine
from .surface import SURFACE_PROFILES, DisplaySurface, SurfaceKind, build_surface

logger = logging.getLogger(__name__)


class VoiceToggleRequest(BaseModel):
    enabled: bool


class ScopeRequest(BaseModel):
    date: str | None = Field(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$")


class SurfaceViewResponse(BaseModel):
    surface: str
    scope: str | None
    connection: str
    announcements: bool
    servedToday: int | None
    view: dict[str, Any]


class TrackingResponse(BaseModel):
    entry: dict[str, Any]
    current: dict[str, Any] | None
    message: str


class SurfaceWebSocketHub:
    """Pushes a surface's view to its screens whenever the view actually changes."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)
        self._last_views: dict[str, dict[str, Any]] = {}

    async def connect(self, surface: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections[surface].add(websocket)

    def disconnect(self, surface: str, websocket: WebSocket) -> None:
        connections = self._connections.get(surface)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            self._connections.pop(surface, None)

    async def send_view(self, websocket: WebSocket, payload: dict[str, Any]) -> None:
        await websocket.send_json({"type": "view.full", **payload})

    async def broadcast_view(self, surface: str, payload: dict[str, Any]) -> bool:
        if self._last_views.get(surface) == payload:
            return False
        self._last_views[surface] = payload
        stale_connections: list[WebSocket] = []
        for websocket in list(self._connections.get(surface, set())):
            try:
                await self.send_view(websocket, payload)
            except RuntimeError:
                stale_connections.append(websocket)
        for websocket in stale_connections:
            self.disconnect(surface=surface, websocket=websocket)
        return True


def _build_surfaces(settings: DisplaySettings) -> dict[SurfaceKind, DisplaySurface]:
    locale = get_locale(settings.voice_language)
    surfaces: dict[SurfaceKind, DisplaySurface] = {}
    for name in settings.surfaces:
        kind = SurfaceKind(name)
        surfaces[kind] = build_surface(
            kind=kind,
            engine=GTTSSpeechEngine(player=settings.audio_player),
            client=QueueServiceClient(base_url=settings.server_url),
            locale=locale,
            civil_offset=settings.civil_offset,
        )
    return surfaces


def create_app(
    surfaces: Mapping[SurfaceKind, DisplaySurface] | None = None,
    settings: DisplaySettings | None = None,
) -> FastAPI:
    """Build the surface API; injected surfaces are served as-is and never started."""
    local_settings = settings if settings is not None else load_settings()
    owns_surfaces = surfaces is None
    running: dict[SurfaceKind, DisplaySurface] = dict(surfaces) if surfaces is not None else {}
    websocket_hub = SurfaceWebSocketHub()
    broadcasts: set[asyncio.Task[None]] = set()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        loop = asyncio.get_running_loop()

        def schedule_broadcast(surface: str, payload: dict[str, Any]) -> None:
            task = loop.create_task(websocket_hub.broadcast_view(surface=surface, payload=payload))
            broadcasts.add(task)
            task.add_done_callback(broadcasts.discard)

        def publish(surface: DisplaySurface) -> None:
            loop.call_soon_threadsafe(schedule_broadcast, surface.kind.value, surface.describe())

        if owns_surfaces:
            running.update(_build_surfaces(local_settings))
        for surface in running.values():
            surface.add_listener(publish)
        if owns_surfaces:
            for surface in running.values():
                await surface.start(local_settings.server_url)
                logger.info("Started %s surface", surface.kind.value)
        try:
            yield
        finally:
            for surface in running.values():
                surface.remove_listener(publish)
            for task in list(broadcasts):
                task.cancel()
            if owns_surfaces:
                for surface in running.values():
                    await surface.aclose()
                    if surface.client is not None:
                        await surface.client.aclose()
                running.clear()

    app = FastAPI(title="Clinic Queue Display API", version="0.1.0", lifespan=lifespan)
    app.state.websocket_hub = websocket_hub
    app.state.surfaces = running

    def get_surface(kind: str) -> DisplaySurface:
        try:
            return running[SurfaceKind(kind)]
        except (ValueError, KeyError):
            raise HTTPException(status_code=404, detail="Surface not running") from None

    @app.get("/api/surfaces/{kind}", response_model=SurfaceViewResponse)
    async def get_view(kind: str) -> SurfaceViewResponse:
        return SurfaceViewResponse(**get_surface(kind).describe())

    @app.post("/api/surfaces/{kind}/voice", response_model=SurfaceViewResponse)
    async def toggle_voice(kind: str, payload: VoiceToggleRequest) -> SurfaceViewResponse:
        surface = get_surface(kind)
        surface.set_announcements_enabled(payload.enabled)
        return SurfaceViewResponse(**surface.describe())

    @app.post("/api/surfaces/{kind}/scope", response_model=SurfaceViewResponse)
    async def change_scope(kind: str, payload: ScopeRequest) -> SurfaceViewResponse:
        surface = get_surface(kind)
        surface.select_date(payload.date)
        return SurfaceViewResponse(**surface.describe())

    @app.post("/api/surfaces/{kind}/today", response_model=SurfaceViewResponse)
    async def reset_to_today(kind: str) -> SurfaceViewResponse:
        surface = get_surface(kind)
        surface.reset_to_today()
        return SurfaceViewResponse(**surface.describe())

    tracking_phone_format = SURFACE_PROFILES[SurfaceKind.TRACKING].phone_format

    @app.get("/api/track/{token}", response_model=TrackingResponse)
    async def track_token(token: int) -> TrackingResponse:
        # Unscoped surfaces hold the full queue, so they are searched first.
        for surface in sorted(running.values(), key=lambda item: item.scope.service_date is not None):
            tracking = surface.track(token)
            if tracking is not None:
                return TrackingResponse(**tracking.to_payload(phone_format=tracking_phone_format))
        raise HTTPException(status_code=404, detail="Token not found")

    @app.websocket("/ws/surfaces/{kind}")
    async def surface_ws(websocket: WebSocket, kind: str) -> None:
        try:
            surface = running.get(SurfaceKind(kind))
        except ValueError:
            surface = None
        if surface is None:
            await websocket.close(code=1008)
            return

        await websocket_hub.connect(surface=kind, websocket=websocket)
        await websocket_hub.send_view(websocket=websocket, payload=surface.describe())

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_hub.disconnect(surface=kind, websocket=websocket)

    return app
