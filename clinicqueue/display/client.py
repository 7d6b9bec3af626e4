"""Pull requests against the queue service: initial snapshot and served-today count."""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from .models import QueueSnapshot, parse_snapshot

logger = logging.getLogger(__name__)


class QueueServiceClient:
    def __init__(self, base_url: str, http_client: httpx.AsyncClient | None = None, timeout: float = 5.0) -> None:
        self._http = http_client if http_client is not None else httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_http = http_client is None

    async def fetch_queue(self) -> QueueSnapshot | None:
        """Full queue for initial render; None when the service is unreachable or replies garbage."""
        try:
            response = await self._http.get("/api/queue")
            response.raise_for_status()
            return parse_snapshot(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            logger.warning("Initial queue fetch failed: %s", exc)
            return None

    async def fetch_served_today(self) -> int | None:
        try:
            response = await self._http.get("/api/stats/done-today")
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Served-today fetch failed: %s", exc)
            return None
        count = payload.get("count") if isinstance(payload, dict) else None
        if not isinstance(count, int) or isinstance(count, bool):
            logger.warning("Served-today response without integer count: %r", payload)
            return None
        return count

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()
