"""Configuration helpers for display runtime."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from datetime import timedelta

DEFAULT_SURFACES = ("lobby", "assistant")


@dataclass(frozen=True)
class DisplaySettings:
    server_url: str
    civil_offset_minutes: int
    voice_language: str
    audio_player: tuple[str, ...]
    host: str
    port: int
    surfaces: tuple[str, ...]
    log_level: str

    @property
    def civil_offset(self) -> timedelta:
        return timedelta(minutes=self.civil_offset_minutes)


def load_settings() -> DisplaySettings:
    port_raw = os.getenv("CLINICQUEUE_PORT", "8100")
    offset_raw = os.getenv("CLINICQUEUE_CIVIL_OFFSET_MINUTES", "330")
    surfaces_raw = os.getenv("CLINICQUEUE_SURFACES", ",".join(DEFAULT_SURFACES))
    return DisplaySettings(
        server_url=os.getenv("CLINICQUEUE_SERVER_URL", "http://localhost:5000"),
        civil_offset_minutes=int(offset_raw),
        voice_language=os.getenv("CLINICQUEUE_VOICE_LANGUAGE", "te"),
        audio_player=tuple(shlex.split(os.getenv("CLINICQUEUE_AUDIO_PLAYER", "mpg123 -q -"))),
        host=os.getenv("CLINICQUEUE_HOST", "127.0.0.1"),
        port=int(port_raw),
        surfaces=tuple(name.strip().lower() for name in surfaces_raw.split(",") if name.strip()),
        log_level=os.getenv("CLINICQUEUE_LOG_LEVEL", "INFO").upper(),
    )
