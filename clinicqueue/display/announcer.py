"""Announcement coordination for newly-serving patients."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
import functools
import itertools
import logging
from typing import Protocol

from .localization import (
    DEFAULT_VOICE_STRATEGIES,
    ENGLISH,
    TELUGU,
    Locale,
    VoiceDescriptor,
    VoiceStrategy,
    queue_status_message,
    select_voice,
)
from .models import QueueSnapshot
from .projector import current_patient

logger = logging.getLogger(__name__)


class SpeechError(RuntimeError):
    """Raised by speech engines when an utterance cannot be started."""


class CoordinatorState(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"


class UtteranceOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class Utterance:
    text: str
    lang: str
    voice: VoiceDescriptor | None
    rate: float


class SpeechEngine(Protocol):
    def is_available(self) -> bool:
        """Return whether speech output can work on this host."""

    def voices(self) -> Sequence[VoiceDescriptor]:
        """Return the voices currently installed."""

    def speak(self, utterance: Utterance, on_finished: Callable[[UtteranceOutcome], None]) -> None:
        """Start playback and report its outcome exactly once through ``on_finished``."""

    def cancel(self) -> None:
        """Cancel the utterance in flight, if any."""


@dataclass(frozen=True)
class _InFlight:
    entry_id: str | None
    sequence: int


class AnnouncementCoordinator:
    """Speaks each newly-serving entry at most once between resets.

    One coordinator belongs to one display surface. The spoken set is updated even
    while announcements are disabled, so re-enabling never replays stale entries.
    """

    def __init__(
        self,
        engine: SpeechEngine | None,
        locale: Locale = TELUGU,
        voice_strategies: Sequence[VoiceStrategy] = DEFAULT_VOICE_STRATEGIES,
        enabled: bool = True,
    ) -> None:
        self._engine = engine if engine is not None and engine.is_available() else None
        if self._engine is None:
            logger.info("Speech output unavailable; announcements disabled for this surface")
        self.locale = locale
        self.enabled = enabled
        self.last_announced_id: str | None = None
        self.state = CoordinatorState.IDLE
        self._voice_strategies = tuple(voice_strategies)
        self._spoken: set[str] = set()
        self._in_flight: _InFlight | None = None
        self._sequence = itertools.count(1)

    @property
    def supported(self) -> bool:
        return self._engine is not None

    @property
    def spoken(self) -> frozenset[str]:
        return frozenset(self._spoken)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        if not enabled:
            self.stop()

    def announce_if_needed(self, snapshot: QueueSnapshot) -> bool:
        """Start an utterance for the serving entry if it was never announced; return True if started."""
        if self._engine is None:
            return False
        serving = current_patient(snapshot)
        if serving is None or serving.id in self._spoken:
            return False

        self._spoken.add(serving.id)
        if not self.enabled:
            return False

        self.last_announced_id = serving.id
        logger.info("Announcing token %s", serving.token_number)
        return self._speak(self.locale, self.locale.announcement(serving.token_number, serving.name), serving.id)

    def announce_queue_status(self, position: int, estimated_wait_time: int) -> bool:
        """Speak a waiting patient's position and wait estimate in English; not deduplicated."""
        if self._engine is None or not self.enabled:
            return False
        return self._speak(ENGLISH, queue_status_message(position, estimated_wait_time), entry_id=None)

    def _speak(self, locale: Locale, text: str, entry_id: str | None) -> bool:
        if self._engine is None:
            return False
        self._cancel_in_flight()
        voice = select_voice(locale.voice_prefix, self._engine.voices(), self._voice_strategies)
        utterance = Utterance(text=text, lang=locale.tag, voice=voice, rate=locale.rate)
        in_flight = _InFlight(entry_id=entry_id, sequence=next(self._sequence))
        self._in_flight = in_flight
        self.state = CoordinatorState.SPEAKING
        try:
            self._engine.speak(utterance, functools.partial(self._on_finished, in_flight))
        except SpeechError as exc:
            logger.warning("Speech engine refused %r: %s", text, exc)
            self._on_finished(in_flight, UtteranceOutcome.FAILED)
            return False
        return True

    def reset(self) -> None:
        self._spoken.clear()
        self.last_announced_id = None

    def stop(self) -> None:
        self._cancel_in_flight()

    def _cancel_in_flight(self) -> None:
        if self._in_flight is None:
            return
        self._in_flight = None
        self.state = CoordinatorState.IDLE
        if self._engine is not None:
            self._engine.cancel()

    def _on_finished(self, in_flight: _InFlight, outcome: UtteranceOutcome) -> None:
        if outcome == UtteranceOutcome.FAILED and in_flight.entry_id is not None:
            self._spoken.discard(in_flight.entry_id)
            if self.last_announced_id == in_flight.entry_id:
                self.last_announced_id = None
            logger.warning("Announcement for %s failed; it will be retried on the next snapshot", in_flight.entry_id)
        if self._in_flight == in_flight:
            self._in_flight = None
            self.state = CoordinatorState.IDLE
