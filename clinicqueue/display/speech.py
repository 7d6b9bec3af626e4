"""gTTS speech engine that plays synthesized audio through an external player."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
import io
import logging
import shutil

from .announcer import SpeechError, Utterance, UtteranceOutcome
from .localization import VoiceDescriptor

logger = logging.getLogger(__name__)

DEFAULT_PLAYER = ("mpg123", "-q", "-")


class GTTSSpeechEngine:
    """Synthesizes with gTTS and pipes MP3 audio to ``player`` on stdin.

    Must be driven from a running asyncio loop; ``on_finished`` callbacks run on that loop.
    """

    def __init__(self, player: Sequence[str] = DEFAULT_PLAYER) -> None:
        self._player = tuple(player)
        self._task: asyncio.Task[None] | None = None
        self._voices: tuple[VoiceDescriptor, ...] | None = None

    def is_available(self) -> bool:
        try:
            import gtts  # noqa: F401
        except ImportError:
            return False
        return bool(self._player) and shutil.which(self._player[0]) is not None

    def voices(self) -> Sequence[VoiceDescriptor]:
        if self._voices is None:
            from gtts.lang import tts_langs

            self._voices = tuple(
                VoiceDescriptor(name=name, lang=code) for code, name in sorted(tts_langs().items())
            )
        return self._voices

    def speak(self, utterance: Utterance, on_finished: Callable[[UtteranceOutcome], None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise SpeechError("speech playback needs a running event loop") from exc
        task = loop.create_task(self._play(utterance))
        task.add_done_callback(lambda done: on_finished(_outcome(done)))
        self._task = task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _play(self, utterance: Utterance) -> None:
        lang = utterance.voice.lang if utterance.voice is not None else utterance.lang.split("-")[0]
        audio = await asyncio.to_thread(_synthesize, utterance.text, lang, utterance.rate < 0.5)
        process = await asyncio.create_subprocess_exec(
            *self._player,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            await process.communicate(audio)
        finally:
            if process.returncode is None:
                process.terminate()
                await process.wait()
        if process.returncode != 0:
            raise SpeechError(f"{self._player[0]} exited with status {process.returncode}")


def _synthesize(text: str, lang: str, slow: bool) -> bytes:
    from gtts import gTTS

    buffer = io.BytesIO()
    gTTS(text=text, lang=lang, slow=slow).write_to_fp(buffer)
    return buffer.getvalue()


def _outcome(task: asyncio.Task[None]) -> UtteranceOutcome:
    if task.cancelled():
        return UtteranceOutcome.CANCELLED
    exc = task.exception()
    if exc is not None:
        logger.warning("Speech playback failed: %s", exc)
        return UtteranceOutcome.FAILED
    return UtteranceOutcome.COMPLETED
