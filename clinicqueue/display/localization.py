"""Spoken-number tables, announcement locales and voice selection."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

TELUGU_NUMBERS: dict[int, str] = {
    1: "ఒకటి",
    2: "రెండు",
    3: "మూడు",
    4: "నాలుగు",
    5: "ఐదు",
    6: "ఆరు",
    7: "ఏడు",
    8: "ఎనిమిది",
    9: "తొమ్మిది",
    10: "పది",
    11: "పదకొండు",
    12: "పన్నెండు",
    13: "పదమూడు",
    14: "పద్నాలుగు",
    15: "పదిహేను",
    16: "పదహారు",
    17: "పదిహేడు",
    18: "పద్దెనిమిది",
    19: "పందొమ్మిది",
    20: "ఇరవై",
    21: "ఇరవై ఒకటి",
    22: "ఇరవై రెండు",
    23: "ఇరవై మూడు",
    24: "ఇరవై నాలుగు",
    25: "ఇరవై ఐదు",
    26: "ఇరవై ఆరు",
    27: "ఇరవై ఏడు",
    28: "ఇరవై ఎనిమిది",
    29: "ఇరవై తొమ్మిది",
    30: "ముప్పై",
    31: "ముప్పై ఒకటి",
    32: "ముప్పై రెండు",
    33: "ముప్పై మూడు",
    34: "ముప్పై నాలుగు",
    35: "ముప్పై ఐదు",
    36: "ముప్పై ఆరు",
    37: "ముప్పై ఏడు",
    38: "ముప్పై ఎనిమిది",
    39: "ముప్పై తొమ్మిది",
    40: "నలభై",
    41: "నలభై ఒకటి",
    42: "నలభై రెండు",
    43: "నలభై మూడు",
    44: "నలభై నాలుగు",
    45: "నలభై ఐదు",
    46: "నలభై ఆరు",
    47: "నలభై ఏడు",
    48: "నలభై ఎనిమిది",
    49: "నలభై తొమ్మిది",
    50: "యాభై",
}


@dataclass(frozen=True)
class VoiceDescriptor:
    name: str
    lang: str


def lookup_spoken_number(number: int, numbers: Mapping[int, str] = TELUGU_NUMBERS) -> str:
    """Return the spoken word for a token number, or its decimal string when unmapped."""
    try:
        word = numbers.get(number)
    except TypeError:
        word = None
    return word if word is not None else str(number)


@dataclass(frozen=True)
class Locale:
    tag: str
    voice_prefix: str
    template: str
    numbers: Mapping[int, str] = field(default_factory=dict)
    rate: float = 1.0

    def spoken_number(self, number: int) -> str:
        return lookup_spoken_number(number, self.numbers)

    def announcement(self, token_number: int, name: str) -> str:
        return self.template.format(number=self.spoken_number(token_number), name=name)


TELUGU = Locale(
    tag="te-IN",
    voice_prefix="te",
    template="టోకెన్ నంబర్ {number}. {name} గారు.",
    numbers=TELUGU_NUMBERS,
    rate=0.8,
)
ENGLISH = Locale(
    tag="en-IN",
    voice_prefix="en",
    template="Token number {number}. {name}.",
    rate=0.95,
)
QUEUE_STATUS_TEMPLATE = "You are at position {position}. Estimated wait time is {minutes} minutes."
LOCALES: dict[str, Locale] = {"te": TELUGU, "en": ENGLISH}


def get_locale(language: str) -> Locale:
    return LOCALES.get(language.split("-", maxsplit=1)[0].lower(), TELUGU)


def queue_status_message(position: int, estimated_wait_time: int) -> str:
    return QUEUE_STATUS_TEMPLATE.format(position=position, minutes=estimated_wait_time)


VoiceStrategy = Callable[[str, Sequence[VoiceDescriptor]], VoiceDescriptor | None]


def match_language_prefix(prefix: str, voices: Sequence[VoiceDescriptor]) -> VoiceDescriptor | None:
    for voice in voices:
        if voice.lang.startswith(prefix):
            return voice
    return None


def first_available(prefix: str, voices: Sequence[VoiceDescriptor]) -> VoiceDescriptor | None:
    return voices[0] if voices else None


# Tried in order until one returns a voice.
DEFAULT_VOICE_STRATEGIES: tuple[VoiceStrategy, ...] = (match_language_prefix, first_available)


def select_voice(
    prefix: str,
    voices: Sequence[VoiceDescriptor],
    strategies: Sequence[VoiceStrategy] = DEFAULT_VOICE_STRATEGIES,
) -> VoiceDescriptor | None:
    for strategy in strategies:
        voice = strategy(prefix, voices)
        if voice is not None:
            return voice
    return None
