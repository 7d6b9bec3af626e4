"""Display formatters for patient names, phone numbers and clinic status."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from .models import QueueEntry

PhoneFormat = Callable[[str | None], str | None]


def mask_phone(phone: str | None) -> str | None:
    """Keep the first two and last two digits, masking the rest with X."""
    if not phone or len(phone) < 4:
        return phone
    value = str(phone).strip()
    return f"{value[:2]}{'X' * max(0, len(value) - 4)}{value[-2:]}"


def to_title_case(text: str | None) -> str:
    if not text:
        return ""
    words = re.split(r"\s+", str(text).lower().strip())
    return " ".join("-".join(part[:1].upper() + part[1:] for part in word.split("-")) for word in words)


def format_phone_display(phone: str | None, country_code: str = "91") -> str:
    return f"+{country_code} {mask_phone(phone) or ''}".rstrip()


def clinic_status(queue_length: int = 0, on_break: bool = False) -> str:
    if on_break:
        return "On Break"
    if queue_length < 5:
        return "On Schedule"
    if queue_length < 10:
        return "Busy"
    return "Very Busy"


def display_entry(entry: QueueEntry, phone_format: PhoneFormat = mask_phone) -> dict[str, Any]:
    """Wire-shaped entry for screens: title-cased name, phone passed through ``phone_format``."""
    payload = entry.model_dump(mode="json", by_alias=True)
    payload["name"] = to_title_case(entry.name)
    payload["phone"] = phone_format(entry.phone) if entry.phone else entry.phone
    return payload
