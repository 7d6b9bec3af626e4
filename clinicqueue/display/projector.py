"""Pure view derivations over queue snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from itertools import islice
from typing import Any

from .formatting import PhoneFormat, clinic_status, display_entry, mask_phone
from .models import EntryStatus, QueueEntry, QueueSnapshot

# India Standard Time, the clinic's civil offset.
DEFAULT_CIVIL_OFFSET = timedelta(hours=5, minutes=30)


def first_with_status(snapshot: QueueSnapshot, status: EntryStatus) -> QueueEntry | None:
    for entry in snapshot:
        if entry.status == status:
            return entry
    return None


def current_patient(snapshot: QueueSnapshot) -> QueueEntry | None:
    """First IN_PROGRESS entry in snapshot order; later duplicates are ignored."""
    return first_with_status(snapshot, EntryStatus.IN_PROGRESS)


def upcoming(snapshot: QueueSnapshot, limit: int) -> QueueSnapshot:
    if limit <= 0:
        return ()
    waiting = (entry for entry in snapshot if entry.status == EntryStatus.WAITING)
    return tuple(islice(waiting, limit))


def waiting_count(snapshot: QueueSnapshot) -> int:
    return sum(1 for entry in snapshot if entry.status == EntryStatus.WAITING)


def served_count(snapshot: QueueSnapshot) -> int:
    return sum(1 for entry in snapshot if entry.status == EntryStatus.DONE)


def total_count(snapshot: QueueSnapshot) -> int:
    return len(snapshot)


def service_date_key(moment: datetime, offset: timedelta = DEFAULT_CIVIL_OFFSET) -> str:
    """Calendar date of ``moment`` at a fixed civil offset, never the host timezone."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone(offset)).date().isoformat()


def today_key(now: datetime | None = None, offset: timedelta = DEFAULT_CIVIL_OFFSET) -> str:
    return service_date_key(now if now is not None else datetime.now(timezone.utc), offset)


def by_service_date(
    snapshot: QueueSnapshot,
    date_key: str,
    offset: timedelta = DEFAULT_CIVIL_OFFSET,
) -> QueueSnapshot:
    return tuple(
        entry
        for entry in snapshot
        if entry.created_at is not None and service_date_key(entry.created_at, offset) == date_key
    )


def find_token(snapshot: QueueSnapshot, token_number: int) -> QueueEntry | None:
    for entry in snapshot:
        if entry.token_number == token_number:
            return entry
    return None


@dataclass(frozen=True)
class QueueView:
    current: QueueEntry | None
    upcoming: QueueSnapshot
    served_count: int
    waiting_count: int
    total_count: int

    @property
    def status_label(self) -> str:
        return clinic_status(queue_length=self.waiting_count)

    def to_payload(self, phone_format: PhoneFormat = mask_phone) -> dict[str, Any]:
        return {
            "current": display_entry(self.current, phone_format) if self.current else None,
            "upcoming": [display_entry(entry, phone_format) for entry in self.upcoming],
            "servedCount": self.served_count,
            "waitingCount": self.waiting_count,
            "totalCount": self.total_count,
            "status": self.status_label,
        }


EMPTY_VIEW = QueueView(current=None, upcoming=(), served_count=0, waiting_count=0, total_count=0)


def project(snapshot: QueueSnapshot, upcoming_limit: int) -> QueueView:
    return QueueView(
        current=current_patient(snapshot),
        upcoming=upcoming(snapshot, upcoming_limit),
        served_count=served_count(snapshot),
        waiting_count=waiting_count(snapshot),
        total_count=total_count(snapshot),
    )


@dataclass(frozen=True)
class TrackingView:
    entry: QueueEntry
    current: QueueEntry | None
    message: str

    def to_payload(self, phone_format: PhoneFormat = mask_phone) -> dict[str, Any]:
        return {
            "entry": display_entry(self.entry, phone_format),
            "current": display_entry(self.current, phone_format) if self.current else None,
            "message": self.message,
        }


def position_message(entry: QueueEntry) -> str:
    if entry.status == EntryStatus.DONE:
        return "Your consultation is complete"
    if entry.status == EntryStatus.IN_PROGRESS:
        return "You are being served now"
    if entry.position is None:
        return "You are waiting in the queue"
    if entry.position == 0:
        return "You are next in line"
    if entry.position == 1:
        return "1 patient ahead of you"
    return f"{entry.position} patients ahead of you"


def track(snapshot: QueueSnapshot, token_number: int) -> TrackingView | None:
    """Tracking view for one token, or None when the token is not in the snapshot."""
    entry = find_token(snapshot, token_number)
    if entry is None:
        return None
    return TrackingView(entry=entry, current=current_patient(snapshot), message=position_message(entry))
