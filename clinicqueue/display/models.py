"""Queue snapshot models shared by every display component."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

logger = logging.getLogger(__name__)

QUEUE_UPDATE = "QUEUE_UPDATE"
RESET_SUCCESS = "RESET_SUCCESS"
GET_QUEUE = "GET_QUEUE"
GET_QUEUE_BY_DATE = "GET_QUEUE_BY_DATE"


class EntryStatus(str, Enum):
    WAITING = "WAITING"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class EntryType(str, Enum):
    WALK_IN = "WALK_IN"
    BOOKED = "BOOKED"


class QueueEntry(BaseModel):
    """One patient's queue record as pushed by the queue service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(alias="_id")
    token_number: int = Field(alias="tokenNumber", gt=0)
    name: str = ""
    phone: str = ""
    type: EntryType = EntryType.WALK_IN
    status: EntryStatus
    position: int | None = None
    estimated_wait_time: int | None = Field(default=None, alias="estimatedWaitTime")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(value)
        return value


QueueSnapshot = tuple[QueueEntry, ...]

_SNAPSHOT_ADAPTER = TypeAdapter(list[QueueEntry])


def parse_snapshot(raw: Any) -> QueueSnapshot:
    """Validate a wire payload into an immutable snapshot; raises ValidationError."""
    return tuple(_SNAPSHOT_ADAPTER.validate_python(raw))


@dataclass(frozen=True)
class SubscriptionScope:
    service_date: str | None = None

    @property
    def is_scoped(self) -> bool:
        return self.service_date is not None

    def to_request(self) -> dict[str, Any]:
        if self.service_date is None:
            return {"event": GET_QUEUE}
        return {"event": GET_QUEUE_BY_DATE, "data": self.service_date}


ALL_DATES = SubscriptionScope()


@dataclass(frozen=True)
class SnapshotPush:
    snapshot: QueueSnapshot
    reset: bool = False
    message: str | None = None


def parse_push_message(payload: Any) -> SnapshotPush | None:
    """Turn one inbound frame into a push, or None when it is unknown or malformed."""
    if not isinstance(payload, dict):
        logger.warning("Ignoring non-object feed frame: %r", payload)
        return None

    event = payload.get("event")
    data = payload.get("data")
    try:
        if event == QUEUE_UPDATE:
            return SnapshotPush(snapshot=parse_snapshot(data if data is not None else []))
        if event == RESET_SUCCESS:
            body = data if isinstance(data, dict) else {}
            return SnapshotPush(
                snapshot=parse_snapshot(body.get("queue") or []),
                reset=True,
                message=body.get("message"),
            )
    except ValidationError as exc:
        logger.warning("Dropping malformed %s frame: %s", event, exc)
        return None

    logger.debug("Ignoring feed event %r", event)
    return None
