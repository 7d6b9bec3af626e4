"""Display package for the clinic queue: projection, announcements and live feed."""

from .announcer import AnnouncementCoordinator, SpeechEngine, SpeechError
from .config import DisplaySettings, load_settings
from .localization import lookup_spoken_number, select_voice
from .models import QueueEntry, QueueSnapshot, SubscriptionScope, parse_snapshot
from .projector import by_service_date, current_patient, served_count, total_count, upcoming
from .subscriber import LiveFeedSubscriber
from .surface import DisplaySurface, SurfaceHub, SurfaceKind

__all__ = [
    "AnnouncementCoordinator",
    "by_service_date",
    "current_patient",
    "DisplaySettings",
    "DisplaySurface",
    "LiveFeedSubscriber",
    "load_settings",
    "lookup_spoken_number",
    "parse_snapshot",
    "QueueEntry",
    "QueueSnapshot",
    "select_voice",
    "served_count",
    "SpeechEngine",
    "SpeechError",
    "SubscriptionScope",
    "SurfaceHub",
    "SurfaceKind",
    "total_count",
    "upcoming",
]
