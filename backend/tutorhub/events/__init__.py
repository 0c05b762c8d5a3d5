"""Session domain events and their publisher."""

from .publisher import EventPublisher
from .session_events import (
    SessionBooked,
    SessionCancelled,
    SessionCompleted,
    SessionEvent,
    SessionNoShow,
    SessionStarted,
    SessionUpdated,
)

__all__ = [
    "EventPublisher",
    "SessionBooked",
    "SessionCancelled",
    "SessionCompleted",
    "SessionEvent",
    "SessionNoShow",
    "SessionStarted",
    "SessionUpdated",
]
