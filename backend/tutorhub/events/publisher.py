"""Event publisher - fans session events out to the notification sink."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Dict

from ..services.notification_service import NotificationSink
from .session_events import SessionEvent

logger = logging.getLogger(__name__)


class EventPublisher:
    """
    Best-effort delivery of session events to every participant.

    A failing recipient is logged and skipped; publishing never raises, so a
    committed booking is never undone by a notification problem.
    """

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    def publish(self, event: SessionEvent) -> int:
        """Returns the number of recipients successfully notified."""
        payload = _serialize(event.to_dict())
        delivered = 0
        for user_id in event.recipients:
            try:
                self.sink.notify(user_id, event.event_type, payload)
                delivered += 1
            except Exception:
                logger.warning(
                    "Failed to deliver %s for session %s to user %s",
                    event.event_type,
                    event.session_id,
                    user_id,
                    exc_info=True,
                )
        return delivered


def _serialize(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Convert datetime objects to ISO strings for JSON serialization
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in payload.items()
    }
