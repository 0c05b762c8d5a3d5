"""
In-app notifications for session lifecycle events.

The booking service talks to a NotificationSink; the default sink stores a
Notification row per recipient. Delivery (push, email) is handled elsewhere.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from ..core.constants import (
    SESSION_BOOKED,
    SESSION_CANCELLED,
    SESSION_COMPLETED,
    SESSION_NO_SHOW,
    SESSION_STARTED,
    SESSION_UPDATED,
)
from ..repositories.factory import RepositoryFactory
from ..repositories.notification_repository import NotificationRepository
from .base import BaseService

logger = logging.getLogger(__name__)

NOTIFICATION_TEMPLATES: Dict[str, Dict[str, str]] = {
    SESSION_BOOKED: {
        "title": "Session booked",
        "message": "Your {subject} session is booked for {scheduled_at}.",
    },
    SESSION_UPDATED: {
        "title": "Session rescheduled",
        "message": "Your {subject} session has moved to {scheduled_at}.",
    },
    SESSION_CANCELLED: {
        "title": "Session cancelled",
        "message": "Your {subject} session on {scheduled_at} was cancelled.",
    },
    SESSION_STARTED: {
        "title": "Session started",
        "message": "Your {subject} session has started. Join the classroom now.",
    },
    SESSION_COMPLETED: {
        "title": "Session completed",
        "message": "Your {subject} session has ended.",
    },
    SESSION_NO_SHOW: {
        "title": "Session missed",
        "message": "Your {subject} session on {scheduled_at} was marked as a no-show.",
    },
}


class NotificationSink(Protocol):
    def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        ...


class _SafeFormat(dict):
    def __missing__(self, key: str) -> str:
        return ""


class NotificationService(BaseService):
    """Persists one in-app notification per recipient and commits it on its own."""

    def __init__(self, db: Session, repository: Optional[NotificationRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_notification_repository(db)

    @BaseService.measure_operation("notify")
    def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        template = NOTIFICATION_TEMPLATES.get(
            event_type, {"title": event_type.replace("_", " ").capitalize(), "message": ""}
        )
        values = _SafeFormat(payload)
        values["subject"] = payload.get("subject") or "tutoring"
        with self.transaction():
            self.repository.create(
                user_id=user_id,
                event_type=event_type,
                title=template["title"],
                message=template["message"].format_map(values),
                payload=payload,
            )
        self.logger.debug("Notification %s stored for user %s", event_type, user_id)
