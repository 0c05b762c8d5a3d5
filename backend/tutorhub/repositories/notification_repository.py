# backend/tutorhub/repositories/notification_repository.py
"""In-app notification persistence."""

import logging
from typing import List

from sqlalchemy.orm import Session

from ..models.notification import Notification
from .base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    def __init__(self, db: Session):
        super().__init__(db, Notification)
        self.logger = logging.getLogger(__name__)

    def get_for_user(self, user_id: str, limit: int = 50) -> List[Notification]:
        query = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return self._execute_query(query)
