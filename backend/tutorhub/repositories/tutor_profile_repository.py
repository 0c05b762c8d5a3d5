# backend/tutorhub/repositories/tutor_profile_repository.py
"""Tutor profile and availability window data access."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Query, Session, selectinload

from ..models.tutor import AvailabilityWindow, TutorProfile
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TutorProfileRepository(BaseRepository[TutorProfile]):
    def __init__(self, db: Session):
        super().__init__(db, TutorProfile)
        self.logger = logging.getLogger(__name__)

    def get_by_user_id(self, user_id: str) -> Optional[TutorProfile]:
        query = self._apply_eager_loading(
            self.db.query(TutorProfile).filter(TutorProfile.user_id == user_id)
        )
        return query.first()

    def is_active(self, user_id: str) -> bool:
        profile = self.get_by_user_id(user_id)
        return bool(profile and profile.is_active and profile.user and profile.user.is_active)

    def get_availability(self, user_id: str) -> List[AvailabilityWindow]:
        """Availability windows for a tutor keyed by the tutor's user id."""
        query = (
            self.db.query(AvailabilityWindow)
            .join(TutorProfile, AvailabilityWindow.tutor_profile_id == TutorProfile.id)
            .filter(TutorProfile.user_id == user_id)
            .order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time)
        )
        return self._execute_query(query)

    def replace_availability(
        self, profile: TutorProfile, windows: List[Dict[str, Any]]
    ) -> TutorProfile:
        """Swap the full window set and bump the cache version."""
        profile.availability_windows = [AvailabilityWindow(**window) for window in windows]
        profile.availability_version = (profile.availability_version or 0) + 1
        self.db.flush()
        return profile

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            selectinload(TutorProfile.availability_windows),
            selectinload(TutorProfile.user),
        )
