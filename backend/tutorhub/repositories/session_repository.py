# backend/tutorhub/repositories/session_repository.py
"""
Session Repository for the TutorHub scheduling engine.

Data access for tutoring sessions: participant-scoped overlap queries used by
the conflict detector, list/filter queries and the statistics rollup.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.session import BLOCKING_STATUSES, TutoringSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

PARTICIPANT_COLUMNS = {
    "tutor": TutoringSession.tutor_id,
    "student": TutoringSession.student_id,
}


class SessionRepository(BaseRepository[TutoringSession]):
    """Repository for tutoring session data access."""

    def __init__(self, db: Session):
        super().__init__(db, TutoringSession)
        self.logger = logging.getLogger(__name__)

    # Conflict queries

    def query_overlapping(
        self,
        participant_id: str,
        role: str,
        start: datetime,
        end: datetime,
        exclude_session_id: Optional[str] = None,
    ) -> List[TutoringSession]:
        """
        Blocking sessions of one participant whose [scheduled_at, ends_at)
        intersects [start, end). Touching endpoints do not overlap.

        Args:
            participant_id: User ID of the tutor or student
            role: "tutor" or "student"
            start: Candidate start (UTC)
            end: Candidate end (UTC)
            exclude_session_id: Session to ignore (the one being rescheduled)

        Returns:
            Overlapping sessions ordered by start time
        """
        column = PARTICIPANT_COLUMNS[role]
        query = self.db.query(TutoringSession).filter(
            column == participant_id,
            TutoringSession.status.in_(BLOCKING_STATUSES),
            TutoringSession.scheduled_at < end,
            TutoringSession.ends_at > start,
        )
        if exclude_session_id:
            query = query.filter(TutoringSession.id != exclude_session_id)
        return self._execute_query(query.order_by(TutoringSession.scheduled_at, TutoringSession.id))

    def get_blocking_sessions_in_range(
        self, participant_id: str, role: str, start: datetime, end: datetime
    ) -> List[TutoringSession]:
        """All blocking sessions of a participant touching [start, end)."""
        return self.query_overlapping(participant_id, role, start, end)

    # Lookups

    def get_by_idempotency_key(self, key: str) -> Optional[TutoringSession]:
        return self.find_one_by(idempotency_key=key)

    def get_series(self, parent_session_id: str) -> List[TutoringSession]:
        """Seed session plus every occurrence generated from it."""
        query = self.db.query(TutoringSession).filter(
            or_(
                TutoringSession.id == parent_session_id,
                TutoringSession.parent_session_id == parent_session_id,
            )
        )
        return self._execute_query(query.order_by(TutoringSession.scheduled_at))

    def get_sessions(
        self,
        *,
        user_id: Optional[str] = None,
        role: Optional[str] = None,
        statuses: Optional[Sequence[str]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        subject: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[TutoringSession]:
        """
        Filtered session listing ordered by scheduled_at.

        With a user_id and no role, sessions where the user is either
        participant are returned.
        """
        query = self._participant_query(user_id, role)
        if statuses:
            query = query.filter(TutoringSession.status.in_(list(statuses)))
        if start is not None:
            query = query.filter(TutoringSession.scheduled_at >= start)
        if end is not None:
            query = query.filter(TutoringSession.scheduled_at < end)
        if subject:
            query = query.filter(TutoringSession.subject == subject)
        query = query.order_by(TutoringSession.scheduled_at, TutoringSession.id)
        return self._execute_query(query.offset(skip).limit(limit))

    def get_upcoming(
        self, user_id: str, now: datetime, role: Optional[str] = None, limit: int = 10
    ) -> List[TutoringSession]:
        query = (
            self._participant_query(user_id, role)
            .filter(
                TutoringSession.status.in_(BLOCKING_STATUSES),
                TutoringSession.ends_at > now,
            )
            .order_by(TutoringSession.scheduled_at, TutoringSession.id)
            .limit(limit)
        )
        return self._execute_query(query)

    def count_by_status(self, user_id: str, role: Optional[str] = None) -> Dict[str, int]:
        """Session counts grouped by status for one participant."""
        try:
            rows = (
                self._participant_query(user_id, role)
                .with_entities(TutoringSession.status, func.count(TutoringSession.id))
                .group_by(TutoringSession.status)
                .all()
            )
            return {status: int(count) for status, count in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting sessions by status: {str(e)}")
            raise RepositoryException(f"Failed to get session statistics: {str(e)}")

    def sum_minutes(self, user_id: str, status: str, role: Optional[str] = None) -> int:
        query = (
            self._participant_query(user_id, role)
            .with_entities(func.coalesce(func.sum(TutoringSession.duration_minutes), 0))
            .filter(TutoringSession.status == status)
        )
        return int(self._execute_scalar(query) or 0)

    def sum_price(self, user_id: str, status: str, role: Optional[str] = None) -> Decimal:
        query = (
            self._participant_query(user_id, role)
            .with_entities(func.coalesce(func.sum(TutoringSession.price), 0))
            .filter(TutoringSession.status == status)
        )
        return Decimal(str(self._execute_scalar(query) or 0))

    def count_upcoming(self, user_id: str, now: datetime, role: Optional[str] = None) -> int:
        query = (
            self._participant_query(user_id, role)
            .with_entities(func.count(TutoringSession.id))
            .filter(
                TutoringSession.status == "scheduled",
                TutoringSession.scheduled_at > now,
            )
        )
        return int(self._execute_scalar(query) or 0)

    # Helpers

    def _participant_query(self, user_id: Optional[str], role: Optional[str]) -> Query:
        query = self.db.query(TutoringSession)
        if user_id is None:
            return query
        if role:
            return query.filter(PARTICIPANT_COLUMNS[role] == user_id)
        return query.filter(
            or_(TutoringSession.tutor_id == user_id, TutoringSession.student_id == user_id)
        )

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(TutoringSession.tutor),
            joinedload(TutoringSession.student),
        )

    def insert(self, **fields: Any) -> TutoringSession:
        return self.create(**fields)

    def bulk_insert(self, rows: List[Dict[str, Any]]) -> List[TutoringSession]:
        return self.bulk_create(rows) if rows else []
