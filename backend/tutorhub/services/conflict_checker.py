# backend/tutorhub/services/conflict_checker.py
"""
Conflict Checker Service for the TutorHub scheduling engine.

Given a candidate session, reports every reason it cannot be booked as a
typed, immutable Conflict. Checks always run in the same order:

1. past_time
2. too_short_notice
3. outside_availability (tutor only)
4. tutor_busy
5. student_busy

All applicable conflicts are collected. Conflicts are values, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.config import SchedulingPolicy
from ..core.constants import (
    OUTSIDE_AVAILABILITY_MESSAGE,
    PAST_TIME_MESSAGE,
    STUDENT_BUSY_MESSAGE,
    TOO_SHORT_NOTICE_MESSAGE,
    TUTOR_BUSY_MESSAGE,
)
from ..core.exceptions import ValidationException
from ..models.session import TutoringSession
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from .availability_service import AvailabilityService
from .base import BaseService
from .timezone_service import TimezoneService

logger = logging.getLogger(__name__)


class ConflictType(str, Enum):
    PAST_TIME = "past_time"
    TOO_SHORT_NOTICE = "too_short_notice"
    OUTSIDE_AVAILABILITY = "outside_availability"
    TUTOR_BUSY = "tutor_busy"
    STUDENT_BUSY = "student_busy"


SUGGESTIBLE_CONFLICTS = frozenset(
    {ConflictType.OUTSIDE_AVAILABILITY, ConflictType.TUTOR_BUSY, ConflictType.STUDENT_BUSY}
)


@dataclass(frozen=True)
class Conflict:
    """Why a candidate cannot be booked as requested."""

    kind: ConflictType
    message: str
    conflicting_session_id: Optional[str] = None
    conflicting_start: Optional[datetime] = None
    conflicting_end: Optional[datetime] = None
    suggested_times: Tuple[datetime, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.conflicting_session_id:
            payload["conflicting_session"] = {
                "id": self.conflicting_session_id,
                "scheduled_at": _iso(self.conflicting_start),
                "ends_at": _iso(self.conflicting_end),
            }
        if self.suggested_times:
            payload["suggested_times"] = [_iso(value) for value in self.suggested_times]
        return payload


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class SessionCandidate:
    tutor_id: str
    student_id: str
    start: datetime
    duration_minutes: int
    exclude_session_id: Optional[str] = None
    end: datetime = field(init=False)

    def __post_init__(self) -> None:
        if self.duration_minutes is None or self.duration_minutes <= 0:
            raise ValidationException(
                "Duration must be a positive number of minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": self.duration_minutes},
            )
        start = TimezoneService.ensure_utc(self.start)
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", start + timedelta(minutes=self.duration_minutes))


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open [a, b) vs [c, d): overlap iff a < d and c < b."""
    return a_start < b_end and b_start < a_end


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts and time validation.

    This service centralizes all conflict detection logic to ensure
    consistent validation across booking, rescheduling and recurrence.
    """

    def __init__(
        self,
        db: Session,
        availability_service: Optional[AvailabilityService] = None,
        repository: Optional[SessionRepository] = None,
        policy: Optional[SchedulingPolicy] = None,
    ):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            availability_service: Source of tutor open hours
            repository: Optional SessionRepository instance
            policy: Booking rules; defaults to the configured settings
        """
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_session_repository(db)
        self.availability_service = availability_service or AvailabilityService(
            db, session_repository=self.repository
        )
        self.policy = policy or SchedulingPolicy.from_settings()

    @BaseService.measure_operation("detect_conflicts")
    def detect(
        self,
        candidate: SessionCandidate,
        now: datetime,
        include_suggestions: bool = True,
    ) -> List[Conflict]:
        """
        Run every check against the candidate.

        Args:
            candidate: Participants, UTC start and duration
            now: Reference instant for past/notice checks
            include_suggestions: Attach alternative starts to availability and
                busy conflicts

        Returns:
            Conflicts in the fixed check order; empty when bookable
        """
        now = TimezoneService.ensure_utc(now)
        conflicts: List[Conflict] = []

        if candidate.start <= now:
            conflicts.append(Conflict(ConflictType.PAST_TIME, PAST_TIME_MESSAGE))

        if candidate.start < self.earliest_bookable(now):
            conflicts.append(
                Conflict(
                    ConflictType.TOO_SHORT_NOTICE,
                    TOO_SHORT_NOTICE_MESSAGE.format(hours=self.policy.min_booking_notice_hours),
                )
            )

        if not self.availability_service.is_open(
            candidate.tutor_id, candidate.start, candidate.duration_minutes
        ):
            conflicts.append(
                Conflict(ConflictType.OUTSIDE_AVAILABILITY, OUTSIDE_AVAILABILITY_MESSAGE)
            )

        conflicts.extend(self.busy_conflicts_for(candidate))

        if conflicts:
            self.logger.warning(
                "Conflicts detected for tutor %s / student %s at %s: %s",
                candidate.tutor_id,
                candidate.student_id,
                candidate.start.isoformat(),
                [c.kind.value for c in conflicts],
            )

        if include_suggestions and any(c.kind in SUGGESTIBLE_CONFLICTS for c in conflicts):
            suggestions = tuple(self.suggest_alternatives(candidate, now))
            if suggestions:
                conflicts = [
                    replace(c, suggested_times=suggestions) if c.kind in SUGGESTIBLE_CONFLICTS else c
                    for c in conflicts
                ]
        return conflicts

    def earliest_bookable(self, now: datetime) -> datetime:
        return now + timedelta(hours=self.policy.min_booking_notice_hours)

    def busy_conflicts_for(self, candidate: SessionCandidate) -> List[Conflict]:
        """Only the participant-overlap checks, in order. Used under the booking lock."""
        conflicts: List[Conflict] = []
        tutor_clash = self._first_overlap(candidate.tutor_id, "tutor", candidate)
        if tutor_clash is not None:
            conflicts.append(self._busy_conflict(ConflictType.TUTOR_BUSY, tutor_clash))
        student_clash = self._first_overlap(candidate.student_id, "student", candidate)
        if student_clash is not None:
            conflicts.append(self._busy_conflict(ConflictType.STUDENT_BUSY, student_clash))
        return conflicts

    def suggest_alternatives(self, candidate: SessionCandidate, now: datetime) -> List[datetime]:
        """
        Up to ``suggestion_limit`` alternative starts free for both participants.

        Scans the tutor's open slots from the start of the candidate's UTC day
        for ``suggestion_search_days``, stepping ``suggestion_step_minutes``
        from each slot start. Only starts on or after now + notice qualify.
        """
        limit = self.policy.suggestion_limit
        if limit <= 0:
            return []
        duration = timedelta(minutes=candidate.duration_minutes)
        step = timedelta(minutes=self.policy.suggestion_step_minutes)
        earliest = self.earliest_bookable(now)

        day_start = candidate.start.replace(hour=0, minute=0, second=0, microsecond=0)
        scan_start = max(day_start, earliest)
        scan_end = day_start + timedelta(days=self.policy.suggestion_search_days)
        if scan_end <= scan_start:
            return []

        busy = self._busy_intervals(candidate, scan_start, scan_end + duration)
        suggestions: List[datetime] = []
        for slot in self.availability_service.enumerate_open_slots(
            candidate.tutor_id, scan_start, scan_end + duration
        ):
            start = slot.start
            while start + duration <= slot.end and start < scan_end:
                end = start + duration
                if (
                    start >= earliest
                    and start != candidate.start
                    and not any(intervals_overlap(start, end, b_start, b_end) for b_start, b_end in busy)
                ):
                    suggestions.append(start)
                    if len(suggestions) >= limit:
                        return suggestions
                start += step
        return suggestions

    # Helpers

    def _first_overlap(
        self, participant_id: str, role: str, candidate: SessionCandidate
    ) -> Optional[TutoringSession]:
        sessions = self.repository.query_overlapping(
            participant_id,
            role,
            candidate.start,
            candidate.end,
            exclude_session_id=candidate.exclude_session_id,
        )
        for session in sessions:
            if intervals_overlap(candidate.start, candidate.end, session.scheduled_at, session.ends_at):
                return session
        return None

    def _busy_intervals(
        self, candidate: SessionCandidate, start: datetime, end: datetime
    ) -> Sequence[Tuple[datetime, datetime]]:
        intervals = []
        for participant_id, role in ((candidate.tutor_id, "tutor"), (candidate.student_id, "student")):
            for session in self.repository.query_overlapping(
                participant_id, role, start, end, exclude_session_id=candidate.exclude_session_id
            ):
                intervals.append((session.scheduled_at, session.ends_at))
        return intervals

    @staticmethod
    def _busy_conflict(kind: ConflictType, session: TutoringSession) -> Conflict:
        message = TUTOR_BUSY_MESSAGE if kind is ConflictType.TUTOR_BUSY else STUDENT_BUSY_MESSAGE
        return Conflict(
            kind,
            message,
            conflicting_session_id=session.id,
            conflicting_start=session.scheduled_at,
            conflicting_end=session.ends_at,
        )

