# backend/tutorhub/models/session.py
"""
Tutoring session model.

A session is a single scheduled meeting between exactly one tutor and one
student. ``scheduled_at`` is an absolute UTC instant; ``timezone`` records the
zone the booking was authored in so recurring series keep their wall-clock
time across DST changes.

``ends_at`` is denormalized from scheduled_at + duration_minutes so that
overlap queries can run as a single indexed range comparison.
"""

from datetime import datetime, timedelta
from enum import Enum
import logging
from typing import Any

from sqlalchemy import (
    DDL,
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.constants import STUDENT_OVERLAP_CONSTRAINT, TUTOR_OVERLAP_CONSTRAINT
from ..database import Base
from .types import UTCDateTime, utc_now

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    """Session lifecycle statuses."""

    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
)

# Statuses that occupy a participant's calendar for overlap purposes.
BLOCKING_STATUSES = (SessionStatus.SCHEDULED.value, SessionStatus.ONGOING.value)

# One-directional lifecycle; no transition leaves a terminal state.
ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.SCHEDULED: frozenset(
        {SessionStatus.ONGOING, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
    ),
    SessionStatus.ONGOING: frozenset({SessionStatus.COMPLETED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
    SessionStatus.NO_SHOW: frozenset(),
}


def can_transition(current: SessionStatus | str, target: SessionStatus | str) -> bool:
    return SessionStatus(target) in ALLOWED_TRANSITIONS[SessionStatus(current)]


class TutoringSession(Base):
    """Persisted session row. Participants, price and currency never change after insert."""

    __tablename__ = "sessions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    student_id = Column(String(26), ForeignKey("users.id"), nullable=False)

    subject = Column(String(100), nullable=False, default="")
    title = Column(String(200), nullable=False, default="")
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    scheduled_at = Column(UTCDateTime, nullable=False)
    ends_at = Column(UTCDateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")

    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value, index=True)

    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    is_recurring = Column(Boolean, nullable=False, default=False)
    recurrence_pattern = Column(JSON, nullable=True)
    parent_session_id = Column(String(26), ForeignKey("sessions.id"), nullable=True, index=True)

    idempotency_key = Column(String(128), nullable=True, unique=True)
    meeting_url = Column(String(500), nullable=True)

    started_at = Column(UTCDateTime, nullable=True)
    ended_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)

    tutor = relationship("User", foreign_keys=[tutor_id])
    student = relationship("User", foreign_keys=[student_id])
    parent_session = relationship("TutoringSession", remote_side=[id], uselist=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'ongoing', 'completed', 'cancelled', 'no-show')",
            name="ck_sessions_status",
        ),
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        CheckConstraint("tutor_id <> student_id", name="check_distinct_participants"),
        Index("ix_sessions_tutor_window", "tutor_id", "scheduled_at", "ends_at"),
        Index("ix_sessions_student_window", "student_id", "scheduled_at", "ends_at"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if self.scheduled_at is not None and self.duration_minutes and self.ends_at is None:
            self.ends_at = self.scheduled_at + timedelta(minutes=int(self.duration_minutes))

    def __repr__(self) -> str:
        return (
            f"<TutoringSession {self.id}: tutor={self.tutor_id}, student={self.student_id}, "
            f"at={self.scheduled_at}, {self.duration_minutes}m, status={self.status}>"
        )

    @property
    def status_enum(self) -> SessionStatus:
        return SessionStatus(self.status)

    @property
    def interval(self) -> tuple[datetime, datetime]:
        """Half-open [start, end) occupied by this session."""
        return self.scheduled_at, self.ends_at

    def reschedule(self, scheduled_at: datetime, duration_minutes: int) -> None:
        self.scheduled_at = scheduled_at
        self.duration_minutes = duration_minutes
        self.ends_at = scheduled_at + timedelta(minutes=duration_minutes)


# Last-resort overlap guard for concurrent commits. PostgreSQL only; on other
# dialects the service-level participant lock is the guard.
for _constraint, _column in (
    (TUTOR_OVERLAP_CONSTRAINT, "tutor_id"),
    (STUDENT_OVERLAP_CONSTRAINT, "student_id"),
):
    event.listen(
        TutoringSession.__table__,
        "after_create",
        DDL(
            f"ALTER TABLE sessions ADD CONSTRAINT {_constraint} "
            f"EXCLUDE USING gist ({_column} WITH =, tstzrange(scheduled_at, ends_at, '[)') WITH &&) "
            "WHERE (status IN ('scheduled', 'ongoing'))"
        ).execute_if(dialect="postgresql"),
    )

event.listen(
    TutoringSession.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
