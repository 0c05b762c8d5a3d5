# backend/tutorhub/schemas/session.py
"""
Session schemas for the TutorHub scheduling API.

Instants (``scheduled_at``) must carry a UTC offset. Wall-clock values
(``local_start``) must not; they are interpreted in ``timezone``.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import ConfigDict, Field

from ..services.availability_service import OpenSlot, ScheduleSlot
from ..services.booking_service import BookingRequest, BookingResult, CancellationResult, SessionStats
from ..services.conflict_checker import Conflict
from ..services.recurrence_expander import Frequency, RecurrencePattern
from ._strict_base import StrictModel, StrictRequestModel


class RecurrencePatternIn(StrictRequestModel):
    frequency: Literal["daily", "weekly", "monthly"]
    interval: int = Field(1, ge=1, le=52)
    days_of_week: Optional[List[int]] = Field(
        None, description="0 = Sunday ... 6 = Saturday; weekly only"
    )
    end_date: Optional[date] = Field(None, description="Inclusive, in the lesson timezone")
    max_occurrences: Optional[int] = Field(None, ge=1)

    def to_domain(self) -> RecurrencePattern:
        return RecurrencePattern(
            frequency=Frequency(self.frequency),
            interval=self.interval,
            days_of_week=tuple(self.days_of_week) if self.days_of_week is not None else None,
            end_date=self.end_date,
            max_occurrences=self.max_occurrences,
        )


class SessionCreate(StrictRequestModel):
    """Book a session, optionally recurring."""

    tutor_id: str = Field(..., min_length=1, max_length=26)
    student_id: str = Field(..., min_length=1, max_length=26)
    scheduled_at: Optional[datetime] = Field(None, description="Absolute start with UTC offset")
    local_start: Optional[datetime] = Field(None, description="Wall-clock start in `timezone`")
    timezone: str = Field("UTC", description="IANA timezone of the lesson")
    duration_minutes: Optional[int] = Field(None, description="Defaults to 60")
    subject: str = Field("", max_length=100)
    title: str = Field("", max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=2000)
    price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    recurrence: Optional[RecurrencePatternIn] = None
    idempotency_key: Optional[str] = Field(None, max_length=128)

    def to_request(self) -> BookingRequest:
        return BookingRequest(
            tutor_id=self.tutor_id,
            student_id=self.student_id,
            start=self.scheduled_at,
            local_start=self.local_start,
            timezone=self.timezone,
            duration_minutes=self.duration_minutes,
            subject=self.subject,
            title=self.title,
            description=self.description,
            notes=self.notes,
            price=self.price,
            currency=self.currency.upper() if self.currency else None,
            recurrence=self.recurrence.to_domain() if self.recurrence else None,
            idempotency_key=self.idempotency_key,
        )


class SessionUpdate(StrictRequestModel):
    scheduled_at: Optional[datetime] = None
    local_start: Optional[datetime] = None
    timezone: Optional[str] = None
    duration_minutes: Optional[int] = None
    subject: Optional[str] = Field(None, max_length=100)
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=2000)


class SessionEnd(StrictRequestModel):
    notes: Optional[str] = Field(None, max_length=2000, description="Closing notes; replace the session notes")


class SessionCancel(StrictRequestModel):
    cancelled_by: Optional[str] = Field(None, max_length=26)
    reason: Optional[str] = Field(None, max_length=500)


class ConflictCheckRequest(StrictRequestModel):
    tutor_id: str = Field(..., min_length=1, max_length=26)
    student_id: str = Field(..., min_length=1, max_length=26)
    scheduled_at: datetime
    duration_minutes: Optional[int] = None
    exclude_session_id: Optional[str] = None


class ConflictingSessionOut(StrictModel):
    id: str
    scheduled_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


class ConflictOut(StrictModel):
    kind: str
    message: str
    conflicting_session: Optional[ConflictingSessionOut] = None
    suggested_times: List[datetime] = Field(default_factory=list)

    @classmethod
    def from_conflict(cls, conflict: Conflict) -> "ConflictOut":
        conflicting = None
        if conflict.conflicting_session_id:
            conflicting = ConflictingSessionOut(
                id=conflict.conflicting_session_id,
                scheduled_at=conflict.conflicting_start,
                ends_at=conflict.conflicting_end,
            )
        return cls(
            kind=conflict.kind.value,
            message=conflict.message,
            conflicting_session=conflicting,
            suggested_times=list(conflict.suggested_times),
        )


class ConflictCheckResponse(StrictModel):
    available: bool
    conflicts: List[ConflictOut]


class SessionResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: str
    tutor_id: str
    student_id: str
    subject: str
    title: str
    description: Optional[str] = None
    notes: Optional[str] = None
    scheduled_at: datetime
    ends_at: datetime
    duration_minutes: int
    timezone: str
    status: str
    price: Decimal
    currency: str
    is_recurring: bool
    recurrence_pattern: Optional[dict[str, Any]] = None
    parent_session_id: Optional[str] = None
    meeting_url: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime


class BookingResultResponse(StrictModel):
    success: bool
    session_id: Optional[str] = None
    occurrence_ids: List[str] = Field(default_factory=list)
    dropped_occurrences: List[datetime] = Field(default_factory=list)
    idempotent_replay: bool = False

    @classmethod
    def from_result(cls, result: BookingResult) -> "BookingResultResponse":
        return cls(
            success=result.success,
            session_id=result.session_id,
            occurrence_ids=list(result.occurrence_ids),
            dropped_occurrences=list(result.dropped_occurrences),
            idempotent_replay=result.idempotent_replay,
        )


class RefundOut(StrictModel):
    hours_until: float
    fraction: Decimal
    amount: Decimal
    currency: str
    policy_basis: str


class CancellationResponse(StrictModel):
    session_id: str
    refund: RefundOut

    @classmethod
    def from_result(cls, result: CancellationResult) -> "CancellationResponse":
        refund = result.refund
        return cls(
            session_id=result.session_id,
            refund=RefundOut(
                hours_until=round(refund.hours_until, 4),
                fraction=refund.fraction,
                amount=refund.amount,
                currency=refund.currency,
                policy_basis=refund.policy_basis,
            ),
        )


class SessionStatsResponse(StrictModel):
    total: int
    by_status: dict[str, int]
    upcoming: int
    completed: int
    cancelled: int
    no_show: int
    total_hours: float
    completed_amount: Decimal

    @classmethod
    def from_stats(cls, stats: SessionStats) -> "SessionStatsResponse":
        return cls(
            total=stats.total,
            by_status=dict(stats.by_status),
            upcoming=stats.upcoming,
            completed=stats.completed,
            cancelled=stats.cancelled,
            no_show=stats.no_show,
            total_hours=stats.total_hours,
            completed_amount=stats.completed_amount,
        )


class OpenSlotOut(StrictModel):
    start: datetime
    end: datetime
    duration_minutes: int

    @classmethod
    def from_slot(cls, slot: OpenSlot) -> "OpenSlotOut":
        return cls(start=slot.start, end=slot.end, duration_minutes=slot.duration_minutes)


class ScheduleSlotOut(StrictModel):
    start: datetime
    end: datetime
    is_available: bool
    conflict_reason: Optional[str] = None
    session_id: Optional[str] = None
    local_start: Optional[datetime] = None
    local_end: Optional[datetime] = None

    @classmethod
    def from_slot(cls, slot: ScheduleSlot) -> "ScheduleSlotOut":
        return cls(
            start=slot.start,
            end=slot.end,
            is_available=slot.is_available,
            conflict_reason=slot.conflict_reason,
            session_id=slot.session_id,
            local_start=slot.local_start,
            local_end=slot.local_end,
        )
