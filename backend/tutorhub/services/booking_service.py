# backend/tutorhub/services/booking_service.py
"""
Booking Service for the TutorHub scheduling engine.

The public entry point for sessions:
- Booking single and recurring sessions
- Rescheduling with conflict re-validation
- Lifecycle transitions (start, end, cancel, no-show)
- Refunds on cancellation
- Session queries and statistics

Every operation takes ``now`` explicitly. Conflicts are returned in a
BookingResult; validation, entity and state errors are raised.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.booking_lock import BookingLockTimeout, participant_locks
from ..core.config import SchedulingPolicy
from ..core.constants import (
    STUDENT_BUSY_MESSAGE,
    STUDENT_OVERLAP_CONSTRAINT,
    TUTOR_BUSY_MESSAGE,
    TUTOR_OVERLAP_CONSTRAINT,
)
from ..core.exceptions import (
    BusinessRuleException,
    EntityInactive,
    EntityNotFound,
    InvalidStateTransition,
    OutsideStartWindow,
    ValidationException,
)
from ..events.publisher import EventPublisher
from ..events.session_events import (
    SessionBooked,
    SessionCancelled,
    SessionCompleted,
    SessionEvent,
    SessionNoShow,
    SessionStarted,
    SessionUpdated,
)
from ..models.session import SessionStatus, TutoringSession, can_transition
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .availability_service import AvailabilityService
from .base import BaseService
from .conflict_checker import Conflict, ConflictChecker, ConflictType, SessionCandidate
from .notification_service import NotificationService, NotificationSink
from .recurrence_expander import RecurrencePattern, expand
from .refund_policy_engine import RefundPolicyEngine, RefundPolicyResult
from .timezone_service import TimezoneService
from .wallet_service import Ledger, WalletService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

LockFactory = Callable[[Iterable[str]], AbstractContextManager]


@dataclass(frozen=True)
class BookingRequest:
    """
    A request to book a session.

    Exactly one of ``start`` (aware instant) or ``local_start`` (naive
    wall-clock in ``timezone``) must be given. ``timezone`` is always the
    lesson timezone used for recurrence.
    """

    tutor_id: str
    student_id: str
    start: Optional[datetime] = None
    local_start: Optional[datetime] = None
    timezone: str = "UTC"
    duration_minutes: Optional[int] = None
    subject: str = ""
    title: str = ""
    description: Optional[str] = None
    notes: Optional[str] = None
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    recurrence: Optional[RecurrencePattern] = None
    idempotency_key: Optional[str] = None


@dataclass(frozen=True)
class BookingResult:
    success: bool
    session_id: Optional[str] = None
    conflicts: Tuple[Conflict, ...] = ()
    occurrence_ids: Tuple[str, ...] = ()
    dropped_occurrences: Tuple[datetime, ...] = ()
    idempotent_replay: bool = False

    @classmethod
    def rejected(cls, conflicts: Sequence[Conflict], session_id: Optional[str] = None) -> "BookingResult":
        return cls(success=False, session_id=session_id, conflicts=tuple(conflicts))


@dataclass(frozen=True)
class CancellationResult:
    session_id: str
    refund: RefundPolicyResult


@dataclass(frozen=True)
class SessionFilters:
    user_id: Optional[str] = None
    role: Optional[str] = None
    statuses: Tuple[str, ...] = ()
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    subject: Optional[str] = None
    skip: int = 0
    limit: int = 100


@dataclass(frozen=True)
class SessionStats:
    total: int
    by_status: Dict[str, int] = field(default_factory=dict)
    upcoming: int = 0
    completed: int = 0
    cancelled: int = 0
    no_show: int = 0
    total_hours: float = 0.0
    completed_amount: Decimal = Decimal("0")


class BookingService(BaseService):
    """
    Service layer for session booking operations.

    Centralizes booking logic so routes stay thin. Persistence goes through
    the session repository; tutor/student validity through the profile and
    user repositories.
    """

    def __init__(
        self,
        db: Session,
        policy: Optional[SchedulingPolicy] = None,
        availability_service: Optional[AvailabilityService] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        notification_sink: Optional[NotificationSink] = None,
        ledger: Optional[Ledger] = None,
        refund_engine: Optional[RefundPolicyEngine] = None,
        lock_factory: Optional[LockFactory] = None,
    ):
        """
        Initialize booking service.

        Args:
            db: Database session
            policy: Booking rules; defaults to the configured settings
            availability_service: Tutor open hours
            conflict_checker: Conflict detection
            notification_sink: Receives session events for both participants
            ledger: Wallet credited on refunds
            refund_engine: Cancellation refund policy
            lock_factory: Context manager factory taking participant ids
        """
        super().__init__(db)
        self.policy = policy or SchedulingPolicy.from_settings()
        self.repository = RepositoryFactory.create_session_repository(db)
        self.tutor_repository = RepositoryFactory.create_tutor_profile_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.availability_service = availability_service or AvailabilityService(
            db, tutor_repository=self.tutor_repository, session_repository=self.repository
        )
        self.conflict_checker = conflict_checker or ConflictChecker(
            db,
            availability_service=self.availability_service,
            repository=self.repository,
            policy=self.policy,
        )
        self.event_publisher = EventPublisher(notification_sink or NotificationService(db))
        self.ledger: Ledger = ledger or WalletService(db)
        self.refund_engine = refund_engine or RefundPolicyEngine(self.policy)
        self.lock_factory: LockFactory = lock_factory or participant_locks

    # Booking

    @BaseService.measure_operation("book_session")
    def book_session(self, request: BookingRequest, now: datetime) -> BookingResult:
        """
        Validate, conflict-check and persist a session (and its series).

        Args:
            request: Booking request
            now: Reference instant for every time rule

        Returns:
            BookingResult; ``conflicts`` is non-empty when nothing was persisted

        Raises:
            ValidationException: Malformed request
            EntityNotFound / EntityInactive: Unknown or inactive participant
        """
        now = TimezoneService.ensure_utc(now)
        duration = self._validate_request(request)

        if request.idempotency_key:
            replay = self._replay(request)
            if replay is not None:
                return replay

        tutor_profile = self._require_active_tutor(request.tutor_id)
        self._require_active_student(request.student_id)

        start = self._resolve_start(request)
        self._check_advance_limit(start, now)

        candidate = SessionCandidate(request.tutor_id, request.student_id, start, duration)
        conflicts = self.conflict_checker.detect(candidate, now)
        if conflicts:
            self._record_conflicts(conflicts)
            return BookingResult.rejected(conflicts)

        occurrences: List[datetime] = []
        dropped: List[datetime] = []
        if request.recurrence is not None:
            series = expand(
                start,
                request.timezone,
                request.recurrence,
                cap=self.policy.max_recurrence_occurrences,
            )
            for instant in series[1:]:
                occurrence = SessionCandidate(request.tutor_id, request.student_id, instant, duration)
                if self.conflict_checker.detect(occurrence, now, include_suggestions=False):
                    dropped.append(instant)
                else:
                    occurrences.append(instant)

        price = self._resolve_price(request, tutor_profile, duration)
        currency = request.currency or tutor_profile.currency or "USD"

        try:
            with self.lock_factory([request.tutor_id, request.student_id]):
                with self.transaction():
                    result = self._persist_series(
                        request, candidate, occurrences, dropped, price, currency
                    )
        except BookingLockTimeout as exc:
            result = BookingResult.rejected(self._lock_timeout_conflicts(exc, request.tutor_id))

        if result.idempotent_replay:
            return result
        if not result.success:
            self._record_conflicts(result.conflicts)
            return result

        prometheus_metrics.inc_sessions_booked(
            1 + len(result.occurrence_ids), recurring=request.recurrence is not None
        )
        self.log_operation(
            "book_session",
            session_id=result.session_id,
            tutor_id=request.tutor_id,
            student_id=request.student_id,
            occurrences=len(result.occurrence_ids),
            dropped=len(result.dropped_occurrences),
        )
        if result.dropped_occurrences:
            self.logger.warning(
                "Dropped %d conflicting occurrence(s) from series %s",
                len(result.dropped_occurrences),
                result.session_id,
            )
        self._publish(
            SessionBooked(
                session_id=result.session_id,
                tutor_id=request.tutor_id,
                student_id=request.student_id,
                scheduled_at=start,
                subject=request.subject,
                occurrence_ids=list(result.occurrence_ids),
            )
        )
        return result

    def _persist_series(
        self,
        request: BookingRequest,
        candidate: SessionCandidate,
        occurrences: List[datetime],
        dropped: List[datetime],
        price: Decimal,
        currency: str,
    ) -> BookingResult:
        """Re-check participant overlaps under the lock, then insert everything in one flush."""
        conflicts = self.conflict_checker.busy_conflicts_for(candidate)
        if conflicts:
            return BookingResult.rejected(conflicts)

        kept: List[datetime] = []
        dropped = list(dropped)
        for instant in occurrences:
            occurrence = SessionCandidate(
                candidate.tutor_id, candidate.student_id, instant, candidate.duration_minutes
            )
            if self.conflict_checker.busy_conflicts_for(occurrence):
                dropped.append(instant)
            else:
                kept.append(instant)

        common: Dict[str, Any] = {
            "tutor_id": request.tutor_id,
            "student_id": request.student_id,
            "duration_minutes": candidate.duration_minutes,
            "timezone": request.timezone,
            "subject": request.subject,
            "title": request.title,
            "description": request.description,
            "notes": request.notes,
            "price": price,
            "currency": currency,
            "status": SessionStatus.SCHEDULED.value,
            "is_recurring": request.recurrence is not None,
        }
        try:
            seed = self.repository.insert(
                scheduled_at=candidate.start,
                recurrence_pattern=request.recurrence.to_dict() if request.recurrence else None,
                idempotency_key=request.idempotency_key,
                **common,
            )
            children = self.repository.bulk_insert(
                [
                    dict(common, scheduled_at=instant, parent_session_id=seed.id)
                    for instant in kept
                ]
            )
        except IntegrityError as exc:
            self.db.rollback()
            conflicts = self._overlap_conflicts(exc)
            if conflicts:
                return BookingResult.rejected(conflicts)
            if request.idempotency_key and "idempotency_key" in str(exc.orig):
                replay = self._replay(request)
                if replay is not None:
                    return replay
            raise

        return BookingResult(
            success=True,
            session_id=seed.id,
            occurrence_ids=tuple(child.id for child in children),
            dropped_occurrences=tuple(sorted(dropped)),
        )

    @staticmethod
    def _lock_timeout_conflicts(exc: BookingLockTimeout, tutor_id: str) -> List[Conflict]:
        """Another request still holds this participant, so report them as busy."""
        if exc.participant_id == tutor_id:
            return [Conflict(ConflictType.TUTOR_BUSY, TUTOR_BUSY_MESSAGE)]
        return [Conflict(ConflictType.STUDENT_BUSY, STUDENT_BUSY_MESSAGE)]

    @staticmethod
    def _overlap_conflicts(exc: IntegrityError) -> List[Conflict]:
        """Map an overlap-guard violation from a racing commit to the matching conflict."""
        message = str(exc.orig)
        if TUTOR_OVERLAP_CONSTRAINT in message:
            return [Conflict(ConflictType.TUTOR_BUSY, TUTOR_BUSY_MESSAGE)]
        if STUDENT_OVERLAP_CONSTRAINT in message:
            return [Conflict(ConflictType.STUDENT_BUSY, STUDENT_BUSY_MESSAGE)]
        return []

    def _replay(self, request: BookingRequest) -> Optional[BookingResult]:
        existing = self.repository.get_by_idempotency_key(request.idempotency_key)
        if existing is None:
            return None
        if existing.student_id != request.student_id or existing.tutor_id != request.tutor_id:
            raise ValidationException(
                "Idempotency key was already used for a different booking",
                code="IDEMPOTENCY_KEY_REUSED",
                details={"idempotency_key": request.idempotency_key},
            )
        children = [s.id for s in self.repository.get_series(existing.id) if s.id != existing.id]
        self.logger.info("Idempotent replay of booking %s", existing.id)
        return BookingResult(
            success=True,
            session_id=existing.id,
            occurrence_ids=tuple(children),
            idempotent_replay=True,
        )

    # Rescheduling

    @BaseService.measure_operation("update_session")
    def update_session(
        self,
        session_id: str,
        now: datetime,
        *,
        start: Optional[datetime] = None,
        local_start: Optional[datetime] = None,
        timezone: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        subject: Optional[str] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> BookingResult:
        """
        Move and/or edit a session.

        Time changes re-run conflict detection excluding the session itself.
        Terminal sessions cannot be updated; only scheduled sessions can move.
        """
        now = TimezoneService.ensure_utc(now)
        session = self.get_session(session_id)
        status = session.status_enum
        if status.is_terminal:
            raise InvalidStateTransition(session_id, status.value, "updated")

        timezone_str = timezone or session.timezone
        TimezoneService.get_timezone(timezone_str)
        if start is not None and local_start is not None:
            raise ValidationException(
                "Provide either start or local_start, not both",
                code="AMBIGUOUS_START",
            )
        if local_start is not None:
            new_start = TimezoneService.to_absolute(local_start, timezone_str)
        elif start is not None:
            new_start = TimezoneService.ensure_utc(start)
        else:
            new_start = session.scheduled_at
        new_duration = session.duration_minutes if duration_minutes is None else duration_minutes
        self._validate_duration(new_duration)

        moves = new_start != session.scheduled_at or new_duration != session.duration_minutes
        if moves and status is not SessionStatus.SCHEDULED:
            raise InvalidStateTransition(session_id, status.value, "rescheduled")

        previous_start = session.scheduled_at
        if moves:
            self._check_advance_limit(new_start, now)
            candidate = SessionCandidate(
                session.tutor_id, session.student_id, new_start, new_duration, session_id
            )
            conflicts = self.conflict_checker.detect(candidate, now)
            if conflicts:
                self._record_conflicts(conflicts)
                return BookingResult.rejected(conflicts, session_id=session_id)

        try:
            with self.lock_factory([session.tutor_id, session.student_id]):
                with self.transaction():
                    if moves:
                        conflicts = self.conflict_checker.busy_conflicts_for(candidate)
                        if conflicts:
                            return BookingResult.rejected(conflicts, session_id=session_id)
                        session.reschedule(new_start, new_duration)
                    session.timezone = timezone_str
                    for attr, value in (
                        ("subject", subject),
                        ("title", title),
                        ("description", description),
                        ("notes", notes),
                    ):
                        if value is not None:
                            setattr(session, attr, value)
                    try:
                        self.repository.flush()
                    except IntegrityError as exc:
                        self.db.rollback()
                        conflicts = self._overlap_conflicts(exc)
                        if not conflicts:
                            raise
                        return BookingResult.rejected(conflicts, session_id=session_id)
        except BookingLockTimeout as exc:
            conflicts = self._lock_timeout_conflicts(exc, session.tutor_id)
            self._record_conflicts(conflicts)
            return BookingResult.rejected(conflicts, session_id=session_id)

        self.log_operation("update_session", session_id=session_id, moved=moves)
        if moves:
            self._publish(
                SessionUpdated(
                    session_id=session.id,
                    tutor_id=session.tutor_id,
                    student_id=session.student_id,
                    scheduled_at=session.scheduled_at,
                    subject=session.subject,
                    previous_scheduled_at=previous_start,
                )
            )
        return BookingResult(success=True, session_id=session_id)

    # Lifecycle

    @BaseService.measure_operation("start_session")
    def start_session(self, session_id: str, now: datetime) -> TutoringSession:
        """Move scheduled -> ongoing within the start window and assign the meeting URL."""
        now = TimezoneService.ensure_utc(now)
        session = self.get_session(session_id)
        self._require_transition(session, SessionStatus.ONGOING)

        minutes_off = (now - session.scheduled_at) / timedelta(minutes=1)
        if abs(minutes_off) > self.policy.start_window_minutes:
            raise OutsideStartWindow(session_id, self.policy.start_window_minutes, minutes_off)

        with self.transaction():
            session.status = SessionStatus.ONGOING.value
            session.started_at = now
            session.meeting_url = f"{self.policy.classroom_base_url.rstrip('/')}/{session.id}"
            self.repository.flush()

        self.log_operation("start_session", session_id=session_id)
        self._publish(
            SessionStarted(
                session_id=session.id,
                tutor_id=session.tutor_id,
                student_id=session.student_id,
                scheduled_at=session.scheduled_at,
                subject=session.subject,
                meeting_url=session.meeting_url,
            )
        )
        return session

    @BaseService.measure_operation("end_session")
    def end_session(
        self, session_id: str, now: datetime, notes: Optional[str] = None
    ) -> TutoringSession:
        """Move ongoing -> completed. Closing ``notes`` replace the session notes when given."""
        now = TimezoneService.ensure_utc(now)
        session = self.get_session(session_id)
        self._require_transition(session, SessionStatus.COMPLETED)

        with self.transaction():
            session.status = SessionStatus.COMPLETED.value
            session.ended_at = now
            if notes:
                session.notes = notes
            self.repository.flush()

        self.log_operation("end_session", session_id=session_id)
        self._publish(
            SessionCompleted(
                session_id=session.id,
                tutor_id=session.tutor_id,
                student_id=session.student_id,
                scheduled_at=session.scheduled_at,
                subject=session.subject,
            )
        )
        return session

    @BaseService.measure_operation("cancel_session")
    def cancel_session(
        self,
        session_id: str,
        now: datetime,
        cancelled_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> CancellationResult:
        """
        Cancel a scheduled session and credit the refund to the student's wallet.

        The status change and the ledger entry commit together.
        """
        now = TimezoneService.ensure_utc(now)
        session = self.get_session(session_id)
        self._require_transition(session, SessionStatus.CANCELLED)
        if cancelled_by is not None and cancelled_by not in (session.tutor_id, session.student_id):
            raise ValidationException(
                "Only a participant can cancel this session",
                code="NOT_A_PARTICIPANT",
                details={"cancelled_by": cancelled_by},
            )

        refund = self.refund_engine.evaluate(
            session.price, session.scheduled_at, now, currency=session.currency
        )

        with self.transaction():
            session.status = SessionStatus.CANCELLED.value
            session.cancelled_at = now
            session.cancelled_by_id = cancelled_by
            session.cancellation_reason = reason
            session.refund_amount = refund.amount
            self.repository.flush()
            if refund.amount > 0:
                self.ledger.credit(
                    session.student_id,
                    refund.amount,
                    session.currency,
                    reason=f"Refund for cancelled session {session.id}: {refund.policy_basis}",
                    reference_id=session.id,
                )

        self.log_operation(
            "cancel_session",
            session_id=session_id,
            refund_amount=str(refund.amount),
            hours_until=round(refund.hours_until, 2),
        )
        self._publish(
            SessionCancelled(
                session_id=session.id,
                tutor_id=session.tutor_id,
                student_id=session.student_id,
                scheduled_at=session.scheduled_at,
                subject=session.subject,
                cancelled_by=cancelled_by,
                reason=reason,
                refund_amount=str(refund.amount),
            )
        )
        return CancellationResult(session_id=session.id, refund=refund)

    @BaseService.measure_operation("mark_no_show")
    def mark_no_show(self, session_id: str, now: datetime) -> TutoringSession:
        """Move scheduled -> no-show once the start window has fully elapsed."""
        now = TimezoneService.ensure_utc(now)
        session = self.get_session(session_id)
        self._require_transition(session, SessionStatus.NO_SHOW)

        window_closes = session.scheduled_at + timedelta(minutes=self.policy.start_window_minutes)
        if now <= window_closes:
            raise BusinessRuleException(
                "A session can only be marked as a no-show after its start window has passed",
                code="NO_SHOW_TOO_EARLY",
                details={"session_id": session_id, "window_closes": window_closes.isoformat()},
            )

        with self.transaction():
            session.status = SessionStatus.NO_SHOW.value
            self.repository.flush()

        self.log_operation("mark_no_show", session_id=session_id)
        self._publish(
            SessionNoShow(
                session_id=session.id,
                tutor_id=session.tutor_id,
                student_id=session.student_id,
                scheduled_at=session.scheduled_at,
                subject=session.subject,
            )
        )
        return session

    # Queries

    def get_session(self, session_id: str) -> TutoringSession:
        session = self.repository.get_by_id(session_id, load_relationships=False)
        if session is None:
            raise EntityNotFound("session", session_id)
        return session

    @BaseService.measure_operation("get_sessions")
    def get_sessions(self, filters: SessionFilters) -> List[TutoringSession]:
        if filters.role is not None and filters.role not in ("tutor", "student"):
            raise ValidationException(
                "role must be 'tutor' or 'student'",
                code="INVALID_ROLE",
                details={"role": filters.role},
            )
        for status in filters.statuses:
            try:
                SessionStatus(status)
            except ValueError:
                raise ValidationException(
                    f"Unknown session status {status!r}",
                    code="INVALID_STATUS",
                    details={"status": status},
                )
        return self.repository.get_sessions(
            user_id=filters.user_id,
            role=filters.role,
            statuses=filters.statuses,
            start=filters.start,
            end=filters.end,
            subject=filters.subject,
            skip=filters.skip,
            limit=filters.limit,
        )

    def get_upcoming_sessions(
        self, user_id: str, now: datetime, role: Optional[str] = None, limit: int = 10
    ) -> List[TutoringSession]:
        """Scheduled or ongoing sessions that have not ended yet, soonest first."""
        return self.repository.get_upcoming(
            user_id, TimezoneService.ensure_utc(now), role=role, limit=limit
        )

    @BaseService.measure_operation("get_session_stats")
    def get_session_stats(
        self, user_id: str, now: datetime, role: Optional[str] = None
    ) -> SessionStats:
        """Counts per status, upcoming sessions, completed hours and amount."""
        now = TimezoneService.ensure_utc(now)
        by_status = self.repository.count_by_status(user_id, role)
        completed_minutes = self.repository.sum_minutes(
            user_id, SessionStatus.COMPLETED.value, role
        )
        return SessionStats(
            total=sum(by_status.values()),
            by_status=by_status,
            upcoming=self.repository.count_upcoming(user_id, now, role),
            completed=by_status.get(SessionStatus.COMPLETED.value, 0),
            cancelled=by_status.get(SessionStatus.CANCELLED.value, 0),
            no_show=by_status.get(SessionStatus.NO_SHOW.value, 0),
            total_hours=round(completed_minutes / 60, 2),
            completed_amount=self.repository.sum_price(
                user_id, SessionStatus.COMPLETED.value, role
            ),
        )

    # Helpers

    def _validate_request(self, request: BookingRequest) -> int:
        if not request.tutor_id or not request.student_id:
            raise ValidationException(
                "tutor_id and student_id are required", code="MISSING_PARTICIPANT"
            )
        if request.tutor_id == request.student_id:
            raise ValidationException(
                "Tutor and student must be different users",
                code="SAME_PARTICIPANT",
                details={"user_id": request.tutor_id},
            )
        if (request.start is None) == (request.local_start is None):
            raise ValidationException(
                "Provide exactly one of start or local_start",
                code="AMBIGUOUS_START",
            )
        TimezoneService.get_timezone(request.timezone)
        duration = (
            self.policy.default_session_duration_minutes
            if request.duration_minutes is None
            else request.duration_minutes
        )
        self._validate_duration(duration)
        if request.price is not None and Decimal(str(request.price)) < 0:
            raise ValidationException(
                "Price cannot be negative",
                code="INVALID_PRICE",
                details={"price": str(request.price)},
            )
        return duration

    def _validate_duration(self, duration: int) -> None:
        if duration is None or not (
            self.policy.min_session_duration_minutes
            <= duration
            <= self.policy.max_session_duration_minutes
        ):
            raise ValidationException(
                f"Duration must be between {self.policy.min_session_duration_minutes} and "
                f"{self.policy.max_session_duration_minutes} minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": duration},
            )

    def _resolve_start(self, request: BookingRequest) -> datetime:
        if request.local_start is not None:
            return TimezoneService.to_absolute(request.local_start, request.timezone)
        return TimezoneService.ensure_utc(request.start)

    def _check_advance_limit(self, start: datetime, now: datetime) -> None:
        latest = now + timedelta(days=self.policy.max_booking_advance_days)
        if start > latest:
            raise ValidationException(
                f"Sessions cannot be booked more than {self.policy.max_booking_advance_days} days in advance",
                code="BOOKING_TOO_FAR_AHEAD",
                details={"scheduled_at": start.isoformat(), "latest": latest.isoformat()},
            )

    @staticmethod
    def _resolve_price(request: BookingRequest, tutor_profile: Any, duration: int) -> Decimal:
        if request.price is not None:
            return Decimal(str(request.price)).quantize(CENT, rounding=ROUND_HALF_UP)
        hourly = Decimal(str(tutor_profile.hourly_rate or 0))
        return (hourly * duration / 60).quantize(CENT, rounding=ROUND_HALF_UP)

    def _require_active_tutor(self, tutor_id: str) -> Any:
        profile = self.tutor_repository.get_by_user_id(tutor_id)
        if profile is None:
            raise EntityNotFound("tutor", tutor_id)
        if not self.tutor_repository.is_active(tutor_id):
            raise EntityInactive("tutor", tutor_id)
        return profile

    def _require_active_student(self, student_id: str) -> None:
        if self.user_repository.get_student(student_id) is None:
            raise EntityNotFound("student", student_id)
        if not self.user_repository.is_active_student(student_id):
            raise EntityInactive("student", student_id)

    @staticmethod
    def _require_transition(session: TutoringSession, target: SessionStatus) -> None:
        if not can_transition(session.status, target):
            raise InvalidStateTransition(session.id, session.status, target.value)

    @staticmethod
    def _record_conflicts(conflicts: Sequence[Conflict]) -> None:
        for conflict in conflicts:
            prometheus_metrics.inc_booking_conflict(conflict.kind.value)

    def _publish(self, event: SessionEvent) -> None:
        self.event_publisher.publish(event)
