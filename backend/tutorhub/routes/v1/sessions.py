# backend/tutorhub/routes/v1/sessions.py
"""
Session routes - API v1

Versioned session endpoints under /api/v1/sessions.
All business logic delegated to BookingService.

Endpoints:
    POST / - Book a session (optionally recurring)
    GET / - List sessions with filters
    GET /upcoming - Upcoming sessions for a user
    GET /stats - Session statistics for a user
    POST /check-conflicts - Report conflicts without booking
    GET /{session_id} - Session details
    PATCH /{session_id} - Reschedule or edit a session
    POST /{session_id}/start - Start a session within its start window
    POST /{session_id}/end - Complete an ongoing session
    POST /{session_id}/cancel - Cancel and refund
    POST /{session_id}/no-show - Mark a missed session
"""

from datetime import datetime
import logging
from typing import List, Literal, NoReturn, Optional, Sequence

from fastapi import APIRouter, Body, Depends, Query, Response, status

from ...api.dependencies import get_booking_service, get_clock, get_conflict_checker
from ...core.constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT
from ...core.exceptions import BookingConflictException
from ...schemas.session import (
    BookingResultResponse,
    CancellationResponse,
    ConflictCheckRequest,
    ConflictCheckResponse,
    ConflictOut,
    SessionCancel,
    SessionCreate,
    SessionEnd,
    SessionResponse,
    SessionStatsResponse,
    SessionUpdate,
)
from ...services.booking_service import BookingService, SessionFilters
from ...services.conflict_checker import Conflict, ConflictChecker, SessionCandidate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def raise_conflicts(conflicts: Sequence[Conflict]) -> NoReturn:
    """Render a non-empty conflict list as a 409 problem response."""
    raise BookingConflictException(
        [ConflictOut.from_conflict(c).model_dump(mode="json") for c in conflicts]
    ).to_http_exception()


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.post(
    "",
    response_model=BookingResultResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Time conflict"}},
)
def book_session(
    response: Response,
    payload: SessionCreate = Body(...),
    now: datetime = Depends(get_clock),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResultResponse:
    """Book a session; recurring requests persist the whole series at once."""
    result = booking_service.book_session(payload.to_request(), now)
    if result.conflicts:
        raise_conflicts(result.conflicts)
    if result.idempotent_replay:
        response.status_code = status.HTTP_200_OK
    return BookingResultResponse.from_result(result)


@router.get("", response_model=List[SessionResponse])
def list_sessions(
    user_id: Optional[str] = Query(None),
    role: Optional[Literal["tutor", "student"]] = Query(None),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    subject: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[SessionResponse]:
    sessions = booking_service.get_sessions(
        SessionFilters(
            user_id=user_id,
            role=role,
            statuses=tuple(status_filter or ()),
            start=start,
            end=end,
            subject=subject,
            skip=skip,
            limit=limit,
        )
    )
    return [SessionResponse.model_validate(s) for s in sessions]


@router.get("/upcoming", response_model=List[SessionResponse])
def get_upcoming_sessions(
    user_id: str = Query(...),
    role: Optional[Literal["tutor", "student"]] = Query(None),
    limit: int = Query(10, ge=1, le=50),
    now: datetime = Depends(get_clock),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[SessionResponse]:
    sessions = booking_service.get_upcoming_sessions(user_id, now, role=role, limit=limit)
    return [SessionResponse.model_validate(s) for s in sessions]


@router.get("/stats", response_model=SessionStatsResponse)
def get_session_stats(
    user_id: str = Query(...),
    role: Optional[Literal["tutor", "student"]] = Query(None),
    now: datetime = Depends(get_clock),
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionStatsResponse:
    return SessionStatsResponse.from_stats(booking_service.get_session_stats(user_id, now, role))


@router.post("/check-conflicts", response_model=ConflictCheckResponse)
def check_conflicts(
    payload: ConflictCheckRequest = Body(...),
    now: datetime = Depends(get_clock),
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
) -> ConflictCheckResponse:
    """Every conflict for the candidate, without booking anything."""
    duration = payload.duration_minutes or conflict_checker.policy.default_session_duration_minutes
    candidate = SessionCandidate(
        payload.tutor_id,
        payload.student_id,
        payload.scheduled_at,
        duration,
        payload.exclude_session_id,
    )
    conflicts = conflict_checker.detect(candidate, now)
    return ConflictCheckResponse(
        available=not conflicts,
        conflicts=[ConflictOut.from_conflict(c) for c in conflicts],
    )


# ============================================================================
# SECTION 2: Session-specific routes
# ============================================================================


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found"}},
)
def get_session(
    session_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    return SessionResponse.model_validate(booking_service.get_session(session_id))


@router.patch(
    "/{session_id}",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found"}, 409: {"description": "Time conflict"}},
)
def update_session(
    session_id: str,
    payload: SessionUpdate = Body(...),
    now: datetime = Depends(get_clock),
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    result = booking_service.update_session(
        session_id,
        now,
        start=payload.scheduled_at,
        local_start=payload.local_start,
        timezone=payload.timezone,
        duration_minutes=payload.duration_minutes,
        subject=payload.subject,
        title=payload.title,
        description=payload.description,
        notes=payload.notes,
    )
    if result.conflicts:
        raise_conflicts(result.conflicts)
    return SessionResponse.model_validate(booking_service.get_session(session_id))


@router.post("/{session_id}/start", response_model=SessionResponse)
def start_session(
    session_id: str,
    now: datetime = Depends(get_clock),
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    return SessionResponse.model_validate(booking_service.start_session(session_id, now))


@router.post("/{session_id}/end", response_model=SessionResponse)
def end_session(
    session_id: str,
    payload: SessionEnd = Body(default_factory=SessionEnd),
    now: datetime = Depends(get_clock),
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    return SessionResponse.model_validate(
        booking_service.end_session(session_id, now, notes=payload.notes)
    )


@router.post("/{session_id}/cancel", response_model=CancellationResponse)
def cancel_session(
    session_id: str,
    payload: SessionCancel = Body(default_factory=SessionCancel),
    now: datetime = Depends(get_clock),
    booking_service: BookingService = Depends(get_booking_service),
) -> CancellationResponse:
    """Cancel a session; the refund tier depends on how far ahead it is cancelled."""
    result = booking_service.cancel_session(
        session_id, now, cancelled_by=payload.cancelled_by, reason=payload.reason
    )
    return CancellationResponse.from_result(result)


@router.post("/{session_id}/no-show", response_model=SessionResponse)
def mark_no_show(
    session_id: str,
    now: datetime = Depends(get_clock),
    booking_service: BookingService = Depends(get_booking_service),
) -> SessionResponse:
    return SessionResponse.model_validate(booking_service.mark_no_show(session_id, now))
