# backend/tutorhub/core/exceptions.py
"""
Domain-specific exceptions for the scheduling engine.

Each carries a stable ``code`` and an HTTP status; errors.py renders them
as problem+json.

Booking conflicts are NOT raised from services; they are returned as
values. BookingConflictException only exists to render them over HTTP.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Root of every error a scheduling operation can raise on purpose."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when request input is malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """404: the addressed resource does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """409: the request collides with existing sessions."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """422: well-formed request that scheduling policy refuses."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """500: unexpected failure inside a service, usually the database."""


# Specific scheduling exceptions


class InvalidTimezone(ValidationException):
    """Raised for an unrecognized IANA timezone identifier. Never falls back."""

    def __init__(self, timezone_id: Optional[str]):
        super().__init__(
            message=f"Unknown timezone: {timezone_id!r}",
            code="INVALID_TIMEZONE",
            details={"timezone": timezone_id},
        )


class NonexistentLocalTime(ValidationException):
    """Raised when a wall-clock time falls in a DST spring-forward gap."""

    def __init__(self, wall_clock: str, timezone_id: str):
        super().__init__(
            message=(
                f"The time {wall_clock} does not exist in {timezone_id} "
                "due to Daylight Saving Time. Please select a different time."
            ),
            code="NONEXISTENT_LOCAL_TIME",
            details={"wall_clock": wall_clock, "timezone": timezone_id},
        )


class EntityNotFound(NotFoundException):
    """Raised when a referenced tutor, student or session does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity.capitalize()} {entity_id} not found",
            code="ENTITY_NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class EntityInactive(BusinessRuleException):
    """Raised when a referenced tutor or student exists but is inactive."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity.capitalize()} {entity_id} is inactive",
            code="ENTITY_INACTIVE",
            details={"entity": entity, "id": entity_id},
        )


class InvalidStateTransition(BusinessRuleException):
    """Raised when a session lifecycle transition is not allowed."""

    def __init__(self, session_id: str, current: str, target: str):
        super().__init__(
            message=f"Cannot move session {session_id} from {current} to {target}",
            code="INVALID_STATE_TRANSITION",
            details={"session_id": session_id, "current": current, "target": target},
        )


class OutsideStartWindow(BusinessRuleException):
    """Raised when a session is started too early or too late."""

    def __init__(self, session_id: str, window_minutes: int, minutes_off: float):
        super().__init__(
            message=(
                f"Session can only be started within {window_minutes} minutes "
                "of its scheduled time"
            ),
            code="OUTSIDE_START_WINDOW",
            details={
                "session_id": session_id,
                "window_minutes": window_minutes,
                "minutes_from_scheduled": round(minutes_off, 2),
            },
        )


class BookingConflictException(ConflictException):
    """HTTP rendering of a non-empty conflict list."""

    def __init__(
        self,
        conflicts: List[Dict[str, Any]],
        message: Optional[str] = None,
    ):
        super().__init__(
            message=message or "The requested time cannot be booked",
            code="BOOKING_CONFLICT",
            details={"conflicts": conflicts},
        )


class RepositoryException(Exception):
    """Raised by repositories when SQLAlchemy fails for reasons other than integrity."""
