# backend/tutorhub/routes/v1/tutors.py
"""
Tutor availability routes - API v1

Endpoints:
    GET /{tutor_id}/open-slots - Open slots clipped to a UTC range
    GET /{tutor_id}/schedule - Open slots split around booked sessions
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_availability_service
from ...core.exceptions import ValidationException
from ...schemas.session import OpenSlotOut, ScheduleSlotOut
from ...services.availability_service import AvailabilityService
from ...services.timezone_service import TimezoneService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tutors", tags=["tutors"])

MAX_RANGE_DAYS = 31


def _validate_range(start: datetime, end: datetime) -> None:
    start = TimezoneService.ensure_utc(start)
    end = TimezoneService.ensure_utc(end)
    if end <= start:
        raise ValidationException(
            "Range end must be after range start",
            code="INVALID_RANGE",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )
    if end - start > timedelta(days=MAX_RANGE_DAYS):
        raise ValidationException(
            f"Range cannot exceed {MAX_RANGE_DAYS} days",
            code="INVALID_RANGE",
            details={"max_days": MAX_RANGE_DAYS},
        )


@router.get(
    "/{tutor_id}/open-slots",
    response_model=List[OpenSlotOut],
    responses={404: {"description": "Tutor not found"}},
)
def get_open_slots(
    tutor_id: str,
    start: datetime = Query(..., description="Range start with UTC offset"),
    end: datetime = Query(..., description="Range end with UTC offset"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[OpenSlotOut]:
    _validate_range(start, end)
    return [
        OpenSlotOut.from_slot(slot)
        for slot in availability_service.enumerate_open_slots(tutor_id, start, end)
    ]


@router.get(
    "/{tutor_id}/schedule",
    response_model=List[ScheduleSlotOut],
    responses={404: {"description": "Tutor not found"}},
)
def get_tutor_schedule(
    tutor_id: str,
    start: datetime = Query(...),
    end: datetime = Query(...),
    timezone: Optional[str] = Query(None, description="IANA timezone for local times"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[ScheduleSlotOut]:
    """Tutor's open hours with booked sessions carved out."""
    _validate_range(start, end)
    slots = availability_service.get_tutor_schedule(
        tutor_id, start, end, display_timezone=timezone
    )
    return [ScheduleSlotOut.from_slot(slot) for slot in slots]
