"""
FastAPI dependencies.

Routes import from here so overrides in tests stay in one place.
"""

from .clock import get_clock
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_conflict_checker,
    get_scheduling_policy,
)

__all__ = [
    "get_availability_service",
    "get_booking_service",
    "get_clock",
    "get_conflict_checker",
    "get_db",
    "get_scheduling_policy",
]
