# backend/tutorhub/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import SchedulingPolicy
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.conflict_checker import ConflictChecker
from .database import get_db


def get_scheduling_policy() -> SchedulingPolicy:
    return SchedulingPolicy.from_settings()


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_conflict_checker(
    db: Session = Depends(get_db),
    availability_service: AvailabilityService = Depends(get_availability_service),
    policy: SchedulingPolicy = Depends(get_scheduling_policy),
) -> ConflictChecker:
    return ConflictChecker(db, availability_service=availability_service, policy=policy)


def get_booking_service(
    db: Session = Depends(get_db),
    availability_service: AvailabilityService = Depends(get_availability_service),
    policy: SchedulingPolicy = Depends(get_scheduling_policy),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        availability_service: Tutor open hours
        policy: Booking rules

    Returns:
        BookingService instance
    """
    return BookingService(db, policy=policy, availability_service=availability_service)
