# backend/tutorhub/models/tutor.py
"""
Tutor profile and recurring weekly availability.

An AvailabilityWindow is a local wall-clock range (HH:MM) on a day of week
(0 = Sunday) in the timezone the tutor authored it in. Windows may overlap
within a day; consumers treat them as a union.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import UTCDateTime, utc_now


class TutorProfile(Base):
    __tablename__ = "tutor_profiles"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, unique=True, index=True)
    title = Column(String(200), nullable=True)
    hourly_rate = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    is_active = Column(Boolean, nullable=False, default=True)
    # Bumped on every availability edit; part of the availability cache key.
    availability_version = Column(Integer, nullable=False, default=1)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    user = relationship("User", backref="tutor_profile", uselist=False)
    availability_windows = relationship(
        "AvailabilityWindow",
        back_populates="tutor_profile",
        cascade="all, delete-orphan",
        order_by="(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time)",
    )

    def __repr__(self) -> str:
        return f"<TutorProfile {self.id}: user={self.user_id}, active={self.is_active}>"


class AvailabilityWindow(Base):
    __tablename__ = "availability_windows"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tutor_profile_id = Column(
        String(26), ForeignKey("tutor_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    timezone = Column(String(64), nullable=False)

    tutor_profile = relationship("TutorProfile", back_populates="availability_windows")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_windows_day"),
        CheckConstraint("start_time < end_time", name="ck_availability_windows_order"),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilityWindow day={self.day_of_week} "
            f"{self.start_time}-{self.end_time} {self.timezone}>"
        )
