# backend/tutorhub/models/user.py
"""
User model.

Authentication lives elsewhere; the scheduling engine only needs identity,
role, activity status and a display timezone.
"""

from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, String
import ulid

from ..database import Base
from .types import UTCDateTime, utc_now


class UserRole(str, Enum):
    STUDENT = "student"
    TUTOR = "tutor"


class User(Base):
    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value)
    is_active = Column(Boolean, nullable=False, default=True)
    timezone = Column(String(64), nullable=False, default="UTC")

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("role IN ('student', 'tutor')", name="ck_users_role"),
    )

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"
