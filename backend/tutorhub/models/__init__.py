"""ORM models. Importing this package registers every mapper on Base.metadata."""

from .notification import Notification
from .session import (
    ALLOWED_TRANSITIONS,
    BLOCKING_STATUSES,
    TERMINAL_STATUSES,
    SessionStatus,
    TutoringSession,
    can_transition,
)
from .tutor import AvailabilityWindow, TutorProfile
from .user import User, UserRole
from .wallet import Wallet, WalletTransaction

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AvailabilityWindow",
    "BLOCKING_STATUSES",
    "Notification",
    "SessionStatus",
    "TERMINAL_STATUSES",
    "TutorProfile",
    "TutoringSession",
    "User",
    "UserRole",
    "Wallet",
    "WalletTransaction",
    "can_transition",
]
