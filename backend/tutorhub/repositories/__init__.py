"""
Repository layer.

All repositories follow the BaseRepository pattern and are created
through RepositoryFactory.
"""

from .base_repository import BaseRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository
from .session_repository import SessionRepository
from .tutor_profile_repository import TutorProfileRepository
from .user_repository import UserRepository
from .wallet_repository import WalletRepository

__all__ = [
    "BaseRepository",
    "NotificationRepository",
    "RepositoryFactory",
    "SessionRepository",
    "TutorProfileRepository",
    "UserRepository",
    "WalletRepository",
]
