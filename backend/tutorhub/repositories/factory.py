# backend/tutorhub/repositories/factory.py
"""
Repository Factory for the TutorHub scheduling engine.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from .notification_repository import NotificationRepository
from .session_repository import SessionRepository
from .tutor_profile_repository import TutorProfileRepository
from .user_repository import UserRepository
from .wallet_repository import WalletRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_session_repository(db: Session) -> SessionRepository:
        """Create repository for tutoring session operations."""
        return SessionRepository(db)

    @staticmethod
    def create_tutor_profile_repository(db: Session) -> TutorProfileRepository:
        """Create repository for tutor profile and availability operations."""
        return TutorProfileRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> UserRepository:
        return UserRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> NotificationRepository:
        return NotificationRepository(db)

    @staticmethod
    def create_wallet_repository(db: Session) -> WalletRepository:
        return WalletRepository(db)
