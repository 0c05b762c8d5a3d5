# backend/tutorhub/repositories/user_repository.py
"""User data access."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.user import User, UserRole
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)
        self.logger = logging.getLogger(__name__)

    def get_student(self, user_id: str) -> Optional[User]:
        user = self.get_by_id(user_id, load_relationships=False)
        if user is None or user.role != UserRole.STUDENT.value:
            return None
        return user

    def is_active_student(self, user_id: str) -> bool:
        user = self.get_student(user_id)
        return bool(user and user.is_active)
