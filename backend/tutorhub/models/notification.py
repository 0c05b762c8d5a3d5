# backend/tutorhub/models/notification.py
"""In-app notification rows written by the default notification sink."""

from sqlalchemy import JSON, Boolean, Column, ForeignKey, String, Text
import ulid

from ..database import Base
from .types import UTCDateTime, utc_now


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<Notification {self.id}: user={self.user_id}, type={self.event_type}>"
