"""Session domain events."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from ..core.constants import (
    SESSION_BOOKED,
    SESSION_CANCELLED,
    SESSION_COMPLETED,
    SESSION_NO_SHOW,
    SESSION_STARTED,
    SESSION_UPDATED,
)


@dataclass
class SessionEvent:
    """Common fields; every event goes to both participants."""

    event_type: ClassVar[str] = ""

    session_id: str
    tutor_id: str
    student_id: str
    scheduled_at: datetime
    subject: str = ""

    @property
    def recipients(self) -> List[str]:
        return [self.tutor_id, self.student_id]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionBooked(SessionEvent):
    """Fired after a session (and its series, if recurring) is persisted."""

    event_type: ClassVar[str] = SESSION_BOOKED

    occurrence_ids: List[str] = field(default_factory=list)


@dataclass
class SessionUpdated(SessionEvent):
    """Fired after a session is rescheduled."""

    event_type: ClassVar[str] = SESSION_UPDATED

    previous_scheduled_at: Optional[datetime] = None


@dataclass
class SessionCancelled(SessionEvent):
    """Fired after a session is cancelled."""

    event_type: ClassVar[str] = SESSION_CANCELLED

    cancelled_by: Optional[str] = None
    reason: Optional[str] = None
    refund_amount: Optional[str] = None


@dataclass
class SessionStarted(SessionEvent):
    event_type: ClassVar[str] = SESSION_STARTED

    meeting_url: Optional[str] = None


@dataclass
class SessionCompleted(SessionEvent):
    event_type: ClassVar[str] = SESSION_COMPLETED


@dataclass
class SessionNoShow(SessionEvent):
    event_type: ClassVar[str] = SESSION_NO_SHOW
