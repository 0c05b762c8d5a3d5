# backend/tests/conftest.py
"""
Pytest configuration for the scheduling engine.

Every test gets a fresh in-memory SQLite database. Timing is pinned: ``now``
is Friday 2024-03-01 12:00 UTC and the default tutor teaches Monday and
Wednesday 09:00-12:00 America/New_York (14:00-17:00 UTC before the
2024-03-10 DST change, 13:00-16:00 UTC after it).
"""

import os

# Set before any tutorhub import so the module-level engine never touches a file
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tests.factories.scheduling import (
    NOW,
    TUTOR_TZ,
    RecordingLedger,
    RecordingSink,
    create_tutor,
    create_user,
    no_lock,
)
from tutorhub import models  # noqa: F401  register mappers
from tutorhub.api.dependencies import get_clock, get_db
from tutorhub.core.config import SchedulingPolicy
from tutorhub.database import Base
from tutorhub.models import TutoringSession, User
from tutorhub.services.availability_service import AvailabilityCache, AvailabilityService
from tutorhub.services.booking_service import BookingService


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine) -> Iterator[Session]:
    """Create a new database session for each test."""
    TestSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestSessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def policy() -> SchedulingPolicy:
    return SchedulingPolicy()


@pytest.fixture
def availability_cache() -> AvailabilityCache:
    return AvailabilityCache(ttl_seconds=300)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def ledger() -> RecordingLedger:
    return RecordingLedger()


@pytest.fixture
def tutor(db: Session) -> User:
    return create_tutor(db, "tutor@example.com")


@pytest.fixture
def other_tutor(db: Session) -> User:
    return create_tutor(db, "tutor2@example.com")


@pytest.fixture
def student(db: Session) -> User:
    user = create_user(db, "student", "student@example.com")
    db.commit()
    return user


@pytest.fixture
def other_student(db: Session) -> User:
    user = create_user(db, "student", "student2@example.com")
    db.commit()
    return user


@pytest.fixture
def session_factory(db: Session):
    """Insert a session row directly, bypassing the booking rules."""

    def _create(
        tutor: User,
        student: User,
        scheduled_at: datetime,
        duration_minutes: int = 60,
        status: str = "scheduled",
        price: Decimal = Decimal("60.00"),
        **fields: Any,
    ) -> TutoringSession:
        session = TutoringSession(
            tutor_id=tutor.id,
            student_id=student.id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            status=status,
            price=price,
            currency="USD",
            timezone=fields.pop("timezone", TUTOR_TZ),
            **fields,
        )
        db.add(session)
        db.commit()
        return session

    return _create


@pytest.fixture
def availability_service(db: Session, availability_cache: AvailabilityCache) -> AvailabilityService:
    return AvailabilityService(db, cache=availability_cache)


@pytest.fixture
def booking_service(
    db: Session,
    policy: SchedulingPolicy,
    availability_service: AvailabilityService,
    sink: RecordingSink,
    ledger: RecordingLedger,
) -> BookingService:
    return BookingService(
        db,
        policy=policy,
        availability_service=availability_service,
        notification_sink=sink,
        ledger=ledger,
        lock_factory=no_lock,
    )


@pytest.fixture
def client(db: Session, now: datetime) -> Iterator[TestClient]:
    """Test client bound to the test database with the clock pinned to ``now``."""
    from tutorhub.main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: now

    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()
    test_client.close()
