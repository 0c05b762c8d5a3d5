# backend/tests/services/test_session_queries.py
"""Session listing, upcoming sessions and statistics."""

from decimal import Decimal

import pytest

from tests.factories.scheduling import utc
from tutorhub.core.exceptions import ValidationException
from tutorhub.services.booking_service import SessionFilters


@pytest.fixture
def history(session_factory, tutor, other_tutor, student, other_student):
    """A mix of statuses around ``now`` (2024-03-01 12:00 UTC)."""
    return {
        "completed": session_factory(
            tutor, student, utc(2024, 2, 26, 14), 60, status="completed", subject="Algebra"
        ),
        "completed_long": session_factory(
            tutor, student, utc(2024, 2, 28, 14), 90, status="completed", price=Decimal("90.00"),
            subject="Geometry",
        ),
        "cancelled": session_factory(tutor, student, utc(2024, 3, 4, 14), 60, status="cancelled"),
        "no_show": session_factory(tutor, other_student, utc(2024, 2, 27, 14), 60, status="no-show"),
        "upcoming": session_factory(tutor, student, utc(2024, 3, 6, 14), 60, subject="Algebra"),
        "ongoing": session_factory(other_tutor, student, utc(2024, 3, 1, 11, 30), 60, status="ongoing"),
        "later": session_factory(other_tutor, student, utc(2024, 3, 11, 13), 60),
    }


def ids(sessions):
    return [s.id for s in sessions]


class TestGetSessions:
    def test_filter_by_tutor(self, booking_service, history, tutor):
        sessions = booking_service.get_sessions(SessionFilters(user_id=tutor.id, role="tutor"))

        assert ids(sessions) == ids(
            [
                history["completed"],
                history["no_show"],
                history["completed_long"],
                history["cancelled"],
                history["upcoming"],
            ]
        )

    def test_either_role_when_role_omitted(self, booking_service, history, student):
        sessions = booking_service.get_sessions(SessionFilters(user_id=student.id))

        assert history["no_show"].id not in ids(sessions)
        assert len(sessions) == 6

    def test_filter_by_status_and_subject(self, booking_service, history, student):
        scheduled = booking_service.get_sessions(
            SessionFilters(user_id=student.id, statuses=("scheduled",))
        )
        algebra = booking_service.get_sessions(SessionFilters(user_id=student.id, subject="Algebra"))

        assert ids(scheduled) == [history["upcoming"].id, history["later"].id]
        assert ids(algebra) == [history["completed"].id, history["upcoming"].id]

    def test_filter_by_range_is_half_open(self, booking_service, history):
        sessions = booking_service.get_sessions(
            SessionFilters(start=utc(2024, 3, 4, 14), end=utc(2024, 3, 6, 14))
        )

        assert ids(sessions) == [history["cancelled"].id]

    def test_pagination(self, booking_service, history, student):
        page = booking_service.get_sessions(SessionFilters(user_id=student.id, skip=1, limit=2))

        assert ids(page) == [history["completed_long"].id, history["ongoing"].id]

    def test_invalid_role(self, booking_service):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.get_sessions(SessionFilters(user_id="x", role="parent"))
        assert exc_info.value.code == "INVALID_ROLE"

    def test_invalid_status(self, booking_service):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.get_sessions(SessionFilters(statuses=("done",)))
        assert exc_info.value.code == "INVALID_STATUS"


class TestUpcomingSessions:
    def test_includes_ongoing_and_skips_terminal(self, booking_service, history, student, now):
        upcoming = booking_service.get_upcoming_sessions(student.id, now)

        assert ids(upcoming) == [history["ongoing"].id, history["upcoming"].id, history["later"].id]

    def test_role_and_limit(self, booking_service, history, student, now):
        upcoming = booking_service.get_upcoming_sessions(student.id, now, role="student", limit=1)

        assert ids(upcoming) == [history["ongoing"].id]

    def test_tutor_view(self, booking_service, history, tutor, now):
        assert ids(booking_service.get_upcoming_sessions(tutor.id, now, role="tutor")) == [
            history["upcoming"].id
        ]


class TestSessionStats:
    def test_tutor_stats(self, booking_service, history, tutor, now):
        stats = booking_service.get_session_stats(tutor.id, now, role="tutor")

        assert stats.total == 5
        assert stats.by_status == {"completed": 2, "cancelled": 1, "no-show": 1, "scheduled": 1}
        assert stats.completed == 2
        assert stats.cancelled == 1
        assert stats.no_show == 1
        assert stats.upcoming == 1
        assert stats.total_hours == 2.5
        assert stats.completed_amount == Decimal("150.00")

    def test_stats_for_user_without_sessions(self, booking_service, other_tutor, now):
        stats = booking_service.get_session_stats(other_tutor.id, now, role="student")

        assert stats.total == 0
        assert stats.by_status == {}
        assert stats.total_hours == 0
        assert stats.completed_amount == Decimal("0")
