# backend/tests/services/test_conflict_checker.py
"""
ConflictChecker against the database.

The tutor teaches Monday/Wednesday 09:00-12:00 New York, i.e. 14:00-17:00
UTC in the first week of March 2024.
"""

from datetime import timedelta

import pytest

from tests.factories.scheduling import utc
from tutorhub.core.config import SchedulingPolicy
from tutorhub.core.exceptions import ValidationException
from tutorhub.services.conflict_checker import (
    ConflictChecker,
    ConflictType,
    SessionCandidate,
    intervals_overlap,
)


@pytest.fixture
def checker(db, availability_service, policy):
    return ConflictChecker(db, availability_service=availability_service, policy=policy)


def kinds(conflicts):
    return [c.kind for c in conflicts]


class TestIntervalOverlap:
    def test_half_open_adjacency_is_not_overlap(self):
        assert not intervals_overlap(utc(2024, 3, 4, 14), utc(2024, 3, 4, 15), utc(2024, 3, 4, 15), utc(2024, 3, 4, 16))

    def test_partial_overlap(self):
        assert intervals_overlap(utc(2024, 3, 4, 14), utc(2024, 3, 4, 15), utc(2024, 3, 4, 14, 30), utc(2024, 3, 4, 16))

    def test_containment(self):
        assert intervals_overlap(utc(2024, 3, 4, 14), utc(2024, 3, 4, 17), utc(2024, 3, 4, 15), utc(2024, 3, 4, 16))


class TestSessionCandidate:
    def test_end_is_derived(self):
        candidate = SessionCandidate("T", "S", utc(2024, 3, 4, 14), 45)
        assert candidate.end == utc(2024, 3, 4, 14, 45)

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration_is_rejected(self, duration):
        with pytest.raises(ValidationException) as exc_info:
            SessionCandidate("T", "S", utc(2024, 3, 4, 14), duration)
        assert exc_info.value.code == "INVALID_DURATION"


class TestDetect:
    def test_clean_candidate_has_no_conflicts(self, checker, tutor, student, now):
        candidate = SessionCandidate(tutor.id, student.id, utc(2024, 3, 4, 15, 0), 60)
        assert checker.detect(candidate, now) == []

    def test_tutor_busy_scenario(self, checker, tutor, student, other_student, session_factory, now):
        existing = session_factory(tutor, student, utc(2024, 3, 4, 14, 0), 60)

        overlapping = SessionCandidate(tutor.id, other_student.id, utc(2024, 3, 4, 14, 30), 30)
        conflicts = checker.detect(overlapping, now)
        assert kinds(conflicts) == [ConflictType.TUTOR_BUSY]
        assert conflicts[0].conflicting_session_id == existing.id
        assert conflicts[0].conflicting_start == utc(2024, 3, 4, 14, 0)
        assert conflicts[0].conflicting_end == utc(2024, 3, 4, 15, 0)

        adjacent = SessionCandidate(tutor.id, other_student.id, utc(2024, 3, 4, 15, 0), 30)
        assert checker.detect(adjacent, now) == []

    def test_student_busy_with_another_tutor(
        self, checker, tutor, other_tutor, student, session_factory, now
    ):
        session_factory(other_tutor, student, utc(2024, 3, 4, 15, 0), 60)
        candidate = SessionCandidate(tutor.id, student.id, utc(2024, 3, 4, 15, 30), 60)
        assert kinds(checker.detect(candidate, now)) == [ConflictType.STUDENT_BUSY]

    def test_both_participants_busy_in_fixed_order(self, checker, tutor, student, session_factory, now):
        session_factory(tutor, student, utc(2024, 3, 4, 15, 0), 60)
        candidate = SessionCandidate(tutor.id, student.id, utc(2024, 3, 4, 15, 0), 60)
        assert kinds(checker.detect(candidate, now)) == [
            ConflictType.TUTOR_BUSY,
            ConflictType.STUDENT_BUSY,
        ]

    def test_cancelled_and_completed_sessions_do_not_block(
        self, checker, tutor, student, session_factory, now
    ):
        session_factory(tutor, student, utc(2024, 3, 4, 15, 0), 60, status="cancelled")
        session_factory(tutor, student, utc(2024, 3, 4, 15, 0), 60, status="no-show")
        candidate = SessionCandidate(tutor.id, student.id, utc(2024, 3, 4, 15, 0), 60)
        assert checker.detect(candidate, now) == []

    def test_excluded_session_is_ignored(self, checker, tutor, student, session_factory, now):
        existing = session_factory(tutor, student, utc(2024, 3, 4, 15, 0), 60)
        candidate = SessionCandidate(
            tutor.id, student.id, utc(2024, 3, 4, 15, 30), 60, exclude_session_id=existing.id
        )
        assert checker.detect(candidate, now) == []

    def test_outside_availability(self, checker, tutor, student, now):
        # Monday 11:30-12:30 New York runs past the window end
        candidate = SessionCandidate(tutor.id, student.id, utc(2024, 3, 4, 16, 30), 60)
        assert kinds(checker.detect(candidate, now)) == [ConflictType.OUTSIDE_AVAILABILITY]

    def test_past_time_reports_every_applicable_conflict(self, checker, tutor, student, now):
        candidate = SessionCandidate(tutor.id, student.id, now - timedelta(hours=1), 60)
        assert kinds(checker.detect(candidate, now)) == [
            ConflictType.PAST_TIME,
            ConflictType.TOO_SHORT_NOTICE,
            ConflictType.OUTSIDE_AVAILABILITY,
        ]

    def test_start_equal_to_now_is_past(self, checker, tutor, student):
        monday_10 = utc(2024, 3, 4, 15, 0)
        candidate = SessionCandidate(tutor.id, student.id, monday_10, 60)
        assert ConflictType.PAST_TIME in kinds(checker.detect(candidate, monday_10))

    def test_notice_boundary(self, checker, tutor, student):
        start = utc(2024, 3, 4, 15, 0)
        candidate = SessionCandidate(tutor.id, student.id, start, 60)

        too_close = checker.detect(candidate, start - timedelta(hours=1, minutes=59))
        assert kinds(too_close) == [ConflictType.TOO_SHORT_NOTICE]
        assert "2 hours" in too_close[0].message

        assert checker.detect(candidate, start - timedelta(hours=2)) == []

    def test_notice_is_configurable(self, db, availability_service, tutor, student):
        checker = ConflictChecker(
            db,
            availability_service=availability_service,
            policy=SchedulingPolicy(min_booking_notice_hours=48),
        )
        candidate = SessionCandidate(tutor.id, student.id, utc(2024, 3, 4, 15, 0), 60)
        assert kinds(checker.detect(candidate, utc(2024, 3, 3, 12, 0))) == [
            ConflictType.TOO_SHORT_NOTICE
        ]


class TestSuggestions:
    def test_busy_conflict_suggests_free_starts(
        self, checker, tutor, student, other_student, session_factory, now
    ):
        session_factory(tutor, student, utc(2024, 3, 4, 14, 0), 60)
        candidate = SessionCandidate(tutor.id, other_student.id, utc(2024, 3, 4, 14, 0), 60)

        conflicts = checker.detect(candidate, now)

        assert kinds(conflicts) == [ConflictType.TUTOR_BUSY]
        assert list(conflicts[0].suggested_times) == [
            utc(2024, 3, 4, 15, 0),
            utc(2024, 3, 4, 15, 30),
            utc(2024, 3, 4, 16, 0),
        ]

    def test_suggestions_avoid_student_sessions(
        self, checker, tutor, other_tutor, student, session_factory, now
    ):
        session_factory(tutor, student, utc(2024, 3, 4, 14, 0), 60)
        session_factory(other_tutor, student, utc(2024, 3, 4, 15, 0), 60)
        candidate = SessionCandidate(tutor.id, student.id, utc(2024, 3, 4, 14, 0), 60)

        suggestions = checker.detect(candidate, now)[0].suggested_times

        assert suggestions[0] == utc(2024, 3, 4, 16, 0)
        assert utc(2024, 3, 4, 15, 0) not in suggestions
        assert utc(2024, 3, 4, 15, 30) not in suggestions

    def test_suggestions_respect_notice(self, checker, tutor, student):
        now = utc(2024, 3, 4, 13, 30)
        # 16:30 runs past the window end; earliest allowed start is 15:30
        candidate = SessionCandidate(tutor.id, student.id, utc(2024, 3, 4, 16, 30), 60)

        suggestions = checker.detect(candidate, now)[0].suggested_times

        assert suggestions[0] == utc(2024, 3, 4, 15, 30)
        assert all(s >= now + timedelta(hours=2) for s in suggestions)

    def test_no_suggestions_for_time_conflicts_only(self, checker, tutor, student):
        start = utc(2024, 3, 4, 15, 0)
        candidate = SessionCandidate(tutor.id, student.id, start, 60)
        conflicts = checker.detect(candidate, start - timedelta(hours=1))
        assert conflicts[0].suggested_times == ()

    def test_suggestions_can_be_disabled(self, checker, tutor, student, now):
        candidate = SessionCandidate(tutor.id, student.id, utc(2024, 3, 4, 16, 30), 60)
        conflicts = checker.detect(candidate, now, include_suggestions=False)
        assert conflicts[0].suggested_times == ()

    def test_conflict_to_dict(self, checker, tutor, student, other_student, session_factory, now):
        existing = session_factory(tutor, student, utc(2024, 3, 4, 14, 0), 60)
        candidate = SessionCandidate(tutor.id, other_student.id, utc(2024, 3, 4, 14, 0), 60)

        payload = checker.detect(candidate, now)[0].to_dict()

        assert payload["kind"] == "tutor_busy"
        assert payload["conflicting_session"] == {
            "id": existing.id,
            "scheduled_at": "2024-03-04T14:00:00+00:00",
            "ends_at": "2024-03-04T15:00:00+00:00",
        }
        assert payload["suggested_times"][0] == "2024-03-04T15:00:00+00:00"
