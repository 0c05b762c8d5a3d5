# backend/tests/unit/test_booking_lock.py
"""Process-local participant locks (REDIS_URL is empty under test)."""

import threading

import pytest

from tutorhub.core import booking_lock
from tutorhub.core.booking_lock import BookingLockTimeout, participant_locks
from tutorhub.core.cache_redis import get_sync_redis_client


@pytest.fixture(autouse=True)
def empty_registry():
    assert booking_lock._LOCAL_LOCKS == {}
    yield
    assert booking_lock._LOCAL_LOCKS == {}


class TestParticipantLocks:
    def test_registry_holds_entries_only_while_locked(self):
        with participant_locks(["student-1", "tutor-1"]):
            assert set(booking_lock._LOCAL_LOCKS) == {"student-1", "tutor-1"}

        assert booking_lock._LOCAL_LOCKS == {}

    def test_many_distinct_participants_leave_nothing_behind(self):
        for i in range(200):
            with participant_locks([f"tutor-{i}", f"student-{i}"]):
                pass

        assert booking_lock._LOCAL_LOCKS == {}

    def test_duplicate_ids_lock_once(self):
        with participant_locks(["tutor-1", "tutor-1"]):
            assert booking_lock._LOCAL_LOCKS["tutor-1"].users == 1

    def test_held_participant_times_out(self):
        with participant_locks(["tutor-1"]):
            with pytest.raises(BookingLockTimeout) as exc_info:
                with participant_locks(["student-1", "tutor-1"], ttl_s=1):
                    pass

        assert exc_info.value.participant_id == "tutor-1"

    def test_timeout_releases_locks_already_taken(self):
        with participant_locks(["tutor-1"]):
            with pytest.raises(BookingLockTimeout):
                with participant_locks(["student-1", "tutor-1"], ttl_s=1):
                    pass
            assert set(booking_lock._LOCAL_LOCKS) == {"tutor-1"}

        with participant_locks(["student-1"]):
            pass

    def test_waiter_gets_the_lock_after_release(self):
        holding = threading.Event()
        release = threading.Event()

        def holder():
            with participant_locks(["tutor-1"]):
                holding.set()
                release.wait(timeout=5)

        thread = threading.Thread(target=holder)
        thread.start()
        assert holding.wait(timeout=5)
        assert booking_lock._LOCAL_LOCKS["tutor-1"].users == 1

        release.set()
        with participant_locks(["tutor-1"], ttl_s=5):
            pass
        thread.join(timeout=5)

    def test_no_redis_client_without_url(self):
        assert get_sync_redis_client() is None
