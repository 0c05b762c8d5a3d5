"""
Per-participant booking locks.

The booking orchestrator holds one lock per participant (tutor and student)
around "re-detect conflicts, then insert" so two racing requests for the same
person serialize. With ``REDIS_URL`` set the locks are Redis keys shared by
every worker; otherwise a process-local registry of threading locks is used,
holding an entry only while some request holds or waits on it.
"""

from __future__ import annotations

from contextlib import ExitStack, contextmanager
import logging
import threading
import time
from typing import Dict, Iterable, Iterator, Optional
import uuid

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .cache_redis import get_sync_redis_client
from .config import settings

logger = logging.getLogger(__name__)

_LOCAL_LOCKS: Dict[str, "_LocalLock"] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()

_POLL_INTERVAL_S = 0.05


class BookingLockTimeout(Exception):
    """
    Raised when a participant lock cannot be acquired in time.

    The booking service turns it into a busy conflict for that participant.
    """

    def __init__(self, participant_id: str):
        self.participant_id = participant_id
        super().__init__(f"Timed out waiting for booking lock on {participant_id}")


def _lock_key(participant_id: str) -> str:
    return f"tutorhub:lock:participant:{participant_id}"


class _LocalLock:
    """A threading lock plus the number of callers holding or waiting on it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


@contextmanager
def _redis_lock(client: Redis, participant_id: str, ttl_s: int) -> Iterator[None]:
    key = _lock_key(participant_id)
    token = uuid.uuid4().hex
    deadline = time.monotonic() + ttl_s
    started = time.monotonic()
    while not client.set(key, token, nx=True, ex=ttl_s):
        if time.monotonic() >= deadline:
            raise BookingLockTimeout(participant_id)
        time.sleep(_POLL_INTERVAL_S)
    prometheus_metrics.observe_lock_wait("redis", time.monotonic() - started)
    try:
        yield
    finally:
        try:
            if client.get(key) == token:
                client.delete(key)
        except Exception as exc:
            logger.warning(
                "booking_lock_sync_release_failed",
                extra={"participant_id": participant_id, "error": str(exc)},
            )


@contextmanager
def _thread_lock(participant_id: str, ttl_s: int) -> Iterator[None]:
    with _LOCAL_LOCKS_GUARD:
        entry = _LOCAL_LOCKS.get(participant_id)
        if entry is None:
            entry = _LOCAL_LOCKS[participant_id] = _LocalLock()
        entry.users += 1
    try:
        started = time.monotonic()
        if not entry.lock.acquire(timeout=ttl_s):
            raise BookingLockTimeout(participant_id)
        prometheus_metrics.observe_lock_wait("local", time.monotonic() - started)
        try:
            yield
        finally:
            entry.lock.release()
    finally:
        # Entries live only while someone holds or waits on them.
        with _LOCAL_LOCKS_GUARD:
            entry.users -= 1
            if entry.users == 0:
                del _LOCAL_LOCKS[participant_id]


@contextmanager
def participant_locks(participant_ids: Iterable[str], ttl_s: Optional[int] = None) -> Iterator[None]:
    """
    Hold a lock for every participant id for the duration of the block.

    Ids are de-duplicated and acquired in sorted order so two requests naming
    the same pair of participants can never deadlock.
    """
    ttl = ttl_s or settings.booking_lock_ttl_seconds
    client = get_sync_redis_client()
    with ExitStack() as stack:
        for participant_id in sorted(set(participant_ids)):
            if client is not None:
                stack.enter_context(_redis_lock(client, participant_id, ttl))
            else:
                stack.enter_context(_thread_lock(participant_id, ttl))
        yield
