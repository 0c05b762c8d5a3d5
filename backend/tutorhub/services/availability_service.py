# backend/tutorhub/services/availability_service.py
"""
Availability Service for the TutorHub scheduling engine.

Turns a tutor's recurring weekly windows (local wall-clock + authored
timezone) into concrete UTC intervals and answers:
- is an instant/duration fully inside open hours
- which open slots exist in a range (lazy, restartable)
- the tutor's schedule with open slots split around booked sessions

Windows are materialized per local date in their own timezone, then merged
(union, including back-to-back and cross-midnight windows). Each window's
day-of-week is evaluated in that window's timezone, so DST shifts move the
UTC interval but never the local hours.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import json
import logging
import threading
import time as time_module
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from ..core.cache_redis import get_sync_redis_client
from ..core.config import settings
from ..core.exceptions import EntityNotFound, ValidationException
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from ..repositories.tutor_profile_repository import TutorProfileRepository
from .base import BaseService
from .timezone_service import TimezoneService

logger = logging.getLogger(__name__)

END_OF_DAY = "24:00"
BOOKED_REASON = "Booked session"


@dataclass(frozen=True)
class WindowSpec:
    """Detached copy of an AvailabilityWindow row."""

    day_of_week: int
    start_time: str
    end_time: str
    timezone: str


@dataclass(frozen=True)
class OpenSlot:
    """A concrete open interval [start, end) in UTC."""

    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class ScheduleSlot:
    start: datetime
    end: datetime
    is_available: bool
    conflict_reason: Optional[str] = None
    session_id: Optional[str] = None
    local_start: Optional[datetime] = None
    local_end: Optional[datetime] = None


def parse_wall_time(value: str) -> Tuple[int, int]:
    """Parse "HH:MM" (with "24:00" allowed as end of day) into (hours, minutes)."""
    try:
        hours_str, minutes_str = value.split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValidationException(
            f"Invalid wall-clock time {value!r}; expected HH:MM",
            code="INVALID_WALL_TIME",
            details={"value": value},
        )
    if value == END_OF_DAY:
        return 24, 0
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValidationException(
            f"Invalid wall-clock time {value!r}; expected HH:MM",
            code="INVALID_WALL_TIME",
            details={"value": value},
        )
    return hours, minutes


def day_of_week(local_date: date) -> int:
    """Day-of-week with 0 = Sunday."""
    return (local_date.weekday() + 1) % 7


def _wall_to_utc(local_date: date, wall: str, timezone_str: str) -> datetime:
    hours, minutes = parse_wall_time(wall)
    if hours == 24:
        return TimezoneService.local_to_utc(
            local_date + timedelta(days=1), time(0, 0), timezone_str, strict=False
        )
    return TimezoneService.local_to_utc(
        local_date, time(hours, minutes), timezone_str, strict=False
    )


def materialize_windows(
    windows: Iterable[WindowSpec], range_start: datetime, range_end: datetime
) -> List[OpenSlot]:
    """
    Concrete, merged UTC intervals for every window occurrence that touches
    [range_start, range_end). Intervals are not clipped to the range.
    """
    raw: List[Tuple[datetime, datetime]] = []
    for window in windows:
        first = TimezoneService.to_local(range_start, window.timezone).date() - timedelta(days=1)
        last = TimezoneService.to_local(range_end, window.timezone).date() + timedelta(days=1)
        current = first
        while current <= last:
            if day_of_week(current) == window.day_of_week:
                start = _wall_to_utc(current, window.start_time, window.timezone)
                end = _wall_to_utc(current, window.end_time, window.timezone)
                if start < end and start < range_end and range_start < end:
                    raw.append((start, end))
            current += timedelta(days=1)
    return [OpenSlot(start, end) for start, end in merge_intervals(raw)]


def merge_intervals(intervals: Iterable[Tuple[datetime, datetime]]) -> List[Tuple[datetime, datetime]]:
    """Union of half-open intervals; touching intervals are joined."""
    merged: List[Tuple[datetime, datetime]] = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1]:
            if end > merged[-1][1]:
                merged[-1] = (merged[-1][0], end)
        else:
            merged.append((start, end))
    return merged


def _encode_windows(windows: Tuple[WindowSpec, ...]) -> str:
    return json.dumps([[w.day_of_week, w.start_time, w.end_time, w.timezone] for w in windows])


def _decode_windows(raw: str) -> Tuple[WindowSpec, ...]:
    return tuple(WindowSpec(*row) for row in json.loads(raw))


def _no_redis() -> Optional[Redis]:
    return None


class AvailabilityCache:
    """
    Read-through cache of tutor windows keyed by (tutor id, availability version).

    When ``redis_factory`` yields a client, entries are shared by every worker
    and expire through ``SETEX``; otherwise they live in a process-local dict.
    A profile edit bumps the version, so stale entries are never served; the
    TTL bounds how long unused entries stay around.
    """

    KEY_PREFIX = "tutorhub:availability"

    def __init__(
        self,
        ttl_seconds: int = 300,
        clock: Callable[[], float] = time_module.monotonic,
        redis_factory: Callable[[], Optional[Redis]] = _no_redis,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._redis_factory = redis_factory
        self._entries: Dict[Tuple[str, int], Tuple[float, Tuple[WindowSpec, ...]]] = {}
        self._lock = threading.Lock()

    @classmethod
    def redis_key(cls, tutor_id: str, version: int) -> str:
        return f"{cls.KEY_PREFIX}:{tutor_id}:v{version}"

    def get_or_load(
        self,
        tutor_id: str,
        version: int,
        loader: Callable[[], Tuple[WindowSpec, ...]],
    ) -> Tuple[WindowSpec, ...]:
        client = self._redis_factory()
        if client is not None:
            return self._get_or_load_redis(client, tutor_id, version, loader)

        key = (tutor_id, version)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[0] > now:
                prometheus_metrics.inc_availability_cache("hit")
                return entry[1]

        prometheus_metrics.inc_availability_cache("miss")
        windows = loader()
        with self._lock:
            for stale in [k for k in self._entries if k[0] == tutor_id and k != key]:
                del self._entries[stale]
            self._entries[key] = (now + self.ttl_seconds, windows)
        return windows

    def _get_or_load_redis(
        self,
        client: Redis,
        tutor_id: str,
        version: int,
        loader: Callable[[], Tuple[WindowSpec, ...]],
    ) -> Tuple[WindowSpec, ...]:
        key = self.redis_key(tutor_id, version)
        try:
            cached = client.get(key)
        except RedisError as exc:
            logger.warning("Availability cache read failed for %s: %s", key, exc)
            cached = None
        if cached is not None:
            prometheus_metrics.inc_availability_cache("hit")
            return _decode_windows(cached)

        prometheus_metrics.inc_availability_cache("miss")
        windows = loader()
        if self.ttl_seconds > 0:
            try:
                client.setex(key, self.ttl_seconds, _encode_windows(windows))
            except RedisError as exc:
                logger.warning("Availability cache write failed for %s: %s", key, exc)
        return windows

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        client = self._redis_factory()
        if client is not None:
            for key in client.scan_iter(match=f"{self.KEY_PREFIX}:*"):
                client.delete(key)

    def __len__(self) -> int:
        """Entries held in process; Redis-held entries are not counted."""
        return len(self._entries)


default_availability_cache = AvailabilityCache(
    ttl_seconds=settings.availability_cache_ttl_seconds,
    redis_factory=get_sync_redis_client,
)


class AvailabilityService(BaseService):
    """
    Service for tutor open hours.

    All instants in and out are timezone-aware UTC; ``now`` is never read
    from the system clock here.
    """

    def __init__(
        self,
        db: Session,
        tutor_repository: Optional[TutorProfileRepository] = None,
        session_repository: Optional[SessionRepository] = None,
        cache: Optional[AvailabilityCache] = None,
    ):
        super().__init__(db)
        self.tutor_repository = (
            tutor_repository or RepositoryFactory.create_tutor_profile_repository(db)
        )
        self.session_repository = (
            session_repository or RepositoryFactory.create_session_repository(db)
        )
        self.cache = cache if cache is not None else default_availability_cache

    def get_windows(self, tutor_id: str) -> Tuple[WindowSpec, ...]:
        """Weekly windows for a tutor, served through the versioned cache."""
        profile = self.tutor_repository.get_by_user_id(tutor_id)
        if profile is None:
            raise EntityNotFound("tutor", tutor_id)

        def _load() -> Tuple[WindowSpec, ...]:
            return tuple(
                WindowSpec(w.day_of_week, w.start_time, w.end_time, w.timezone)
                for w in self.tutor_repository.get_availability(tutor_id)
            )

        return self.cache.get_or_load(tutor_id, profile.availability_version or 0, _load)

    @BaseService.measure_operation("is_open")
    def is_open(self, tutor_id: str, instant: datetime, duration_minutes: int) -> bool:
        """
        True when [instant, instant + duration) lies inside one merged open
        interval. Partial overlap is not open.
        """
        start = TimezoneService.ensure_utc(instant)
        end = start + timedelta(minutes=duration_minutes)
        for slot in materialize_windows(self.get_windows(tutor_id), start, end):
            if slot.start <= start and end <= slot.end:
                return True
        return False

    def enumerate_open_slots(
        self, tutor_id: str, range_start: datetime, range_end: datetime
    ) -> Iterator[OpenSlot]:
        """
        Lazily yield open slots clipped to [range_start, range_end), in order.

        Each call returns a fresh generator, so iteration can be restarted.
        """
        start = TimezoneService.ensure_utc(range_start)
        end = TimezoneService.ensure_utc(range_end)
        if end <= start:
            return iter(())
        windows = self.get_windows(tutor_id)
        return self._iter_clipped(windows, start, end)

    @staticmethod
    def _iter_clipped(
        windows: Tuple[WindowSpec, ...], start: datetime, end: datetime
    ) -> Iterator[OpenSlot]:
        for slot in materialize_windows(windows, start, end):
            clipped_start = max(slot.start, start)
            clipped_end = min(slot.end, end)
            if clipped_start < clipped_end:
                yield OpenSlot(clipped_start, clipped_end)

    @BaseService.measure_operation("get_tutor_schedule")
    def get_tutor_schedule(
        self,
        tutor_id: str,
        range_start: datetime,
        range_end: datetime,
        display_timezone: Optional[str] = None,
    ) -> List[ScheduleSlot]:
        """
        Open slots in the range split around the tutor's blocking sessions.

        Booked parts come back with ``is_available=False``; the remainder of
        each open slot is returned as available.
        """
        if display_timezone is not None:
            TimezoneService.get_timezone(display_timezone)
        slots = list(self.enumerate_open_slots(tutor_id, range_start, range_end))
        if not slots:
            return []

        sessions = self.session_repository.get_blocking_sessions_in_range(
            tutor_id, "tutor", slots[0].start, slots[-1].end
        )
        result: List[ScheduleSlot] = []
        for slot in slots:
            cursor = slot.start
            for session in sessions:
                busy_start = max(session.scheduled_at, slot.start)
                busy_end = min(session.ends_at, slot.end)
                if busy_start >= busy_end:
                    continue
                if cursor < busy_start:
                    result.append(self._slot(cursor, busy_start, True, None, None, display_timezone))
                result.append(
                    self._slot(
                        busy_start, busy_end, False, BOOKED_REASON, session.id, display_timezone
                    )
                )
                cursor = max(cursor, busy_end)
            if cursor < slot.end:
                result.append(self._slot(cursor, slot.end, True, None, None, display_timezone))
        return result

    @staticmethod
    def _slot(
        start: datetime,
        end: datetime,
        available: bool,
        reason: Optional[str],
        session_id: Optional[str],
        display_timezone: Optional[str],
    ) -> ScheduleSlot:
        local_start = local_end = None
        if display_timezone:
            local_start = TimezoneService.to_local(start, display_timezone)
            local_end = TimezoneService.to_local(end, display_timezone)
        return ScheduleSlot(start, end, available, reason, session_id, local_start, local_end)
