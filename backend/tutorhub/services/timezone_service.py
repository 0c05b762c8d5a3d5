"""
Centralized timezone handling for TutorHub.

Rules:
- All storage: UTC
- All comparisons: UTC
- Wall-clock values are naive datetimes and are only meaningful together
  with an explicit IANA timezone id
- Unknown timezone ids are an error, never replaced by a default zone
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import pytz

from ..core.exceptions import InvalidTimezone, NonexistentLocalTime, ValidationException


class TimezoneService:
    """Handles all timezone conversions consistently."""

    @staticmethod
    def get_timezone(tz_str: Optional[str]) -> pytz.BaseTzInfo:
        """Resolve an IANA timezone id. Raises InvalidTimezone for unknown ids."""
        if not tz_str:
            raise InvalidTimezone(tz_str)
        try:
            return pytz.timezone(tz_str)
        except pytz.UnknownTimeZoneError:
            raise InvalidTimezone(tz_str)

    @staticmethod
    def is_valid_timezone(tz_str: Optional[str]) -> bool:
        return bool(tz_str) and tz_str in pytz.all_timezones_set

    @staticmethod
    def to_absolute(wall_clock: datetime, timezone_str: str, strict: bool = True) -> datetime:
        """
        Convert a local wall-clock time in ``timezone_str`` to an aware UTC instant.

        Uses the zone rules in force on the wall-clock date. Ambiguous times
        (fall back) resolve to the first occurrence. Times inside a
        spring-forward gap raise NonexistentLocalTime when ``strict``; otherwise
        they are shifted forward by the size of the gap.
        """
        if wall_clock.tzinfo is not None:
            raise ValidationException(
                "Wall-clock times must not carry a UTC offset",
                code="AWARE_WALL_CLOCK",
                details={"value": wall_clock.isoformat()},
            )
        tz = TimezoneService.get_timezone(timezone_str)

        try:
            # is_dst=None raises exception for ambiguous/nonexistent times
            local_dt = tz.localize(wall_clock, is_dst=None)
        except pytz.exceptions.AmbiguousTimeError:
            # Fall back (time exists twice) - use first occurrence
            local_dt = tz.localize(wall_clock, is_dst=True)
        except pytz.exceptions.NonExistentTimeError:
            if strict:
                raise NonexistentLocalTime(wall_clock.strftime("%Y-%m-%d %H:%M"), timezone_str)
            local_dt = tz.normalize(tz.localize(wall_clock, is_dst=False))

        return local_dt.astimezone(timezone.utc)

    @staticmethod
    def local_to_utc(
        local_date: date, start_time: time, timezone_str: str, strict: bool = True
    ) -> datetime:
        """Convert a local date + time-of-day to UTC."""
        naive_dt = datetime.combine(
            local_date, start_time
        )  # utc-naive-ok: Intentionally naive for pytz.localize()
        return TimezoneService.to_absolute(naive_dt, timezone_str, strict=strict)

    @staticmethod
    def to_local(instant: datetime, timezone_str: str) -> datetime:
        """Convert an aware instant to a naive wall-clock time in ``timezone_str``."""
        return TimezoneService.utc_to_local(instant, timezone_str).replace(tzinfo=None)

    @staticmethod
    def utc_to_local(utc_dt: datetime, timezone_str: str) -> datetime:
        """Convert an aware instant to an aware datetime in ``timezone_str``."""
        if utc_dt.tzinfo is None:
            raise ValidationException(
                "Instants must be timezone-aware",
                code="NAIVE_INSTANT",
                details={"value": utc_dt.isoformat()},
            )
        tz = TimezoneService.get_timezone(timezone_str)
        return utc_dt.astimezone(tz)

    @staticmethod
    def ensure_utc(value: datetime) -> datetime:
        """Normalize an aware datetime to UTC; naive input is rejected."""
        if value.tzinfo is None:
            raise ValidationException(
                "Instants must be timezone-aware",
                code="NAIVE_INSTANT",
                details={"value": value.isoformat()},
            )
        return value.astimezone(timezone.utc)

    @staticmethod
    def hours_until(start_utc: datetime, now: datetime) -> float:
        """Hours from ``now`` until ``start_utc``; negative once the start has passed."""
        return (start_utc - now) / timedelta(hours=1)


to_absolute = TimezoneService.to_absolute
to_local = TimezoneService.to_local
