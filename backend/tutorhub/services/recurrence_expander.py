# backend/tutorhub/services/recurrence_expander.py
"""
Recurrence expansion for booked series.

Occurrences advance in the lesson's wall-clock timezone, so a 10:00 lesson
stays at 10:00 local across DST changes; each occurrence is then converted
to a UTC instant. The seed is always the first occurrence. Expansion is a
pure function of (seed instant, timezone, pattern, cap).
"""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..core.exceptions import ValidationException
from .availability_service import day_of_week
from .timezone_service import TimezoneService

MAX_RECURRENCE_OCCURRENCES = 52


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class RecurrencePattern:
    """
    How a seed session repeats.

    ``days_of_week`` uses 0 = Sunday and is only valid for weekly patterns.
    ``end_date`` is an inclusive local date in the lesson timezone. When both
    bounds are missing the hard cap still applies.
    """

    frequency: Frequency
    interval: int = 1
    days_of_week: Optional[Tuple[int, ...]] = None
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "frequency", Frequency(self.frequency))
        if self.interval is None or self.interval < 1:
            raise ValidationException(
                "Recurrence interval must be at least 1",
                code="INVALID_RECURRENCE",
                details={"interval": self.interval},
            )
        if self.max_occurrences is not None and self.max_occurrences < 1:
            raise ValidationException(
                "max_occurrences must be at least 1",
                code="INVALID_RECURRENCE",
                details={"max_occurrences": self.max_occurrences},
            )
        if self.days_of_week is not None:
            if self.frequency is not Frequency.WEEKLY:
                raise ValidationException(
                    "days_of_week is only supported for weekly recurrence",
                    code="INVALID_RECURRENCE",
                    details={"frequency": self.frequency.value},
                )
            days = tuple(sorted(set(self.days_of_week)))
            if not days or any(d < 0 or d > 6 for d in days):
                raise ValidationException(
                    "days_of_week must contain values between 0 (Sunday) and 6 (Saturday)",
                    code="INVALID_RECURRENCE",
                    details={"days_of_week": list(self.days_of_week)},
                )
            object.__setattr__(self, "days_of_week", days)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frequency": self.frequency.value,
            "interval": self.interval,
            "days_of_week": list(self.days_of_week) if self.days_of_week else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "max_occurrences": self.max_occurrences,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecurrencePattern":
        end_date = data.get("end_date")
        days = data.get("days_of_week")
        return cls(
            frequency=Frequency(data["frequency"]),
            interval=int(data.get("interval") or 1),
            days_of_week=tuple(days) if days else None,
            end_date=date.fromisoformat(end_date) if isinstance(end_date, str) else end_date,
            max_occurrences=data.get("max_occurrences"),
        )


def occurrence_limit(pattern: RecurrencePattern, cap: int = MAX_RECURRENCE_OCCURRENCES) -> int:
    """Number of occurrences (seed included) the series may produce."""
    if pattern.max_occurrences is None:
        return cap
    return min(pattern.max_occurrences, cap)


def _add_months(value: date, months: int, day: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day, monthrange(year, month)[1]))


def _iter_dates(seed_date: date, pattern: RecurrencePattern) -> Iterator[date]:
    """Unbounded ascending local dates after the seed date."""
    step = 1
    if pattern.frequency is Frequency.DAILY:
        while True:
            yield seed_date + timedelta(days=pattern.interval * step)
            step += 1
    elif pattern.frequency is Frequency.MONTHLY:
        while True:
            yield _add_months(seed_date, pattern.interval * step, seed_date.day)
            step += 1
    elif not pattern.days_of_week:
        while True:
            yield seed_date + timedelta(weeks=pattern.interval * step)
            step += 1
    else:
        # Sunday-anchored weeks; every interval-th week, matching weekdays only.
        week_start = seed_date - timedelta(days=day_of_week(seed_date))
        week = 0
        while True:
            for dow in pattern.days_of_week:
                candidate = week_start + timedelta(weeks=week, days=dow)
                if candidate > seed_date:
                    yield candidate
            week += pattern.interval


def iter_occurrences(
    seed_start: datetime,
    timezone_str: str,
    pattern: RecurrencePattern,
    cap: int = MAX_RECURRENCE_OCCURRENCES,
) -> Iterator[datetime]:
    """
    Yield occurrence instants (UTC) starting with the seed itself.

    Stops once ``end_date`` is passed or the occurrence limit is reached.
    Local times that fall into a DST gap are shifted forward by the gap.
    """
    seed_start = TimezoneService.ensure_utc(seed_start)
    local_seed = TimezoneService.to_local(seed_start, timezone_str)
    limit = occurrence_limit(pattern, cap)

    yield seed_start
    produced = 1
    if produced >= limit:
        return
    for local_date in _iter_dates(local_seed.date(), pattern):
        if pattern.end_date is not None and local_date > pattern.end_date:
            return
        yield TimezoneService.local_to_utc(local_date, local_seed.time(), timezone_str, strict=False)
        produced += 1
        if produced >= limit:
            return


def expand(
    seed_start: datetime,
    timezone_str: str,
    pattern: RecurrencePattern,
    cap: int = MAX_RECURRENCE_OCCURRENCES,
) -> List[datetime]:
    """Materialized, ordered list of occurrence instants including the seed."""
    return list(iter_occurrences(seed_start, timezone_str, pattern, cap))
