# backend/tutorhub/core/config.py
"""
Application settings for the TutorHub scheduling engine.

All scheduling constants are overridable through environment variables
(e.g. ``MIN_BOOKING_NOTICE_HOURS=4``) or a ``backend/.env`` file.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_BACKEND_ROOT = Path(__file__).resolve().parents[2]


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


class Settings(BaseSettings):
    """Environment-driven configuration."""

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    database_url: str = Field(default="sqlite:///./tutorhub.db")
    redis_url: str = Field(default="", description="Enables distributed booking locks when set")
    classroom_base_url: str = Field(default="http://localhost:3000/classroom")

    # Booking rules
    min_booking_notice_hours: float = Field(default=2, ge=0)
    max_booking_advance_days: int = Field(default=90, ge=1)
    default_session_duration_minutes: int = Field(default=60, gt=0)
    min_session_duration_minutes: int = Field(default=30, gt=0)
    max_session_duration_minutes: int = Field(default=180, gt=0)
    max_recurrence_occurrences: int = Field(default=52, ge=1)
    start_window_minutes: int = Field(default=15, ge=0)

    # Alternative suggestions after a conflict
    suggestion_limit: int = Field(default=3, ge=0)
    suggestion_search_days: int = Field(default=7, ge=1)
    suggestion_step_minutes: int = Field(default=30, gt=0)

    # Cancellation refund tiers
    full_refund_hours: float = Field(default=24, ge=0)
    partial_refund_hours: float = Field(default=2, ge=0)
    partial_refund_fraction: float = Field(default=0.5, ge=0, le=1)

    availability_cache_ttl_seconds: int = Field(default=300, ge=0)
    booking_lock_ttl_seconds: int = Field(default=30, gt=0)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = (value or "INFO").strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            logger.warning("Unknown LOG_LEVEL=%s; defaulting to INFO", value)
            return "INFO"
        return normalized


settings = Settings()


@dataclass(frozen=True)
class SchedulingPolicy:
    """
    Immutable snapshot of the booking rules a service runs with.

    Services take a policy rather than reading ``settings`` directly so tests
    can pin constants without touching the environment.
    """

    min_booking_notice_hours: float = 2
    max_booking_advance_days: int = 90
    default_session_duration_minutes: int = 60
    min_session_duration_minutes: int = 30
    max_session_duration_minutes: int = 180
    max_recurrence_occurrences: int = 52
    start_window_minutes: int = 15
    suggestion_limit: int = 3
    suggestion_search_days: int = 7
    suggestion_step_minutes: int = 30
    full_refund_hours: float = 24
    partial_refund_hours: float = 2
    partial_refund_fraction: float = 0.5
    classroom_base_url: str = "http://localhost:3000/classroom"

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "SchedulingPolicy":
        cfg = source or settings
        return cls(
            min_booking_notice_hours=cfg.min_booking_notice_hours,
            max_booking_advance_days=cfg.max_booking_advance_days,
            default_session_duration_minutes=cfg.default_session_duration_minutes,
            min_session_duration_minutes=cfg.min_session_duration_minutes,
            max_session_duration_minutes=cfg.max_session_duration_minutes,
            max_recurrence_occurrences=cfg.max_recurrence_occurrences,
            start_window_minutes=cfg.start_window_minutes,
            suggestion_limit=cfg.suggestion_limit,
            suggestion_search_days=cfg.suggestion_search_days,
            suggestion_step_minutes=cfg.suggestion_step_minutes,
            full_refund_hours=cfg.full_refund_hours,
            partial_refund_hours=cfg.partial_refund_hours,
            partial_refund_fraction=cfg.partial_refund_fraction,
            classroom_base_url=cfg.classroom_base_url,
        )
