"""
Prometheus metrics for the TutorHub scheduling engine.

Service timings are fed by the @measure_operation decorator; the scheduling
counters below are incremented by the booking and availability services.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so repeated imports in tests do not collide with the default one
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "tutorhub_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "tutorhub_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "tutorhub_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_conflicts_total = Counter(
    "tutorhub_booking_conflicts_total",
    "Booking requests rejected by conflict kind",
    ["kind"],
    registry=REGISTRY,
)

sessions_booked_total = Counter(
    "tutorhub_sessions_booked_total",
    "Sessions persisted by the booking orchestrator",
    ["recurring"],
    registry=REGISTRY,
)

availability_cache_total = Counter(
    "tutorhub_availability_cache_total",
    "Availability cache lookups",
    ["result"],  # hit | miss
    registry=REGISTRY,
)

booking_lock_wait_seconds = Histogram(
    "tutorhub_booking_lock_wait_seconds",
    "Time spent waiting for participant booking locks",
    ["backend"],
    registry=REGISTRY,
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)


class PrometheusMetrics:
    """Thin recording facade over the scheduling collectors."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """Called by ``BaseService.measure_operation`` once per invocation."""
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_booking_conflict(kind: str) -> None:
        booking_conflicts_total.labels(kind=kind).inc()

    @staticmethod
    def inc_sessions_booked(count: int, recurring: bool) -> None:
        if count > 0:
            sessions_booked_total.labels(recurring="true" if recurring else "false").inc(count)

    @staticmethod
    def inc_availability_cache(result: str) -> None:
        availability_cache_total.labels(result=result).inc()

    @staticmethod
    def observe_lock_wait(backend: str, duration: float) -> None:
        booking_lock_wait_seconds.labels(backend=backend).observe(max(duration, 0.0))

    @staticmethod
    def get_metrics() -> bytes:
        """Exposition-format snapshot of the scheduling registry."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
