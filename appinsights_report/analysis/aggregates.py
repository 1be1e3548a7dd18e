"""Per-kind summary statistics over the analysis window.

All functions accept empty collections and return zeroed aggregates; nothing
here divides by a zero total.
"""

from collections import Counter
from collections.abc import Iterable, Sequence
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from appinsights_report.telemetry.models import (
    DependencyRow,
    ExceptionRow,
    PerformanceRow,
    SlowRequestRow,
    TelemetryBundle,
)

TOP_EXCEPTION_TYPES = 10
WARNING_FAILURE_RATE_PCT = 1.0
CRITICAL_FAILURE_RATE_PCT = 5.0


class HealthStatus(StrEnum):
    HEALTHY = "Healthy"
    WARNING = "Warning"
    CRITICAL = "Critical"


class _Aggregate(BaseModel):
    model_config = ConfigDict(frozen=True)


class RequestMetrics(_Aggregate):
    total_requests: int = 0
    failed_requests: int = 0
    avg_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    failure_rate_pct: float = 0.0
    daily_requests: dict[str, int] = {}


class ExceptionMetrics(_Aggregate):
    total_exceptions: int = 0
    by_type: dict[str, int] = {}
    critical_count: int = 0


class DependencyMetrics(_Aggregate):
    total_calls: int = 0
    failed_calls: int = 0
    avg_duration_ms: float = 0.0
    failure_rate_pct: float = 0.0
    failing_targets: dict[str, int] = {}


class SlowRequestMetrics(_Aggregate):
    count: int = 0
    slowest_ms: float = 0.0


class AggregateMetrics(_Aggregate):
    requests: RequestMetrics = RequestMetrics()
    exceptions: ExceptionMetrics = ExceptionMetrics()
    dependencies: DependencyMetrics = DependencyMetrics()
    slow_requests: SlowRequestMetrics = SlowRequestMetrics()


def failure_rate(failed: int, total: int) -> float:
    """Percentage of failures; 0.0 when there is nothing to divide by."""
    if total <= 0:
        return 0.0
    return failed / total * 100


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def is_critical_exception(exception_type: str, markers: Iterable[str]) -> bool:
    """Literal, case-sensitive substring match against the critical markers."""
    return any(marker in exception_type for marker in markers)


def summarize_requests(rows: Sequence[PerformanceRow]) -> RequestMetrics:
    if not rows:
        return RequestMetrics()
    durations = [r.duration for r in rows]
    failed = sum(1 for r in rows if not r.success)
    daily = Counter(r.timestamp.date().isoformat() for r in rows)
    return RequestMetrics(
        total_requests=len(rows),
        failed_requests=failed,
        avg_duration_ms=mean(durations),
        max_duration_ms=max(durations),
        failure_rate_pct=failure_rate(failed, len(rows)),
        daily_requests=dict(sorted(daily.items())),
    )


def summarize_exceptions(rows: Sequence[ExceptionRow], markers: Iterable[str]) -> ExceptionMetrics:
    if not rows:
        return ExceptionMetrics()
    markers = tuple(markers)
    by_type = Counter(r.type for r in rows)
    return ExceptionMetrics(
        total_exceptions=len(rows),
        by_type=dict(by_type.most_common(TOP_EXCEPTION_TYPES)),
        critical_count=sum(1 for r in rows if is_critical_exception(r.type, markers)),
    )


def summarize_dependencies(rows: Sequence[DependencyRow]) -> DependencyMetrics:
    if not rows:
        return DependencyMetrics()
    failed_rows = [r for r in rows if not r.success]
    failing_targets = Counter(r.target or r.name or "unknown" for r in failed_rows)
    return DependencyMetrics(
        total_calls=len(rows),
        failed_calls=len(failed_rows),
        avg_duration_ms=mean([r.duration for r in rows]),
        failure_rate_pct=failure_rate(len(failed_rows), len(rows)),
        failing_targets=dict(failing_targets.most_common()),
    )


def summarize_slow_requests(rows: Sequence[SlowRequestRow]) -> SlowRequestMetrics:
    if not rows:
        return SlowRequestMetrics()
    return SlowRequestMetrics(count=len(rows), slowest_ms=max(r.duration for r in rows))


def compute_aggregates(telemetry: TelemetryBundle, critical_markers: Iterable[str]) -> AggregateMetrics:
    return AggregateMetrics(
        requests=summarize_requests(telemetry.performance),
        exceptions=summarize_exceptions(telemetry.exceptions, critical_markers),
        dependencies=summarize_dependencies(telemetry.dependencies),
        slow_requests=summarize_slow_requests(telemetry.slow_requests),
    )


def health_status(request_failure_rate_pct: float) -> HealthStatus:
    if request_failure_rate_pct > CRITICAL_FAILURE_RATE_PCT:
        return HealthStatus.CRITICAL
    if request_failure_rate_pct > WARNING_FAILURE_RATE_PCT:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY
