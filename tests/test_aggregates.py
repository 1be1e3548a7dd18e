"""Unit tests for telemetry aggregates and health classification."""

import pytest
from helpers import dependencies, exceptions, requests, slow_requests

from appinsights_report.analysis.aggregates import (
    HealthStatus,
    compute_aggregates,
    failure_rate,
    health_status,
    is_critical_exception,
    summarize_dependencies,
    summarize_exceptions,
    summarize_requests,
    summarize_slow_requests,
)
from appinsights_report.config import CRITICAL_EXCEPTION_MARKERS
from appinsights_report.telemetry.models import TelemetryBundle


class TestFailureRate:
    def test_zero_total_is_zero(self) -> None:
        assert failure_rate(0, 0) == 0.0

    @pytest.mark.parametrize(
        ("failed", "total", "expected"),
        [(0, 10, 0.0), (1, 100, 1.0), (6, 100, 6.0), (5, 5, 100.0)],
    )
    def test_percentage(self, failed: int, total: int, expected: float) -> None:
        assert failure_rate(failed, total) == pytest.approx(expected)


class TestSummarizeRequests:
    def test_empty(self) -> None:
        m = summarize_requests([])
        assert m.total_requests == 0
        assert m.avg_duration_ms == 0.0
        assert m.failure_rate_pct == 0.0

    def test_values(self) -> None:
        m = summarize_requests(requests([100.0, 200.0, 300.0, 400.0], failures=1))
        assert m.total_requests == 4
        assert m.failed_requests == 1
        assert m.avg_duration_ms == pytest.approx(250.0)
        assert m.max_duration_ms == 400.0
        assert m.failure_rate_pct == pytest.approx(25.0)

    def test_daily_counts(self) -> None:
        # helpers space requests one hour apart starting at noon
        m = summarize_requests(requests([10.0] * 14))
        assert m.daily_requests == {"2026-10-01": 12, "2026-10-02": 2}


class TestSummarizeExceptions:
    def test_counts_by_type_and_critical(self) -> None:
        rows = exceptions(["System.TimeoutException", "System.ArgumentException", "System.TimeoutException"])
        m = summarize_exceptions(rows, CRITICAL_EXCEPTION_MARKERS)
        assert m.total_exceptions == 3
        assert m.by_type == {"System.TimeoutException": 2, "System.ArgumentException": 1}
        assert m.critical_count == 2

    def test_is_critical_literal_match(self) -> None:
        assert is_critical_exception("System.OutOfMemoryException", CRITICAL_EXCEPTION_MARKERS)
        assert not is_critical_exception("outofmemory", CRITICAL_EXCEPTION_MARKERS)


class TestSummarizeDependencies:
    def test_failure_rate_and_targets(self) -> None:
        m = summarize_dependencies(dependencies(total=20, failed=3, target="redis.test"))
        assert m.total_calls == 20
        assert m.failed_calls == 3
        assert m.failure_rate_pct == pytest.approx(15.0)
        assert m.failing_targets == {"redis.test": 3}

    def test_empty(self) -> None:
        assert summarize_dependencies([]).failure_rate_pct == 0.0


class TestSummarizeSlowRequests:
    def test_count_and_slowest(self) -> None:
        m = summarize_slow_requests(slow_requests(5))
        assert m.count == 5
        assert m.slowest_ms == 9004.0


class TestComputeAggregates:
    def test_empty_bundle(self) -> None:
        m = compute_aggregates(TelemetryBundle(), CRITICAL_EXCEPTION_MARKERS)
        assert m.requests.total_requests == 0
        assert m.exceptions.total_exceptions == 0
        assert m.dependencies.total_calls == 0
        assert m.slow_requests.count == 0


class TestHealthStatus:
    @pytest.mark.parametrize(
        ("rate", "expected"),
        [
            (0.0, HealthStatus.HEALTHY),
            (1.0, HealthStatus.HEALTHY),
            (1.5, HealthStatus.WARNING),
            (5.0, HealthStatus.WARNING),
            (5.1, HealthStatus.CRITICAL),
        ],
    )
    def test_thresholds(self, rate: float, expected: HealthStatus) -> None:
        assert health_status(rate) == expected
