"""Alert decision policy.

Maps the trailing-window telemetry to the monitoring rules worth having. The
analysis window only decides *whether* a rule is warranted; each emitted rule
watches its own rolling 24-hour window with a stricter, forward-looking check
embedded in its KQL.

Specs are emitted in a fixed order: performance issues, exceptions,
dependencies, slow requests.
"""

import logging

from appinsights_report.alerts.models import AlertCategory, AlertSpec
from appinsights_report.analysis.aggregates import (
    AggregateMetrics,
    compute_aggregates,
)
from appinsights_report.config import AlertThresholds
from appinsights_report.telemetry.models import TelemetryBundle

logger = logging.getLogger(__name__)

SEVERITY_ERROR = 1
SEVERITY_WARNING = 2
SEVERITY_INFORMATIONAL = 3


def alert_name(app_name: str, category: AlertCategory) -> str:
    return f"{app_name}-{category}"


def _kql_string_list(values: tuple[str, ...]) -> str:
    return ", ".join(f'"{v}"' for v in values)


def _high_response_time(app_name: str, metrics: AggregateMetrics, t: AlertThresholds) -> AlertSpec | None:
    requests = metrics.requests
    if requests.total_requests == 0 or requests.avg_duration_ms <= t.avg_response_ms_threshold:
        return None
    return AlertSpec(
        name=alert_name(app_name, AlertCategory.HIGH_RESPONSE_TIME),
        category=AlertCategory.HIGH_RESPONSE_TIME,
        description=(
            f"Average response time for {app_name} exceeds {t.monitor_avg_response_ms:g} ms over 24 hours "
            f"(observed {requests.avg_duration_ms:.0f} ms average)."
        ),
        query=(
            "requests | where timestamp > ago(24h) "
            "| summarize avg_duration = avg(duration) "
            f"| where avg_duration > {t.monitor_avg_response_ms:g}"
        ),
        severity=SEVERITY_WARNING,
        threshold=t.monitor_avg_response_ms,
    )


def _high_failure_rate(app_name: str, metrics: AggregateMetrics, t: AlertThresholds) -> AlertSpec | None:
    requests = metrics.requests
    if requests.total_requests == 0 or requests.failure_rate_pct <= t.failure_rate_pct_threshold:
        return None
    return AlertSpec(
        name=alert_name(app_name, AlertCategory.HIGH_FAILURE_RATE),
        category=AlertCategory.HIGH_FAILURE_RATE,
        description=(
            f"Request failure rate for {app_name} exceeds {t.monitor_failure_rate_pct:g}% over 24 hours "
            f"(observed {requests.failure_rate_pct:.2f}%)."
        ),
        query=(
            "requests | where timestamp > ago(24h) "
            "| summarize total = count(), failed = countif(success == false) "
            "| extend failure_rate = todouble(failed) / total * 100 "
            f"| where failure_rate > {t.monitor_failure_rate_pct:g}"
        ),
        severity=SEVERITY_ERROR,
        threshold=t.monitor_failure_rate_pct,
    )


def _critical_exceptions(app_name: str, metrics: AggregateMetrics, t: AlertThresholds) -> AlertSpec | None:
    if metrics.exceptions.critical_count == 0:
        return None
    markers = t.critical_exception_markers
    predicate = " or ".join(f'type contains_cs "{m}"' for m in markers)
    return AlertSpec(
        name=alert_name(app_name, AlertCategory.CRITICAL_EXCEPTIONS),
        category=AlertCategory.CRITICAL_EXCEPTIONS,
        description=(
            f"Any critical exception ({_kql_string_list(markers)}) in {app_name} within 24 hours "
            f"(observed {metrics.exceptions.critical_count} in the analysis window)."
        ),
        query=f"exceptions | where timestamp > ago(24h) | where {predicate}",
        severity=SEVERITY_ERROR,
        threshold=0,
    )


def _dependency_failures(app_name: str, metrics: AggregateMetrics, t: AlertThresholds) -> AlertSpec | None:
    deps = metrics.dependencies
    if deps.total_calls == 0 or deps.failed_calls == 0:
        return None
    if deps.failure_rate_pct <= t.dependency_failure_pct_threshold:
        return None
    return AlertSpec(
        name=alert_name(app_name, AlertCategory.DEPENDENCY_FAILURES),
        category=AlertCategory.DEPENDENCY_FAILURES,
        description=(
            f"Dependency failure rate for {app_name} exceeds {t.monitor_dependency_failure_pct:g}% over 24 hours "
            f"(observed {deps.failure_rate_pct:.2f}%)."
        ),
        query=(
            "dependencies | where timestamp > ago(24h) "
            "| summarize total = count(), failed = countif(success == false) "
            "| extend failure_rate = todouble(failed) / total * 100 "
            f"| where failure_rate > {t.monitor_dependency_failure_pct:g}"
        ),
        severity=SEVERITY_WARNING,
        threshold=t.monitor_dependency_failure_pct,
    )


def _slow_requests(app_name: str, metrics: AggregateMetrics, t: AlertThresholds) -> AlertSpec | None:
    if metrics.slow_requests.count <= t.slow_request_count_threshold:
        return None
    return AlertSpec(
        name=alert_name(app_name, AlertCategory.SLOW_REQUESTS),
        category=AlertCategory.SLOW_REQUESTS,
        description=(
            f"More than {t.monitor_slow_request_count} requests slower than {t.monitor_slow_request_ms:g} ms "
            f"in {app_name} within 24 hours (observed {metrics.slow_requests.count} slow requests)."
        ),
        query=(
            f"requests | where timestamp > ago(24h) and duration > {t.monitor_slow_request_ms:g} "
            "| summarize slow_count = count() "
            f"| where slow_count > {t.monitor_slow_request_count}"
        ),
        severity=SEVERITY_INFORMATIONAL,
        threshold=t.monitor_slow_request_count,
    )


_RULES = (
    _high_response_time,
    _high_failure_rate,
    _critical_exceptions,
    _dependency_failures,
    _slow_requests,
)


def decide_from_aggregates(
    app_name: str,
    metrics: AggregateMetrics,
    thresholds: AlertThresholds | None = None,
) -> list[AlertSpec]:
    """Apply every rule to precomputed aggregates, in category order."""
    t = thresholds or AlertThresholds()
    specs: list[AlertSpec] = []
    for rule in _RULES:
        spec = rule(app_name, metrics, t)
        if spec is not None:
            specs.append(spec)
    logger.info("Alert policy selected %d rule(s): %s", len(specs), [s.name for s in specs])
    return specs


def decide_alerts(
    telemetry: TelemetryBundle,
    app_name: str,
    thresholds: AlertThresholds | None = None,
) -> list[AlertSpec]:
    """Decide which monitoring rules should exist for ``app_name``.

    Args:
        telemetry: The four trailing-window collections; any may be empty.
        app_name: Target application identity, embedded in every rule name.
        thresholds: Policy constants. Defaults to ``AlertThresholds()``.

    Returns:
        Zero or more specs, deterministic for identical input.
    """
    t = thresholds or AlertThresholds()
    metrics = compute_aggregates(telemetry, t.critical_exception_markers)
    return decide_from_aggregates(app_name, metrics, t)
