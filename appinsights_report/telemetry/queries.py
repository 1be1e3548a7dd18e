"""KQL for the four telemetry collections.

Column names are projected to match the row model field names in
``telemetry.models`` so decoding is a straight column/value zip.
"""

from appinsights_report.telemetry.models import TelemetryKind

REQUESTS_LIMIT = 1000
EXCEPTIONS_LIMIT = 500
DEPENDENCIES_LIMIT = 1000
SLOW_REQUESTS_LIMIT = 200

# A collection that reaches its cap holds only the newest (or slowest) rows of
# the window, so aggregates over it describe a sample, not the whole window.
ROW_LIMITS: dict[TelemetryKind, int] = {
    TelemetryKind.PERFORMANCE: REQUESTS_LIMIT,
    TelemetryKind.EXCEPTIONS: EXCEPTIONS_LIMIT,
    TelemetryKind.DEPENDENCIES: DEPENDENCIES_LIMIT,
    TelemetryKind.SLOW_REQUESTS: SLOW_REQUESTS_LIMIT,
}


def requests_query(days: int) -> str:
    return (
        f"requests | where timestamp > ago({days}d) "
        "| project timestamp, name, url, duration, result_code = resultCode, success, operation_id = operation_Id "
        f"| order by timestamp desc | take {REQUESTS_LIMIT}"
    )


def exceptions_query(days: int) -> str:
    return (
        f"exceptions | where timestamp > ago({days}d) "
        "| project timestamp, type, outer_message = outerMessage, problem_id = problemId, "
        "operation_name = operation_Name "
        f"| order by timestamp desc | take {EXCEPTIONS_LIMIT}"
    )


def dependencies_query(days: int) -> str:
    return (
        f"dependencies | where timestamp > ago({days}d) "
        "| project timestamp, name, type, target, duration, success, result_code = resultCode "
        f"| order by timestamp desc | take {DEPENDENCIES_LIMIT}"
    )


def slow_requests_query(days: int, slow_ms: float) -> str:
    return (
        f"requests | where timestamp > ago({days}d) and duration > {slow_ms:g} "
        "| project timestamp, name, url, duration, result_code = resultCode "
        f"| order by duration desc | take {SLOW_REQUESTS_LIMIT}"
    )


def build_queries(days: int, slow_ms: float) -> dict[TelemetryKind, str]:
    """Return the query for each kind, in collection order."""
    return {
        TelemetryKind.PERFORMANCE: requests_query(days),
        TelemetryKind.EXCEPTIONS: exceptions_query(days),
        TelemetryKind.DEPENDENCIES: dependencies_query(days),
        TelemetryKind.SLOW_REQUESTS: slow_requests_query(days, slow_ms),
    }
