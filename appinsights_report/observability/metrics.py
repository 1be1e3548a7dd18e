"""Prometheus metric definitions for report runs.

All metrics are module-level singletons registered with the default
prometheus_client registry. A run is a one-shot batch job, so metrics are
pushed to a Pushgateway at the end of the run when one is configured.
"""

import logging

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, push_to_gateway

logger = logging.getLogger(__name__)

PUSHGATEWAY_JOB = "appinsights_report"

# ---------------------------------------------------------------------------
# Run-level metrics
# ---------------------------------------------------------------------------

RUN_DURATION_BUCKETS = (5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0)

RUNS_TOTAL = Counter(
    "appinsights_report_runs_total",
    "Total number of report runs",
    labelnames=["status"],
)

RUN_DURATION = Histogram(
    "appinsights_report_run_duration_seconds",
    "Time taken for one end-to-end run in seconds",
    buckets=RUN_DURATION_BUCKETS,
)

# ---------------------------------------------------------------------------
# Telemetry collection
# ---------------------------------------------------------------------------

TELEMETRY_QUERIES_TOTAL = Counter(
    "appinsights_report_telemetry_queries_total",
    "Telemetry queries by kind and outcome",
    labelnames=["kind", "status"],
)

TELEMETRY_ROWS = Gauge(
    "appinsights_report_telemetry_rows",
    "Rows collected in the latest run, by kind",
    labelnames=["kind"],
)

# ---------------------------------------------------------------------------
# Alerts and narrative
# ---------------------------------------------------------------------------

ALERT_OUTCOMES_TOTAL = Counter(
    "appinsights_report_alert_outcomes_total",
    "Alert provisioning outcomes",
    labelnames=["status"],
)

NARRATIVE_CALLS_TOTAL = Counter(
    "appinsights_report_narrative_calls_total",
    "Text-generation calls by outcome",
    labelnames=["status"],
)


def push_metrics(gateway_url: str) -> bool:
    """Push the default registry to a Pushgateway. Best-effort, never raises."""
    if not gateway_url:
        return False
    try:
        push_to_gateway(gateway_url, job=PUSHGATEWAY_JOB, registry=REGISTRY)
    except Exception:
        logger.warning("Failed to push metrics to %s", gateway_url, exc_info=True)
        return False
    logger.info("Pushed run metrics to %s", gateway_url)
    return True
