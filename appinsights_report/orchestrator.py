"""End-to-end run: collect telemetry, decide and provision alerts, narrate, render.

Every stage runs sequentially. Failures local to one telemetry kind, one alert
spec, or one narrative section are folded into that unit's result; only the
initial telemetry authentication and the final report write end the run.
"""

import asyncio
import dataclasses
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from appinsights_report.alerts.backend import AlertRuleBackend, ArmScheduledQueryRuleBackend
from appinsights_report.alerts.models import AlertSpec, ProvisioningSummary
from appinsights_report.alerts.policy import decide_from_aggregates
from appinsights_report.alerts.provisioner import provision_alerts
from appinsights_report.analysis.aggregates import AggregateMetrics, HealthStatus, compute_aggregates, health_status
from appinsights_report.auth import AzureTokenProvider
from appinsights_report.config import Settings
from appinsights_report.narrative import (
    NARRATIVE_UNAVAILABLE,
    SYSTEM_ROLE,
    NarrativeSection,
    NarrativeSummarizer,
    build_section_prompts,
)
from appinsights_report.observability.metrics import (
    RUN_DURATION,
    RUNS_TOTAL,
    TELEMETRY_QUERIES_TOTAL,
    TELEMETRY_ROWS,
    push_metrics,
)
from appinsights_report.report.email import is_email_configured, send_report_email
from appinsights_report.report.renderer import render_report, write_report
from appinsights_report.result import Err, Ok, Result
from appinsights_report.telemetry.client import TelemetryClient
from appinsights_report.telemetry.models import TelemetryBundle, TelemetryKind
from appinsights_report.telemetry.queries import ROW_LIMITS, build_queries

logger = logging.getLogger(__name__)

ProgressFn = Callable[[str], None]


class TelemetrySource(Protocol):
    async def authenticate(self) -> None: ...

    async def query_rows(self, kind: TelemetryKind, query: str, window_days: int) -> Result[list[Any]]: ...


class Summarizer(Protocol):
    async def summarize(self, prompt: str, system_role: str = ..., max_tokens: int = ...) -> str: ...


@dataclass(frozen=True)
class RunResult:
    app_name: str
    generated_at: datetime
    window_days: int
    telemetry: TelemetryBundle
    metrics: AggregateMetrics
    health: HealthStatus
    alert_specs: list[AlertSpec]
    provisioning: ProvisioningSummary | None
    narratives: dict[NarrativeSection, str] = field(default_factory=dict)
    query_errors: dict[TelemetryKind, str] = field(default_factory=dict)
    output_path: Path | None = None


def _log_progress(message: str) -> None:
    logger.info(message)


async def collect_telemetry(
    source: TelemetrySource,
    window_days: int,
    slow_request_ms: float,
    progress: ProgressFn = _log_progress,
) -> tuple[TelemetryBundle, dict[TelemetryKind, str]]:
    """Run the four queries in order. A failed query contributes an empty collection.

    A collection that reaches its row cap is recorded in ``TelemetryBundle.truncated``.
    """
    collected: dict[TelemetryKind, list[Any]] = {}
    errors: dict[TelemetryKind, str] = {}
    truncated: set[TelemetryKind] = set()
    for kind, query in build_queries(window_days, slow_request_ms).items():
        progress(f"Querying {kind.replace('_', ' ')}...")
        match await source.query_rows(kind, query, window_days):
            case Ok(value=rows):
                collected[kind] = rows
                TELEMETRY_QUERIES_TOTAL.labels(kind=kind.value, status="success").inc()
            case Err(error=error):
                logger.warning("Telemetry query for %s failed: %s", kind, error)
                progress(f"  {kind} query failed, continuing with no data")
                collected[kind] = []
                errors[kind] = error
                TELEMETRY_QUERIES_TOTAL.labels(kind=kind.value, status="error").inc()
        TELEMETRY_ROWS.labels(kind=kind.value).set(len(collected[kind]))
        limit = ROW_LIMITS[kind]
        if len(collected[kind]) >= limit:
            truncated.add(kind)
            logger.warning("%s query hit its %d-row cap; aggregates cover only those rows", kind, limit)
            progress(f"  {len(collected[kind])} row(s), capped at {limit}")
        else:
            progress(f"  {len(collected[kind])} row(s)")

    bundle = TelemetryBundle(
        performance=collected[TelemetryKind.PERFORMANCE],
        exceptions=collected[TelemetryKind.EXCEPTIONS],
        dependencies=collected[TelemetryKind.DEPENDENCIES],
        slow_requests=collected[TelemetryKind.SLOW_REQUESTS],
        truncated=frozenset(truncated),
    )
    return bundle, errors


async def generate_narratives(
    summarizer: Summarizer,
    settings: Settings,
    metrics: AggregateMetrics,
    telemetry: TelemetryBundle,
    progress: ProgressFn = _log_progress,
) -> dict[NarrativeSection, str]:
    prompts = build_section_prompts(
        settings.app_name,
        settings.analysis_window_days,
        metrics,
        telemetry,
        settings.narrative_sample_rows,
    )
    narratives: dict[NarrativeSection, str] = {}
    for section, prompt in prompts.items():
        progress(f"Generating {section.heading.lower()}...")
        narratives[section] = await summarizer.summarize(prompt, SYSTEM_ROLE, settings.narrative_max_tokens)
    return narratives


async def run_report(
    settings: Settings,
    *,
    telemetry_source: TelemetrySource | None = None,
    alert_backend: AlertRuleBackend | None = None,
    summarizer: Summarizer | None = None,
    tokens: AzureTokenProvider | None = None,
    skip_alerts: bool = False,
    skip_narrative: bool = False,
    output_path: str | Path | None = None,
    progress: ProgressFn = _log_progress,
) -> RunResult:
    """Execute one full run and write the HTML report.

    Raises:
        AuthenticationError: The telemetry backend rejected our credentials.
        ReportWriteError: The report could not be written.
    """
    start = time.monotonic()
    tokens = tokens or AzureTokenProvider()
    source = telemetry_source or TelemetryClient(
        settings.appinsights_resource_id, tokens, timeout=settings.http_timeout_seconds
    )
    try:
        result = await _run(
            settings,
            source=source,
            alert_backend=alert_backend,
            summarizer=summarizer,
            tokens=tokens,
            skip_alerts=skip_alerts,
            skip_narrative=skip_narrative,
            output_path=Path(output_path or settings.report_output_path),
            progress=progress,
        )
    except Exception:
        RUNS_TOTAL.labels(status="error").inc()
        raise
    else:
        RUNS_TOTAL.labels(status="success").inc()
        return result
    finally:
        RUN_DURATION.observe(time.monotonic() - start)
        _ = push_metrics(settings.pushgateway_url)


async def _run(
    settings: Settings,
    *,
    source: TelemetrySource,
    alert_backend: AlertRuleBackend | None,
    summarizer: Summarizer | None,
    tokens: AzureTokenProvider,
    skip_alerts: bool,
    skip_narrative: bool,
    output_path: Path,
    progress: ProgressFn,
) -> RunResult:
    progress(f"Authenticating to Application Insights for {settings.app_name}...")
    await source.authenticate()

    telemetry, query_errors = await collect_telemetry(
        source, settings.analysis_window_days, settings.slow_request_ms, progress
    )

    thresholds = settings.thresholds()
    metrics = compute_aggregates(telemetry, thresholds.critical_exception_markers)
    health = health_status(metrics.requests.failure_rate_pct)
    progress(f"Health status: {health.value}")

    specs = decide_from_aggregates(settings.app_name, metrics, thresholds)
    progress(f"Alert policy selected {len(specs)} rule(s)")

    provisioning: ProvisioningSummary | None = None
    if skip_alerts:
        progress("Skipping alert provisioning")
    else:
        backend = alert_backend or ArmScheduledQueryRuleBackend(
            settings.subscription_id,
            settings.appinsights_resource_id,
            settings.alert_location,
            tokens,
            timeout=settings.http_timeout_seconds,
        )
        progress("Provisioning alert rules...")
        provisioning = await provision_alerts(
            specs, backend, settings.effective_alert_resource_group, settings.action_group_id
        )

    if skip_narrative:
        narratives = dict.fromkeys(NarrativeSection, NARRATIVE_UNAVAILABLE)
    else:
        narratives = await generate_narratives(
            summarizer or NarrativeSummarizer(settings), settings, metrics, telemetry, progress
        )

    result = RunResult(
        app_name=settings.app_name,
        generated_at=datetime.now(UTC),
        window_days=settings.analysis_window_days,
        telemetry=telemetry,
        metrics=metrics,
        health=health,
        alert_specs=specs,
        provisioning=provisioning,
        narratives=narratives,
        query_errors=query_errors,
    )

    progress("Rendering report...")
    html = render_report(result, max_rows=settings.report_table_rows)
    written = write_report(html, output_path)
    progress(f"Report written to {written}")

    if is_email_configured(settings):
        _ = await asyncio.to_thread(send_report_email, settings, html)

    return dataclasses.replace(result, output_path=written)
