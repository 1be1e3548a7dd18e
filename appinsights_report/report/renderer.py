"""HTML report rendering.

Builds a typed view model from a ``RunResult`` and feeds it to a Jinja2
template with autoescaping on, so values from telemetry and the model's
narrative never reach the page unescaped.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, TypedDict

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from appinsights_report.alerts.models import MONITORING_SCHEDULE, AlertOutcome, AlertSpec
from appinsights_report.errors import ReportWriteError
from appinsights_report.narrative import NarrativeSection
from appinsights_report.telemetry.models import TelemetryBundle, TelemetryKind
from appinsights_report.telemetry.queries import ROW_LIMITS

if TYPE_CHECKING:
    from appinsights_report.orchestrator import RunResult

logger = logging.getLogger(__name__)

DEFAULT_TABLE_ROWS = 20
TEMPLATE_NAME = "report.html.j2"


# ---------------------------------------------------------------------------
# View model
# ---------------------------------------------------------------------------


class MetricCard(TypedDict):
    label: str
    value: str


class AlertRow(TypedDict):
    name: str
    status: str
    schedule: str
    description: str
    error: str


class NarrativeBlock(TypedDict):
    title: str
    bullets: list[str]
    paragraphs: list[str]


class DataTable(TypedDict):
    title: str
    headers: list[str]
    rows: list[list[str]]
    total_rows: int
    capped: bool


class ReportView(TypedDict):
    app_name: str
    generated_at: str
    window_days: int
    health: str
    metrics: list[MetricCard]
    sample_notes: list[str]
    alerts: list[AlertRow]
    alerts_note: str
    narratives: list[NarrativeBlock]
    tables: list[DataTable]


def _fmt_ms(value: float) -> str:
    return f"{value:,.0f} ms"


def _fmt_ts(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S")


_KIND_LABELS = {
    TelemetryKind.PERFORMANCE: "Requests",
    TelemetryKind.EXCEPTIONS: "Exceptions",
    TelemetryKind.DEPENDENCIES: "Dependency calls",
    TelemetryKind.SLOW_REQUESTS: "Slow requests",
}


def _sample_notes(telemetry: TelemetryBundle, window_days: int) -> list[str]:
    """One note per kind whose query hit its row cap, in collection order."""
    return [
        f"{_KIND_LABELS[kind]} reached the {ROW_LIMITS[kind]:,}-row query cap: figures for them cover only "
        f"the rows returned, not the full {window_days}-day window."
        for kind in TelemetryKind
        if kind in telemetry.truncated
    ]


def _split_narrative(text: str) -> tuple[list[str], list[str]]:
    """Separate ``- `` bullet lines from free paragraphs."""
    bullets: list[str] = []
    paragraphs: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith(("- ", "* ")):
            bullets.append(stripped[2:].strip())
        else:
            paragraphs.append(stripped)
    return bullets, paragraphs


def _alert_rows(outcomes: tuple[AlertOutcome, ...]) -> list[AlertRow]:
    return [
        AlertRow(
            name=o.spec.name,
            status=o.status.value,
            schedule=MONITORING_SCHEDULE,
            description=o.spec.description,
            error=o.error or "",
        )
        for o in outcomes
    ]


def _planned_rows(specs: list[AlertSpec]) -> list[AlertRow]:
    return [
        AlertRow(name=s.name, status="Planned", schedule=MONITORING_SCHEDULE, description=s.description, error="")
        for s in specs
    ]


def _tables(result: "RunResult", max_rows: int) -> list[DataTable]:
    t = result.telemetry
    return [
        DataTable(
            title="Recent Requests",
            headers=["Timestamp", "Name", "Duration", "Result", "Success"],
            rows=[
                [_fmt_ts(r.timestamp), r.name, _fmt_ms(r.duration), r.result_code, "yes" if r.success else "no"]
                for r in t.performance[:max_rows]
            ],
            total_rows=len(t.performance),
            capped=TelemetryKind.PERFORMANCE in t.truncated,
        ),
        DataTable(
            title="Exceptions",
            headers=["Timestamp", "Type", "Message", "Operation"],
            rows=[[_fmt_ts(r.timestamp), r.type, r.outer_message, r.operation_name] for r in t.exceptions[:max_rows]],
            total_rows=len(t.exceptions),
            capped=TelemetryKind.EXCEPTIONS in t.truncated,
        ),
        DataTable(
            title="Dependency Calls",
            headers=["Timestamp", "Name", "Type", "Target", "Duration", "Success"],
            rows=[
                [_fmt_ts(r.timestamp), r.name, r.type, r.target, _fmt_ms(r.duration), "yes" if r.success else "no"]
                for r in t.dependencies[:max_rows]
            ],
            total_rows=len(t.dependencies),
            capped=TelemetryKind.DEPENDENCIES in t.truncated,
        ),
        DataTable(
            title="Slow Requests",
            headers=["Timestamp", "Name", "URL", "Duration", "Result"],
            rows=[
                [_fmt_ts(r.timestamp), r.name, r.url, _fmt_ms(r.duration), r.result_code]
                for r in t.slow_requests[:max_rows]
            ],
            total_rows=len(t.slow_requests),
            capped=TelemetryKind.SLOW_REQUESTS in t.truncated,
        ),
    ]


def build_view(result: "RunResult", max_rows: int = DEFAULT_TABLE_ROWS) -> ReportView:
    m = result.metrics
    metrics = [
        MetricCard(label="Total Requests", value=f"{m.requests.total_requests:,}"),
        MetricCard(label="Avg Response Time", value=_fmt_ms(m.requests.avg_duration_ms)),
        MetricCard(label="Failure Rate", value=f"{m.requests.failure_rate_pct:.2f}%"),
        MetricCard(label="Exceptions", value=f"{m.exceptions.total_exceptions:,}"),
        MetricCard(label="Critical Exceptions", value=f"{m.exceptions.critical_count:,}"),
        MetricCard(label="Dependency Calls", value=f"{m.dependencies.total_calls:,}"),
        MetricCard(label="Dependency Failure Rate", value=f"{m.dependencies.failure_rate_pct:.2f}%"),
        MetricCard(label="Slow Requests", value=f"{m.slow_requests.count:,}"),
    ]

    if result.provisioning is None:
        alerts = _planned_rows(result.alert_specs)
        alerts_note = "Alert provisioning was skipped for this run; rules below were not created."
    else:
        alerts = _alert_rows(result.provisioning.outcomes)
        p = result.provisioning
        alerts_note = f"{len(p.created)} created, {len(p.skipped)} already existed, {len(p.failed)} failed."

    narratives: list[NarrativeBlock] = []
    for section in NarrativeSection:
        text = result.narratives.get(section)
        if text is None:
            continue
        bullets, paragraphs = _split_narrative(text)
        narratives.append(NarrativeBlock(title=section.heading, bullets=bullets, paragraphs=paragraphs))

    return ReportView(
        app_name=result.app_name,
        generated_at=_fmt_ts(result.generated_at) + " UTC",
        window_days=result.window_days,
        health=result.health.value,
        metrics=metrics,
        sample_notes=_sample_notes(result.telemetry, result.window_days),
        alerts=alerts,
        alerts_note=alerts_note,
        narratives=narratives,
        tables=_tables(result, max_rows),
    )


# ---------------------------------------------------------------------------
# Rendering and persistence
# ---------------------------------------------------------------------------


def _environment() -> Environment:
    return Environment(
        loader=PackageLoader("appinsights_report", "templates"),
        autoescape=select_autoescape(enabled_extensions=("html", "j2"), default=True),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_report(result: "RunResult", max_rows: int = DEFAULT_TABLE_ROWS) -> str:
    """Render the full self-contained HTML document."""
    template = _environment().get_template(TEMPLATE_NAME)
    return template.render(report=build_view(result, max_rows))


def write_report(html: str, path: str | Path) -> Path:
    """Write ``html`` to ``path``, creating parent directories.

    Raises:
        ReportWriteError: The file could not be written.
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        _ = target.write_text(html, encoding="utf-8")
    except OSError as e:
        raise ReportWriteError(f"Cannot write report to {target}: {e}") from e
    logger.info("Report written to %s (%d bytes)", target, len(html))
    return target
