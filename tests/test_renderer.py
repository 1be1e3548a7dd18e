"""Unit tests for the HTML report renderer."""

from datetime import UTC, datetime
from pathlib import Path

import pytest
from helpers import exceptions, requests, slow_requests

from appinsights_report.alerts.models import MONITORING_SCHEDULE, AlertOutcome, AlertStatus, ProvisioningSummary
from appinsights_report.alerts.policy import decide_alerts
from appinsights_report.analysis.aggregates import compute_aggregates, health_status
from appinsights_report.config import CRITICAL_EXCEPTION_MARKERS
from appinsights_report.errors import ReportWriteError
from appinsights_report.narrative import NARRATIVE_UNAVAILABLE, NarrativeSection
from appinsights_report.orchestrator import RunResult
from appinsights_report.report.renderer import _split_narrative, build_view, render_report, write_report
from appinsights_report.telemetry.models import TelemetryBundle, TelemetryKind
from appinsights_report.telemetry.queries import REQUESTS_LIMIT, SLOW_REQUESTS_LIMIT


def _result(bundle: TelemetryBundle, *, provisioned: bool = True, narrative: str = "- All good.") -> RunResult:
    metrics = compute_aggregates(bundle, CRITICAL_EXCEPTION_MARKERS)
    specs = decide_alerts(bundle, "shop-api")
    provisioning = None
    if provisioned:
        provisioning = ProvisioningSummary.from_outcomes(
            [AlertOutcome(spec=s, status=AlertStatus.CREATED, rule_id=f"/rules/{s.name}") for s in specs]
        )
    return RunResult(
        app_name="shop-api",
        generated_at=datetime(2026, 10, 18, 9, 30, tzinfo=UTC),
        window_days=30,
        telemetry=bundle,
        metrics=metrics,
        health=health_status(metrics.requests.failure_rate_pct),
        alert_specs=specs,
        provisioning=provisioning,
        narratives=dict.fromkeys(NarrativeSection, narrative),
    )


class TestSplitNarrative:
    def test_bullets_and_paragraphs(self) -> None:
        bullets, paragraphs = _split_narrative("Overview line.\n\n- first\n* second\n")
        assert bullets == ["first", "second"]
        assert paragraphs == ["Overview line."]


class TestBuildView:
    def test_created_alerts_carry_schedule(self) -> None:
        view = build_view(_result(TelemetryBundle(performance=requests([6000.0] * 5))))
        assert [a["status"] for a in view["alerts"]] == ["Created"]
        assert view["alerts"][0]["schedule"] == MONITORING_SCHEDULE
        assert view["alerts_note"] == "1 created, 0 already existed, 0 failed."

    def test_skipped_provisioning_shows_planned(self) -> None:
        view = build_view(_result(TelemetryBundle(performance=requests([6000.0] * 5)), provisioned=False))
        assert [a["status"] for a in view["alerts"]] == ["Planned"]
        assert "skipped" in view["alerts_note"]

    def test_tables_are_capped(self) -> None:
        view = build_view(_result(TelemetryBundle(performance=requests([100.0] * 25))), max_rows=20)
        requests_table = view["tables"][0]
        assert len(requests_table["rows"]) == 20
        assert requests_table["total_rows"] == 25

    def test_narratives_in_section_order(self) -> None:
        view = build_view(_result(TelemetryBundle()))
        assert [n["title"] for n in view["narratives"]] == [s.heading for s in NarrativeSection]

    def test_capped_kinds_get_notes(self) -> None:
        bundle = TelemetryBundle(
            performance=requests([100.0] * REQUESTS_LIMIT),
            slow_requests=slow_requests(SLOW_REQUESTS_LIMIT),
            truncated=frozenset({TelemetryKind.PERFORMANCE, TelemetryKind.SLOW_REQUESTS}),
        )
        view = build_view(_result(bundle))

        assert view["sample_notes"] == [
            "Requests reached the 1,000-row query cap: figures for them cover only the rows returned, "
            "not the full 30-day window.",
            "Slow requests reached the 200-row query cap: figures for them cover only the rows returned, "
            "not the full 30-day window.",
        ]
        assert [t["capped"] for t in view["tables"]] == [True, False, False, True]

    def test_uncapped_has_no_notes(self) -> None:
        view = build_view(_result(TelemetryBundle(performance=requests([100.0] * 25))))
        assert view["sample_notes"] == []
        assert not any(t["capped"] for t in view["tables"])


class TestRenderReport:
    def test_contains_all_sections(self) -> None:
        bundle = TelemetryBundle(
            performance=requests([6000.0] * 5),
            exceptions=exceptions(["System.TimeoutException"]),
            slow_requests=slow_requests(3),
        )
        html = render_report(_result(bundle))

        assert html.startswith("<!DOCTYPE html>")
        assert "Metrics Summary" in html
        assert "Alerts Created" in html
        assert "shop-api-high-response-time" in html
        assert MONITORING_SCHEDULE in html
        for section in NarrativeSection:
            assert section.heading in html
        assert "Showing 5 of 5 rows." in html
        assert "System.TimeoutException" in html

    def test_empty_data_renders(self) -> None:
        html = render_report(_result(TelemetryBundle(), narrative=NARRATIVE_UNAVAILABLE))
        assert "No alert conditions were met" in html
        assert "No data recorded in this period." in html
        assert NARRATIVE_UNAVAILABLE in html

    def test_row_cap_in_output(self) -> None:
        html = render_report(_result(TelemetryBundle(performance=requests([100.0] * 25))), max_rows=20)
        assert "Showing 20 of 25 rows." in html
        assert "query cap" not in html

    def test_cap_notice_in_output(self) -> None:
        bundle = TelemetryBundle(
            performance=requests([100.0] * REQUESTS_LIMIT),
            truncated=frozenset({TelemetryKind.PERFORMANCE}),
        )
        html = render_report(_result(bundle))

        metrics_section = html.split('<section id="metrics">')[1].split("</section>")[0]
        assert "Requests reached the 1,000-row query cap" in metrics_section
        assert "Showing 20 of 1000 rows. Query row cap reached" in html

    def test_untrusted_text_is_escaped(self) -> None:
        bundle = TelemetryBundle(exceptions=exceptions(["<script>alert(1)</script>"]))
        html = render_report(_result(bundle, narrative="- <img src=x onerror=alert(2)>"))

        assert "<script>alert(1)</script>" not in html
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
        assert "<img src=x" not in html


class TestWriteReport:
    def test_creates_parent_dirs(self, tmp_path: Path) -> None:
        target = tmp_path / "out" / "nested" / "report.html"
        written = write_report("<html></html>", target)
        assert written == target
        assert target.read_text(encoding="utf-8") == "<html></html>"

    def test_unwritable_path_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        _ = blocker.write_text("x")
        with pytest.raises(ReportWriteError, match="Cannot write report"):
            _ = write_report("<html></html>", blocker / "report.html")
