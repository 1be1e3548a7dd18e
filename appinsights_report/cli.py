"""Generate the Application Insights report and provision alert rules.

Usage:
    appinsights-report
    appinsights-report --output reports/latest.html --skip-alerts
"""

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from appinsights_report.config import get_settings
from appinsights_report.errors import ReporterError
from appinsights_report.orchestrator import RunResult, run_report
from appinsights_report.telemetry.models import TelemetryKind
from appinsights_report.telemetry.queries import ROW_LIMITS


def _print_summary(result: RunResult) -> None:
    print("\n" + "=" * 50)
    print(f"Report for {result.app_name}: {result.health.value}")
    counts = result.telemetry.row_counts()
    for kind in TelemetryKind:
        suffix = ""
        if kind in result.query_errors:
            suffix = " (query failed)"
        elif kind in result.telemetry.truncated:
            suffix = f" (row cap {ROW_LIMITS[kind]} reached; figures cover only these rows)"
        print(f"  {kind.replace('_', ' ').capitalize()}: {counts[kind]} row(s){suffix}")
    if result.provisioning is None:
        print(f"  Alerts: {len(result.alert_specs)} planned, provisioning skipped")
    else:
        p = result.provisioning
        print(f"  Alerts: {len(p.created)} created, {len(p.skipped)} skipped, {len(p.failed)} failed")
        for outcome in p.failed:
            print(f"    {outcome.spec.name}: {outcome.error}")
    print(f"  Output: {result.output_path}")
    print("=" * 50)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Application Insights telemetry report and alert provisioning")
    parser.add_argument("--output", type=str, default=None, help="Report output path (overrides REPORT_OUTPUT_PATH)")
    parser.add_argument("--skip-alerts", action="store_true", help="Decide alert rules but do not create them")
    parser.add_argument("--no-narrative", action="store_true", help="Skip the text-generation analysis")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More log output (-vv for debug)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Parse args, run once, exit nonzero on fatal errors."""
    args = _parse_args(argv)
    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        print("Check your .env file or environment variables.", file=sys.stderr)
        sys.exit(1)

    try:
        result = asyncio.run(
            run_report(
                settings,
                skip_alerts=args.skip_alerts,
                skip_narrative=args.no_narrative,
                output_path=args.output,
                progress=print,
            )
        )
    except ReporterError as e:
        print(f"Report failed: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logging.getLogger(__name__).debug("Unexpected failure", exc_info=True)
        print(f"Report failed unexpectedly: {e}", file=sys.stderr)
        sys.exit(1)

    _print_summary(result)


if __name__ == "__main__":
    main()
