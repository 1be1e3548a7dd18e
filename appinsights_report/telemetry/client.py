"""Telemetry query client for the Azure Monitor Logs query API.

Runs KQL against an Application Insights resource and decodes the tabular
response into typed rows. Failures come back as ``Err`` so the caller decides
how to degrade; nothing here raises past ``query_rows`` except during the
initial ``authenticate`` call.
"""

import logging
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from appinsights_report.auth import LOGS_SCOPE, AzureTokenProvider
from appinsights_report.errors import ReporterError
from appinsights_report.result import Err, Ok, Result
from appinsights_report.telemetry.models import TelemetryKind, TelemetryRow

logger = logging.getLogger(__name__)

LOGS_API_URL = "https://api.loganalytics.io/v1"
DEFAULT_TIMEOUT_SECONDS = 60

_ROW_ADAPTER: TypeAdapter[TelemetryRow] = TypeAdapter(TelemetryRow)


def _decode_tables(body: dict[str, object], kind: TelemetryKind) -> tuple[list[Any], int]:
    """Zip each table's columns with its rows and validate each record as a ``kind`` row.

    Returns the decoded rows and the number of rows dropped as malformed.
    """
    rows: list[Any] = []
    skipped = 0
    tables = body.get("tables")
    if not isinstance(tables, list):
        return rows, skipped

    for table in tables:
        if not isinstance(table, dict):
            continue
        columns = table.get("columns", [])
        raw_rows = table.get("rows", [])
        if not isinstance(columns, list) or not isinstance(raw_rows, list):
            continue
        names = [str(c.get("name", "")) if isinstance(c, dict) else "" for c in columns]
        for raw in raw_rows:
            if not isinstance(raw, list):
                skipped += 1
                continue
            record = {name: value for name, value in zip(names, raw, strict=False) if value is not None}
            record["kind"] = kind
            try:
                rows.append(_ROW_ADAPTER.validate_python(record))
            except ValidationError as e:
                skipped += 1
                logger.debug("Dropping malformed %s row: %s", kind, e.errors()[:1])
    return rows, skipped


class TelemetryClient:
    """Executes read queries scoped to one Application Insights resource."""

    def __init__(
        self,
        resource_id: str,
        tokens: AzureTokenProvider,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        base_url: str = LOGS_API_URL,
    ) -> None:
        self.resource_id = resource_id
        self._tokens = tokens
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    async def authenticate(self) -> None:
        """Acquire a token up front. Raises ``AuthenticationError`` on failure."""
        await self._tokens.get_token(LOGS_SCOPE)

    async def query_rows(self, kind: TelemetryKind, query: str, window_days: int) -> Result[list[Any]]:
        """Run ``query`` over the trailing ``window_days`` and decode rows of ``kind``."""
        url = f"{self._base_url}{self.resource_id}/query"
        try:
            token = await self._tokens.get_token(LOGS_SCOPE)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    url,
                    headers={"Authorization": f"Bearer {token}"},
                    json={"query": query, "timespan": f"P{window_days}D"},
                )
                _ = response.raise_for_status()
                body: dict[str, object] = response.json()  # pyright: ignore[reportAny]
        except httpx.HTTPStatusError as e:
            msg = f"Logs API error: HTTP {e.response.status_code} - {e.response.text[:500]}"
            return Err(msg, e)
        except httpx.ConnectError as e:
            return Err(f"Cannot connect to Logs API at {self._base_url}: {e}", e)
        except httpx.TimeoutException as e:
            return Err(f"Logs API request timed out after {self._timeout}s: {e}", e)
        except (httpx.HTTPError, ReporterError, ValueError) as e:
            return Err(f"{kind} query failed: {e}", e)

        if not isinstance(body, dict):
            return Err(f"Unexpected Logs API response for {kind}")
        rows, skipped = _decode_tables(body, kind)
        if skipped:
            logger.warning("Dropped %d malformed %s row(s)", skipped, kind)
        return Ok(rows)
