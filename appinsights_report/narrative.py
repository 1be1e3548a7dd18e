"""Narrative findings via Azure OpenAI.

Each report section gets one chat completion over its aggregates plus a
bounded JSON sample of its rows. Calls fail open: the report always receives
a string, either the model's text or ``NARRATIVE_UNAVAILABLE``.
"""

import json
import logging
from collections.abc import Sequence
from enum import StrEnum

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import AzureChatOpenAI
from pydantic import BaseModel, SecretStr

from appinsights_report.analysis.aggregates import AggregateMetrics
from appinsights_report.config import Settings
from appinsights_report.observability.metrics import NARRATIVE_CALLS_TOTAL
from appinsights_report.result import Err, Ok, Result
from appinsights_report.telemetry.models import TelemetryBundle, TelemetryKind
from appinsights_report.telemetry.queries import ROW_LIMITS

logger = logging.getLogger(__name__)

NARRATIVE_UNAVAILABLE = "AI analysis unavailable: the text generation service could not be reached."

SYSTEM_ROLE = (
    "You are an application performance monitoring analyst reviewing Azure Application Insights "
    "telemetry. Be specific with numbers, concise, and practical. Write 3-5 bullet points, one line "
    "each, starting with '- '. Do not use markdown bold/italic formatting."
)


class NarrativeSection(StrEnum):
    PERFORMANCE = "performance"
    EXCEPTIONS = "exceptions"
    DEPENDENCIES = "dependencies"
    RECOMMENDATIONS = "recommendations"

    @property
    def heading(self) -> str:
        return _SECTION_HEADINGS[self]


_SECTION_HEADINGS = {
    NarrativeSection.PERFORMANCE: "Performance Analysis",
    NarrativeSection.EXCEPTIONS: "Exception Analysis",
    NarrativeSection.DEPENDENCIES: "Dependency Analysis",
    NarrativeSection.RECOMMENDATIONS: "Recommendations",
}


def _sample(rows: Sequence[BaseModel], limit: int) -> list[dict[str, object]]:
    return [r.model_dump(mode="json", exclude={"kind"}) for r in rows[:limit]]


def _json_block(data: object) -> str:
    return f"```json\n{json.dumps(data, indent=2, default=str)}\n```"


def _cap_note(telemetry: TelemetryBundle, kind: TelemetryKind) -> str:
    if kind not in telemetry.truncated:
        return ""
    return (
        f"\nNote: this query hit its {ROW_LIMITS[kind]} row cap, so the summary covers only the rows "
        "retrieved, not the full window. Do not present these counts as window totals."
    )


def build_section_prompts(
    app_name: str,
    window_days: int,
    metrics: AggregateMetrics,
    telemetry: TelemetryBundle,
    sample_rows: int,
) -> dict[NarrativeSection, str]:
    """Build one prompt per narrative section, in report order."""
    header = f"Application: {app_name}. Analysis window: last {window_days} days."
    return {
        NarrativeSection.PERFORMANCE: (
            f"{header}\nAnalyze request performance: response times, failure rate, and daily volume trends."
            f"{_cap_note(telemetry, TelemetryKind.PERFORMANCE)}\n\n"
            f"Summary:\n{_json_block(metrics.requests.model_dump())}\n\n"
            f"Sample requests:\n{_json_block(_sample(telemetry.performance, sample_rows))}"
        ),
        NarrativeSection.EXCEPTIONS: (
            f"{header}\nAnalyze exceptions: the most frequent types, critical exceptions, and likely causes."
            f"{_cap_note(telemetry, TelemetryKind.EXCEPTIONS)}\n\n"
            f"Summary:\n{_json_block(metrics.exceptions.model_dump())}\n\n"
            f"Sample exceptions:\n{_json_block(_sample(telemetry.exceptions, sample_rows))}"
        ),
        NarrativeSection.DEPENDENCIES: (
            f"{header}\nAnalyze outbound dependency calls: failing targets, latency, and reliability risk."
            f"{_cap_note(telemetry, TelemetryKind.DEPENDENCIES)}\n\n"
            f"Summary:\n{_json_block(metrics.dependencies.model_dump())}\n\n"
            f"Sample dependency calls:\n{_json_block(_sample(telemetry.dependencies, sample_rows))}"
        ),
        NarrativeSection.RECOMMENDATIONS: (
            f"{header}\nGiven the aggregated telemetry below, recommend the most valuable next actions "
            "to improve performance and reliability, most important first.\n\n"
            f"Aggregates:\n{_json_block(metrics.model_dump())}\n\n"
            f"Slowest requests:\n{_json_block(_sample(telemetry.slow_requests, sample_rows))}"
        ),
    }


class NarrativeSummarizer:
    """Prompt-in, text-out wrapper around an Azure OpenAI chat deployment."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def configured(self) -> bool:
        return bool(self._settings.azure_openai_endpoint and self._settings.azure_openai_api_key)

    def _create_llm(self, max_tokens: int) -> AzureChatOpenAI:
        s = self._settings
        return AzureChatOpenAI(
            azure_endpoint=s.azure_openai_endpoint,
            azure_deployment=s.azure_openai_deployment,
            api_version=s.azure_openai_api_version,
            api_key=SecretStr(s.azure_openai_api_key),
            max_tokens=max_tokens,  # pyright: ignore[reportCallIssue]
            temperature=0.3,
        )

    async def complete(self, prompt: str, system_role: str, max_tokens: int) -> Result[str]:
        """One chat completion. Failures are returned, not raised."""
        if not self.configured:
            return Err("Azure OpenAI is not configured")
        try:
            llm = self._create_llm(max_tokens)
            response = await llm.ainvoke([SystemMessage(content=system_role), HumanMessage(content=prompt)])
        except Exception as e:
            return Err(str(e) or type(e).__name__, e)
        return Ok(str(response.content))

    async def summarize(self, prompt: str, system_role: str = SYSTEM_ROLE, max_tokens: int = 800) -> str:
        """Return the model's text, or ``NARRATIVE_UNAVAILABLE`` on any failure."""
        match await self.complete(prompt, system_role, max_tokens):
            case Ok(value=text):
                NARRATIVE_CALLS_TOTAL.labels(status="success").inc()
                return text
            case Err(error=error):
                NARRATIVE_CALLS_TOTAL.labels(status="error").inc()
                logger.warning("Narrative unavailable: %s", error)
                return NARRATIVE_UNAVAILABLE
