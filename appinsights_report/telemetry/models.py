"""Typed telemetry rows decoded at the query-client boundary."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class TelemetryKind(StrEnum):
    PERFORMANCE = "performance"
    EXCEPTIONS = "exceptions"
    DEPENDENCIES = "dependencies"
    SLOW_REQUESTS = "slow_requests"


class _Row(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: datetime


class PerformanceRow(_Row):
    kind: Literal[TelemetryKind.PERFORMANCE] = TelemetryKind.PERFORMANCE
    name: str = ""
    url: str = ""
    duration: float
    result_code: str = ""
    success: bool
    operation_id: str = ""


class ExceptionRow(_Row):
    kind: Literal[TelemetryKind.EXCEPTIONS] = TelemetryKind.EXCEPTIONS
    type: str
    outer_message: str = ""
    problem_id: str = ""
    operation_name: str = ""


class DependencyRow(_Row):
    kind: Literal[TelemetryKind.DEPENDENCIES] = TelemetryKind.DEPENDENCIES
    name: str = ""
    type: str = ""
    target: str = ""
    duration: float
    success: bool
    result_code: str = ""


class SlowRequestRow(_Row):
    kind: Literal[TelemetryKind.SLOW_REQUESTS] = TelemetryKind.SLOW_REQUESTS
    name: str = ""
    url: str = ""
    duration: float
    result_code: str = ""


# Decoding injects ``kind`` at the boundary so one adapter serves every query.
TelemetryRow = Annotated[
    PerformanceRow | ExceptionRow | DependencyRow | SlowRequestRow,
    Field(discriminator="kind"),
]


@dataclass(frozen=True)
class TelemetryBundle:
    """The four collections for one analysis window. Any of them may be empty."""

    performance: list[PerformanceRow] = field(default_factory=list)
    exceptions: list[ExceptionRow] = field(default_factory=list)
    dependencies: list[DependencyRow] = field(default_factory=list)
    slow_requests: list[SlowRequestRow] = field(default_factory=list)
    truncated: frozenset[TelemetryKind] = frozenset()
    """Kinds whose query hit its row cap; their rows are only the newest part of the window."""

    def row_counts(self) -> dict[TelemetryKind, int]:
        return {
            TelemetryKind.PERFORMANCE: len(self.performance),
            TelemetryKind.EXCEPTIONS: len(self.exceptions),
            TelemetryKind.DEPENDENCIES: len(self.dependencies),
            TelemetryKind.SLOW_REQUESTS: len(self.slow_requests),
        }
