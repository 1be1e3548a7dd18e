"""Alert spec and provisioning outcome types."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

MONITORING_SCHEDULE = "Every 24 hours (24-hour lookback)"


class AlertCategory(StrEnum):
    HIGH_RESPONSE_TIME = "high-response-time"
    HIGH_FAILURE_RATE = "high-failure-rate"
    CRITICAL_EXCEPTIONS = "critical-exceptions"
    DEPENDENCY_FAILURES = "dependency-failures"
    SLOW_REQUESTS = "slow-requests"


class AlertSpec(BaseModel):
    """A monitoring rule that should exist. Identity is ``name``."""

    model_config = ConfigDict(frozen=True)

    name: str
    category: AlertCategory
    description: str
    query: str
    severity: int
    evaluation_window_hours: int = 24
    threshold: float
    """The real threshold, already encoded in ``query``'s filter."""


class AlertStatus(StrEnum):
    CREATED = "Created"
    ALREADY_EXISTS = "AlreadyExists"
    FAILED = "Failed"


@dataclass(frozen=True)
class RuleHandle:
    id: str
    name: str


@dataclass(frozen=True)
class AlertOutcome:
    spec: AlertSpec
    status: AlertStatus
    error: str | None = None
    rule_id: str | None = None


@dataclass(frozen=True)
class ProvisioningSummary:
    created: tuple[AlertOutcome, ...] = ()
    skipped: tuple[AlertOutcome, ...] = ()
    failed: tuple[AlertOutcome, ...] = ()

    @property
    def total(self) -> int:
        return len(self.created) + len(self.skipped) + len(self.failed)

    @property
    def outcomes(self) -> tuple[AlertOutcome, ...]:
        return self.created + self.skipped + self.failed

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[AlertOutcome]) -> "ProvisioningSummary":
        """Partition outcomes by status, preserving their order within each bucket."""
        created: list[AlertOutcome] = []
        skipped: list[AlertOutcome] = []
        failed: list[AlertOutcome] = []
        buckets = {
            AlertStatus.CREATED: created,
            AlertStatus.ALREADY_EXISTS: skipped,
            AlertStatus.FAILED: failed,
        }
        for outcome in outcomes:
            buckets[outcome.status].append(outcome)
        return cls(created=tuple(created), skipped=tuple(skipped), failed=tuple(failed))
