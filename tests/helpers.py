"""Row builders and fakes shared by the test modules."""

from datetime import UTC, datetime, timedelta

from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError

from appinsights_report.alerts.models import AlertSpec, RuleHandle
from appinsights_report.telemetry.models import DependencyRow, ExceptionRow, PerformanceRow, SlowRequestRow

BASE_TIME = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)

APPINSIGHTS_ID = "/subscriptions/sub-123/resourceGroups/rg-shop/providers/Microsoft.Insights/components/shop-api"
ACTION_GROUP_ID = "/subscriptions/sub-123/resourceGroups/rg-alerts/providers/microsoft.insights/actionGroups/oncall"


def requests(durations: list[float], failures: int = 0) -> list[PerformanceRow]:
    """One request per duration; the first ``failures`` are unsuccessful."""
    return [
        PerformanceRow(
            timestamp=BASE_TIME + timedelta(hours=i),
            name="GET /api/orders",
            url="https://shop.test/api/orders",
            duration=d,
            result_code="500" if i < failures else "200",
            success=i >= failures,
        )
        for i, d in enumerate(durations)
    ]


def exceptions(types: list[str]) -> list[ExceptionRow]:
    return [
        ExceptionRow(timestamp=BASE_TIME + timedelta(minutes=i), type=t, outer_message=f"{t} thrown")
        for i, t in enumerate(types)
    ]


def dependencies(total: int, failed: int, target: str = "sql.shop.test") -> list[DependencyRow]:
    return [
        DependencyRow(
            timestamp=BASE_TIME + timedelta(minutes=i),
            name="SELECT orders",
            type="SQL",
            target=target,
            duration=40.0,
            success=i >= failed,
        )
        for i in range(total)
    ]


def slow_requests(count: int) -> list[SlowRequestRow]:
    return [
        SlowRequestRow(
            timestamp=BASE_TIME + timedelta(minutes=i),
            name="GET /api/report",
            url="https://shop.test/api/report",
            duration=9000.0 + i,
            result_code="200",
        )
        for i in range(count)
    ]


class InMemoryAlertBackend:
    """Alert backend that persists created rules in a dict keyed by (resource group, name)."""

    def __init__(self, existing: set[str] | None = None, fail_on: set[str] | None = None) -> None:
        self.rules: dict[tuple[str, str], RuleHandle] = {}
        self.create_calls: list[str] = []
        self.find_calls: list[str] = []
        self.fail_on = fail_on or set()
        self._preexisting = existing or set()

    async def find_rule(self, name: str, resource_group: str) -> RuleHandle | None:
        self.find_calls.append(name)
        if name in self._preexisting:
            return RuleHandle(id=f"/rules/{name}", name=name)
        return self.rules.get((resource_group, name))

    async def create_rule(self, spec: AlertSpec, resource_group: str, action_target: str) -> RuleHandle:
        self.create_calls.append(spec.name)
        if spec.name in self.fail_on:
            raise RuntimeError(f"quota exceeded creating {spec.name}")
        handle = RuleHandle(id=f"/{resource_group}/rules/{spec.name}", name=spec.name)
        self.rules[(resource_group, spec.name)] = handle
        return handle


class StaticCredential:
    """azure-identity stand-in that always issues the same token."""

    def __init__(self, token: str = "test-token") -> None:
        self.token = token
        self.scopes: list[str] = []

    def get_token(self, *scopes: str, **kwargs: object) -> AccessToken:
        self.scopes.extend(scopes)
        return AccessToken(self.token, int(BASE_TIME.timestamp()) + 3600)


class RejectingCredential:
    def get_token(self, *scopes: str, **kwargs: object) -> AccessToken:
        raise ClientAuthenticationError(message="DefaultAzureCredential failed to retrieve a token")
