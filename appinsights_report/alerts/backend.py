"""Alerting backend: Azure Monitor scheduled query rules via Resource Manager."""

import logging
from typing import Protocol
from urllib.parse import quote

import httpx

from appinsights_report.alerts.models import AlertSpec, RuleHandle
from appinsights_report.auth import MANAGEMENT_SCOPE, AzureTokenProvider

logger = logging.getLogger(__name__)

ARM_URL = "https://management.azure.com"
SCHEDULED_QUERY_RULES_API_VERSION = "2023-03-15-preview"
DEFAULT_TIMEOUT_SECONDS = 60

# Every provisioned rule evaluates once a day over the previous day. The real
# threshold lives in the query's own filter, so the rule fires on any row.
EVALUATION_FREQUENCY = "P1D"
WINDOW_SIZE = "P1D"
RULE_OPERATOR = "GreaterThan"
RULE_THRESHOLD = 0


class AlertRuleBackend(Protocol):
    async def find_rule(self, name: str, resource_group: str) -> RuleHandle | None: ...

    async def create_rule(self, spec: AlertSpec, resource_group: str, action_target: str) -> RuleHandle: ...


def build_rule_body(spec: AlertSpec, scope_resource_id: str, location: str, action_target: str) -> dict[str, object]:
    """Build the ARM PUT body for a scheduled query rule."""
    actions: dict[str, object] = {"actionGroups": [action_target] if action_target else []}
    return {
        "location": location,
        "properties": {
            "displayName": spec.name,
            "description": spec.description,
            "severity": spec.severity,
            "enabled": True,
            "evaluationFrequency": EVALUATION_FREQUENCY,
            "windowSize": WINDOW_SIZE,
            "scopes": [scope_resource_id],
            "criteria": {
                "allOf": [
                    {
                        "query": spec.query,
                        "timeAggregation": "Count",
                        "operator": RULE_OPERATOR,
                        "threshold": RULE_THRESHOLD,
                        "failingPeriods": {
                            "numberOfEvaluationPeriods": 1,
                            "minFailingPeriodsToAlert": 1,
                        },
                    }
                ]
            },
            "actions": actions,
            "autoMitigate": False,
        },
    }


class ArmScheduledQueryRuleBackend:
    """Find and create ``Microsoft.Insights/scheduledQueryRules`` resources.

    Errors propagate as ``httpx.HTTPError`` or ``AuthenticationError``; the
    provisioner turns them into outcomes.
    """

    def __init__(
        self,
        subscription_id: str,
        scope_resource_id: str,
        location: str,
        tokens: AzureTokenProvider,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        base_url: str = ARM_URL,
    ) -> None:
        self.subscription_id = subscription_id
        self.scope_resource_id = scope_resource_id
        self.location = location
        self._tokens = tokens
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    def _rule_url(self, name: str, resource_group: str) -> str:
        """Rule names embed the application name, so each path segment is percent-encoded."""
        group_segment = quote(resource_group, safe="")
        name_segment = quote(name, safe="")
        return (
            f"{self._base_url}/subscriptions/{self.subscription_id}/resourceGroups/{group_segment}"
            f"/providers/Microsoft.Insights/scheduledQueryRules/{name_segment}"
        )

    async def _headers(self) -> dict[str, str]:
        token = await self._tokens.get_token(MANAGEMENT_SCOPE)
        return {"Authorization": f"Bearer {token}", "Accept": "application/json"}

    async def find_rule(self, name: str, resource_group: str) -> RuleHandle | None:
        headers = await self._headers()
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(
                self._rule_url(name, resource_group),
                headers=headers,
                params={"api-version": SCHEDULED_QUERY_RULES_API_VERSION},
            )
            if response.status_code == httpx.codes.NOT_FOUND:
                return None
            _ = response.raise_for_status()
            body: dict[str, object] = response.json()  # pyright: ignore[reportAny]
        return RuleHandle(id=str(body.get("id", "")), name=str(body.get("name", name)))

    async def create_rule(self, spec: AlertSpec, resource_group: str, action_target: str) -> RuleHandle:
        headers = await self._headers()
        body = build_rule_body(spec, self.scope_resource_id, self.location, action_target)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.put(
                self._rule_url(spec.name, resource_group),
                headers=headers,
                params={"api-version": SCHEDULED_QUERY_RULES_API_VERSION},
                json=body,
            )
            _ = response.raise_for_status()
            created: dict[str, object] = response.json()  # pyright: ignore[reportAny]
        logger.info("Created scheduled query rule %s", spec.name)
        return RuleHandle(id=str(created.get("id", "")), name=str(created.get("name", spec.name)))
