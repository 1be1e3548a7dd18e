"""Alert provisioner: make each decided rule exist exactly once.

Check by name, create only when absent. Any error, during the check
or the create, becomes a ``Failed`` outcome and the batch moves on; nothing is
retried within a run. A concurrent external create between our check and our
create may still surface as ``Failed`` (conflict) rather than ``AlreadyExists``.
"""

import logging
from collections.abc import Sequence

from appinsights_report.alerts.backend import AlertRuleBackend
from appinsights_report.alerts.models import AlertOutcome, AlertSpec, AlertStatus, ProvisioningSummary
from appinsights_report.observability.metrics import ALERT_OUTCOMES_TOTAL

logger = logging.getLogger(__name__)


def _describe_error(e: Exception) -> str:
    text = str(e) or type(e).__name__
    return text[:500]


async def provision_alert(
    spec: AlertSpec,
    backend: AlertRuleBackend,
    resource_group: str,
    action_target: str,
) -> AlertOutcome:
    """Run the check-then-create sequence for one spec. Never raises."""
    try:
        existing = await backend.find_rule(spec.name, resource_group)
    except Exception as e:
        logger.warning("Existence check failed for alert %s: %s", spec.name, e)
        return AlertOutcome(
            spec=spec,
            status=AlertStatus.FAILED,
            error=f"Existence check failed: {_describe_error(e)}",
        )

    if existing is not None:
        logger.info("Alert %s already exists, skipping", spec.name)
        return AlertOutcome(spec=spec, status=AlertStatus.ALREADY_EXISTS, rule_id=existing.id)

    try:
        handle = await backend.create_rule(spec, resource_group, action_target)
    except Exception as e:
        logger.warning("Failed to create alert %s: %s", spec.name, e)
        return AlertOutcome(spec=spec, status=AlertStatus.FAILED, error=_describe_error(e))

    return AlertOutcome(spec=spec, status=AlertStatus.CREATED, rule_id=handle.id)


async def provision_alerts(
    specs: Sequence[AlertSpec],
    backend: AlertRuleBackend,
    resource_group: str,
    action_target: str,
) -> ProvisioningSummary:
    """Provision ``specs`` one after another, in the given order.

    Returns:
        Outcomes partitioned into created / skipped / failed; ``total`` always
        equals ``len(specs)``.
    """
    outcomes: list[AlertOutcome] = []
    for spec in specs:
        outcome = await provision_alert(spec, backend, resource_group, action_target)
        ALERT_OUTCOMES_TOTAL.labels(status=outcome.status.value).inc()
        outcomes.append(outcome)

    summary = ProvisioningSummary.from_outcomes(outcomes)
    logger.info(
        "Alert provisioning: %d created, %d already existed, %d failed",
        len(summary.created),
        len(summary.skipped),
        len(summary.failed),
    )
    return summary
