"""Plan-edit guards that keep unschedulable plans out of instance generation."""
from __future__ import annotations

from ..domain_errors import ConfigurationError
from ..schemas import MaintenancePlan
from ..services.recurrence import ensure_valid_frequency, is_schedulable


def validate_plan_use_case(*, plan: MaintenancePlan) -> MaintenancePlan:
    """Reject a plan edit that would break scheduling."""
    ensure_valid_frequency(plan.frequency_days)
    if plan.machine_id is None and plan.mobile_unit_id is None:
        raise ConfigurationError(
            code="PLAN_MISSING_ASSET",
            http_status=422,
            message="Plan must target a machine or a mobile unit",
            details={"plan_id": str(plan.id)},
        )
    return plan


def ensure_plan_schedulable_use_case(*, plan: MaintenancePlan) -> None:
    """Guard for the instance generator: inactive or misconfigured plans produce no instances."""
    if not is_schedulable(plan):
        raise ConfigurationError(
            code="PLAN_NOT_SCHEDULABLE",
            http_status=422,
            message="Plan is inactive or has an invalid frequency",
            details={"plan_id": str(plan.id), "frequency_days": plan.frequency_days, "is_active": plan.is_active},
        )
