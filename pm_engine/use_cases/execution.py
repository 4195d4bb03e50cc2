"""Execution workflow of one maintenance instance.

Opening an execution seeds the resource ledger from the collaborators, submitting
validates the operator's input, produces the immutable execution record, persists
it through the sink and fires the invalidation signal.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional
from uuid import UUID

from ..domain_errors import ConflictError, DomainError, UpstreamDataError, ValidationError
from ..enums import CompletionStatus, DurationUnit, InstanceStatus, MaintenanceType
from ..schemas import (
    ExecutionFormInput,
    ExecutionOutcome,
    ExecutionRecord,
    MaintenanceInstance,
    MaintenancePlan,
    Operator,
    RequiredTool,
    ReservationRow,
    ResourceAdjustment,
    ToolCandidate,
)
from ..services.resource_ledger import ExecutionKind, ResourceLedger

logger = logging.getLogger(__name__)

REQUIRED = "required"
NOT_POSITIVE = "must be a number greater than 0"

_COMPLETION_STATUSES: frozenset[InstanceStatus] = frozenset({
    InstanceStatus.COMPLETED,
    InstanceStatus.PARTIALLY_COMPLETED,
    InstanceStatus.REQUIRES_FOLLOWUP,
})
_ALLOWED_TRANSITIONS: dict[InstanceStatus, set[InstanceStatus]] = {
    # Executing a pending instance starts it implicitly.
    InstanceStatus.PENDING: {InstanceStatus.IN_PROGRESS, InstanceStatus.CANCELLED, *_COMPLETION_STATUSES},
    InstanceStatus.IN_PROGRESS: {InstanceStatus.CANCELLED, *_COMPLETION_STATUSES},
    InstanceStatus.COMPLETED: set(),
    InstanceStatus.PARTIALLY_COMPLETED: set(),
    InstanceStatus.REQUIRES_FOLLOWUP: set(),
    InstanceStatus.CANCELLED: set(),
}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def is_terminal_status(status: InstanceStatus) -> bool:
    return not _ALLOWED_TRANSITIONS.get(status)


def validate_status_transition(*, current_status: InstanceStatus, next_status: InstanceStatus) -> InstanceStatus:
    if next_status == current_status and not is_terminal_status(current_status):
        return next_status
    if next_status not in _ALLOWED_TRANSITIONS.get(current_status, set()):
        raise DomainError(
            code="INSTANCE_INVALID_TRANSITION",
            http_status=409,
            message=f"Invalid instance status transition: {current_status.value} -> {next_status.value}",
            details={"current": current_status.value, "next": next_status.value},
        )
    return next_status


def execution_kind_for(instance: MaintenanceInstance) -> ExecutionKind:
    if instance.maintenance_type == MaintenanceType.PREVENTIVE:
        return ExecutionKind.PREVENTIVE
    return ExecutionKind.CORRECTIVE


def _parse_positive(raw: object) -> tuple[Optional[float], Optional[str]]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None, REQUIRED
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None, NOT_POSITIVE
    if not math.isfinite(value) or value <= 0:
        return None, NOT_POSITIVE
    return value, None


class ExecutionStateMachine:
    """Drives one instance into a terminal completion status from validated operator input."""

    def __init__(
        self,
        *,
        instance: MaintenanceInstance,
        plan: MaintenancePlan,
        ledger: Optional[ResourceLedger] = None,
        operators: Optional[Iterable[Operator]] = None,
        now: Optional[datetime] = None,
    ) -> None:
        if instance.plan_id != plan.id:
            raise DomainError(
                code="INSTANCE_PLAN_MISMATCH",
                http_status=400,
                message="Instance does not belong to the given plan",
                details={"instance_id": str(instance.id), "plan_id": str(plan.id)},
            )
        self.instance = instance
        self.plan = plan
        self.ledger = ledger or ResourceLedger.empty(execution_kind_for(instance))
        self.status = instance.status
        self._known_operator_ids = {operator.id for operator in operators} if operators is not None else None
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or now_utc()

    @property
    def was_completed_today(self) -> bool:
        last_completed = self.instance.last_completed_date
        return last_completed is not None and last_completed == self.now.date()

    def transition(self, next_status: InstanceStatus) -> InstanceStatus:
        self.status = validate_status_transition(current_status=self.status, next_status=next_status)
        return self.status

    def validate(self, form: ExecutionFormInput) -> dict[str, str]:
        """Field-scoped errors for `form`; empty when it can be accepted."""
        errors: dict[str, str] = {}

        _, duration_error = _parse_positive(form.actual_duration)
        if duration_error:
            errors["actual_duration"] = duration_error

        if not form.exclude_quantity:
            _, value_error = _parse_positive(form.actual_value)
            if value_error:
                errors["actual_value"] = value_error

        if not form.operator_ids:
            errors["operators"] = REQUIRED
        elif self._known_operator_ids is not None and any(
            operator_id not in self._known_operator_ids for operator_id in form.operator_ids
        ):
            errors["operators"] = "unknown or inactive operator"

        if self.was_completed_today and not (form.re_execution_reason or "").strip():
            errors["re_execution_reason"] = REQUIRED

        return errors

    def _build_record(self, form: ExecutionFormInput) -> ExecutionRecord:
        original_duration, _ = _parse_positive(form.actual_duration)
        duration_hours = original_duration
        if form.actual_duration_unit == DurationUnit.MINUTES:
            duration_hours = original_duration / 60

        if form.exclude_quantity:
            actual_value, actual_unit = None, None
        else:
            actual_value, _ = _parse_positive(form.actual_value)
            actual_unit = form.actual_unit

        re_execution_reason = None
        if self.was_completed_today:
            re_execution_reason = form.re_execution_reason.strip()

        instance, plan = self.instance, self.plan
        return ExecutionRecord(
            instance_id=instance.id,
            plan_id=plan.id,
            maintenance_type=instance.maintenance_type,
            title=instance.title or plan.title,
            executed_at=self.now,
            actual_duration_hours=duration_hours,
            original_duration=original_duration,
            original_duration_unit=form.actual_duration_unit,
            actual_value=actual_value,
            actual_unit=actual_unit,
            exclude_quantity=form.exclude_quantity,
            completion_status=form.completion_status,
            operator_ids=list(form.operator_ids),
            notes=form.notes,
            issues=form.issues,
            re_execution_reason=re_execution_reason,
            resources=self.ledger.snapshot(),
            machine_id=plan.machine_id,
            mobile_unit_id=plan.mobile_unit_id,
            component_ids=list(plan.component_ids),
            subcomponent_ids=list(plan.subcomponent_ids),
            assigned_to_id=plan.assigned_to_id,
            estimated_hours=plan.estimated_hours,
            estimated_quantity=plan.estimated_quantity,
        )

    def submit(self, form: ExecutionFormInput) -> ExecutionRecord:
        """Validate `form` and complete the instance; raises ValidationError with per-field messages."""
        if self.status in _COMPLETION_STATUSES:
            raise ConflictError.already_completed(self.instance.id)
        if self.status == InstanceStatus.CANCELLED:
            raise DomainError(
                code="INSTANCE_CANCELLED",
                http_status=409,
                message="Cancelled maintenance cannot be executed",
                details={"instance_id": str(self.instance.id)},
            )

        errors = self.validate(form)
        if errors:
            raise ValidationError.from_fields(errors)

        record = self._build_record(form)
        self.transition(InstanceStatus(form.completion_status.value))
        return record


@dataclass(frozen=True)
class ExecutionHooks:
    """Collaborators the execution use-cases talk to."""

    list_reservations: Callable[[UUID], list[ReservationRow]] | None = None
    required_tools: Callable[[UUID], list[RequiredTool]] | None = None
    search_tools: Callable[[str, UUID], list[ToolCandidate]] | None = None
    list_active_operators: Callable[[UUID], list[Operator]] | None = None
    create_execution_record: Callable[[ExecutionRecord], UUID] | None = None
    invalidate: Callable[[ExecutionRecord], None] | None = None
    now_utc: Callable[[], datetime] = now_utc


def _required(name: str, hook: object):
    if hook is None:
        raise RuntimeError(f"Missing execution use-case hook: {name}")
    return hook


def open_execution_use_case(
    *,
    instance: MaintenanceInstance,
    plan: MaintenancePlan,
    hooks: ExecutionHooks,
) -> ResourceLedger:
    """Seed the resource ledger; an unavailable source yields an empty, degraded ledger."""
    kind = execution_kind_for(instance)
    try:
        if kind == ExecutionKind.PREVENTIVE:
            if hooks.required_tools is None:
                return ResourceLedger.from_checklist(plan.required_tools)
            return ResourceLedger.from_checklist(hooks.required_tools(plan.id))
        list_reservations = _required("list_reservations", hooks.list_reservations)
        return ResourceLedger.from_reservations(list_reservations(instance.id))
    except UpstreamDataError as exc:
        logger.warning(
            "Resource source unavailable for instance %s (%s); continuing without resources",
            instance.id,
            exc.code,
        )
        return ResourceLedger.empty(kind, degraded=True)


def search_ad_hoc_candidates_use_case(
    *,
    query: str,
    company_id: UUID,
    ledger: ResourceLedger,
    hooks: ExecutionHooks,
) -> list[ToolCandidate]:
    """Candidates for ad-hoc addition, minus tools already on the ledger."""
    if ledger.kind == ExecutionKind.PREVENTIVE:
        return []
    search_tools = _required("search_tools", hooks.search_tools)
    try:
        candidates = search_tools(query, company_id)
    except UpstreamDataError as exc:
        logger.warning("Tool search unavailable for company %s (%s)", company_id, exc.code)
        return []
    listed = {line.tool_id for line in ledger.lines if line.tool_id is not None}
    return [candidate for candidate in candidates if candidate.id not in listed]


def apply_ledger_edits(
    ledger: ResourceLedger,
    *,
    ad_hoc_tools: Iterable[ToolCandidate] = (),
    adjustments: Iterable[ResourceAdjustment] = (),
) -> ResourceLedger:
    """Replay the operator's ledger edits in the order the form produces them."""
    for candidate in ad_hoc_tools:
        ledger.add_ad_hoc(candidate)
    for adjustment in adjustments:
        if ledger.degraded and not ledger.has(adjustment.key):
            logger.warning(
                "Ignoring edit of resource line %s: resource source unavailable, ledger is empty",
                adjustment.key,
            )
            continue
        if adjustment.used_quantity is not None:
            ledger.set_used_quantity(adjustment.key, adjustment.used_quantity)
        if adjustment.returned_damaged is not None:
            ledger.set_returned_damaged(adjustment.key, adjustment.returned_damaged)
    return ledger


def _load_operators(*, company_id: Optional[UUID], hooks: ExecutionHooks) -> Optional[list[Operator]]:
    if hooks.list_active_operators is None or company_id is None:
        return None
    try:
        return hooks.list_active_operators(company_id)
    except UpstreamDataError as exc:
        logger.warning("Operator directory unavailable for company %s (%s)", company_id, exc.code)
        return None


def _fire_invalidation(*, hooks: ExecutionHooks, record: ExecutionRecord) -> None:
    if hooks.invalidate is None:
        return
    try:
        hooks.invalidate(record)
    except Exception:
        logger.exception("Failed to publish cache invalidation for instance %s", record.instance_id)


def submit_execution_use_case(
    *,
    instance: MaintenanceInstance,
    plan: MaintenancePlan,
    form: ExecutionFormInput,
    ledger: ResourceLedger,
    hooks: ExecutionHooks,
    company_id: Optional[UUID] = None,
) -> ExecutionOutcome:
    """Validate, persist and announce one execution attempt."""
    create_execution_record = _required("create_execution_record", hooks.create_execution_record)

    machine = ExecutionStateMachine(
        instance=instance,
        plan=plan,
        ledger=ledger,
        operators=_load_operators(company_id=company_id, hooks=hooks),
        now=hooks.now_utc(),
    )
    record = machine.submit(form)

    record_id = create_execution_record(record)
    logger.info(
        "execution.accepted instance=%s plan=%s status=%s record=%s",
        instance.id,
        plan.id,
        machine.status.value,
        record_id,
    )

    _fire_invalidation(hooks=hooks, record=record)
    return ExecutionOutcome(
        record_id=record_id,
        status=machine.status,
        record=record,
        resources_degraded=ledger.degraded,
    )
