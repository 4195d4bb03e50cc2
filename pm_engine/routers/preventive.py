"""Preventive maintenance endpoints."""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..celery_app import publish_invalidation
from ..database import get_db
from ..schemas import (
    ComplianceRequest,
    ComplianceSnapshot,
    ExecutionOutcome,
    ExecutionSubmitRequest,
    MaintenancePlan,
    PlanValidationResponse,
    ReconciledInstance,
    ReconcileRequest,
    ResourceLedgerOut,
    ResourceLineOut,
    ToolCandidate,
)
from ..services import overview_cache
from ..services.resource_ledger import ResourceConfirmation, ResourceLedger
from ..services.sql_sources import SqlMaintenanceSources
from ..use_cases.execution import (
    ExecutionHooks,
    apply_ledger_edits,
    open_execution_use_case,
    search_ad_hoc_candidates_use_case,
    submit_execution_use_case,
)
from ..use_cases.fleet_overview import fleet_overview_use_case, reconciled_view_use_case
from ..use_cases.plans import validate_plan_use_case

router = APIRouter(prefix="/preventive", tags=["preventive"])


def get_sources(db: Session = Depends(get_db)) -> SqlMaintenanceSources:
    return SqlMaintenanceSources(db)


def build_execution_hooks(sources, *, company_id: UUID) -> ExecutionHooks:
    return ExecutionHooks(
        list_reservations=sources.list_reservations,
        required_tools=sources.required_tools,
        search_tools=sources.search_tools,
        list_active_operators=sources.list_active_operators,
        create_execution_record=sources.create_execution_record,
        invalidate=lambda record: publish_invalidation(company_id=company_id, record=record),
        now_utc=lambda: datetime.now(timezone.utc),
    )


def _line_out(ledger: ResourceLedger, line: ResourceConfirmation) -> ResourceLineOut:
    return ResourceLineOut(
        key=line.key,
        reservation_id=line.reservation_id,
        tool_id=line.tool_id,
        tool_name=line.tool_name,
        item_type=line.item_type,
        unit=line.unit,
        picked_quantity=line.picked_quantity,
        used_quantity=line.used_quantity,
        to_return=ledger.to_return(line.key) if line.is_consumable else None,
        returned_damaged=line.returned_damaged,
        is_ad_hoc=line.is_ad_hoc,
    )


def _ledger_out(ledger: ResourceLedger) -> ResourceLedgerOut:
    return ResourceLedgerOut(
        kind=ledger.kind.value,
        degraded=ledger.degraded,
        tools=[_line_out(ledger, line) for line in ledger.tools()],
        consumables=[_line_out(ledger, line) for line in ledger.consumables()],
    )


@router.post("/reconcile", response_model=list[ReconciledInstance])
def reconcile_instances(payload: ReconcileRequest):
    """Effective due date, overdue and stale flags for a batch of instances."""
    items = [(item.instance, item.frequency_days) for item in payload.items]
    return reconciled_view_use_case(items=items, dedupe=False, now=payload.now)


@router.post("/compliance", response_model=ComplianceSnapshot)
def compute_compliance(payload: ComplianceRequest):
    items = [(item.instance, item.frequency_days) for item in payload.items]
    return fleet_overview_use_case(items=items, dedupe=payload.dedupe, now=payload.now)


@router.get("/fleet-overview", response_model=ComplianceSnapshot)
def get_fleet_overview(
    company_id: UUID,
    dedupe: bool = Query(True),
    sources=Depends(get_sources),
):
    """Compliance snapshot of a company's active plans, served from cache when possible."""
    cached = overview_cache.read_overview(company_id, dedupe=dedupe)
    if cached is not None:
        return cached

    snapshot = fleet_overview_use_case(items=sources.load_fleet(company_id=company_id), dedupe=dedupe)
    overview_cache.write_overview(company_id, snapshot, dedupe=dedupe)
    return snapshot


@router.post("/plans/validate", response_model=PlanValidationResponse)
def validate_plan(plan: MaintenancePlan):
    validate_plan_use_case(plan=plan)
    return PlanValidationResponse(plan_id=plan.id, schedulable=plan.is_active)


@router.get("/instances/{instance_id}/resources", response_model=ResourceLedgerOut)
def get_execution_resources(
    instance_id: UUID,
    company_id: UUID,
    sources=Depends(get_sources),
):
    """Resource lines an operator confirms when executing the instance."""
    instance, plan = sources.load_execution_target(instance_id=instance_id, company_id=company_id)
    hooks = build_execution_hooks(sources, company_id=company_id)
    return _ledger_out(open_execution_use_case(instance=instance, plan=plan, hooks=hooks))


@router.get("/instances/{instance_id}/ad-hoc-candidates", response_model=list[ToolCandidate])
def search_ad_hoc_candidates(
    instance_id: UUID,
    company_id: UUID,
    q: Optional[str] = Query("", max_length=100),
    sources=Depends(get_sources),
):
    instance, plan = sources.load_execution_target(instance_id=instance_id, company_id=company_id)
    hooks = build_execution_hooks(sources, company_id=company_id)
    ledger = open_execution_use_case(instance=instance, plan=plan, hooks=hooks)
    return search_ad_hoc_candidates_use_case(query=q or "", company_id=company_id, ledger=ledger, hooks=hooks)


@router.post("/instances/{instance_id}/executions", response_model=ExecutionOutcome, status_code=201)
def submit_execution(
    instance_id: UUID,
    payload: ExecutionSubmitRequest,
    sources=Depends(get_sources),
):
    """Complete an instance with the operator's captured data."""
    instance, plan = sources.load_execution_target(instance_id=instance_id, company_id=payload.company_id)
    hooks = build_execution_hooks(sources, company_id=payload.company_id)

    ledger = open_execution_use_case(instance=instance, plan=plan, hooks=hooks)
    apply_ledger_edits(ledger, ad_hoc_tools=payload.ad_hoc_tools, adjustments=payload.adjustments)

    return submit_execution_use_case(
        instance=instance,
        plan=plan,
        form=payload.form,
        ledger=ledger,
        hooks=hooks,
        company_id=payload.company_id,
    )
