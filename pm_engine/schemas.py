"""Pydantic schemas for the maintenance engine and its API."""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .enums import (
    CompletionStatus,
    DurationUnit,
    InstanceStatus,
    ItemType,
    MaintenanceType,
    Priority,
    QuantityUnit,
)
from .services.normalization import (
    normalize_instance_status,
    normalize_item_type,
    normalize_maintenance_type,
    normalize_priority,
)


def _truncate_to_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


# Plan / instance schemas
class RequiredTool(BaseModel):
    """Checklist entry of a preventive plan."""
    name: str
    quantity: Optional[float] = None
    model_config = ConfigDict(extra="forbid", from_attributes=True)


class MaintenancePlan(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    machine_id: Optional[UUID] = None
    mobile_unit_id: Optional[UUID] = None
    component_ids: list[UUID] = Field(default_factory=list)
    subcomponent_ids: list[UUID] = Field(default_factory=list)
    frequency_days: int
    estimated_hours: Optional[float] = None
    estimated_quantity: Optional[float] = None
    estimated_unit: Optional[QuantityUnit] = None
    assigned_to_id: Optional[UUID] = None
    required_tools: list[RequiredTool] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    maintenance_type: MaintenanceType = MaintenanceType.PREVENTIVE
    is_active: bool = True
    model_config = ConfigDict(from_attributes=True)

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value):
        return normalize_priority(value)

    @field_validator("maintenance_type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        return normalize_maintenance_type(value)

    @model_validator(mode="after")
    def _single_asset_target(self) -> "MaintenancePlan":
        if self.machine_id is not None and self.mobile_unit_id is not None:
            raise ValueError("machine_id and mobile_unit_id are mutually exclusive")
        return self


class MaintenanceInstance(BaseModel):
    id: UUID
    plan_id: UUID
    title: Optional[str] = None
    maintenance_type: MaintenanceType = MaintenanceType.PREVENTIVE
    scheduled_date: Optional[date] = None
    status: InstanceStatus = InstanceStatus.PENDING
    last_completed_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

    @field_validator("scheduled_date", "last_completed_date", mode="before")
    @classmethod
    def _dates_only(cls, value):
        return _truncate_to_date(value)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        return normalize_instance_status(value)

    @field_validator("maintenance_type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        return normalize_maintenance_type(value)


class ReconciledInstance(BaseModel):
    """Canonical instance view consumed by the UI and compliance metrics."""
    instance: MaintenanceInstance
    effective_due_date: Optional[date] = None
    is_overdue: bool = False
    is_stale: bool = False

    @property
    def status(self) -> InstanceStatus:
        return self.instance.status

    @property
    def title(self) -> Optional[str]:
        return self.instance.title

    @property
    def scheduled_date(self) -> Optional[date]:
        return self.instance.scheduled_date


# Collaborator rows
class ReservationRow(BaseModel):
    id: UUID
    tool_id: Optional[UUID] = None
    tool_name: str
    item_type: ItemType = ItemType.UNKNOWN
    unit: Optional[str] = None
    quantity: float = 0
    status: str
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    @field_validator("item_type", mode="before")
    @classmethod
    def _normalize_item_type(cls, value):
        return normalize_item_type(value)


class ToolCandidate(BaseModel):
    id: UUID
    name: str
    item_type: ItemType = ItemType.UNKNOWN
    unit: Optional[str] = None
    stock_quantity: float = 0
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    @field_validator("item_type", mode="before")
    @classmethod
    def _normalize_item_type(cls, value):
        return normalize_item_type(value)


class Operator(BaseModel):
    id: UUID
    name: str
    model_config = ConfigDict(extra="forbid", from_attributes=True)


# Execution schemas
class ResourceSnapshot(BaseModel):
    """Audit copy of a resource line; picked quantity is derivable from the reservation."""
    reservation_id: Optional[UUID] = None
    tool_id: Optional[UUID] = None
    tool_name: str
    item_type: ItemType
    used_quantity: float
    returned_damaged: bool = False
    is_ad_hoc: bool = False
    model_config = ConfigDict(frozen=True)


class ExecutionFormInput(BaseModel):
    """Operator input captured for one execution attempt."""
    actual_duration: Optional[Union[float, str]] = None
    actual_duration_unit: DurationUnit = DurationUnit.HOURS
    actual_value: Optional[Union[float, str]] = None
    actual_unit: Optional[QuantityUnit] = QuantityUnit.CYCLES
    exclude_quantity: bool = False
    operator_ids: list[UUID] = Field(default_factory=list)
    notes: str = ""
    issues: str = ""
    completion_status: CompletionStatus = CompletionStatus.COMPLETED
    re_execution_reason: Optional[str] = None
    model_config = ConfigDict(frozen=True)

    @classmethod
    def for_plan(cls, plan: MaintenancePlan, **values) -> "ExecutionFormInput":
        """Form as opened for `plan`: quantity prefilled with the configured estimate."""
        if "actual_value" not in values and plan.estimated_quantity is not None:
            values["actual_value"] = plan.estimated_quantity
        return cls(**values)


class ExecutionRecord(BaseModel):
    instance_id: UUID
    plan_id: UUID
    maintenance_type: MaintenanceType
    title: str
    executed_at: datetime
    actual_duration_hours: float
    original_duration: float
    original_duration_unit: DurationUnit
    actual_value: Optional[float] = None
    actual_unit: Optional[QuantityUnit] = None
    exclude_quantity: bool = False
    completion_status: CompletionStatus
    operator_ids: list[UUID]
    notes: str = ""
    issues: str = ""
    re_execution_reason: Optional[str] = None
    resources: list[ResourceSnapshot] = Field(default_factory=list)
    machine_id: Optional[UUID] = None
    mobile_unit_id: Optional[UUID] = None
    component_ids: list[UUID] = Field(default_factory=list)
    subcomponent_ids: list[UUID] = Field(default_factory=list)
    assigned_to_id: Optional[UUID] = None
    estimated_hours: Optional[float] = None
    estimated_quantity: Optional[float] = None
    model_config = ConfigDict(frozen=True)


class ExecutionOutcome(BaseModel):
    record_id: UUID
    status: InstanceStatus
    record: ExecutionRecord
    resources_degraded: bool = False


# Metrics schemas
class ComplianceSnapshot(BaseModel):
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    overdue: int = 0
    preventive: int = 0
    corrective: int = 0
    total_scheduled: int = 0
    completed_on_time: int = 0
    compliance_rate: int = 100
    next_scheduled: Optional[ReconciledInstance] = None


class OperatorCount(BaseModel):
    operator_id: UUID
    executions: int


class ExecutionMetrics(BaseModel):
    total_executions: int = 0
    completed: int = 0
    partially_completed: int = 0
    requires_followup: int = 0
    preventive: int = 0
    corrective: int = 0
    average_duration_hours: float = 0.0
    top_operators: list[OperatorCount] = Field(default_factory=list)


# API request/response schemas
class ReconcileItem(BaseModel):
    instance: MaintenanceInstance
    frequency_days: int


class ReconcileRequest(BaseModel):
    items: list[ReconcileItem]
    now: Optional[datetime] = None


class ComplianceRequest(ReconcileRequest):
    dedupe: Optional[bool] = None


class PlanValidationResponse(BaseModel):
    plan_id: UUID
    schedulable: bool


class ResourceAdjustment(BaseModel):
    """Operator edits applied to a seeded ledger line."""
    key: str
    used_quantity: Optional[float] = None
    returned_damaged: Optional[bool] = None


class ExecutionSubmitRequest(BaseModel):
    company_id: UUID
    form: ExecutionFormInput
    adjustments: list[ResourceAdjustment] = Field(default_factory=list)
    ad_hoc_tools: list[ToolCandidate] = Field(default_factory=list)


class ResourceLineOut(BaseModel):
    key: str
    reservation_id: Optional[UUID] = None
    tool_id: Optional[UUID] = None
    tool_name: str
    item_type: ItemType
    unit: Optional[str] = None
    picked_quantity: float
    used_quantity: float
    to_return: Optional[float] = None
    returned_damaged: bool = False
    is_ad_hoc: bool = False


class ResourceLedgerOut(BaseModel):
    kind: str
    degraded: bool = False
    tools: list[ResourceLineOut] = Field(default_factory=list)
    consumables: list[ResourceLineOut] = Field(default_factory=list)
