"""SQLAlchemy-backed collaborators for the execution and overview use-cases."""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain_errors import ConflictError, DomainError, UpstreamDataError
from ..enums import InstanceStatus
from ..models import (
    EmployeeRow,
    ExecutionRecordRow,
    MaintenanceInstanceRow,
    MaintenancePlanRow,
    ToolReservationRow,
    ToolRow,
)
from ..schemas import (
    ExecutionRecord,
    MaintenanceInstance,
    MaintenancePlan,
    Operator,
    RequiredTool,
    ReservationRow,
    ToolCandidate,
)

logger = logging.getLogger(__name__)

_OPEN_STATUSES: tuple[str, ...] = (InstanceStatus.PENDING.value, InstanceStatus.IN_PROGRESS.value)
SEARCH_LIMIT = 50


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def plan_from_row(row: MaintenancePlanRow) -> MaintenancePlan:
    return MaintenancePlan(
        id=row.id,
        title=row.title,
        description=row.description,
        machine_id=row.machine_id,
        mobile_unit_id=row.mobile_unit_id,
        component_ids=row.component_ids or [],
        subcomponent_ids=row.subcomponent_ids or [],
        frequency_days=row.frequency_days,
        estimated_hours=row.estimated_hours,
        estimated_quantity=row.estimated_quantity,
        estimated_unit=row.estimated_unit,
        assigned_to_id=row.assigned_to_id,
        required_tools=[RequiredTool(name=tool.name, quantity=tool.quantity) for tool in row.required_tools],
        priority=row.priority,
        maintenance_type=row.maintenance_type,
        is_active=bool(row.is_active),
    )


def instance_from_row(row: MaintenanceInstanceRow) -> MaintenanceInstance:
    return MaintenanceInstance(
        id=row.id,
        plan_id=row.plan_id,
        title=row.title,
        maintenance_type=row.maintenance_type,
        scheduled_date=row.scheduled_date,
        status=row.status,
        last_completed_date=row.last_completed_date,
        completed_at=row.completed_at,
    )


class SqlMaintenanceSources:
    """Reservation, checklist, search, directory and persistence collaborators over one session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def load_execution_target(self, *, instance_id: UUID, company_id: UUID) -> tuple[MaintenanceInstance, MaintenancePlan]:
        try:
            row = self.db.query(MaintenanceInstanceRow).filter(
                MaintenanceInstanceRow.id == instance_id,
                MaintenanceInstanceRow.company_id == company_id,
            ).first()
        except SQLAlchemyError as exc:
            raise UpstreamDataError.unavailable("Maintenance store") from exc
        if not row:
            raise DomainError(
                code="INSTANCE_NOT_FOUND",
                http_status=404,
                message="Maintenance instance not found",
            )
        return instance_from_row(row), plan_from_row(row.plan)

    def load_fleet(self, *, company_id: UUID) -> list[tuple[MaintenanceInstance, int]]:
        try:
            rows = (
                self.db.query(MaintenanceInstanceRow)
                .join(MaintenancePlanRow, MaintenanceInstanceRow.plan_id == MaintenancePlanRow.id)
                .filter(
                    MaintenanceInstanceRow.company_id == company_id,
                    MaintenancePlanRow.is_active.is_(True),
                )
                .order_by(MaintenanceInstanceRow.scheduled_date.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise UpstreamDataError.unavailable("Maintenance store") from exc
        return [(instance_from_row(row), row.plan.frequency_days) for row in rows]

    def list_reservations(self, instance_id: UUID) -> list[ReservationRow]:
        try:
            rows = (
                self.db.query(ToolReservationRow, ToolRow)
                .outerjoin(ToolRow, ToolReservationRow.tool_id == ToolRow.id)
                .filter(ToolReservationRow.instance_id == instance_id)
                .all()
            )
        except SQLAlchemyError as exc:
            raise UpstreamDataError.unavailable("Reservation source") from exc
        return [
            ReservationRow(
                id=reservation.id,
                tool_id=reservation.tool_id,
                tool_name=tool.name if tool else "Unknown item",
                item_type=tool.item_type if tool else None,
                unit=tool.unit if tool else None,
                quantity=reservation.quantity or 0,
                status=reservation.status,
            )
            for reservation, tool in rows
        ]

    def required_tools(self, plan_id: UUID) -> list[RequiredTool]:
        try:
            plan = self.db.query(MaintenancePlanRow).filter(MaintenancePlanRow.id == plan_id).first()
        except SQLAlchemyError as exc:
            raise UpstreamDataError.unavailable("Plan checklist source") from exc
        if not plan:
            return []
        return [RequiredTool(name=tool.name, quantity=tool.quantity) for tool in plan.required_tools]

    def search_tools(self, query: str, company_id: UUID) -> list[ToolCandidate]:
        try:
            rows = (
                self.db.query(ToolRow)
                .filter(
                    ToolRow.company_id == company_id,
                    ToolRow.is_active.is_(True),
                    ToolRow.name.ilike(f"%{_escape_like(query.strip())}%", escape="\\"),
                )
                .order_by(ToolRow.name)
                .limit(SEARCH_LIMIT)
                .all()
            )
        except SQLAlchemyError as exc:
            raise UpstreamDataError.unavailable("Tool search") from exc
        return [
            ToolCandidate(
                id=row.id,
                name=row.name,
                item_type=row.item_type,
                unit=row.unit,
                stock_quantity=row.stock_quantity or 0,
            )
            for row in rows
        ]

    def list_active_operators(self, company_id: UUID) -> list[Operator]:
        try:
            rows = (
                self.db.query(EmployeeRow)
                .filter(EmployeeRow.company_id == company_id, EmployeeRow.is_active.is_(True))
                .order_by(EmployeeRow.name)
                .all()
            )
        except SQLAlchemyError as exc:
            raise UpstreamDataError.unavailable("Operator directory") from exc
        return [Operator(id=row.id, name=row.name) for row in rows]

    def create_execution_record(self, record: ExecutionRecord) -> UUID:
        """Persist `record` and close its instance; a second completion of the same instance conflicts."""
        executed_on = record.executed_at.date()
        try:
            # Compare-and-set on status: only one submission can move the instance out of an open state.
            updated = self.db.query(MaintenanceInstanceRow).filter(
                MaintenanceInstanceRow.id == record.instance_id,
                MaintenanceInstanceRow.status.in_(_OPEN_STATUSES),
            ).update(
                {
                    "status": record.completion_status.value,
                    "completed_at": record.executed_at,
                    "last_completed_date": executed_on,
                },
                synchronize_session=False,
            )
            if updated == 0:
                self.db.rollback()
                raise ConflictError.already_completed(record.instance_id)

            # Sibling instances of the plan carry the new completion from now on.
            self.db.query(MaintenanceInstanceRow).filter(
                MaintenanceInstanceRow.plan_id == record.plan_id,
                MaintenanceInstanceRow.id != record.instance_id,
                MaintenanceInstanceRow.status.in_(_OPEN_STATUSES),
            ).update({"last_completed_date": executed_on}, synchronize_session=False)

            record_id = uuid4()
            row = ExecutionRecordRow(
                id=record_id,
                instance_id=record.instance_id,
                plan_id=record.plan_id,
                completion_status=record.completion_status.value,
                executed_at=record.executed_at,
                re_execution_reason=record.re_execution_reason,
                payload=record.model_dump(mode="json"),
            )
            self.db.add(row)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError.already_completed(record.instance_id) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to persist execution record for instance %s", record.instance_id)
            raise UpstreamDataError.unavailable("Execution store") from exc
        return record_id
