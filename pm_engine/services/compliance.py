"""Fleet-level compliance and execution metrics."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from typing import Optional

from ..config import settings
from ..enums import CompletionStatus, InstanceStatus, MaintenanceType
from ..schemas import (
    ComplianceSnapshot,
    ExecutionMetrics,
    ExecutionRecord,
    OperatorCount,
    ReconciledInstance,
)
from .recurrence import as_date

OPEN_STATUSES: frozenset[InstanceStatus] = frozenset({InstanceStatus.PENDING, InstanceStatus.IN_PROGRESS})
TOP_OPERATORS_LIMIT = 10


def is_completed_on_time(item: ReconciledInstance, *, grace_days: Optional[int] = None) -> bool:
    """Completed before the end of the grace window following the scheduled date."""
    grace = settings.COMPLIANCE_GRACE_DAYS if grace_days is None else grace_days
    scheduled = item.scheduled_date
    completed_on = as_date(item.instance.completed_at)
    if item.status != InstanceStatus.COMPLETED or scheduled is None or completed_on is None:
        return False
    return completed_on < scheduled + timedelta(days=grace)


def compliance_rate(completed_on_time: int, total_scheduled: int) -> int:
    # No scheduled baseline must never read as a failure.
    if total_scheduled <= 0:
        return 100
    return round(completed_on_time / total_scheduled * 100)


def _next_scheduled(items: Sequence[ReconciledInstance]) -> Optional[ReconciledInstance]:
    candidates = [
        item for item in items
        if item.status == InstanceStatus.PENDING and item.effective_due_date is not None
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda item: item.effective_due_date or date.max)


def aggregate(
    instances: Iterable[ReconciledInstance],
    *,
    grace_days: Optional[int] = None,
) -> ComplianceSnapshot:
    """Compute pending/overdue/completed counts and the on-time compliance rate."""
    items = list(instances)

    total_scheduled = sum(1 for item in items if item.scheduled_date is not None)
    completed_on_time = sum(1 for item in items if is_completed_on_time(item, grace_days=grace_days))

    return ComplianceSnapshot(
        total=len(items),
        pending=sum(1 for item in items if item.status in OPEN_STATUSES),
        in_progress=sum(1 for item in items if item.status == InstanceStatus.IN_PROGRESS),
        completed=sum(1 for item in items if item.status == InstanceStatus.COMPLETED),
        overdue=sum(1 for item in items if item.status == InstanceStatus.PENDING and item.is_overdue),
        preventive=sum(1 for item in items if item.instance.maintenance_type == MaintenanceType.PREVENTIVE),
        corrective=sum(1 for item in items if item.instance.maintenance_type == MaintenanceType.CORRECTIVE),
        total_scheduled=total_scheduled,
        completed_on_time=completed_on_time,
        compliance_rate=compliance_rate(completed_on_time, total_scheduled),
        next_scheduled=_next_scheduled(items),
    )


def summarize_executions(records: Iterable[ExecutionRecord]) -> ExecutionMetrics:
    """Execution history metrics: outcome split, average duration, busiest operators."""
    rows = list(records)
    if not rows:
        return ExecutionMetrics()

    outcomes = Counter(record.completion_status for record in rows)
    operators = Counter(operator_id for record in rows for operator_id in record.operator_ids)
    preventive = sum(1 for record in rows if record.maintenance_type == MaintenanceType.PREVENTIVE)

    return ExecutionMetrics(
        total_executions=len(rows),
        completed=outcomes.get(CompletionStatus.COMPLETED, 0),
        partially_completed=outcomes.get(CompletionStatus.PARTIALLY_COMPLETED, 0),
        requires_followup=outcomes.get(CompletionStatus.REQUIRES_FOLLOWUP, 0),
        preventive=preventive,
        corrective=len(rows) - preventive,
        average_duration_hours=sum(record.actual_duration_hours for record in rows) / len(rows),
        top_operators=[
            OperatorCount(operator_id=operator_id, executions=count)
            for operator_id, count in operators.most_common(TOP_OPERATORS_LIMIT)
        ],
    )
