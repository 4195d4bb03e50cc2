"""Fleet overview: reconcile, optionally dedupe, then aggregate."""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..config import settings
from ..schemas import ComplianceSnapshot, MaintenanceInstance, ReconciledInstance
from ..services.compliance import aggregate
from ..services.dedupe import dedupe as dedupe_instances
from ..services.instance_reconciler import reconcile_many


def reconciled_view_use_case(
    *,
    items: Iterable[tuple[MaintenanceInstance, int]],
    dedupe: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> list[ReconciledInstance]:
    """Canonical instance list as shown to users."""
    enabled = settings.DEDUPE_BY_DEFAULT if dedupe is None else dedupe
    return dedupe_instances(reconcile_many(items, now=now), enabled=enabled)


def fleet_overview_use_case(
    *,
    items: Iterable[tuple[MaintenanceInstance, int]],
    dedupe: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> ComplianceSnapshot:
    """Compliance snapshot over the canonical instance list."""
    return aggregate(reconciled_view_use_case(items=items, dedupe=dedupe, now=now))
