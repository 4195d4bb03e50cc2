"""Correct pending instances the scheduling source has not caught up with.

The scheduling source is eventually consistent: a pending instance can still be
reported after a more recent completion already covered its cycle. This module is
the single place where that is corrected, so every consumer sees the same
effective due date and overdue flag.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone
from typing import Optional

from ..enums import InstanceStatus
from ..schemas import MaintenanceInstance, ReconciledInstance
from .recurrence import as_date, is_valid_frequency, next_due_date

logger = logging.getLogger(__name__)


def today_utc(now: Optional[datetime] = None) -> date:
    return (now or datetime.now(timezone.utc)).date()


def is_stale(
    instance: MaintenanceInstance,
    last_completed_date: date | datetime | None,
    frequency_days: int,
) -> bool:
    """A pending instance whose cycle is already satisfied by `last_completed_date`.

    The gap is signed (completions after the scheduled date always count) and the
    boundary is inclusive: a completion exactly `frequency_days` before the
    scheduled date still covers it.
    """
    last_completed = as_date(last_completed_date)
    if instance.status != InstanceStatus.PENDING:
        return False
    if last_completed is None or instance.scheduled_date is None:
        return False
    gap_days = (instance.scheduled_date - last_completed).days
    return gap_days <= frequency_days


def reconcile(
    instance: MaintenanceInstance,
    last_completed_date: date | datetime | None,
    frequency_days: int,
    *,
    now: Optional[datetime] = None,
) -> ReconciledInstance:
    """Derive effective due date, overdue and stale flags for one instance."""
    stale = False
    effective_due_date = instance.scheduled_date

    if not is_valid_frequency(frequency_days):
        logger.warning(
            "Skipping staleness correction for instance %s: invalid frequency_days=%r",
            instance.id,
            frequency_days,
        )
    elif is_stale(instance, last_completed_date, frequency_days):
        stale = True
        effective_due_date = next_due_date(last_completed_date, frequency_days, instance.scheduled_date)

    overdue = (
        instance.status == InstanceStatus.PENDING
        and effective_due_date is not None
        and effective_due_date < today_utc(now)
    )
    return ReconciledInstance(
        instance=instance,
        effective_due_date=effective_due_date,
        is_overdue=overdue,
        is_stale=stale,
    )


def reconcile_many(
    items: Iterable[tuple[MaintenanceInstance, int]],
    *,
    now: Optional[datetime] = None,
) -> list[ReconciledInstance]:
    """Reconcile (instance, frequency_days) pairs using each instance's carried last completion."""
    reference = now or datetime.now(timezone.utc)
    return [
        reconcile(instance, instance.last_completed_date, frequency_days, now=reference)
        for instance, frequency_days in items
    ]
