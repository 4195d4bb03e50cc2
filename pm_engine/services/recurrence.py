"""Recurrence rules for preventive plans."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Optional

from ..domain_errors import ConfigurationError


def as_date(value: date | datetime | None) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


def next_due_date(
    last_completed_date: date | datetime | None,
    frequency_days: int,
    fallback_scheduled_date: date | datetime | None,
) -> Optional[date]:
    """Date the plan is next due: last completion plus frequency, else the scheduled date."""
    last_completed = as_date(last_completed_date)
    if last_completed is None:
        return as_date(fallback_scheduled_date)
    return last_completed + timedelta(days=frequency_days)


def is_valid_frequency(frequency_days: Any) -> bool:
    return isinstance(frequency_days, int) and not isinstance(frequency_days, bool) and frequency_days > 0


def ensure_valid_frequency(frequency_days: Any) -> int:
    if not is_valid_frequency(frequency_days):
        raise ConfigurationError(
            code="PLAN_INVALID_FREQUENCY",
            http_status=422,
            message="Frequency must be a positive number of days",
            details={"frequency_days": frequency_days},
        )
    return frequency_days


def is_schedulable(plan) -> bool:
    """Whether new instances may be generated for `plan`."""
    return bool(plan.is_active) and is_valid_frequency(plan.frequency_days)
