"""Collapse instances the upstream source reports more than once for the same plan."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def normalized_title(item: object) -> str:
    return (getattr(item, "title", None) or "").strip().lower()


def dedupe(instances: Sequence[T], *, enabled: bool = True) -> list[T]:
    """Keep the first instance per case-insensitive trimmed title, in original order.

    Returns a new list either way; the input is never modified, so callers can
    always go back to the undeduplicated view.
    """
    if not enabled:
        return list(instances)

    seen: set[str] = set()
    result: list[T] = []
    for item in instances:
        key = normalized_title(item)
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result
