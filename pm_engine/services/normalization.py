"""Boundary normalization of loosely-typed upstream values into flat enums.

Upstream payloads report classifications either as plain strings or as nested
objects (``{"type": "PREVENTIVE"}``, ``{"itemType": {"name": "TOOL"}}``). Everything
is resolved here so the engine only ever sees the enums from ``pm_engine.enums``.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional

from ..enums import InstanceStatus, ItemType, MaintenanceType, Priority


_NESTED_KEYS: tuple[str, ...] = ("type", "itemType", "item_type", "priority", "status", "name", "value")

_ITEM_TYPE_ALIASES: dict[str, ItemType] = {
    "SUPPLY": ItemType.CONSUMABLE,
    "SUPPLIES": ItemType.CONSUMABLE,
    "SPARE": ItemType.SPARE_PART,
    "SPAREPART": ItemType.SPARE_PART,
    "HANDTOOL": ItemType.HAND_TOOL,
}

ACCEPTED_RESERVATION_STATUSES: frozenset[str] = frozenset({"PICKED", "PENDING"})


def _unwrap(raw: Any) -> Optional[str]:
    """Resolve string / enum / nested-object shapes to an upper-case token."""
    if raw is None:
        return None
    if isinstance(raw, Enum):
        raw = raw.value
    if isinstance(raw, Mapping):
        for key in _NESTED_KEYS:
            if raw.get(key) is not None:
                return _unwrap(raw[key])
        return None
    if not isinstance(raw, str):
        raise ValueError(f"Unsupported value shape: {type(raw).__name__}")
    token = raw.strip().upper().replace("-", "_").replace(" ", "_")
    return token or None


def normalize_item_type(raw: Any) -> ItemType:
    token = _unwrap(raw)
    if token is None:
        return ItemType.UNKNOWN
    if token in ItemType.__members__:
        return ItemType[token]
    return _ITEM_TYPE_ALIASES.get(token.replace("_", ""), ItemType.UNKNOWN)


def normalize_maintenance_type(raw: Any, *, is_preventive: Optional[bool] = None) -> MaintenanceType:
    token = _unwrap(raw)
    if token is None:
        if is_preventive is False:
            return MaintenanceType.CORRECTIVE
        return MaintenanceType.PREVENTIVE
    if token not in MaintenanceType.__members__:
        raise ValueError(f"Unknown maintenance type: {token}")
    return MaintenanceType[token]


def normalize_priority(raw: Any) -> Priority:
    token = _unwrap(raw)
    if token is None:
        return Priority.MEDIUM
    # CRITICAL is used by work orders for the same urgency level.
    if token == "CRITICAL":
        return Priority.URGENT
    if token not in Priority.__members__:
        raise ValueError(f"Unknown priority: {token}")
    return Priority[token]


def normalize_instance_status(raw: Any) -> InstanceStatus:
    token = _unwrap(raw)
    if token is None:
        return InstanceStatus.PENDING
    if token not in InstanceStatus.__members__:
        raise ValueError(f"Unknown instance status: {token}")
    return InstanceStatus[token]


def normalize_reservation_status(raw: Any) -> str:
    return _unwrap(raw) or "PENDING"


def is_accepted_reservation(status: Any) -> bool:
    return normalize_reservation_status(status) in ACCEPTED_RESERVATION_STATUSES


def is_consumable(item_type: ItemType) -> bool:
    """Quantity-return semantics apply to consumables; everything else is a tool."""
    return item_type in {ItemType.SPARE_PART, ItemType.CONSUMABLE, ItemType.MATERIAL}
