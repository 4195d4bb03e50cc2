"""Tool and consumable accounting for one execution attempt.

A ledger is seeded either from stock reservations (corrective-style execution) or
from the plan's fixed required-tools checklist (preventive-style execution). The
operator then adjusts used quantities, flags damaged tools and, for corrective
work only, adds items that were not reserved up front.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from uuid import UUID

from ..config import settings
from ..domain_errors import DomainError
from ..enums import ItemType
from ..schemas import RequiredTool, ReservationRow, ResourceSnapshot, ToolCandidate
from .normalization import is_accepted_reservation, is_consumable


class ExecutionKind(str, Enum):
    CORRECTIVE = "CORRECTIVE"
    PREVENTIVE = "PREVENTIVE"


@dataclass
class ResourceConfirmation:
    key: str
    tool_name: str
    item_type: ItemType = ItemType.UNKNOWN
    reservation_id: Optional[UUID] = None
    tool_id: Optional[UUID] = None
    unit: Optional[str] = None
    picked_quantity: float = 0
    used_quantity: float = 0
    returned_damaged: bool = False
    is_ad_hoc: bool = False

    @property
    def is_consumable(self) -> bool:
        return is_consumable(self.item_type)

    @property
    def is_tool(self) -> bool:
        return not self.is_consumable

    @property
    def upper_bound(self) -> float:
        if self.is_ad_hoc:
            return settings.AD_HOC_QUANTITY_CEILING
        return self.picked_quantity

    def to_snapshot(self) -> ResourceSnapshot:
        return ResourceSnapshot(
            reservation_id=self.reservation_id,
            tool_id=self.tool_id,
            tool_name=self.tool_name,
            item_type=self.item_type,
            used_quantity=self.used_quantity,
            returned_damaged=self.returned_damaged,
            is_ad_hoc=self.is_ad_hoc,
        )


def clamp_quantity(value: float, upper_bound: float) -> float:
    # NaN compares false against both bounds; treat it as nothing used.
    if math.isnan(value):
        return 0
    return min(max(value, 0), upper_bound)


@dataclass
class ResourceLedger:
    kind: ExecutionKind
    lines: list[ResourceConfirmation] = field(default_factory=list)
    degraded: bool = False

    @classmethod
    def from_reservations(cls, reservations: Iterable[ReservationRow]) -> "ResourceLedger":
        """Corrective-style seed: picked or still-pending reservations only."""
        lines = [
            ResourceConfirmation(
                key=f"reservation:{row.id}",
                reservation_id=row.id,
                tool_id=row.tool_id,
                tool_name=row.tool_name,
                item_type=row.item_type,
                unit=row.unit,
                picked_quantity=row.quantity,
                used_quantity=row.quantity,
            )
            for row in reservations
            if is_accepted_reservation(row.status)
        ]
        return cls(kind=ExecutionKind.CORRECTIVE, lines=lines)

    @classmethod
    def from_checklist(cls, required_tools: Iterable[RequiredTool]) -> "ResourceLedger":
        """Preventive-style seed: checklist lines with no stock binding."""
        lines = []
        for index, tool in enumerate(required_tools):
            quantity = tool.quantity or 1
            lines.append(
                ResourceConfirmation(
                    key=f"checklist:{index}",
                    tool_name=tool.name,
                    picked_quantity=quantity,
                    used_quantity=quantity,
                )
            )
        return cls(kind=ExecutionKind.PREVENTIVE, lines=lines)

    @classmethod
    def empty(cls, kind: ExecutionKind, *, degraded: bool = False) -> "ResourceLedger":
        return cls(kind=kind, lines=[], degraded=degraded)

    def has(self, key: str) -> bool:
        return any(line.key == key for line in self.lines)

    def get(self, key: str) -> ResourceConfirmation:
        for line in self.lines:
            if line.key == key:
                return line
        raise DomainError(
            code="RESOURCE_LINE_NOT_FOUND",
            http_status=404,
            message="Resource line not found",
            details={"key": key},
        )

    def tools(self) -> list[ResourceConfirmation]:
        return [line for line in self.lines if line.is_tool]

    def consumables(self) -> list[ResourceConfirmation]:
        return [line for line in self.lines if line.is_consumable]

    def add_ad_hoc(self, candidate: ToolCandidate) -> ResourceConfirmation:
        if self.kind == ExecutionKind.PREVENTIVE:
            raise DomainError(
                code="AD_HOC_NOT_ALLOWED",
                http_status=400,
                message="Preventive checklists are fixed; ad-hoc resources are not allowed",
            )
        if any(line.tool_id == candidate.id for line in self.lines):
            raise DomainError(
                code="AD_HOC_DUPLICATE_TOOL",
                http_status=400,
                message="Tool already listed for this execution",
                details={"tool_id": str(candidate.id)},
            )

        line = ResourceConfirmation(
            key=f"adhoc:{candidate.id}",
            tool_id=candidate.id,
            tool_name=candidate.name,
            item_type=candidate.item_type,
            unit=candidate.unit,
            picked_quantity=1,
            used_quantity=1,
            is_ad_hoc=True,
        )
        self.lines.append(line)
        return line

    def remove_ad_hoc(self, key: str) -> None:
        line = self.get(key)
        if not line.is_ad_hoc:
            raise DomainError(
                code="RESOURCE_LINE_NOT_REMOVABLE",
                http_status=400,
                message="Only ad-hoc resources can be removed",
                details={"key": key},
            )
        self.lines.remove(line)

    def set_used_quantity(self, key: str, value: float) -> float:
        """Clamp `value` into the line's range and store it; out-of-range input is not an error."""
        line = self.get(key)
        line.used_quantity = clamp_quantity(value, line.upper_bound)
        if line.is_ad_hoc:
            # Ad-hoc items are taken as used; nothing goes back to stock.
            line.picked_quantity = line.used_quantity
        return line.used_quantity

    def adjust_used_quantity(self, key: str, delta: float) -> float:
        line = self.get(key)
        return self.set_used_quantity(key, line.used_quantity + delta)

    def to_return(self, key: str) -> float:
        line = self.get(key)
        if not line.is_consumable:
            raise DomainError(
                code="RESOURCE_RETURN_NOT_APPLICABLE",
                http_status=400,
                message="Tools are returned whole; only consumables have a return quantity",
                details={"key": key},
            )
        return max(line.picked_quantity - line.used_quantity, 0)

    def set_returned_damaged(self, key: str, damaged: bool) -> None:
        line = self.get(key)
        if not line.is_tool:
            raise DomainError(
                code="RESOURCE_DAMAGE_NOT_APPLICABLE",
                http_status=400,
                message="Only tools can be reported as returned damaged",
                details={"key": key},
            )
        line.returned_damaged = bool(damaged)

    def snapshot(self) -> list[ResourceSnapshot]:
        return [line.to_snapshot() for line in self.lines]
