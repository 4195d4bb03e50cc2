from __future__ import annotations

from uuid import uuid4

import pytest

from pm_engine.config import settings
from pm_engine.domain_errors import DomainError
from pm_engine.enums import ItemType
from pm_engine.schemas import RequiredTool, ReservationRow, ToolCandidate
from pm_engine.services.resource_ledger import ExecutionKind, ResourceLedger, clamp_quantity


def _reservation(*, quantity=5, item_type="CONSUMABLE", status="PICKED", tool_name="Grease"):
    return ReservationRow(
        id=uuid4(),
        tool_id=uuid4(),
        tool_name=tool_name,
        item_type=item_type,
        unit="kg",
        quantity=quantity,
        status=status,
    )


def _candidate(*, item_type="TOOL", name="Torque wrench"):
    return ToolCandidate(id=uuid4(), name=name, item_type=item_type)


def test_decrementing_used_quantity_grows_return_quantity() -> None:
    row = _reservation(quantity=5)
    ledger = ResourceLedger.from_reservations([row])
    key = f"reservation:{row.id}"

    ledger.adjust_used_quantity(key, -1)
    ledger.adjust_used_quantity(key, -1)

    assert ledger.get(key).used_quantity == 3
    assert ledger.to_return(key) == 2


def test_used_quantity_is_clamped_to_picked_range() -> None:
    row = _reservation(quantity=5)
    ledger = ResourceLedger.from_reservations([row])
    key = f"reservation:{row.id}"

    assert ledger.set_used_quantity(key, 9) == 5
    assert ledger.set_used_quantity(key, -3) == 0
    assert ledger.to_return(key) == 5


def test_clamp_is_idempotent() -> None:
    once = clamp_quantity(12, 5)
    assert clamp_quantity(once, 5) == once == 5


def test_only_picked_or_pending_reservations_seed_the_ledger() -> None:
    picked = _reservation(status="PICKED")
    pending = _reservation(status="pending")
    cancelled = _reservation(status="CANCELLED")

    ledger = ResourceLedger.from_reservations([picked, pending, cancelled])

    assert ledger.kind == ExecutionKind.CORRECTIVE
    assert {line.reservation_id for line in ledger.lines} == {picked.id, pending.id}


def test_lines_split_into_tools_and_consumables() -> None:
    tool = _reservation(item_type="HAND_TOOL", tool_name="Wrench", quantity=1)
    part = _reservation(item_type="SPARE_PART", tool_name="Bearing", quantity=2)
    ledger = ResourceLedger.from_reservations([tool, part])

    assert [line.tool_name for line in ledger.tools()] == ["Wrench"]
    assert [line.tool_name for line in ledger.consumables()] == ["Bearing"]


def test_tools_have_no_return_quantity_and_consumables_cannot_be_damaged() -> None:
    tool = _reservation(item_type="TOOL", quantity=1)
    grease = _reservation(item_type="CONSUMABLE", quantity=3)
    ledger = ResourceLedger.from_reservations([tool, grease])

    with pytest.raises(DomainError) as return_exc:
        ledger.to_return(f"reservation:{tool.id}")
    assert return_exc.value.code == "RESOURCE_RETURN_NOT_APPLICABLE"

    with pytest.raises(DomainError) as damage_exc:
        ledger.set_returned_damaged(f"reservation:{grease.id}", True)
    assert damage_exc.value.code == "RESOURCE_DAMAGE_NOT_APPLICABLE"

    ledger.set_returned_damaged(f"reservation:{tool.id}", True)
    assert ledger.get(f"reservation:{tool.id}").returned_damaged is True


def test_checklist_seed_defaults_quantity_to_one() -> None:
    ledger = ResourceLedger.from_checklist([RequiredTool(name="Multimeter"), RequiredTool(name="Rags", quantity=4)])

    assert ledger.kind == ExecutionKind.PREVENTIVE
    assert [(line.key, line.picked_quantity) for line in ledger.lines] == [("checklist:0", 1), ("checklist:1", 4)]
    assert all(line.tool_id is None and line.reservation_id is None for line in ledger.lines)


def test_preventive_ledger_rejects_ad_hoc_resources() -> None:
    ledger = ResourceLedger.from_checklist([RequiredTool(name="Multimeter")])

    with pytest.raises(DomainError) as exc_info:
        ledger.add_ad_hoc(_candidate())

    assert exc_info.value.code == "AD_HOC_NOT_ALLOWED"
    assert len(ledger.lines) == 1


def test_ad_hoc_tool_cannot_be_added_twice() -> None:
    ledger = ResourceLedger.from_reservations([])
    candidate = _candidate()
    ledger.add_ad_hoc(candidate)

    with pytest.raises(DomainError) as exc_info:
        ledger.add_ad_hoc(candidate)

    assert exc_info.value.code == "AD_HOC_DUPLICATE_TOOL"


def test_ad_hoc_tool_already_reserved_is_a_duplicate() -> None:
    row = _reservation()
    ledger = ResourceLedger.from_reservations([row])

    with pytest.raises(DomainError):
        ledger.add_ad_hoc(ToolCandidate(id=row.tool_id, name=row.tool_name))


def test_ad_hoc_quantity_is_bounded_by_ceiling_and_returns_nothing() -> None:
    ledger = ResourceLedger.from_reservations([])
    line = ledger.add_ad_hoc(_candidate(item_type="CONSUMABLE", name="Cable ties"))

    assert line.is_ad_hoc is True
    assert line.used_quantity == 1
    assert ledger.set_used_quantity(line.key, settings.AD_HOC_QUANTITY_CEILING + 10) == settings.AD_HOC_QUANTITY_CEILING
    assert ledger.set_used_quantity(line.key, 7) == 7
    assert ledger.to_return(line.key) == 0


def test_only_ad_hoc_lines_are_removable() -> None:
    row = _reservation()
    ledger = ResourceLedger.from_reservations([row])
    line = ledger.add_ad_hoc(_candidate())

    ledger.remove_ad_hoc(line.key)
    assert [item.key for item in ledger.lines] == [f"reservation:{row.id}"]

    with pytest.raises(DomainError) as exc_info:
        ledger.remove_ad_hoc(f"reservation:{row.id}")
    assert exc_info.value.code == "RESOURCE_LINE_NOT_REMOVABLE"


def test_unknown_line_key() -> None:
    with pytest.raises(DomainError) as exc_info:
        ResourceLedger.from_reservations([]).get("reservation:missing")

    assert exc_info.value.code == "RESOURCE_LINE_NOT_FOUND"
    assert exc_info.value.http_status == 404


def test_snapshot_records_used_quantity_per_line() -> None:
    row = _reservation(quantity=5, item_type="CONSUMABLE")
    ledger = ResourceLedger.from_reservations([row])
    ledger.set_used_quantity(f"reservation:{row.id}", 2)

    snapshot = ledger.snapshot()

    assert len(snapshot) == 1
    assert snapshot[0].reservation_id == row.id
    assert snapshot[0].used_quantity == 2
    assert snapshot[0].item_type == ItemType.CONSUMABLE


def test_nan_used_quantity_is_stored_as_zero() -> None:
    row = _reservation(quantity=5)
    ledger = ResourceLedger.from_reservations([row])
    key = f"reservation:{row.id}"

    assert ledger.set_used_quantity(key, float("nan")) == 0
    assert ledger.to_return(key) == 5
    assert clamp_quantity(float("inf"), 5) == 5
    assert clamp_quantity(float("-inf"), 5) == 0


def test_repeating_an_out_of_range_quantity_leaves_the_line_unchanged() -> None:
    row = _reservation(quantity=5)
    ledger = ResourceLedger.from_reservations([row])
    key = f"reservation:{row.id}"

    first = ledger.set_used_quantity(key, 12)
    second = ledger.set_used_quantity(key, 12)

    assert first == second == 5
    assert ledger.get(key).picked_quantity == 5
    assert ledger.to_return(key) == 0


def test_repeating_an_out_of_range_quantity_on_ad_hoc_line_is_stable() -> None:
    ledger = ResourceLedger.from_reservations([])
    line = ledger.add_ad_hoc(_candidate(item_type="CONSUMABLE", name="Shims"))
    ceiling = settings.AD_HOC_QUANTITY_CEILING

    ledger.set_used_quantity(line.key, ceiling * 2)
    after_first = (line.used_quantity, line.picked_quantity)
    ledger.set_used_quantity(line.key, ceiling * 2)

    assert (line.used_quantity, line.picked_quantity) == after_first == (ceiling, ceiling)
    ledger.set_used_quantity(line.key, -4)
    ledger.set_used_quantity(line.key, -4)
    assert (line.used_quantity, line.picked_quantity) == (0, 0)
