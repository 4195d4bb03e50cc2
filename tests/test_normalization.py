import pytest

from pm_engine.enums import InstanceStatus, ItemType, MaintenanceType, Priority
from pm_engine.services.normalization import (
    is_accepted_reservation,
    is_consumable,
    normalize_instance_status,
    normalize_item_type,
    normalize_maintenance_type,
    normalize_priority,
)


def test_nested_and_flat_shapes_resolve_to_the_same_enum() -> None:
    assert normalize_maintenance_type("preventive") == MaintenanceType.PREVENTIVE
    assert normalize_maintenance_type({"type": "PREVENTIVE"}) == MaintenanceType.PREVENTIVE
    assert normalize_item_type({"itemType": {"name": "spare-part"}}) == ItemType.SPARE_PART


def test_missing_type_falls_back_to_preventive_flag() -> None:
    assert normalize_maintenance_type(None) == MaintenanceType.PREVENTIVE
    assert normalize_maintenance_type(None, is_preventive=False) == MaintenanceType.CORRECTIVE


def test_unknown_maintenance_type_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown maintenance type"):
        normalize_maintenance_type("SOMETIMES")


def test_unsupported_value_shape_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unsupported value shape"):
        normalize_priority(3)


def test_item_type_aliases() -> None:
    assert normalize_item_type("SUPPLY") == ItemType.CONSUMABLE
    assert normalize_item_type("hand tool") == ItemType.HAND_TOOL
    assert normalize_item_type("gizmo") == ItemType.UNKNOWN
    assert normalize_item_type(None) == ItemType.UNKNOWN


def test_priority_and_status_defaults() -> None:
    assert normalize_priority(None) == Priority.MEDIUM
    assert normalize_priority("critical") == Priority.URGENT
    assert normalize_instance_status(None) == InstanceStatus.PENDING
    assert normalize_instance_status({"status": "in progress"}) == InstanceStatus.IN_PROGRESS


def test_reservation_acceptance_and_classification() -> None:
    assert is_accepted_reservation("picked") is True
    assert is_accepted_reservation(None) is True
    assert is_accepted_reservation("CANCELLED") is False
    assert is_consumable(ItemType.MATERIAL) is True
    assert is_consumable(ItemType.UNKNOWN) is False
