"""Flat enums every upstream value is resolved to before entering the engine."""
from enum import Enum


class MaintenanceType(str, Enum):
    PREVENTIVE = "PREVENTIVE"
    CORRECTIVE = "CORRECTIVE"
    PREDICTIVE = "PREDICTIVE"
    EMERGENCY = "EMERGENCY"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class InstanceStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    PARTIALLY_COMPLETED = "PARTIALLY_COMPLETED"
    REQUIRES_FOLLOWUP = "REQUIRES_FOLLOWUP"
    CANCELLED = "CANCELLED"


class CompletionStatus(str, Enum):
    COMPLETED = "COMPLETED"
    PARTIALLY_COMPLETED = "PARTIALLY_COMPLETED"
    REQUIRES_FOLLOWUP = "REQUIRES_FOLLOWUP"


class ItemType(str, Enum):
    TOOL = "TOOL"
    HAND_TOOL = "HAND_TOOL"
    SPARE_PART = "SPARE_PART"
    CONSUMABLE = "CONSUMABLE"
    MATERIAL = "MATERIAL"
    UNKNOWN = "UNKNOWN"


class DurationUnit(str, Enum):
    HOURS = "HOURS"
    MINUTES = "MINUTES"


class QuantityUnit(str, Enum):
    CYCLES = "CYCLES"
    UNITS_PRODUCED = "UNITS_PRODUCED"
    KILOMETERS = "KILOMETERS"
    HOURS = "HOURS"
    DAYS = "DAYS"
    SHIFTS = "SHIFTS"
