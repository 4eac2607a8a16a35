"""
Domain layer - Pure business logic without external dependencies.
"""

from .conflict_detector import ConflictDetector
from .models import (
    ACTIVE_STATUSES,
    Booking,
    BookingStatus,
    Conflict,
    DaySchedule,
    DurationType,
    FreeBlock,
    OccupancyStats,
    OperatingHours,
    RateSchedule,
    Resource,
    Slot,
    TimeRange,
)
from .pricing import compute_price, duration_type_for, should_reprice
from .slot_calculator import SlotCalculator

__all__ = [
    "ACTIVE_STATUSES",
    "Booking",
    "BookingStatus",
    "Conflict",
    "ConflictDetector",
    "DaySchedule",
    "DurationType",
    "FreeBlock",
    "OccupancyStats",
    "OperatingHours",
    "RateSchedule",
    "Resource",
    "Slot",
    "SlotCalculator",
    "TimeRange",
    "compute_price",
    "duration_type_for",
    "should_reprice",
]
