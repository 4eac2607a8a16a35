"""
Price derivation from booking duration and a tiered rate schedule.

Partial units are always billed as a full unit.
"""

import math
from decimal import Decimal

from .exceptions import ValidationError
from .models import DurationType, RateSchedule

HOURS_PER_DAY = 24

# Duration changes at or below this many hours keep the original price.
DEFAULT_REPRICE_TOLERANCE_HOURS = 0.5


def duration_type_for(duration_hours: float, rates: RateSchedule) -> DurationType:
    """Bill by the day once the duration reaches the day threshold."""
    if duration_hours >= rates.day_threshold_hours:
        return DurationType.DAY
    return DurationType.HOUR


def compute_price(duration_hours: float, rates: RateSchedule) -> Decimal:
    """
    Compute the price of a booking.

    Examples:
        1.0h at 10/hour        -> 10
        1.5h at 10/hour        -> 20  (ceil(1.5) = 2)
        25h at 50/day, 24h day -> 100 (ceil(25 / 24) = 2)
    """
    if duration_hours <= 0:
        raise ValidationError(f"Duration must be positive, got {duration_hours} hours")

    if duration_type_for(duration_hours, rates) is DurationType.DAY:
        units = math.ceil(duration_hours / HOURS_PER_DAY)
        return Decimal(units) * Decimal(rates.price_per_day)

    units = math.ceil(duration_hours)
    return Decimal(units) * Decimal(rates.price_per_hour)


def should_reprice(
    old_duration_hours: float,
    new_duration_hours: float,
    tolerance_hours: float = DEFAULT_REPRICE_TOLERANCE_HOURS,
) -> bool:
    """
    Decide whether a modified booking gets a new price.

    Small timing changes keep the originally quoted price.
    """
    return abs(new_duration_hours - old_duration_hours) > tolerance_hours
