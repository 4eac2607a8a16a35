"""
Domain models for time ranges, resource calendars and bookings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

import pendulum
from pendulum import DateTime

from .exceptions import ValidationError

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def on(cls, day: date, start_time: time, end_time: time, timezone: str) -> "TimeRange":
        """Build a range for two times of day on a calendar date."""
        return cls(
            start=_at(day, start_time, timezone),
            end=_at(day, end_time, timezone),
        )

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def duration_hours(self) -> float:
        """Return the duration in fractional hours."""
        return self.duration_minutes() / 60

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not."""
        return self.start < other.end and self.end > other.start

    def touches(self, other: "TimeRange") -> bool:
        """Check if the two ranges share exactly one boundary."""
        return self.end == other.start or other.end == self.start

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeRange(start=start, end=end)

    def format_clock(self) -> str:
        """Format as ``HH:mm-HH:mm``."""
        return f"{self.start.format('HH:mm')}-{self.end.format('HH:mm')}"

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class DaySchedule:
    """Opening hours of a resource for one weekday."""
    open_time: time = time(0, 0)
    close_time: time = time(0, 0)
    closed: bool = False

    def __post_init__(self):
        if not self.closed and self.open_time >= self.close_time:
            raise ValueError(
                f"Opening time {self.open_time} must be before closing time {self.close_time}"
            )


@dataclass
class OperatingHours:
    """
    Per-weekday opening hours of a resource.

    Weekdays are keyed 0=Monday .. 6=Sunday.
    """
    schedules: Dict[int, DaySchedule]
    timezone: str = "Europe/Paris"

    def schedule_for(self, day: date) -> DaySchedule:
        """Return the schedule for the weekday of ``day``."""
        weekday = day.weekday()
        try:
            return self.schedules[weekday]
        except KeyError:
            raise ValidationError(
                f"No operating hours configured for {WEEKDAY_NAMES[weekday]}"
            ) from None

    def is_open_on(self, day: date) -> bool:
        return not self.schedule_for(day).closed

    def window_for(self, day: date) -> TimeRange | None:
        """
        Get the opening window for a specific date.
        Returns None if the resource is closed that day.
        """
        schedule = self.schedule_for(day)
        if schedule.closed:
            return None

        return TimeRange.on(day, schedule.open_time, schedule.close_time, self.timezone)


@dataclass(frozen=True)
class RateSchedule:
    """Tiered rates of a resource. Read-only to the engine."""
    price_per_hour: Decimal = Decimal("0")
    price_per_day: Decimal = Decimal("0")
    day_threshold_hours: float = 24


@dataclass(frozen=True)
class Resource:
    """A bookable physical space."""
    resource_id: str
    name: str
    operating_hours: OperatingHours
    rates: RateSchedule
    capacity: int = 1
    available: bool = True


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Bookings in these states still occupy their time window.
ACTIVE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)

# Bookings in these states count towards revenue.
BILLABLE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.COMPLETED}
)


class DurationType(str, Enum):
    HOUR = "hour"
    DAY = "day"


@dataclass(frozen=True)
class Booking:
    """
    A reservation of one resource for one time window on one date.

    Invariant: end_time must be after start_time.
    """
    booking_id: str
    resource_id: str
    user_id: str
    date: date
    start_time: time
    end_time: time
    status: BookingStatus
    duration_hours: float
    duration_type: DurationType
    total_price: Decimal
    guests: int = 1
    notes: Optional[str] = None
    created_at: Optional[DateTime] = None
    updated_at: Optional[DateTime] = None

    def __post_init__(self):
        if self.end_time <= self.start_time:
            raise ValueError(
                f"End time {self.end_time} must be after start time {self.start_time}"
            )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def time_range(self, timezone: str) -> TimeRange:
        return TimeRange.on(self.date, self.start_time, self.end_time, timezone)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "booking_id": self.booking_id,
            "resource_id": self.resource_id,
            "user_id": self.user_id,
            "date": self.date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "status": self.status.value,
            "duration_hours": self.duration_hours,
            "duration_type": self.duration_type.value,
            "total_price": str(self.total_price),
            "guests": self.guests,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class Conflict:
    """An active booking that overlaps a proposed interval."""
    conflicting_booking_id: str
    interval: TimeRange
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "conflicting_booking_id": self.conflicting_booking_id,
            "start": self.interval.start.format("HH:mm"),
            "end": self.interval.end.format("HH:mm"),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Slot:
    """A discrete time slot at a fixed granularity."""
    time_range: TimeRange
    available: bool

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    @property
    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.format("HH:mm"),
            "end": self.end.format("HH:mm"),
            "duration": self.duration_minutes,
            "available": self.available,
        }


@dataclass(frozen=True)
class FreeBlock:
    """A maximal run of contiguous available slots."""
    time_range: TimeRange

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    @property
    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.format("HH:mm"),
            "end": self.end.format("HH:mm"),
            "duration": self.duration_minutes,
        }


@dataclass(frozen=True)
class OccupancyStats:
    """Slot occupancy and revenue of one resource on one date."""
    resource_id: str
    resource_name: str
    date: date
    total_slots: int
    occupied_slots: int
    revenue: Decimal = field(default_factory=lambda: Decimal("0"))

    @property
    def occupancy_rate(self) -> float:
        """Occupied share of slots, as a percentage rounded to two decimals."""
        if self.total_slots == 0:
            return 0.0
        return round(self.occupied_slots / self.total_slots * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "date": self.date.isoformat(),
            "total_slots": self.total_slots,
            "occupied_slots": self.occupied_slots,
            "occupancy_rate": self.occupancy_rate,
            "revenue": str(self.revenue),
        }


def _at(day: date, moment: time, timezone: str) -> DateTime:
    return pendulum.datetime(
        day.year,
        day.month,
        day.day,
        moment.hour,
        moment.minute,
        tz=timezone,
    )
