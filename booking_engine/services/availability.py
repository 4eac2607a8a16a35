"""
Application service answering availability questions for a resource.

The service fetches bookings through the booking store protocol and delegates
the actual computation to the domain-level ``SlotCalculator`` and
``ConflictDetector``. Reads are advisory snapshots; the booking coordinator
re-checks conflicts inside its write transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..domain.exceptions import InvalidRangeError, NotFoundError, ValidationError
from ..domain.models import (
    BILLABLE_STATUSES,
    Conflict,
    FreeBlock,
    OccupancyStats,
    Resource,
    Slot,
    TimeRange,
)
from ..domain.slot_calculator import SlotCalculator, validate_min_duration
from .protocols import BookingReaderWriterProtocol, BookingStoreProtocol, ResourceStoreProtocol

logger = logging.getLogger(__name__)

# Occupancy statistics are always computed on an hourly grid.
OCCUPANCY_GRANULARITY_MINUTES = 60


@dataclass
class AvailabilityReport:
    """Result of an availability query for one resource and date."""
    resource_id: str
    date: date
    available: bool
    granularity_minutes: int
    slots: List[Slot] = field(default_factory=list)
    free_blocks: List[FreeBlock] = field(default_factory=list)
    consecutive_slots: Optional[List[FreeBlock]] = None
    requested: Optional[TimeRange] = None
    conflicts: List[Conflict] = field(default_factory=list)
    min_duration_minutes: Optional[int] = None
    reason: Optional[str] = None

    @property
    def statistics(self) -> Dict[str, Any]:
        total = len(self.slots)
        free = sum(1 for slot in self.slots if slot.available)
        occupancy = round((total - free) / total * 100, 2) if total else 0.0
        return {
            "total_slots": total,
            "available_slots": free,
            "occupied_slots": total - free,
            "occupancy_rate": occupancy,
        }

    @property
    def best_block(self) -> Optional[FreeBlock]:
        """The longest free block; the earliest one wins a tie."""
        best: Optional[FreeBlock] = None
        for block in self.free_blocks:
            if best is None or block.duration_minutes > best.duration_minutes:
                best = block
        return best

    @property
    def suggested_duration(self) -> int:
        if self.min_duration_minutes:
            return self.min_duration_minutes
        if self.free_blocks:
            return self.free_blocks[0].duration_minutes
        return self.granularity_minutes

    def to_dict(self) -> Dict[str, Any]:
        best = self.best_block
        payload: Dict[str, Any] = {
            "resource_id": self.resource_id,
            "date": self.date.isoformat(),
            "available": self.available,
            "reason": self.reason,
            "slots": [slot.to_dict() for slot in self.slots],
            "free_blocks": [block.to_dict() for block in self.free_blocks],
            "statistics": self.statistics,
            "recommendations": {
                "best_block": best.to_dict() if best else None,
                "suggested_duration": self.suggested_duration,
            },
        }
        if self.consecutive_slots is not None:
            payload["consecutive_slots"] = [block.to_dict() for block in self.consecutive_slots]
        if self.requested is not None:
            payload["requested"] = {
                "start": self.requested.start.format("HH:mm"),
                "end": self.requested.end.format("HH:mm"),
                "available": not self.conflicts,
            }
            payload["conflicts"] = [conflict.to_dict() for conflict in self.conflicts]
        return payload


class AvailabilityService:
    """
    Orchestrates booking retrieval, slot generation and conflict checks.

    Dependency inversion toward the store protocols makes it easy to plug in
    the SQL store or the in-memory implementation in tests.
    """

    def __init__(
        self,
        resource_store: ResourceStoreProtocol,
        booking_store: BookingStoreProtocol,
        slot_calculator: SlotCalculator,
        *,
        default_granularity_minutes: int = 60,
        consecutive_granularity_minutes: int = 30,
    ) -> None:
        self._resource_store = resource_store
        self._booking_store = booking_store
        self._slot_calculator = slot_calculator
        self._default_granularity = default_granularity_minutes
        self._consecutive_granularity = consecutive_granularity_minutes

    @property
    def timezone(self) -> str:
        return self._slot_calculator.conflict_detector.timezone

    def require_resource(self, resource_id: str) -> Resource:
        """Return the resource or raise NotFoundError."""
        resource = self._resource_store.get_resource(resource_id)
        if resource is None:
            raise NotFoundError(f"Resource '{resource_id}' not found")
        return resource

    def check_conflicts(
        self,
        resource_id: str,
        day: date,
        proposed: TimeRange,
        exclude_booking_id: Optional[str] = None,
        *,
        store: Optional[BookingReaderWriterProtocol] = None,
    ) -> List[Conflict]:
        """
        Return the active bookings of a resource overlapping ``proposed``.

        Pass ``store`` to read through an open transaction.
        """
        source = store if store is not None else self._booking_store
        bookings = source.find_active_bookings(resource_id, day)
        return self._slot_calculator.conflict_detector.detect(
            proposed,
            bookings,
            exclude_booking_id=exclude_booking_id,
        )

    def get_slots(
        self,
        resource_id: str,
        day: date,
        granularity_minutes: Optional[int] = None,
    ) -> List[Slot]:
        """Generate the slots of a day, flagged against active bookings."""
        resource = self.require_resource(resource_id)
        granularity = _or_default(granularity_minutes, self._default_granularity)
        return self._slots_for(resource, day, granularity)

    def get_availability(
        self,
        resource_id: str,
        day: date,
        granularity_minutes: Optional[int] = None,
        *,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        min_duration_minutes: Optional[int] = None,
    ) -> AvailabilityReport:
        """
        Answer an availability query.

        With ``start_time`` and ``end_time`` the report answers whether that
        interval is free. Otherwise ``available`` is true when any slot is
        free, and ``min_duration_minutes`` adds the qualifying free blocks
        computed on the consecutive-slot grid.
        """
        granularity = _or_default(granularity_minutes, self._default_granularity)
        if (start_time is None) != (end_time is None):
            raise ValidationError("start_time and end_time must be given together")
        if min_duration_minutes is not None:
            validate_min_duration(min_duration_minutes)

        resource = self.require_resource(resource_id)

        if not resource.available:
            return AvailabilityReport(
                resource_id=resource_id,
                date=day,
                available=False,
                granularity_minutes=granularity,
                reason="Resource is temporarily unavailable",
            )

        slots = self._slots_for(resource, day, granularity)
        free_blocks = self._slot_calculator.merge_free_blocks(slots)

        report = AvailabilityReport(
            resource_id=resource_id,
            date=day,
            available=any(slot.available for slot in slots),
            granularity_minutes=granularity,
            slots=slots,
            free_blocks=free_blocks,
            min_duration_minutes=min_duration_minutes,
        )

        if not slots:
            report.reason = "Resource is closed on this day"

        if min_duration_minutes is not None:
            report.consecutive_slots = self.find_consecutive_free_slots(
                resource_id, day, min_duration_minutes
            )

        if start_time is not None and end_time is not None:
            requested = self._requested_range(day, start_time, end_time)
            report.requested = requested
            report.conflicts = self.check_conflicts(resource_id, day, requested)
            report.available = not report.conflicts
            report.reason = (
                "Requested interval is free" if report.available
                else "Requested interval is already booked"
            )

        logger.debug(
            "Availability for %s on %s: %d slot(s), %d free block(s)",
            resource_id,
            day,
            len(report.slots),
            len(report.free_blocks),
        )
        return report

    def find_consecutive_free_slots(
        self,
        resource_id: str,
        day: date,
        min_duration_minutes: int,
        granularity_minutes: Optional[int] = None,
    ) -> List[FreeBlock]:
        """Return whole free blocks lasting at least ``min_duration_minutes``."""
        validate_min_duration(min_duration_minutes)
        slots = self.get_slots(
            resource_id,
            day,
            _or_default(granularity_minutes, self._consecutive_granularity),
        )
        blocks = self._slot_calculator.merge_free_blocks(slots)
        return self._slot_calculator.find_consecutive_free_blocks(blocks, min_duration_minutes)

    def occupancy_stats(self, resource_id: str, day: date) -> OccupancyStats:
        """Hourly slot occupancy and revenue of a resource on one date."""
        resource = self.require_resource(resource_id)
        slots = self._slots_for(resource, day, OCCUPANCY_GRANULARITY_MINUTES)
        billable = self._booking_store.find_bookings(resource_id, day, BILLABLE_STATUSES)

        return OccupancyStats(
            resource_id=resource.resource_id,
            resource_name=resource.name,
            date=day,
            total_slots=len(slots),
            occupied_slots=sum(1 for slot in slots if not slot.available),
            revenue=sum((Decimal(booking.total_price) for booking in billable), Decimal("0")),
        )

    def occupancy_report(
        self,
        start_date: date,
        end_date: date,
        resource_ids: Optional[Sequence[str]] = None,
    ) -> List[OccupancyStats]:
        """
        Occupancy for every day of ``[start_date, end_date]``.

        Without explicit ids every available resource is included.
        """
        if end_date < start_date:
            raise InvalidRangeError("end_date must not be before start_date")

        if resource_ids:
            resources: Iterable[Resource] = [self.require_resource(rid) for rid in resource_ids]
        else:
            resources = [r for r in self._resource_store.list_resources() if r.available]

        report: List[OccupancyStats] = []
        for resource in resources:
            current = start_date
            while current <= end_date:
                report.append(self.occupancy_stats(resource.resource_id, current))
                current += timedelta(days=1)

        return report

    def _slots_for(self, resource: Resource, day: date, granularity_minutes: int) -> List[Slot]:
        bookings = self._booking_store.find_active_bookings(resource.resource_id, day)
        return self._slot_calculator.generate_slots(
            resource.operating_hours,
            day,
            granularity_minutes,
            bookings,
        )

    def _requested_range(self, day: date, start_time: time, end_time: time) -> TimeRange:
        if end_time <= start_time:
            raise InvalidRangeError(
                f"End time {end_time:%H:%M} must be after start time {start_time:%H:%M}"
            )
        return TimeRange.on(day, start_time, end_time, self.timezone)


def _or_default(value: Optional[int], default: int) -> int:
    return default if value is None else value
