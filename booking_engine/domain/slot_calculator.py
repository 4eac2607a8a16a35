"""
Core business logic for slot generation and free-block merging.

This is the heart of the availability computation - pure domain logic
without any external dependencies (no database, no I/O).
"""

from datetime import date
from typing import Iterable, List, Sequence

from .conflict_detector import ConflictDetector
from .exceptions import ValidationError
from .models import Booking, FreeBlock, OperatingHours, Slot, TimeRange

ALLOWED_GRANULARITIES = (15, 30, 60, 120)

MAX_MIN_DURATION_MINUTES = 720


class SlotCalculator:
    """
    Calculates bookable slots and free blocks for a resource on a date.

    Algorithm:
    1. Get the opening window for the date (closed day -> nothing)
    2. Cut the window into back-to-back slots of the chosen granularity
    3. Mark each slot unavailable if any active booking overlaps it
    4. Merge contiguous available slots into maximal free blocks
    5. Keep the blocks meeting a minimum duration (complete blocks, not sliced)
    """

    def __init__(self, conflict_detector: ConflictDetector):
        self.conflict_detector = conflict_detector

    def generate_slots(
        self,
        operating_hours: OperatingHours,
        day: date,
        granularity_minutes: int,
        active_bookings: Iterable[Booking],
    ) -> List[Slot]:
        """
        Produce the ordered slots of a day, flagged against existing bookings.

        Args:
            operating_hours: Per-weekday opening hours of the resource
            day: Calendar date
            granularity_minutes: Slot length, one of 15/30/60/120
            active_bookings: Bookings of the resource on that date

        Returns:
            Slots from opening to closing. A trailing remainder shorter than
            the granularity is dropped. Empty if the resource is closed.
        """
        validate_granularity(granularity_minutes)

        window = operating_hours.window_for(day)
        if window is None:
            return []

        bookings = list(active_bookings)
        slots: List[Slot] = []

        for slot_range in self._cut_window(window, granularity_minutes):
            slots.append(
                Slot(
                    time_range=slot_range,
                    available=self.conflict_detector.is_free(slot_range, bookings),
                )
            )

        return slots

    def merge_free_blocks(self, slots: Sequence[Slot]) -> List[FreeBlock]:
        """
        Merge contiguous available slots into maximal free blocks.

        Example:
        Slots: 09-10 free, 10-11 busy, 11-12 busy, 12-13 free, 13-14 free
        Result: [09:00-10:00, 12:00-14:00]
        """
        blocks: List[FreeBlock] = []
        current: TimeRange | None = None

        for slot in slots:
            if not slot.available:
                # Gap: close the running block
                if current is not None:
                    blocks.append(FreeBlock(time_range=current))
                    current = None
                continue

            if current is not None and slot.start == current.end:
                current = TimeRange(start=current.start, end=slot.end)
                continue

            if current is not None:
                blocks.append(FreeBlock(time_range=current))
            current = slot.time_range

        if current is not None:
            blocks.append(FreeBlock(time_range=current))

        return blocks

    def find_consecutive_free_blocks(
        self,
        blocks: Sequence[FreeBlock],
        min_duration_minutes: int,
    ) -> List[FreeBlock]:
        """
        Return the free blocks lasting at least ``min_duration_minutes``.

        Blocks are returned whole. Callers wanting an exact-length window
        slice it from the block's start.
        """
        validate_min_duration(min_duration_minutes)

        return [
            block for block in blocks
            if block.duration_minutes >= min_duration_minutes
        ]

    def _cut_window(self, window: TimeRange, granularity_minutes: int) -> List[TimeRange]:
        """Cut a window into full-length slots, dropping any partial remainder."""
        ranges: List[TimeRange] = []
        current_start = window.start

        while True:
            current_end = current_start.add(minutes=granularity_minutes)
            if current_end > window.end:
                break
            ranges.append(TimeRange(start=current_start, end=current_end))
            current_start = current_end

        return ranges


def validate_granularity(granularity_minutes: int) -> None:
    if granularity_minutes not in ALLOWED_GRANULARITIES:
        raise ValidationError(
            f"Slot granularity must be one of {ALLOWED_GRANULARITIES} minutes, "
            f"got {granularity_minutes}"
        )


def validate_min_duration(min_duration_minutes: int) -> None:
    if not 0 < min_duration_minutes <= MAX_MIN_DURATION_MINUTES:
        raise ValidationError(
            f"Minimum duration must be between 1 and {MAX_MIN_DURATION_MINUTES} minutes, "
            f"got {min_duration_minutes}"
        )
