"""
Overlap detection between a proposed interval and existing bookings.

This is the only place where the overlap predicate is evaluated; slot
generation, availability checks and booking mutations all call into it.
"""

from typing import Iterable, List, Optional

from .models import Booking, Conflict, TimeRange


class ConflictDetector:
    """
    Detects active bookings that overlap a proposed interval.

    Intervals are half-open, so a booking ending exactly when the proposed
    interval starts (or the reverse) is not a conflict.
    """

    def __init__(self, timezone: str):
        self.timezone = timezone

    def detect(
        self,
        proposed: TimeRange,
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[str] = None,
    ) -> List[Conflict]:
        """
        Return one Conflict per active booking overlapping ``proposed``.

        Args:
            proposed: Interval being tested
            bookings: Candidate bookings; inactive ones are ignored
            exclude_booking_id: Booking to leave out (the one being modified)

        Returns:
            Conflicts ordered by booking start. Empty means the interval is free.
        """
        conflicts: List[Conflict] = []

        candidates = sorted(
            (
                booking for booking in bookings
                if booking.is_active and booking.booking_id != exclude_booking_id
            ),
            key=lambda b: (b.date, b.start_time),
        )

        for booking in candidates:
            existing = booking.time_range(self.timezone)
            overlap = existing.intersect(proposed)
            if overlap is None:
                continue

            conflicts.append(
                Conflict(
                    conflicting_booking_id=booking.booking_id,
                    interval=existing,
                    reason=f"overlaps {overlap.format_clock()}",
                )
            )

        return conflicts

    def is_free(
        self,
        proposed: TimeRange,
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """Return True if no active booking overlaps ``proposed``."""
        return not self.detect(proposed, bookings, exclude_booking_id)
