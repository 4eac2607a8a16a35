"""
Booking mutation coordinator.

Every mutation validates all of its preconditions, checks conflicts and
writes inside a single booking-store transaction, so two concurrent requests
for overlapping windows can never both succeed and a failed request leaves no
partial state behind.

State machine:
    pending   --(confirm)--> confirmed
    confirmed --(modify, future date, no conflict)--> confirmed
    pending/confirmed --(cancel)--> cancelled
"""

from __future__ import annotations

import logging
from datetime import date, time
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

import pendulum
from pendulum import DateTime

from ..domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidDateError,
    InvalidRangeError,
    NotFoundError,
    StateError,
    ValidationError,
)
from ..domain.models import Booking, BookingStatus, TimeRange
from ..domain.pricing import (
    DEFAULT_REPRICE_TOLERANCE_HOURS,
    compute_price,
    duration_type_for,
    should_reprice,
)
from .availability import AvailabilityService
from .protocols import BookingReaderWriterProtocol, BookingStoreProtocol, ResourceStoreProtocol

logger = logging.getLogger(__name__)


class BookingCoordinator:
    """Creates, modifies, confirms and cancels bookings."""

    def __init__(
        self,
        resource_store: ResourceStoreProtocol,
        booking_store: BookingStoreProtocol,
        availability: AvailabilityService,
        *,
        reprice_tolerance_hours: float = DEFAULT_REPRICE_TOLERANCE_HOURS,
        initial_status: BookingStatus = BookingStatus.PENDING,
        clock: Optional[Callable[[], DateTime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        if initial_status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            raise ValueError("New bookings must start pending or confirmed")

        self._resource_store = resource_store
        self._booking_store = booking_store
        self._availability = availability
        self._reprice_tolerance = reprice_tolerance_hours
        self._initial_status = initial_status
        self._clock = clock or (lambda: pendulum.now(availability.timezone))
        self._id_factory = id_factory or (lambda: str(uuid4()))

    @property
    def timezone(self) -> str:
        return self._availability.timezone

    def today(self) -> date:
        """Today's date in the operational timezone."""
        return self._clock().in_timezone(self.timezone).date()

    def create_booking(
        self,
        resource_id: str,
        requester_id: str,
        day: date,
        start_time: time,
        end_time: time,
        *,
        guests: int = 1,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Reserve a resource for ``[start_time, end_time)`` on ``day``.

        Raises:
            InvalidRangeError: end is not after start
            NotFoundError: unknown resource
            ValidationError: resource unavailable, too many guests, closed
                day or interval outside opening hours
            InvalidDateError: date in the past
            ConflictError: interval overlaps an active booking
        """
        _require_range(start_time, end_time)
        resource = self._availability.require_resource(resource_id)

        if not resource.available:
            raise ValidationError(f"Resource '{resource_id}' is temporarily unavailable")
        if guests < 1:
            raise ValidationError("At least one guest is required")
        if guests > resource.capacity:
            raise ValidationError(
                f"{guests} guest(s) exceed the capacity of '{resource_id}' ({resource.capacity})"
            )
        if day < self.today():
            raise InvalidDateError(f"Cannot book {day.isoformat()}: date is in the past")

        proposed = TimeRange.on(day, start_time, end_time, self.timezone)
        window = resource.operating_hours.window_for(day)
        if window is None:
            raise ValidationError(f"Resource '{resource_id}' is closed on {day.isoformat()}")
        if proposed.start < window.start or proposed.end > window.end:
            raise ValidationError(
                f"Booking must be within opening hours {window.format_clock()}"
            )

        duration_hours = proposed.duration_hours()
        price = compute_price(duration_hours, resource.rates)
        now = self._clock()

        with self._booking_store.transaction() as tx:
            self._ensure_free(tx, resource_id, day, proposed)
            booking = tx.insert(
                Booking(
                    booking_id=self._id_factory(),
                    resource_id=resource_id,
                    user_id=requester_id,
                    date=day,
                    start_time=start_time,
                    end_time=end_time,
                    status=self._initial_status,
                    duration_hours=duration_hours,
                    duration_type=duration_type_for(duration_hours, resource.rates),
                    total_price=price,
                    guests=guests,
                    notes=notes,
                    created_at=now,
                    updated_at=now,
                )
            )

        logger.info(
            "Booking %s created for %s on %s %s-%s (%s)",
            booking.booking_id,
            resource_id,
            day,
            f"{start_time:%H:%M}",
            f"{end_time:%H:%M}",
            booking.status.value,
        )
        return booking

    def modify_booking(
        self,
        booking_id: str,
        requester_id: str,
        new_date: date,
        new_start: time,
        new_end: time,
    ) -> Booking:
        """
        Move a confirmed booking to a new date and time window.

        Gates run in order and the first failure aborts with no write:
        NotFound, Forbidden, StateError (not confirmed), InvalidDate (not
        strictly after today), InvalidRange, Conflict. The price is
        recomputed only when the duration changes by more than the
        configured tolerance.
        """
        with self._booking_store.transaction() as tx:
            booking = self._load_owned(tx, booking_id, requester_id)

            if booking.status is not BookingStatus.CONFIRMED:
                raise StateError(
                    f"Only confirmed bookings can be modified; booking {booking_id} "
                    f"is {booking.status.value}"
                )
            if new_date <= self.today():
                raise InvalidDateError(
                    "Bookings can only be moved to a date after today"
                )
            _require_range(new_start, new_end)

            proposed = TimeRange.on(new_date, new_start, new_end, self.timezone)
            self._ensure_free(tx, booking.resource_id, new_date, proposed, exclude=booking_id)

            rates = self._resource_store.get_rate_schedule(booking.resource_id)
            if rates is None:
                raise NotFoundError(f"Resource '{booking.resource_id}' not found")

            new_hours = proposed.duration_hours()
            fields: Dict[str, Any] = {
                "date": new_date,
                "start_time": new_start,
                "end_time": new_end,
                "duration_hours": new_hours,
                "duration_type": duration_type_for(new_hours, rates),
                "updated_at": self._clock(),
            }
            if should_reprice(booking.duration_hours, new_hours, self._reprice_tolerance):
                fields["total_price"] = compute_price(new_hours, rates)

            updated = tx.update(booking_id, fields)

        logger.info(
            "Booking %s moved to %s %s-%s (price %s)",
            booking_id,
            new_date,
            f"{new_start:%H:%M}",
            f"{new_end:%H:%M}",
            updated.total_price,
        )
        return updated

    def confirm_booking(self, booking_id: str) -> Booking:
        """Mark a pending booking as confirmed once payment is settled."""
        with self._booking_store.transaction() as tx:
            booking = tx.get(booking_id)
            if booking is None:
                raise NotFoundError(f"Booking '{booking_id}' not found")
            if booking.status is not BookingStatus.PENDING:
                raise StateError(
                    f"Only pending bookings can be confirmed; booking {booking_id} "
                    f"is {booking.status.value}"
                )
            updated = tx.update(
                booking_id,
                {"status": BookingStatus.CONFIRMED, "updated_at": self._clock()},
            )

        logger.info("Booking %s confirmed", booking_id)
        return updated

    def cancel_booking(self, booking_id: str, requester_id: str) -> Booking:
        """
        Cancel a pending or confirmed booking.

        Cancellation is a status change; the record is kept. It is refused
        on or after the day of the booking.
        """
        with self._booking_store.transaction() as tx:
            booking = self._load_owned(tx, booking_id, requester_id)

            if booking.status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
                raise StateError(
                    f"Booking {booking_id} is already {booking.status.value}"
                )
            if booking.date <= self.today():
                raise InvalidDateError(
                    "Bookings cannot be cancelled on or after the day they take place"
                )

            updated = tx.update(
                booking_id,
                {"status": BookingStatus.CANCELLED, "updated_at": self._clock()},
            )

        logger.info("Booking %s cancelled", booking_id)
        return updated

    def _load_owned(
        self,
        tx: BookingReaderWriterProtocol,
        booking_id: str,
        requester_id: str,
    ) -> Booking:
        booking = tx.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking '{booking_id}' not found")
        if booking.user_id != requester_id:
            raise ForbiddenError(f"Booking '{booking_id}' belongs to another user")
        return booking

    def _ensure_free(
        self,
        tx: BookingReaderWriterProtocol,
        resource_id: str,
        day: date,
        proposed: TimeRange,
        exclude: Optional[str] = None,
    ) -> None:
        conflicts = self._availability.check_conflicts(
            resource_id,
            day,
            proposed,
            exclude_booking_id=exclude,
            store=tx,
        )
        if conflicts:
            logger.warning(
                "Rejected %s on %s %s: %d conflicting booking(s)",
                resource_id,
                day,
                proposed.format_clock(),
                len(conflicts),
            )
            raise ConflictError(
                f"{proposed.format_clock()} on {day.isoformat()} is not available",
                conflicts,
            )


def _require_range(start_time: time, end_time: time) -> None:
    if end_time <= start_time:
        raise InvalidRangeError(
            f"End time {end_time:%H:%M} must be after start time {start_time:%H:%M}"
        )
