"""
Protocols describing the storage collaborators needed by the services.

Stores are owned outside the engine; these protocols are the whole contract.
"""

from __future__ import annotations

from datetime import date
from typing import Any, ContextManager, Iterable, List, Mapping, Optional, Protocol

from ..domain.models import Booking, BookingStatus, DaySchedule, RateSchedule, Resource


class ResourceStoreProtocol(Protocol):
    """Read-only access to bookable resources."""

    def get_resource(self, resource_id: str) -> Optional[Resource]:
        """Return the resource or None if it does not exist."""

    def get_operating_hours(self, resource_id: str, weekday: int) -> Optional[DaySchedule]:
        """Return opening hours for a weekday (0=Monday)."""

    def get_rate_schedule(self, resource_id: str) -> Optional[RateSchedule]:
        """Return the rate schedule of a resource."""

    def list_resources(self) -> List[Resource]:
        """Return every known resource."""


class BookingReaderWriterProtocol(Protocol):
    """Booking reads and writes, usable standalone or inside a transaction."""

    def get(self, booking_id: str) -> Optional[Booking]:
        """Return a booking by id or None."""

    def find_bookings(
        self,
        resource_id: str,
        day: date,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> List[Booking]:
        """Return bookings of a resource on a date, optionally filtered by status."""

    def find_active_bookings(self, resource_id: str, day: date) -> List[Booking]:
        """Return pending and confirmed bookings of a resource on a date."""

    def insert(self, booking: Booking) -> Booking:
        """Persist a new booking."""

    def update(self, booking_id: str, fields: Mapping[str, Any]) -> Booking:
        """Apply field changes to an existing booking and return it."""


class BookingStoreProtocol(BookingReaderWriterProtocol, Protocol):
    """
    Booking persistence with a serializable transaction boundary.

    Everything done through the object yielded by ``transaction()`` commits
    together when the block exits normally and is discarded when it raises.
    Two transactions touching the same resource never interleave their
    check-then-write sequences.
    """

    def transaction(self) -> ContextManager[BookingReaderWriterProtocol]:
        """Open a serializable unit of work."""
