"""
In-memory stores for tests and for running the CLI without a database.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import fields as dataclass_fields
from dataclasses import replace
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from ..config import AppConfig
from ..domain.exceptions import InternalError, NotFoundError
from ..domain.models import (
    ACTIVE_STATUSES,
    Booking,
    BookingStatus,
    DaySchedule,
    RateSchedule,
    Resource,
)

logger = logging.getLogger(__name__)

_BOOKING_FIELDS = frozenset(f.name for f in dataclass_fields(Booking)) - {"booking_id"}


class ConfigResourceStore:
    """
    Resource store backed by a fixed list of resources.

    Resources come from the YAML configuration; the engine never writes them.
    """

    def __init__(self, resources: Iterable[Resource]):
        self._resources: Dict[str, Resource] = {r.resource_id: r for r in resources}

    @classmethod
    def from_config(cls, config: AppConfig) -> "ConfigResourceStore":
        return cls(config.build_resources())

    def get_resource(self, resource_id: str) -> Optional[Resource]:
        return self._resources.get(resource_id)

    def get_operating_hours(self, resource_id: str, weekday: int) -> Optional[DaySchedule]:
        resource = self._resources.get(resource_id)
        if resource is None:
            return None
        return resource.operating_hours.schedules.get(weekday)

    def get_rate_schedule(self, resource_id: str) -> Optional[RateSchedule]:
        resource = self._resources.get(resource_id)
        return resource.rates if resource else None

    def list_resources(self) -> List[Resource]:
        return list(self._resources.values())


class _BookingTable:
    """Booking reads and writes over a plain dict."""

    def __init__(self, rows: Dict[str, Booking]):
        self.rows = rows

    def get(self, booking_id: str) -> Optional[Booking]:
        return self.rows.get(booking_id)

    def find_bookings(
        self,
        resource_id: str,
        day: date,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> List[Booking]:
        wanted = frozenset(statuses) if statuses is not None else None
        found = [
            booking for booking in self.rows.values()
            if booking.resource_id == resource_id
            and booking.date == day
            and (wanted is None or booking.status in wanted)
        ]
        return sorted(found, key=lambda b: (b.start_time, b.booking_id))

    def find_active_bookings(self, resource_id: str, day: date) -> List[Booking]:
        return self.find_bookings(resource_id, day, ACTIVE_STATUSES)

    def insert(self, booking: Booking) -> Booking:
        if booking.booking_id in self.rows:
            raise InternalError(f"Booking '{booking.booking_id}' already exists")
        self.rows[booking.booking_id] = booking
        return booking

    def update(self, booking_id: str, fields: Mapping[str, Any]) -> Booking:
        current = self.rows.get(booking_id)
        if current is None:
            raise NotFoundError(f"Booking '{booking_id}' not found")

        unknown = set(fields) - _BOOKING_FIELDS
        if unknown:
            raise ValueError(f"Unknown booking field(s): {', '.join(sorted(unknown))}")

        updated = replace(current, **dict(fields))
        self.rows[booking_id] = updated
        return updated


class InMemoryBookingStore:
    """
    Thread-safe booking store held in process memory.

    A transaction holds the store lock for its whole duration and works on a
    staged copy of the rows, which replaces the live rows only when the block
    exits without raising.
    """

    def __init__(self, bookings: Iterable[Booking] = ()):
        self._lock = threading.RLock()
        self._rows: Dict[str, Booking] = {b.booking_id: b for b in bookings}
        self.commit_count = 0

    @contextmanager
    def transaction(self) -> Iterator[_BookingTable]:
        with self._lock:
            staged = _BookingTable(dict(self._rows))
            yield staged
            self._rows = staged.rows
            self.commit_count += 1

    def get(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            return self._rows.get(booking_id)

    def find_bookings(
        self,
        resource_id: str,
        day: date,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> List[Booking]:
        with self._lock:
            return _BookingTable(self._rows).find_bookings(resource_id, day, statuses)

    def find_active_bookings(self, resource_id: str, day: date) -> List[Booking]:
        return self.find_bookings(resource_id, day, ACTIVE_STATUSES)

    def insert(self, booking: Booking) -> Booking:
        with self.transaction() as tx:
            return tx.insert(booking)

    def update(self, booking_id: str, fields: Mapping[str, Any]) -> Booking:
        with self.transaction() as tx:
            return tx.update(booking_id, fields)

    def all(self) -> List[Booking]:
        with self._lock:
            return list(self._rows.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
