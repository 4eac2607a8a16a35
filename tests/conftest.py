"""
Shared fixtures: a Monday 09:00 clock in Paris and a resource open 09:00-18:00
Monday to Saturday.
"""

from datetime import date, time
from decimal import Decimal
from itertools import count

import pendulum
import pytest

from booking_engine.adapters.memory_store import ConfigResourceStore, InMemoryBookingStore
from booking_engine.domain.conflict_detector import ConflictDetector
from booking_engine.domain.models import (
    Booking,
    BookingStatus,
    DaySchedule,
    DurationType,
    OperatingHours,
    RateSchedule,
    Resource,
)
from booking_engine.domain.slot_calculator import SlotCalculator
from booking_engine.services.availability import AvailabilityService
from booking_engine.services.booking_coordinator import BookingCoordinator

TZ = "Europe/Paris"
TODAY = date(2025, 6, 2)  # Monday
TOMORROW = date(2025, 6, 3)
NEXT_WEEK = date(2025, 6, 9)
SUNDAY = date(2025, 6, 8)


def make_resource(resource_id="room-a", **overrides) -> Resource:
    schedules = {weekday: DaySchedule(time(9, 0), time(18, 0)) for weekday in range(6)}
    schedules[6] = DaySchedule(closed=True)
    values = dict(
        resource_id=resource_id,
        name="Meeting Room A",
        operating_hours=OperatingHours(schedules=schedules, timezone=TZ),
        rates=RateSchedule(
            price_per_hour=Decimal("10"),
            price_per_day=Decimal("50"),
            day_threshold_hours=24,
        ),
        capacity=4,
    )
    values.update(overrides)
    return Resource(**values)


def make_booking(
    booking_id,
    start,
    end,
    *,
    day=TOMORROW,
    resource_id="room-a",
    user_id="alice",
    status=BookingStatus.CONFIRMED,
    price="20",
) -> Booking:
    start_time = time(*map(int, start.split(":")))
    end_time = time(*map(int, end.split(":")))
    hours = (end_time.hour * 60 + end_time.minute - start_time.hour * 60 - start_time.minute) / 60
    return Booking(
        booking_id=booking_id,
        resource_id=resource_id,
        user_id=user_id,
        date=day,
        start_time=start_time,
        end_time=end_time,
        status=status,
        duration_hours=hours,
        duration_type=DurationType.HOUR,
        total_price=Decimal(price),
    )


@pytest.fixture
def resource_store():
    return ConfigResourceStore([
        make_resource(),
        make_resource("room-closed", name="Closed Room", available=False),
    ])


@pytest.fixture
def booking_store():
    return InMemoryBookingStore()


@pytest.fixture
def calculator():
    return SlotCalculator(ConflictDetector(TZ))


@pytest.fixture
def availability(resource_store, booking_store, calculator):
    return AvailabilityService(resource_store, booking_store, calculator)


@pytest.fixture
def clock():
    return lambda: pendulum.datetime(2025, 6, 2, 9, 0, tz=TZ)


@pytest.fixture
def coordinator(resource_store, booking_store, availability, clock):
    ids = count(1)
    return BookingCoordinator(
        resource_store,
        booking_store,
        availability,
        clock=clock,
        id_factory=lambda: f"bk-{next(ids)}",
    )
