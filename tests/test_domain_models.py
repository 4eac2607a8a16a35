"""
Tests for domain models.
"""

import pendulum
import pytest
from datetime import date, time
from decimal import Decimal

from booking_engine.domain.exceptions import ValidationError
from booking_engine.domain.models import (
    BookingStatus,
    DaySchedule,
    OccupancyStats,
    OperatingHours,
    TimeRange,
)

from conftest import TZ, make_booking


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        start = pendulum.parse("2025-06-03 09:00", tz=TZ)
        end = pendulum.parse("2025-06-03 17:00", tz=TZ)

        tr = TimeRange(start=start, end=end)

        assert tr.start == start
        assert tr.end == end
        assert tr.duration_minutes() == 480  # 8 hours
        assert tr.duration_hours() == 8.0

    def test_invalid_time_range_raises_error(self):
        """Test that creating an invalid time range raises ValueError."""
        start = pendulum.parse("2025-06-03 17:00", tz=TZ)
        end = pendulum.parse("2025-06-03 09:00", tz=TZ)

        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            TimeRange(start=start, end=end)

    def test_empty_time_range_raises_error(self):
        moment = pendulum.parse("2025-06-03 09:00", tz=TZ)

        with pytest.raises(ValueError):
            TimeRange(start=moment, end=moment)

    def test_on_builds_range_in_timezone(self):
        tr = TimeRange.on(date(2025, 6, 3), time(10, 0), time(11, 30), TZ)

        assert tr.start == pendulum.parse("2025-06-03 10:00", tz=TZ)
        assert tr.end == pendulum.parse("2025-06-03 11:30", tz=TZ)
        assert tr.duration_minutes() == 90

    def test_on_uses_real_offset_across_dst_change(self):
        """The clocks go forward on 2025-03-30 in Paris: 01:00-04:00 lasts two hours."""
        tr = TimeRange.on(date(2025, 3, 30), time(1, 0), time(4, 0), TZ)

        assert tr.duration_minutes() == 120

    def test_overlaps(self):
        """Test overlap detection."""
        tr1 = TimeRange.on(date(2025, 6, 3), time(9, 0), time(12, 0), TZ)
        tr2 = TimeRange.on(date(2025, 6, 3), time(11, 0), time(14, 0), TZ)
        tr3 = TimeRange.on(date(2025, 6, 3), time(14, 0), time(17, 0), TZ)

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        assert not tr1.overlaps(tr3)

    def test_touching_ranges_do_not_overlap(self):
        """Half-open ranges sharing a boundary do not overlap."""
        morning = TimeRange.on(date(2025, 6, 3), time(9, 0), time(12, 0), TZ)
        afternoon = TimeRange.on(date(2025, 6, 3), time(12, 0), time(15, 0), TZ)

        assert not morning.overlaps(afternoon)
        assert not afternoon.overlaps(morning)
        assert morning.touches(afternoon)

    def test_intersect(self):
        """Test intersection calculation."""
        tr1 = TimeRange.on(date(2025, 6, 3), time(9, 0), time(12, 0), TZ)
        tr2 = TimeRange.on(date(2025, 6, 3), time(11, 0), time(14, 0), TZ)

        intersection = tr1.intersect(tr2)

        assert intersection is not None
        assert intersection.format_clock() == "11:00-12:00"

    def test_no_intersection(self):
        tr1 = TimeRange.on(date(2025, 6, 3), time(9, 0), time(12, 0), TZ)
        tr2 = TimeRange.on(date(2025, 6, 3), time(12, 0), time(14, 0), TZ)

        assert tr1.intersect(tr2) is None


class TestOperatingHours:
    """Tests for OperatingHours model."""

    def _hours(self):
        return OperatingHours(
            schedules={
                0: DaySchedule(time(9, 0), time(18, 0)),
                6: DaySchedule(closed=True),
            },
            timezone=TZ,
        )

    def test_window_for_open_day(self):
        window = self._hours().window_for(date(2025, 6, 2))  # Monday

        assert window is not None
        assert window.format_clock() == "09:00-18:00"

    def test_window_for_closed_day(self):
        hours = self._hours()

        assert hours.window_for(date(2025, 6, 8)) is None  # Sunday
        assert not hours.is_open_on(date(2025, 6, 8))

    def test_missing_weekday_raises_validation_error(self):
        with pytest.raises(ValidationError, match="tuesday"):
            self._hours().window_for(date(2025, 6, 3))

    def test_day_schedule_requires_open_before_close(self):
        with pytest.raises(ValueError):
            DaySchedule(time(18, 0), time(9, 0))

    def test_closed_day_schedule_ignores_times(self):
        schedule = DaySchedule(closed=True)

        assert schedule.closed


class TestBooking:
    """Tests for Booking model."""

    def test_end_must_follow_start(self):
        with pytest.raises(ValueError):
            make_booking("b1", "12:00", "10:00")

    def test_active_statuses(self):
        assert make_booking("b1", "10:00", "11:00", status=BookingStatus.PENDING).is_active
        assert make_booking("b2", "10:00", "11:00", status=BookingStatus.CONFIRMED).is_active
        assert not make_booking("b3", "10:00", "11:00", status=BookingStatus.CANCELLED).is_active
        assert not make_booking("b4", "10:00", "11:00", status=BookingStatus.COMPLETED).is_active

    def test_time_range(self):
        booking = make_booking("b1", "10:00", "12:00")

        assert booking.time_range(TZ).format_clock() == "10:00-12:00"

    def test_to_dict(self):
        payload = make_booking("b1", "10:00", "12:00", price="20").to_dict()

        assert payload["start_time"] == "10:00"
        assert payload["end_time"] == "12:00"
        assert payload["status"] == "confirmed"
        assert payload["total_price"] == "20"


class TestOccupancyStats:
    """Tests for OccupancyStats model."""

    def test_occupancy_rate(self):
        stats = OccupancyStats("room-a", "Room A", date(2025, 6, 3), total_slots=9, occupied_slots=2)

        assert stats.occupancy_rate == 22.22

    def test_occupancy_rate_without_slots(self):
        stats = OccupancyStats("room-a", "Room A", date(2025, 6, 8), total_slots=0, occupied_slots=0)

        assert stats.occupancy_rate == 0.0
        assert stats.revenue == Decimal("0")
