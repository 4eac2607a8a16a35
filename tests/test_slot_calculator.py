"""
Tests for slot calculator.
"""

import pendulum
import pytest
from datetime import date, time

from booking_engine.domain.conflict_detector import ConflictDetector
from booking_engine.domain.exceptions import ValidationError
from booking_engine.domain.models import (
    BookingStatus,
    DaySchedule,
    FreeBlock,
    OperatingHours,
    Slot,
    TimeRange,
)
from booking_engine.domain.slot_calculator import SlotCalculator

from conftest import TZ, make_booking

DAY = date(2025, 6, 3)  # Tuesday


def _hours(open_time=time(9, 0), close_time=time(18, 0)) -> OperatingHours:
    schedules = {weekday: DaySchedule(open_time, close_time) for weekday in range(6)}
    schedules[6] = DaySchedule(closed=True)
    return OperatingHours(schedules=schedules, timezone=TZ)


def _calculator() -> SlotCalculator:
    return SlotCalculator(conflict_detector=ConflictDetector(TZ))


def _slot(start: str, end: str, available: bool) -> Slot:
    return Slot(
        time_range=TimeRange(
            start=pendulum.parse(f"2025-06-03 {start}", tz=TZ),
            end=pendulum.parse(f"2025-06-03 {end}", tz=TZ),
        ),
        available=available,
    )


def _clock(blocks):
    return [block.time_range.format_clock() for block in blocks]


class TestSlotGeneration:
    """Tests for SlotCalculator.generate_slots."""

    def test_hourly_slots_for_open_day(self):
        """09:00-18:00 at 60 minutes gives nine free slots."""
        slots = _calculator().generate_slots(_hours(), DAY, 60, [])

        assert len(slots) == 9
        assert slots[0].start.format("HH:mm") == "09:00"
        assert slots[-1].end.format("HH:mm") == "18:00"
        assert all(slot.available for slot in slots)

    def test_booked_hours_are_unavailable(self):
        """One confirmed booking 10:00-12:00 blocks the 10:00 and 11:00 slots."""
        bookings = [make_booking("b1", "10:00", "12:00", day=DAY)]

        slots = _calculator().generate_slots(_hours(), DAY, 60, bookings)

        unavailable = [slot.start.format("HH:mm") for slot in slots if not slot.available]
        assert unavailable == ["10:00", "11:00"]

    def test_trailing_partial_slot_is_dropped(self):
        """A 9-hour day at 120 minutes gives four slots; 17:00-18:00 is dropped."""
        slots = _calculator().generate_slots(_hours(), DAY, 120, [])

        assert [slot.start.format("HH:mm") for slot in slots] == ["09:00", "11:00", "13:00", "15:00"]
        assert slots[-1].end.format("HH:mm") == "17:00"

    def test_quarter_hour_granularity(self):
        slots = _calculator().generate_slots(_hours(time(9, 0), time(10, 0)), DAY, 15, [])

        assert [slot.duration_minutes for slot in slots] == [15, 15, 15, 15]

    def test_closed_day_has_no_slots(self):
        slots = _calculator().generate_slots(_hours(), date(2025, 6, 8), 60, [])

        assert slots == []

    def test_touching_booking_leaves_neighbour_free(self):
        bookings = [make_booking("b1", "12:00", "13:00", day=DAY)]

        slots = _calculator().generate_slots(_hours(), DAY, 60, bookings)
        by_start = {slot.start.format("HH:mm"): slot.available for slot in slots}

        assert by_start["11:00"] is True
        assert by_start["12:00"] is False
        assert by_start["13:00"] is True

    def test_partial_overlap_blocks_slot(self):
        bookings = [make_booking("b1", "10:30", "10:45", day=DAY)]

        slots = _calculator().generate_slots(_hours(), DAY, 60, bookings)

        assert [s.start.format("HH:mm") for s in slots if not s.available] == ["10:00"]

    def test_cancelled_bookings_are_ignored(self):
        bookings = [make_booking("b1", "10:00", "12:00", day=DAY, status=BookingStatus.CANCELLED)]

        slots = _calculator().generate_slots(_hours(), DAY, 60, bookings)

        assert all(slot.available for slot in slots)

    @pytest.mark.parametrize("granularity", [0, 10, 45, 90, 240])
    def test_unsupported_granularity(self, granularity):
        with pytest.raises(ValidationError):
            _calculator().generate_slots(_hours(), DAY, granularity, [])


class TestFreeBlocks:
    """Tests for merging and filtering free blocks."""

    def test_scenario_free_blocks(self):
        """Open 09:00-18:00 with a 10:00-12:00 booking leaves 09-10 and 12-18."""
        calculator = _calculator()
        bookings = [make_booking("b1", "10:00", "12:00", day=DAY)]

        slots = calculator.generate_slots(_hours(), DAY, 60, bookings)
        blocks = calculator.merge_free_blocks(slots)

        assert _clock(blocks) == ["09:00-10:00", "12:00-18:00"]

    def test_merge_example(self):
        slots = [
            _slot("09:00", "10:00", True),
            _slot("10:00", "11:00", False),
            _slot("11:00", "12:00", False),
            _slot("12:00", "13:00", True),
            _slot("13:00", "14:00", True),
        ]

        blocks = _calculator().merge_free_blocks(slots)

        assert _clock(blocks) == ["09:00-10:00", "12:00-14:00"]

    def test_non_contiguous_free_slots_stay_apart(self):
        slots = [_slot("09:00", "10:00", True), _slot("11:00", "12:00", True)]

        blocks = _calculator().merge_free_blocks(slots)

        assert _clock(blocks) == ["09:00-10:00", "11:00-12:00"]

    def test_merged_blocks_are_ascending_disjoint_and_maximal(self):
        calculator = _calculator()
        bookings = [
            make_booking("b1", "09:30", "10:00", day=DAY),
            make_booking("b2", "11:00", "11:15", day=DAY),
            make_booking("b3", "14:00", "16:30", day=DAY),
        ]

        slots = calculator.generate_slots(_hours(), DAY, 15, bookings)
        blocks = calculator.merge_free_blocks(slots)

        for current, following in zip(blocks, blocks[1:]):
            assert current.end < following.start
            assert not current.time_range.overlaps(following.time_range)
        assert _clock(blocks) == ["09:00-09:30", "10:00-11:00", "11:15-14:00", "16:30-18:00"]

    def test_all_booked_gives_no_blocks(self):
        slots = [_slot("09:00", "10:00", False), _slot("10:00", "11:00", False)]

        assert _calculator().merge_free_blocks(slots) == []

    def test_consecutive_blocks_returned_whole(self):
        blocks = [
            FreeBlock(_slot("09:00", "10:00", True).time_range),
            FreeBlock(_slot("12:00", "18:00", True).time_range),
        ]

        result = _calculator().find_consecutive_free_blocks(blocks, 90)

        assert _clock(result) == ["12:00-18:00"]

    def test_consecutive_blocks_include_exact_length(self):
        blocks = [FreeBlock(_slot("09:00", "10:00", True).time_range)]

        assert len(_calculator().find_consecutive_free_blocks(blocks, 60)) == 1

    @pytest.mark.parametrize("minimum", [0, -30, 721])
    def test_minimum_duration_out_of_range(self, minimum):
        with pytest.raises(ValidationError):
            _calculator().find_consecutive_free_blocks([], minimum)
