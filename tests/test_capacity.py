"""
Unit tests for the capacity ledger
"""

import pytest
from uuid import uuid4

from gymbook.core.exceptions import ScheduleFullError, InvariantViolation
from gymbook.models.schedule import Schedule
from gymbook.services import capacity


def make_schedule(booked: int) -> Schedule:
    return Schedule(id=uuid4(), current_bookings=booked)


@pytest.mark.unit
class TestCapacityLedger:
    """Test reserve and release on a schedule counter"""

    def test_reserve_increments(self):
        schedule = make_schedule(3)
        capacity.reserve_slot(schedule, 5)
        assert schedule.current_bookings == 4

    def test_reserve_last_seat(self):
        schedule = make_schedule(4)
        capacity.reserve_slot(schedule, 5)
        assert schedule.current_bookings == 5
        assert capacity.available_spots(schedule, 5) == 0

    def test_reserve_when_full_raises(self):
        schedule = make_schedule(5)
        with pytest.raises(ScheduleFullError) as exc_info:
            capacity.reserve_slot(schedule, 5)
        assert schedule.current_bookings == 5
        assert exc_info.value.details["waiting_list_available"] is True
        assert exc_info.value.status_code == 409

    def test_release_decrements_by_one(self):
        schedule = make_schedule(2)
        capacity.release_slot(schedule)
        assert schedule.current_bookings == 1

    def test_release_below_zero_is_invariant_violation(self):
        schedule = make_schedule(0)
        with pytest.raises(InvariantViolation):
            capacity.release_slot(schedule)
        assert schedule.current_bookings == 0

    def test_counter_above_capacity_is_invariant_violation(self):
        schedule = make_schedule(6)
        with pytest.raises(InvariantViolation):
            capacity.reserve_slot(schedule, 5)

    def test_available_spots_never_negative(self):
        assert capacity.available_spots(make_schedule(7), 5) == 0
        assert capacity.available_spots(make_schedule(2), 5) == 3
