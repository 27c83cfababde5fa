"""
Capacity ledger for a schedule

The schedule row's current_bookings counter is the single source of truth for
occupied seats. Callers must hold the schedule lock and have the row loaded
FOR UPDATE in the current transaction.
"""

import logging

from gymbook.core.exceptions import ScheduleFullError, InvariantViolation
from gymbook.models.schedule import Schedule

logger = logging.getLogger(__name__)


def available_spots(schedule: Schedule, capacity: int) -> int:
    return max(capacity - schedule.current_bookings, 0)


def has_free_slot(schedule: Schedule, capacity: int) -> bool:
    return schedule.current_bookings < capacity


def check_ledger(schedule: Schedule, capacity: int):
    if schedule.current_bookings < 0 or schedule.current_bookings > capacity:
        raise InvariantViolation(
            f"Schedule {schedule.id} ledger out of range: "
            f"{schedule.current_bookings}/{capacity}"
        )


def reserve_slot(schedule: Schedule, capacity: int):
    """
    Take one seat or raise ScheduleFullError
    """
    check_ledger(schedule, capacity)
    if not has_free_slot(schedule, capacity):
        raise ScheduleFullError(capacity)
    schedule.current_bookings += 1
    logger.debug(
        f"Reserved slot on schedule {schedule.id}: {schedule.current_bookings}/{capacity}",
        extra={"schedule_id": schedule.id}
    )


def release_slot(schedule: Schedule):
    """
    Give back exactly one seat
    """
    if schedule.current_bookings <= 0:
        raise InvariantViolation(f"Schedule {schedule.id} released below zero")
    schedule.current_bookings -= 1
    logger.debug(
        f"Released slot on schedule {schedule.id}: {schedule.current_bookings} booked",
        extra={"schedule_id": schedule.id}
    )
