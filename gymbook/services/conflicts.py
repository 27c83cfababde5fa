"""
Detection of overlapping confirmed bookings for one user
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.exceptions import BookingConflictError
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.gym_class import GymClass
from gymbook.models.schedule import Schedule


@dataclass
class BookingConflictInfo:
    booking_id: UUID
    schedule_id: UUID
    class_name: str
    start_time: datetime
    end_time: datetime


async def find_conflicts(
    session: AsyncSession,
    user_id: UUID,
    candidate: Schedule
) -> List[BookingConflictInfo]:
    """
    Confirmed bookings of the user on other schedules overlapping the candidate

    Intervals are half-open, so back-to-back classes do not conflict.
    """
    query = (
        select(Booking.id, Schedule.id, GymClass.name, Schedule.start_time, Schedule.end_time)
        .join(Schedule, Booking.schedule_id == Schedule.id)
        .join(GymClass, Schedule.class_id == GymClass.id)
        .where(
            Booking.user_id == user_id,
            Booking.status == BookingStatus.CONFIRMED,
            Booking.schedule_id != candidate.id,
            Schedule.start_time < candidate.end_time,
            Schedule.end_time > candidate.start_time,
        )
        .order_by(Schedule.start_time)
    )
    result = await session.execute(query)
    return [
        BookingConflictInfo(
            booking_id=booking_id,
            schedule_id=schedule_id,
            class_name=class_name,
            start_time=start_time,
            end_time=end_time,
        )
        for booking_id, schedule_id, class_name, start_time, end_time in result.all()
    ]


async def ensure_no_conflict(session: AsyncSession, user_id: UUID, candidate: Schedule):
    """
    Raise BookingConflictError naming the earliest overlapping booking
    """
    conflicts = await find_conflicts(session, user_id, candidate)
    if conflicts:
        first = conflicts[0]
        raise BookingConflictError(
            booking_id=first.booking_id,
            class_name=first.class_name,
            start_time=first.start_time,
            end_time=first.end_time,
        )
