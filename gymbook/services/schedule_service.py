"""
Schedule administration: cancellation cascade, deletion, availability and roster
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func

from gymbook.core.exceptions import (
    NotFoundError,
    ForbiddenError,
    AlreadyCancelledError,
    ScheduleHasBookingsError,
)
from gymbook.core.metrics import track_operation
from gymbook.core.notifier import Notification, NotificationEvent
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.gym_class import GymClass
from gymbook.models.schedule import Schedule, ScheduleStatus
from gymbook.models.user import User
from gymbook.models.waiting_list import WaitingListEntry
from gymbook.services import capacity
from gymbook.services import waiting_list as queue
from gymbook.services.actor import Actor, can_manage_schedule
from gymbook.services.unit_of_work import ScheduleUnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE_CANCELLATION_REASON = "Schedule was cancelled"


@dataclass
class ScheduleCancellation:
    schedule: Schedule
    affected_count: int
    removed_waiting: int


@dataclass
class Availability:
    schedule_id: UUID
    status: ScheduleStatus
    capacity: int
    current_bookings: int
    spots_available: int
    waiting_list_length: int

    @property
    def is_full(self) -> bool:
        return self.spots_available == 0


@dataclass
class RosterBooking:
    booking: Booking
    full_name: str
    email: str


@dataclass
class RosterEntry:
    entry: WaitingListEntry
    full_name: str
    email: str


@dataclass
class ScheduleRoster:
    schedule: Schedule
    class_name: str
    capacity: int
    bookings: List[RosterBooking]
    waiting_list: List[RosterEntry]


class ScheduleService:
    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    async def cancel_schedule(
        self,
        actor: Actor,
        schedule_id: UUID,
        reason: Optional[str] = None
    ) -> ScheduleCancellation:
        """
        Cancel a schedule with all its confirmed bookings in one transaction

        Every cancelled booking gives its seat back; the waiting list is
        discarded without promotion.
        """
        reason = reason or DEFAULT_SCHEDULE_CANCELLATION_REASON

        async def work(uow: ScheduleUnitOfWork) -> ScheduleCancellation:
            schedule = uow.schedule
            session = uow.session
            if schedule.status == ScheduleStatus.CANCELLED:
                raise AlreadyCancelledError(schedule.id)
            if not await can_manage_schedule(session, actor, schedule):
                raise ForbiddenError()

            result = await session.execute(
                select(Booking)
                .where(Booking.schedule_id == schedule.id, Booking.status == BookingStatus.CONFIRMED)
                .with_for_update()
            )
            bookings = list(result.scalars().all())
            for booking in bookings:
                booking.status = BookingStatus.CANCELLED
                booking.cancelled_at = uow.now
                booking.cancellation_reason = reason
                capacity.release_slot(schedule)
                uow.notify(Notification(
                    user_id=booking.user_id,
                    event=NotificationEvent.SCHEDULE_CANCELLED,
                    payload={"booking_id": str(booking.id), "schedule_id": str(schedule.id), "reason": reason}
                ))

            schedule.status = ScheduleStatus.CANCELLED
            schedule.cancellation_reason = reason
            removed = await queue.clear(session, schedule.id)
            await session.flush()

            return ScheduleCancellation(schedule=schedule, affected_count=len(bookings), removed_waiting=removed)

        async with track_operation("cancel_schedule"):
            outcome = await self.uow_factory.run(schedule_id, work, operation="cancel_schedule")
        logger.info(
            f"Schedule cancelled: {outcome.affected_count} bookings cancelled, "
            f"{outcome.removed_waiting} waiting list entries removed",
            extra={"schedule_id": schedule_id, "user_id": actor.user_id}
        )
        return outcome

    async def delete_schedule(self, actor: Actor, schedule_id: UUID):
        """
        Hard-delete a schedule that never had bookings
        """
        async def work(uow: ScheduleUnitOfWork):
            schedule = uow.schedule
            session = uow.session
            if not await can_manage_schedule(session, actor, schedule):
                raise ForbiddenError()

            result = await session.execute(
                select(func.count(Booking.id)).where(Booking.schedule_id == schedule.id)
            )
            booking_count = result.scalar_one()
            if booking_count > 0:
                raise ScheduleHasBookingsError(booking_count)

            await queue.clear(session, schedule.id)
            await session.delete(schedule)
            await session.flush()

        async with track_operation("delete_schedule"):
            await self.uow_factory.run(schedule_id, work, operation="delete_schedule")
        logger.info("Schedule deleted", extra={"schedule_id": schedule_id, "user_id": actor.user_id})

    async def get_availability(self, schedule_id: UUID) -> Availability:
        async with self.uow_factory.session_factory() as session:
            result = await session.execute(
                select(Schedule, GymClass)
                .join(GymClass, Schedule.class_id == GymClass.id)
                .where(Schedule.id == schedule_id)
            )
            row = result.first()
            if row is None:
                raise NotFoundError("Schedule", schedule_id)
            schedule, gym_class = row
            waiting = await queue.queue_length(session, schedule.id)

        return Availability(
            schedule_id=schedule.id,
            status=schedule.status,
            capacity=gym_class.max_capacity,
            current_bookings=schedule.current_bookings,
            spots_available=capacity.available_spots(schedule, gym_class.max_capacity),
            waiting_list_length=waiting,
        )

    async def get_roster(
        self,
        actor: Actor,
        schedule_id: UUID,
        status: Optional[BookingStatus] = None
    ) -> ScheduleRoster:
        """
        Bookings of a schedule in booking order plus its waiting list in queue order

        Visible to admins and to the trainer who runs the schedule.
        """
        async with self.uow_factory.session_factory() as session:
            result = await session.execute(
                select(Schedule, GymClass)
                .join(GymClass, Schedule.class_id == GymClass.id)
                .where(Schedule.id == schedule_id)
            )
            row = result.first()
            if row is None:
                raise NotFoundError("Schedule", schedule_id)
            schedule, gym_class = row
            if not await can_manage_schedule(session, actor, schedule):
                raise ForbiddenError()

            query = (
                select(Booking, User.full_name, User.email)
                .join(User, Booking.user_id == User.id)
                .where(Booking.schedule_id == schedule.id)
                .order_by(Booking.booking_date, Booking.created_at)
            )
            if status is not None:
                query = query.where(Booking.status == status)
            result = await session.execute(query)
            bookings = [
                RosterBooking(booking=booking, full_name=full_name, email=email)
                for booking, full_name, email in result.all()
            ]

            result = await session.execute(
                select(WaitingListEntry, User.full_name, User.email)
                .join(User, WaitingListEntry.user_id == User.id)
                .where(WaitingListEntry.schedule_id == schedule.id)
                .order_by(WaitingListEntry.position)
            )
            waiting = [
                RosterEntry(entry=entry, full_name=full_name, email=email)
                for entry, full_name, email in result.all()
            ]

        return ScheduleRoster(
            schedule=schedule,
            class_name=gym_class.name,
            capacity=gym_class.max_capacity,
            bookings=bookings,
            waiting_list=waiting,
        )
