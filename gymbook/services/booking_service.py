"""
Booking lifecycle: create, cancel, rate, attendance and the member's booking list

State transitions:
    confirmed -> cancelled | completed | no_show
    cancelled -> confirmed (reactivation of the same row)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from gymbook.config import settings as default_settings
from gymbook.core.exceptions import (
    NotFoundError,
    ForbiddenError,
    InvalidStateError,
    PastScheduleError,
    TooLateError,
    DuplicateBookingError,
    AlreadyRatedError,
    FutureClassError,
    ValidationError,
)
from gymbook.core.metrics import track_operation
from gymbook.core.notifier import Notification, NotificationEvent
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.gym_class import GymClass
from gymbook.models.schedule import Schedule, ScheduleStatus
from gymbook.models.trainer import Trainer
from gymbook.models.user import User
from gymbook.models.waiting_list import WaitingListEntry
from gymbook.services import capacity
from gymbook.services import waiting_list as queue
from gymbook.services.actor import Actor, can_manage_schedule
from gymbook.services.conflicts import ensure_no_conflict
from gymbook.services.promotion import promote_next
from gymbook.services.unit_of_work import ScheduleUnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = "Cancelled by user"
RATING_QUANTUM = Decimal("0.01")
BOOKING_LIST_KINDS = ("upcoming", "past")


@dataclass
class CancellationResult:
    booking: Booking
    is_late_cancellation: bool
    promoted_entry: Optional[WaitingListEntry] = None


@dataclass
class MyBookingView:
    booking: Booking
    class_name: str
    trainer_name: str
    start_time: datetime
    end_time: datetime
    room: Optional[str]
    schedule_status: ScheduleStatus
    is_upcoming: bool
    can_cancel: bool


async def lock_booking(uow: ScheduleUnitOfWork, booking_id: UUID) -> Booking:
    """
    Re-read a booking row inside the schedule's unit of work
    """
    result = await uow.session.execute(
        select(Booking)
        .where(Booking.id == booking_id, Booking.schedule_id == uow.schedule.id)
        .with_for_update()
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    return booking


async def activate_booking(
    uow: ScheduleUnitOfWork,
    user_id: UUID,
    capacity_first: bool = False
) -> Booking:
    """
    Give the user a confirmed seat on the locked schedule

    An existing cancelled row is reactivated (capacity first, then conflicts).
    A new row is checked for conflicts first, then capacity, unless
    capacity_first is set.
    """
    session = uow.session
    schedule = uow.schedule

    result = await session.execute(
        select(Booking)
        .where(Booking.user_id == user_id, Booking.schedule_id == schedule.id)
        .with_for_update()
    )
    booking = result.scalar_one_or_none()

    if booking is not None:
        if booking.status != BookingStatus.CANCELLED:
            raise DuplicateBookingError(booking.id)
        capacity.reserve_slot(schedule, uow.capacity)
        await ensure_no_conflict(session, user_id, schedule)
        booking.status = BookingStatus.CONFIRMED
        booking.cancelled_at = None
        booking.cancellation_reason = None
        booking.booking_date = uow.now
        logger.info(
            f"Reactivated booking {booking.id}",
            extra={"schedule_id": schedule.id, "user_id": user_id}
        )
    else:
        if capacity_first:
            capacity.reserve_slot(schedule, uow.capacity)
            await ensure_no_conflict(session, user_id, schedule)
        else:
            await ensure_no_conflict(session, user_id, schedule)
            capacity.reserve_slot(schedule, uow.capacity)
        booking = Booking(
            user_id=user_id,
            schedule_id=schedule.id,
            status=BookingStatus.CONFIRMED,
            booking_date=uow.now,
        )
        session.add(booking)

    await session.flush()
    capacity.check_ledger(schedule, uow.capacity)
    uow.notify(Notification(
        user_id=user_id,
        event=NotificationEvent.BOOKING_CONFIRMED,
        payload={"booking_id": str(booking.id), "schedule_id": str(schedule.id)}
    ))
    return booking


class BookingService:
    """
    Booking operations, each executed as one schedule-scoped unit of work
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, config=None):
        self.uow_factory = uow_factory
        self.settings = config or default_settings

    @property
    def session_factory(self) -> async_sessionmaker:
        return self.uow_factory.session_factory

    async def _schedule_id_for(self, booking_id: UUID) -> UUID:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Booking.schedule_id).where(Booking.id == booking_id)
            )
            schedule_id = result.scalar_one_or_none()
        if schedule_id is None:
            raise NotFoundError("Booking", booking_id)
        return schedule_id

    async def create_booking(self, actor: Actor, schedule_id: UUID) -> Booking:
        """
        Book a seat for the actor, reactivating a cancelled booking if present
        """
        async def work(uow: ScheduleUnitOfWork) -> Booking:
            schedule = uow.schedule
            if schedule.status != ScheduleStatus.ACTIVE:
                raise InvalidStateError("schedule", schedule.status)
            if schedule.start_time <= uow.now:
                raise PastScheduleError(schedule.start_time)

            booking = await activate_booking(uow, actor.user_id)

            waiting = await queue.get_user_entry(uow.session, schedule.id, actor.user_id)
            if waiting is not None:
                await queue.remove(uow.session, waiting)
            return booking

        async with track_operation("create_booking"):
            booking = await self.uow_factory.run(schedule_id, work, operation="create_booking")
        logger.info(
            f"Booking {booking.id} confirmed",
            extra={"schedule_id": schedule_id, "user_id": actor.user_id}
        )
        return booking

    async def cancel_booking(
        self,
        actor: Actor,
        booking_id: UUID,
        reason: Optional[str] = None
    ) -> CancellationResult:
        """
        Cancel a confirmed booking and offer the seat to the waiting list
        """
        schedule_id = await self._schedule_id_for(booking_id)

        async def work(uow: ScheduleUnitOfWork) -> CancellationResult:
            booking = await lock_booking(uow, booking_id)
            schedule = uow.schedule

            if booking.user_id != actor.user_id and not actor.is_admin:
                raise ForbiddenError()
            if booking.status != BookingStatus.CONFIRMED:
                raise InvalidStateError("booking", booking.status)
            if schedule.start_time <= uow.now:
                raise PastScheduleError(schedule.start_time)

            time_until_class = schedule.start_time - uow.now
            if not actor.is_admin and time_until_class < self.settings.cancellation_window:
                raise TooLateError(
                    self.settings.CANCELLATION_WINDOW_HOURS,
                    time_until_class.total_seconds() / 3600
                )

            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = uow.now
            booking.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
            capacity.release_slot(schedule)
            await uow.session.flush()

            uow.notify(Notification(
                user_id=booking.user_id,
                event=NotificationEvent.BOOKING_CANCELLED,
                payload={"booking_id": str(booking.id), "schedule_id": str(schedule.id)}
            ))
            promoted = await promote_next(uow, self.settings.confirmation_window)

            return CancellationResult(
                booking=booking,
                is_late_cancellation=time_until_class < self.settings.late_cancellation_threshold,
                promoted_entry=promoted,
            )

        async with track_operation("cancel_booking"):
            outcome = await self.uow_factory.run(schedule_id, work, operation="cancel_booking")
        logger.info(
            f"Booking {booking_id} cancelled (late={outcome.is_late_cancellation})",
            extra={"schedule_id": schedule_id, "user_id": actor.user_id}
        )
        return outcome

    async def rate_booking(
        self,
        actor: Actor,
        booking_id: UUID,
        rating: int,
        feedback: Optional[str] = None
    ) -> Booking:
        """
        Rate an attended class and fold the score into the trainer's average
        """
        if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer between 1 and 5", field="rating")

        schedule_id = await self._schedule_id_for(booking_id)

        async def work(uow: ScheduleUnitOfWork) -> Booking:
            booking = await lock_booking(uow, booking_id)
            schedule = uow.schedule

            if booking.user_id != actor.user_id:
                raise ForbiddenError()
            if schedule.start_time > uow.now:
                raise FutureClassError(schedule.start_time)
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidStateError("booking", booking.status)
            if booking.rating is not None:
                raise AlreadyRatedError(booking.rating)

            booking.rating = rating
            booking.feedback = feedback
            if booking.status == BookingStatus.CONFIRMED:
                booking.status = BookingStatus.COMPLETED

            await self._update_trainer_rating(uow, schedule, rating)
            await uow.session.flush()
            return booking

        async with track_operation("rate_booking"):
            return await self.uow_factory.run(schedule_id, work, operation="rate_booking")

    async def _update_trainer_rating(self, uow: ScheduleUnitOfWork, schedule: Schedule, rating: int):
        result = await uow.session.execute(
            select(Trainer).where(Trainer.id == schedule.trainer_id).with_for_update()
        )
        trainer = result.scalar_one_or_none()
        if trainer is None:
            raise NotFoundError("Trainer", schedule.trainer_id)

        old_average = Decimal(trainer.rating or 0)
        old_count = trainer.rating_count or 0
        new_average = (old_average * old_count + rating) / (old_count + 1)
        trainer.rating = new_average.quantize(RATING_QUANTUM, rounding=ROUND_HALF_UP)
        trainer.rating_count = old_count + 1

    async def mark_attendance(self, actor: Actor, booking_id: UUID, attended: bool) -> Booking:
        """
        Record whether the member attended; trainers may only mark their own classes
        """
        schedule_id = await self._schedule_id_for(booking_id)

        async def work(uow: ScheduleUnitOfWork) -> Booking:
            booking = await lock_booking(uow, booking_id)
            schedule = uow.schedule

            if not await can_manage_schedule(uow.session, actor, schedule):
                raise ForbiddenError()
            if schedule.start_time > uow.now:
                raise FutureClassError(schedule.start_time)
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidStateError("booking", booking.status)
            # A rated completed booking is final
            if not attended and booking.status == BookingStatus.COMPLETED and booking.rating is not None:
                raise InvalidStateError("booking", booking.status)

            booking.attended = attended
            if not attended:
                booking.status = BookingStatus.NO_SHOW
            elif booking.status == BookingStatus.CONFIRMED:
                booking.status = BookingStatus.COMPLETED
            await uow.session.flush()
            return booking

        async with track_operation("mark_attendance"):
            return await self.uow_factory.run(schedule_id, work, operation="mark_attendance")

    async def get_booking(self, actor: Actor, booking_id: UUID) -> Booking:
        async with self.session_factory() as session:
            booking = await session.get(Booking, booking_id)
            if booking is None:
                raise NotFoundError("Booking", booking_id)
            if booking.user_id != actor.user_id and not actor.is_admin:
                schedule = await session.get(Schedule, booking.schedule_id)
                if not await can_manage_schedule(session, actor, schedule):
                    raise ForbiddenError()
            return booking

    async def list_for_user(
        self,
        actor: Actor,
        kind: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        now: Optional[datetime] = None
    ) -> List[MyBookingView]:
        """
        The actor's bookings, upcoming ones soonest first, then past ones most recent first

        kind "upcoming" keeps confirmed bookings for classes that have not
        started; kind "past" keeps bookings for classes that have.
        """
        if kind is not None and kind not in BOOKING_LIST_KINDS:
            raise ValidationError(f"Unknown booking list type: {kind}", field="type")
        now = now or self.uow_factory.clock.now()

        query = (
            select(Booking, Schedule, GymClass, User.full_name)
            .join(Schedule, Booking.schedule_id == Schedule.id)
            .join(GymClass, Schedule.class_id == GymClass.id)
            .join(Trainer, Schedule.trainer_id == Trainer.id)
            .join(User, Trainer.user_id == User.id)
            .where(Booking.user_id == actor.user_id)
        )
        if status is not None:
            query = query.where(Booking.status == status)
        if kind == "upcoming":
            query = query.where(Schedule.start_time > now, Booking.status == BookingStatus.CONFIRMED)
        elif kind == "past":
            query = query.where(Schedule.start_time <= now)

        async with self.session_factory() as session:
            result = await session.execute(query)
            rows = result.all()

        views = [
            MyBookingView(
                booking=booking,
                class_name=gym_class.name,
                trainer_name=trainer_name,
                start_time=schedule.start_time,
                end_time=schedule.end_time,
                room=schedule.room,
                schedule_status=schedule.status,
                is_upcoming=schedule.start_time > now,
                can_cancel=(
                    booking.status == BookingStatus.CONFIRMED
                    and schedule.start_time - now >= self.settings.cancellation_window
                ),
            )
            for booking, schedule, gym_class, trainer_name in rows
        ]
        upcoming = sorted((v for v in views if v.is_upcoming), key=lambda v: v.start_time)
        past = sorted((v for v in views if not v.is_upcoming), key=lambda v: v.start_time, reverse=True)
        return upcoming + past
