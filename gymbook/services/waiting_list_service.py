"""
Waiting list operations: join, leave, confirm an offered seat, list entries
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from gymbook.config import settings as default_settings
from gymbook.core.exceptions import (
    NotFoundError,
    ForbiddenError,
    InvalidStateError,
    PastScheduleError,
    ClassNotFullError,
    DuplicateBookingError,
    AlreadyWaitingError,
    NotNotifiedError,
    NotificationExpiredError,
)
from gymbook.core.metrics import track_operation
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.gym_class import GymClass
from gymbook.models.schedule import Schedule, ScheduleStatus
from gymbook.models.waiting_list import WaitingListEntry
from gymbook.services import capacity
from gymbook.services import waiting_list as queue
from gymbook.services.actor import Actor
from gymbook.services.booking_service import activate_booking
from gymbook.services.unit_of_work import ScheduleUnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)


@dataclass
class WaitingListView:
    entry: WaitingListEntry
    class_name: str
    start_time: datetime
    end_time: datetime
    spots_available: int
    can_confirm: bool
    hours_to_confirm: Optional[float]


class WaitingListService:
    def __init__(self, uow_factory: UnitOfWorkFactory, config=None):
        self.uow_factory = uow_factory
        self.settings = config or default_settings

    @property
    def session_factory(self):
        return self.uow_factory.session_factory

    async def _schedule_id_for(self, entry_id: UUID) -> UUID:
        async with self.session_factory() as session:
            result = await session.execute(
                select(WaitingListEntry.schedule_id).where(WaitingListEntry.id == entry_id)
            )
            schedule_id = result.scalar_one_or_none()
        if schedule_id is None:
            raise NotFoundError("Waiting list entry", entry_id)
        return schedule_id

    @staticmethod
    async def _lock_entry(uow: ScheduleUnitOfWork, entry_id: UUID) -> WaitingListEntry:
        result = await uow.session.execute(
            select(WaitingListEntry)
            .where(WaitingListEntry.id == entry_id, WaitingListEntry.schedule_id == uow.schedule.id)
            .with_for_update()
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError("Waiting list entry", entry_id)
        return entry

    async def join(self, actor: Actor, schedule_id: UUID) -> WaitingListEntry:
        """
        Queue the actor for a full schedule
        """
        async def work(uow: ScheduleUnitOfWork) -> WaitingListEntry:
            schedule = uow.schedule
            session = uow.session
            if schedule.status != ScheduleStatus.ACTIVE:
                raise InvalidStateError("schedule", schedule.status)
            if schedule.start_time <= uow.now:
                raise PastScheduleError(schedule.start_time)
            if capacity.has_free_slot(schedule, uow.capacity):
                raise ClassNotFullError(capacity.available_spots(schedule, uow.capacity))

            result = await session.execute(
                select(Booking.id).where(
                    Booking.user_id == actor.user_id,
                    Booking.schedule_id == schedule.id,
                    Booking.status == BookingStatus.CONFIRMED
                )
            )
            booking_id = result.scalar_one_or_none()
            if booking_id is not None:
                raise DuplicateBookingError(booking_id)

            existing = await queue.get_user_entry(session, schedule.id, actor.user_id)
            if existing is not None:
                raise AlreadyWaitingError(existing.position, existing.id)

            return await queue.append(session, schedule.id, actor.user_id)

        async with track_operation("join_waiting_list"):
            entry = await self.uow_factory.run(schedule_id, work, operation="join_waiting_list")
        logger.info(
            f"Joined waiting list at position {entry.position}",
            extra={"schedule_id": schedule_id, "user_id": actor.user_id}
        )
        return entry

    async def leave(self, actor: Actor, entry_id: UUID) -> int:
        """
        Remove an entry; returns how many entries moved up
        """
        schedule_id = await self._schedule_id_for(entry_id)

        async def work(uow: ScheduleUnitOfWork) -> int:
            entry = await self._lock_entry(uow, entry_id)
            if entry.user_id != actor.user_id and not actor.is_admin:
                raise ForbiddenError()
            return await queue.remove(uow.session, entry)

        async with track_operation("leave_waiting_list"):
            return await self.uow_factory.run(schedule_id, work, operation="leave_waiting_list")

    async def confirm(self, actor: Actor, entry_id: UUID) -> Booking:
        """
        Turn an offered waiting list entry into a confirmed booking

        An expired offer is removed (and that removal committed) before
        NotificationExpiredError reaches the caller.
        """
        schedule_id = await self._schedule_id_for(entry_id)

        async def work(uow: ScheduleUnitOfWork) -> Optional[Booking]:
            entry = await self._lock_entry(uow, entry_id)
            schedule = uow.schedule

            if entry.user_id != actor.user_id:
                raise ForbiddenError()
            if not entry.notified:
                raise NotNotifiedError(entry.position)
            if entry.is_expired(uow.now):
                expires_at = entry.expires_at
                await queue.remove(uow.session, entry)
                logger.info(
                    f"Removed expired waiting list offer {entry_id}",
                    extra={"schedule_id": schedule.id, "user_id": actor.user_id}
                )
                uow.fail_after_commit(NotificationExpiredError(expires_at))
                return None
            if schedule.status != ScheduleStatus.ACTIVE:
                raise InvalidStateError("schedule", schedule.status)
            if schedule.start_time <= uow.now:
                raise PastScheduleError(schedule.start_time)

            booking = await activate_booking(uow, actor.user_id, capacity_first=True)
            await queue.remove(uow.session, entry)
            return booking

        async with track_operation("confirm_waiting_list"):
            booking = await self.uow_factory.run(schedule_id, work, operation="confirm_waiting_list")
        logger.info(
            f"Waiting list entry {entry_id} converted to booking {booking.id}",
            extra={"schedule_id": schedule_id, "user_id": actor.user_id}
        )
        return booking

    async def list_for_user(self, actor: Actor, now: Optional[datetime] = None) -> List[WaitingListView]:
        """
        The actor's entries for upcoming active schedules, soonest first
        """
        now = now or self.uow_factory.clock.now()
        async with self.session_factory() as session:
            result = await session.execute(
                select(WaitingListEntry, Schedule, GymClass)
                .join(Schedule, WaitingListEntry.schedule_id == Schedule.id)
                .join(GymClass, Schedule.class_id == GymClass.id)
                .where(
                    WaitingListEntry.user_id == actor.user_id,
                    Schedule.start_time > now,
                    Schedule.status == ScheduleStatus.ACTIVE
                )
                .order_by(Schedule.start_time)
            )
            rows = result.all()

        views = []
        for entry, schedule, gym_class in rows:
            hours_to_confirm = None
            if entry.notified and entry.expires_at is not None:
                hours_to_confirm = (entry.expires_at - now).total_seconds() / 3600
            views.append(WaitingListView(
                entry=entry,
                class_name=gym_class.name,
                start_time=schedule.start_time,
                end_time=schedule.end_time,
                spots_available=capacity.available_spots(schedule, gym_class.max_capacity),
                can_confirm=bool(entry.notified and entry.expires_at is not None and entry.expires_at > now),
                hours_to_confirm=hours_to_confirm,
            ))
        return views
