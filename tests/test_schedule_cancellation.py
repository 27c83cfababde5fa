"""
Tests for schedule cancellation, deletion and availability
"""

import pytest
from uuid import uuid4

from sqlalchemy import select

from gymbook.core.exceptions import (
    NotFoundError,
    ForbiddenError,
    AlreadyCancelledError,
    ScheduleHasBookingsError,
)
from gymbook.core.notifier import NotificationEvent
from gymbook.models import Booking, BookingStatus, Schedule, ScheduleStatus, Trainer, UserRole
from tests.conftest import (
    actor_for,
    create_members,
    create_schedule,
    create_user,
    fill_schedule,
    load,
    waiting_positions,
)


@pytest.mark.asyncio
class TestCancelSchedule:

    async def test_admin_cascade_cancels_bookings_and_clears_queue(
        self, booking_service, waiting_list_service, schedule_service, session_factory, trainer, admin, notifier
    ):
        schedule = await create_schedule(session_factory, trainer, capacity=5)
        _, bookings = await fill_schedule(booking_service, session_factory, schedule, 5)
        for waiter in await create_members(session_factory, 2):
            await waiting_list_service.join(actor_for(waiter), schedule.id)
        notifier.notify.reset_mock()

        outcome = await schedule_service.cancel_schedule(actor_for(admin), schedule.id, "Instructor ill")

        assert outcome.affected_count == 5
        assert outcome.removed_waiting == 2
        refreshed = await load(session_factory, Schedule, schedule.id)
        assert refreshed.status == ScheduleStatus.CANCELLED
        assert refreshed.current_bookings == 0
        assert refreshed.cancellation_reason == "Instructor ill"
        async with session_factory() as session:
            result = await session.execute(select(Booking).where(Booking.schedule_id == schedule.id))
            rows = result.scalars().all()
        assert {b.status for b in rows} == {BookingStatus.CANCELLED}
        assert {b.cancellation_reason for b in rows} == {"Instructor ill"}
        assert await waiting_positions(session_factory, schedule.id) == {}
        events = [call.args[0].event for call in notifier.notify.await_args_list]
        assert events == [NotificationEvent.SCHEDULE_CANCELLED] * 5

    async def test_default_reason(self, booking_service, schedule_service, session_factory, schedule, member, admin):
        booking = await booking_service.create_booking(actor_for(member), schedule.id)

        await schedule_service.cancel_schedule(actor_for(admin), schedule.id)

        cancelled = await load(session_factory, Booking, booking.id)
        assert cancelled.cancellation_reason == "Schedule was cancelled"

    async def test_already_cancelled_bookings_are_not_released_twice(
        self, booking_service, schedule_service, session_factory, schedule, member, other_member, admin
    ):
        first = await booking_service.create_booking(actor_for(member), schedule.id)
        await booking_service.create_booking(actor_for(other_member), schedule.id)
        await booking_service.cancel_booking(actor_for(member), first.id)

        outcome = await schedule_service.cancel_schedule(actor_for(admin), schedule.id)

        assert outcome.affected_count == 1
        refreshed = await load(session_factory, Schedule, schedule.id)
        assert refreshed.current_bookings == 0
        untouched = await load(session_factory, Booking, first.id)
        assert untouched.cancellation_reason == "Cancelled by user"

    async def test_owning_trainer_may_cancel(self, schedule_service, schedule, trainer_user):
        outcome = await schedule_service.cancel_schedule(actor_for(trainer_user), schedule.id)
        assert outcome.schedule.status == ScheduleStatus.CANCELLED

    async def test_second_cancel_is_rejected(self, schedule_service, schedule, admin):
        await schedule_service.cancel_schedule(actor_for(admin), schedule.id)
        with pytest.raises(AlreadyCancelledError):
            await schedule_service.cancel_schedule(actor_for(admin), schedule.id)

    async def test_member_is_forbidden(self, schedule_service, session_factory, schedule, member):
        with pytest.raises(ForbiddenError):
            await schedule_service.cancel_schedule(actor_for(member), schedule.id)
        refreshed = await load(session_factory, Schedule, schedule.id)
        assert refreshed.status == ScheduleStatus.ACTIVE

    async def test_other_trainer_is_forbidden(self, schedule_service, session_factory, schedule):
        stranger = await create_user(session_factory, role=UserRole.TRAINER, name="Other Trainer")
        async with session_factory() as session:
            session.add(Trainer(user_id=stranger.id, specialization="Boxing"))
            await session.commit()

        with pytest.raises(ForbiddenError):
            await schedule_service.cancel_schedule(actor_for(stranger), schedule.id)

    async def test_unknown_schedule(self, schedule_service, admin):
        with pytest.raises(NotFoundError):
            await schedule_service.cancel_schedule(actor_for(admin), uuid4())


@pytest.mark.asyncio
class TestDeleteSchedule:

    async def test_delete_without_bookings(self, schedule_service, session_factory, schedule, admin):
        await schedule_service.delete_schedule(actor_for(admin), schedule.id)
        assert await load(session_factory, Schedule, schedule.id) is None

    async def test_delete_with_cancelled_bookings_is_refused(
        self, booking_service, schedule_service, session_factory, schedule, member, admin
    ):
        booking = await booking_service.create_booking(actor_for(member), schedule.id)
        await booking_service.cancel_booking(actor_for(member), booking.id)

        with pytest.raises(ScheduleHasBookingsError) as exc_info:
            await schedule_service.delete_schedule(actor_for(admin), schedule.id)

        assert exc_info.value.details["booking_count"] == 1
        assert await load(session_factory, Schedule, schedule.id) is not None

    async def test_member_cannot_delete(self, schedule_service, schedule, member):
        with pytest.raises(ForbiddenError):
            await schedule_service.delete_schedule(actor_for(member), schedule.id)


@pytest.mark.asyncio
class TestAvailability:

    async def test_reports_seats_and_queue(
        self, booking_service, waiting_list_service, schedule_service, session_factory, trainer, member
    ):
        schedule = await create_schedule(session_factory, trainer, capacity=2)
        await fill_schedule(booking_service, session_factory, schedule, 2)
        await waiting_list_service.join(actor_for(member), schedule.id)

        availability = await schedule_service.get_availability(schedule.id)

        assert availability.capacity == 2
        assert availability.current_bookings == 2
        assert availability.spots_available == 0
        assert availability.waiting_list_length == 1
        assert availability.is_full is True

    async def test_unknown_schedule(self, schedule_service):
        with pytest.raises(NotFoundError):
            await schedule_service.get_availability(uuid4())


@pytest.mark.asyncio
class TestRoster:

    async def test_trainer_sees_bookings_and_queue_in_order(
        self, booking_service, waiting_list_service, schedule_service, session_factory, trainer, trainer_user
    ):
        schedule = await create_schedule(session_factory, trainer, capacity=2)
        holders, _ = await fill_schedule(booking_service, session_factory, schedule, 2)
        waiters = await create_members(session_factory, 2)
        for waiter in waiters:
            await waiting_list_service.join(actor_for(waiter), schedule.id)

        roster = await schedule_service.get_roster(actor_for(trainer_user), schedule.id)

        assert roster.capacity == 2
        assert [item.booking.user_id for item in roster.bookings] == [h.id for h in holders]
        assert [item.full_name for item in roster.bookings] == ["Member 0", "Member 1"]
        assert [item.entry.user_id for item in roster.waiting_list] == [w.id for w in waiters]
        assert [item.entry.position for item in roster.waiting_list] == [1, 2]

    async def test_status_filter(self, booking_service, schedule_service, session_factory, schedule, admin):
        members, bookings = await fill_schedule(booking_service, session_factory, schedule, 3)
        await booking_service.cancel_booking(actor_for(members[0]), bookings[0].id)

        confirmed = await schedule_service.get_roster(actor_for(admin), schedule.id, BookingStatus.CONFIRMED)
        everything = await schedule_service.get_roster(actor_for(admin), schedule.id)

        assert [item.booking.id for item in confirmed.bookings] == [bookings[1].id, bookings[2].id]
        assert len(everything.bookings) == 3

    async def test_member_cannot_view(self, schedule_service, schedule, member):
        with pytest.raises(ForbiddenError):
            await schedule_service.get_roster(actor_for(member), schedule.id)

    async def test_unknown_schedule(self, schedule_service, admin):
        with pytest.raises(NotFoundError):
            await schedule_service.get_roster(actor_for(admin), uuid4())
