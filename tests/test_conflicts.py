"""
Tests for overlapping booking detection
"""

import pytest
from datetime import timedelta

from gymbook.core.exceptions import BookingConflictError
from gymbook.models import Booking, BookingStatus
from gymbook.services.conflicts import find_conflicts
from tests.conftest import FROZEN_NOW, actor_for, create_schedule, load


@pytest.mark.asyncio
class TestConflictDetection:

    async def test_overlapping_booking_is_rejected_naming_existing_class(
        self, booking_service, session_factory, trainer, member
    ):
        start = FROZEN_NOW + timedelta(days=1)
        s1 = await create_schedule(session_factory, trainer, start=start, class_name="Spin Class")
        s2 = await create_schedule(
            session_factory, trainer, start=start + timedelta(minutes=30), class_name="HIIT"
        )
        await booking_service.create_booking(actor_for(member), s1.id)

        with pytest.raises(BookingConflictError) as exc_info:
            await booking_service.create_booking(actor_for(member), s2.id)

        assert exc_info.value.details["class_name"] == "Spin Class"
        assert "Spin Class" in exc_info.value.message
        refreshed = await load(session_factory, type(s2), s2.id)
        assert refreshed.current_bookings == 0

    async def test_back_to_back_classes_do_not_conflict(
        self, booking_service, session_factory, trainer, member
    ):
        start = FROZEN_NOW + timedelta(days=1)
        s1 = await create_schedule(session_factory, trainer, start=start)
        s2 = await create_schedule(session_factory, trainer, start=start + timedelta(hours=1))

        await booking_service.create_booking(actor_for(member), s1.id)
        booking = await booking_service.create_booking(actor_for(member), s2.id)

        assert booking.status == BookingStatus.CONFIRMED

    async def test_cancelled_booking_does_not_conflict(
        self, booking_service, session_factory, trainer, member
    ):
        start = FROZEN_NOW + timedelta(days=1)
        s1 = await create_schedule(session_factory, trainer, start=start)
        s2 = await create_schedule(session_factory, trainer, start=start)

        first = await booking_service.create_booking(actor_for(member), s1.id)
        await booking_service.cancel_booking(actor_for(member), first.id)
        booking = await booking_service.create_booking(actor_for(member), s2.id)

        assert booking.status == BookingStatus.CONFIRMED

    async def test_other_users_bookings_are_ignored(
        self, booking_service, session_factory, trainer, member, other_member
    ):
        start = FROZEN_NOW + timedelta(days=1)
        s1 = await create_schedule(session_factory, trainer, start=start)
        s2 = await create_schedule(session_factory, trainer, start=start)

        await booking_service.create_booking(actor_for(other_member), s1.id)
        async with session_factory() as session:
            candidate = await session.get(type(s2), s2.id)
            conflicts = await find_conflicts(session, member.id, candidate)

        assert conflicts == []

    async def test_find_conflicts_lists_every_overlap(
        self, booking_service, session_factory, trainer, member
    ):
        start = FROZEN_NOW + timedelta(days=2)
        early = await create_schedule(session_factory, trainer, start=start, class_name="Early")
        late = await create_schedule(
            session_factory, trainer, start=start + timedelta(minutes=45), class_name="Late"
        )
        wide = await create_schedule(
            session_factory, trainer, start=start, duration=timedelta(hours=2), class_name="Wide"
        )
        await booking_service.create_booking(actor_for(member), early.id)
        async with session_factory() as session:
            # Insert directly: the service would refuse the second overlap
            session.add(Booking(user_id=member.id, schedule_id=late.id, status=BookingStatus.CONFIRMED))
            await session.commit()

        async with session_factory() as session:
            candidate = await session.get(type(wide), wide.id)
            conflicts = await find_conflicts(session, member.id, candidate)

        assert [c.class_name for c in conflicts] == ["Early", "Late"]
