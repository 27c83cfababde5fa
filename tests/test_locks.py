"""
Tests for schedule locks and the unit of work retry loop
"""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import DBAPIError

from gymbook.core.exceptions import LockAcquisitionError, ScheduleFullError
from gymbook.core.locks import LocalLockBackend, RedisLockBackend, ScheduleLockManager, schedule_lock_key
from gymbook.models import Schedule
from gymbook.services.unit_of_work import UnitOfWorkFactory, is_transient_error
from tests.conftest import actor_for, create_schedule, load


@pytest.mark.asyncio
class TestLocalLockBackend:

    async def test_same_key_is_mutually_exclusive(self):
        backend = LocalLockBackend()
        order = []

        async def worker(name):
            async with backend.hold("schedule:1", timeout=1):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    async def test_different_keys_do_not_block(self):
        backend = LocalLockBackend()
        async with backend.hold("schedule:1", timeout=1):
            async with backend.hold("schedule:2", timeout=0.1):
                assert backend.active_keys == {"schedule:1", "schedule:2"}

    async def test_timeout_raises_lock_error(self):
        backend = LocalLockBackend()
        async with backend.hold("schedule:1", timeout=1):
            with pytest.raises(LockAcquisitionError) as exc_info:
                async with backend.hold("schedule:1", timeout=0.05):
                    pass
        assert exc_info.value.details["resource"] == "schedule:1"

    async def test_registry_is_emptied_after_use(self):
        backend = LocalLockBackend()
        async with backend.hold("schedule:1", timeout=1):
            pass
        assert backend.active_keys == set()


@pytest.mark.asyncio
class TestRedisLockBackend:

    async def test_polls_until_acquired_and_releases(self):
        manager = AsyncMock()
        manager.acquire_lock.side_effect = [None, None, "owner"]
        backend = RedisLockBackend(manager=manager, ttl=30, poll_interval=0.001)

        async with backend.hold("schedule:7", timeout=1):
            pass

        assert manager.acquire_lock.await_count == 3
        key, identifier = manager.release_lock.await_args.args
        assert key == "schedule:7"
        assert manager.acquire_lock.await_args.kwargs["identifier"] == identifier

    async def test_gives_up_after_timeout(self):
        manager = AsyncMock()
        manager.acquire_lock.return_value = None
        backend = RedisLockBackend(manager=manager, ttl=30, poll_interval=0.01)

        with pytest.raises(LockAcquisitionError):
            async with backend.hold("schedule:7", timeout=0.05):
                pass

        manager.release_lock.assert_not_awaited()

    async def test_releases_when_body_fails(self):
        manager = AsyncMock()
        manager.acquire_lock.return_value = "owner"
        backend = RedisLockBackend(manager=manager, ttl=30)

        with pytest.raises(ValueError):
            async with backend.hold("schedule:7", timeout=1):
                raise ValueError("boom")

        manager.release_lock.assert_awaited_once()


class FlakyLockManager(ScheduleLockManager):
    """Fails the first N acquisitions"""

    def __init__(self, failures: int):
        super().__init__(LocalLockBackend(), timeout=1)
        self.failures = failures
        self.attempts = 0

    @asynccontextmanager
    async def hold(self, schedule_id):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise LockAcquisitionError(schedule_lock_key(schedule_id))
        async with super().hold(schedule_id):
            yield


@pytest.mark.asyncio
class TestUnitOfWorkRetries:

    async def test_lock_timeout_is_retried(self, session_factory, clock, notifier, trainer, member):
        from gymbook.services.booking_service import BookingService

        schedule = await create_schedule(session_factory, trainer)
        locks = FlakyLockManager(failures=2)
        factory = UnitOfWorkFactory(session_factory, locks, clock, notifier, retry_attempts=3, retry_backoff=0)

        booking = await BookingService(factory).create_booking(actor_for(member), schedule.id)

        assert locks.attempts == 3
        assert booking.schedule_id == schedule.id

    async def test_retries_are_bounded(self, session_factory, clock, notifier, trainer, member):
        from gymbook.services.booking_service import BookingService

        schedule = await create_schedule(session_factory, trainer)
        locks = FlakyLockManager(failures=5)
        factory = UnitOfWorkFactory(session_factory, locks, clock, notifier, retry_attempts=3, retry_backoff=0)

        with pytest.raises(LockAcquisitionError):
            await BookingService(factory).create_booking(actor_for(member), schedule.id)

        assert locks.attempts == 3

    async def test_zero_retry_attempts_means_single_try(self, session_factory, clock, notifier, trainer, member):
        from gymbook.services.booking_service import BookingService

        schedule = await create_schedule(session_factory, trainer)
        locks = FlakyLockManager(failures=1)
        factory = UnitOfWorkFactory(session_factory, locks, clock, notifier, retry_attempts=0, retry_backoff=0)

        assert factory.retry_attempts == 0
        with pytest.raises(LockAcquisitionError):
            await BookingService(factory).create_booking(actor_for(member), schedule.id)
        assert locks.attempts == 1

    async def test_business_errors_are_not_retried(self, uow_factory, session_factory, trainer):
        schedule = await create_schedule(session_factory, trainer, capacity=1)
        calls = []

        async def work(uow):
            calls.append(uow.now)
            raise ScheduleFullError(uow.capacity)

        with pytest.raises(ScheduleFullError):
            await uow_factory.run(schedule.id, work)

        assert len(calls) == 1

    async def test_work_is_rolled_back_on_error(self, uow_factory, session_factory, trainer):
        schedule = await create_schedule(session_factory, trainer)

        async def work(uow):
            uow.schedule.current_bookings = 4
            await uow.session.flush()
            raise ScheduleFullError(uow.capacity)

        with pytest.raises(ScheduleFullError):
            await uow_factory.run(schedule.id, work)

        refreshed = await load(session_factory, Schedule, schedule.id)
        assert refreshed.current_bookings == 0

    async def test_notifier_failure_does_not_undo_commit(
        self, booking_service, session_factory, schedule, member, notifier
    ):
        notifier.notify.side_effect = RuntimeError("mail server down")

        booking = await booking_service.create_booking(actor_for(member), schedule.id)

        refreshed = await load(session_factory, Schedule, schedule.id)
        assert refreshed.current_bookings == 1
        assert booking.id is not None


class FakeDriverError(Exception):
    def __init__(self, sqlstate):
        super().__init__(sqlstate)
        self.sqlstate = sqlstate


@pytest.mark.unit
class TestTransientClassification:

    def test_lock_errors_are_transient(self):
        assert is_transient_error(LockAcquisitionError("schedule:1"))

    @pytest.mark.parametrize("sqlstate", ["40P01", "40001", "55P03"])
    def test_deadlock_and_serialization_failures(self, sqlstate):
        error = DBAPIError("UPDATE schedules", {}, FakeDriverError(sqlstate))
        assert is_transient_error(error)

    def test_other_database_errors_are_not(self):
        error = DBAPIError("INSERT INTO bookings", {}, FakeDriverError("23505"))
        assert not is_transient_error(error)

    def test_business_errors_are_not(self):
        assert not is_transient_error(ScheduleFullError(5))
