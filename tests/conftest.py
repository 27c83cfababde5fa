"""
Test configuration and fixtures

Each test gets its own SQLite file database and a unit of work factory wired
to a frozen clock, in-process schedule locks and a mocked notifier.
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Set test environment before any gymbook import reads settings
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["LOCK_BACKEND"] = "local"
os.environ["PROMETHEUS_ENABLED"] = "false"

# Import all models BEFORE creating fixtures (create_all needs them registered)
from gymbook.core.database import Base, build_engine, build_session_factory
from gymbook.core.locks import LocalLockBackend, ScheduleLockManager
from gymbook.models import (
    User,
    UserRole,
    Trainer,
    GymClass,
    Schedule,
    ScheduleStatus,
    Booking,
    BookingStatus,
    WaitingListEntry,
)
from gymbook.services.actor import Actor
from gymbook.services.booking_service import BookingService
from gymbook.services.schedule_service import ScheduleService
from gymbook.services.unit_of_work import UnitOfWorkFactory
from gymbook.services.waiting_list_service import WaitingListService

FROZEN_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock that only moves when a test says so"""

    def __init__(self, current: datetime = FROZEN_NOW):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite engine so concurrent sessions see each other's commits"""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'gymbook.db'}", testing=True)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.notify = AsyncMock()
    return mock


@pytest.fixture
def lock_manager():
    return ScheduleLockManager(LocalLockBackend(), timeout=5)


@pytest.fixture
def uow_factory(session_factory, lock_manager, clock, notifier):
    return UnitOfWorkFactory(
        session_factory=session_factory,
        lock_manager=lock_manager,
        clock=clock,
        notifier=notifier,
        retry_attempts=3,
        retry_backoff=0,
    )


@pytest.fixture
def booking_service(uow_factory):
    return BookingService(uow_factory)


@pytest.fixture
def waiting_list_service(uow_factory):
    return WaitingListService(uow_factory)


@pytest.fixture
def schedule_service(uow_factory):
    return ScheduleService(uow_factory)


async def create_user(session_factory, role: UserRole = UserRole.MEMBER, name: str = "Test User") -> User:
    async with session_factory() as session:
        user = User(
            email=f"{role.value}_{uuid4().hex[:8]}@example.com",
            full_name=name,
            role=role,
        )
        session.add(user)
        await session.commit()
        return user


async def create_members(session_factory, count: int):
    return [await create_user(session_factory, name=f"Member {i}") for i in range(count)]


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role)


async def create_schedule(
    session_factory,
    trainer: Trainer,
    capacity: int = 10,
    start: datetime = None,
    duration: timedelta = timedelta(hours=1),
    class_name: str = "Morning Yoga",
    status: ScheduleStatus = ScheduleStatus.ACTIVE,
) -> Schedule:
    start = start or FROZEN_NOW + timedelta(days=1)
    async with session_factory() as session:
        gym_class = GymClass(name=class_name, category="fitness", max_capacity=capacity, duration_minutes=60)
        session.add(gym_class)
        await session.flush()
        schedule = Schedule(
            class_id=gym_class.id,
            trainer_id=trainer.id,
            start_time=start,
            end_time=start + duration,
            room="Studio A",
            status=status,
            current_bookings=0,
        )
        session.add(schedule)
        await session.commit()
        return schedule


async def load(session_factory, model, identifier):
    async with session_factory() as session:
        return await session.get(model, identifier)


async def waiting_positions(session_factory, schedule_id):
    """{user_id: position} for a schedule's waiting list"""
    from sqlalchemy import select
    async with session_factory() as session:
        result = await session.execute(
            select(WaitingListEntry.user_id, WaitingListEntry.position)
            .where(WaitingListEntry.schedule_id == schedule_id)
            .order_by(WaitingListEntry.position)
        )
        return {user_id: position for user_id, position in result.all()}


async def fill_schedule(booking_service, session_factory, schedule, count: int):
    """Book count fresh members onto the schedule"""
    members = await create_members(session_factory, count)
    bookings = [await booking_service.create_booking(actor_for(m), schedule.id) for m in members]
    return members, bookings


# Actor fixtures
@pytest_asyncio.fixture
async def member(session_factory):
    return await create_user(session_factory, name="Alice Member")


@pytest_asyncio.fixture
async def other_member(session_factory):
    return await create_user(session_factory, name="Bob Member")


@pytest_asyncio.fixture
async def admin(session_factory):
    return await create_user(session_factory, role=UserRole.ADMIN, name="Admin User")


@pytest_asyncio.fixture
async def trainer_user(session_factory):
    return await create_user(session_factory, role=UserRole.TRAINER, name="Tina Trainer")


@pytest_asyncio.fixture
async def trainer(session_factory, trainer_user):
    async with session_factory() as session:
        profile = Trainer(user_id=trainer_user.id, specialization="Yoga")
        session.add(profile)
        await session.commit()
        return profile


@pytest_asyncio.fixture
async def schedule(session_factory, trainer):
    """Active schedule with 10 seats starting in 24 hours"""
    return await create_schedule(session_factory, trainer, capacity=10)


@pytest_asyncio.fixture
async def client(uow_factory):
    """Test client with the unit of work factory overridden"""
    from gymbook.main import app
    from gymbook.api.deps import get_uow_factory

    app.dependency_overrides[get_uow_factory] = lambda: uow_factory
    try:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"X-User-Id": str(user.id), "X-User-Role": user.role.value}
