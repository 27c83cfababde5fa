"""
Atomic, schedule-scoped units of work

Every operation that reads and then mutates a schedule's ledger, bookings or
waiting list runs through UnitOfWorkFactory.run():

1. acquire the per-schedule lock
2. open a session and begin a transaction
3. SELECT the schedule row FOR UPDATE
4. run the operation, commit, release the lock
5. dispatch queued notifications

Transient failures (lock timeouts, deadlocks, serialization failures) restart
the whole attempt so every check is re-validated against fresh state.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gymbook.config import settings
from gymbook.core.clock import Clock, system_clock
from gymbook.core.exceptions import LockAcquisitionError, NotFoundError
from gymbook.core.locks import ScheduleLockManager
from gymbook.core.metrics import TRANSIENT_RETRIES
from gymbook.core.notifier import LoggingNotifier, Notification, Notifier, dispatch_notifications
from gymbook.models.gym_class import GymClass
from gymbook.models.schedule import Schedule

logger = logging.getLogger(__name__)

T = TypeVar("T")

# deadlock_detected, serialization_failure, lock_not_available
TRANSIENT_SQLSTATES = {"40P01", "40001", "55P03"}


def is_transient_error(error: BaseException) -> bool:
    if isinstance(error, LockAcquisitionError):
        return True
    if isinstance(error, DBAPIError):
        orig = error.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return sqlstate in TRANSIENT_SQLSTATES
    return False


@dataclass
class ScheduleUnitOfWork:
    """
    Locked view of one schedule inside an open transaction
    """
    session: AsyncSession
    schedule: Schedule
    gym_class: GymClass
    now: datetime
    notifications: List[Notification] = field(default_factory=list)
    deferred_error: Optional[Exception] = None

    @property
    def capacity(self) -> int:
        return self.gym_class.max_capacity

    def notify(self, notification: Notification):
        self.notifications.append(notification)

    def fail_after_commit(self, error: Exception):
        """
        Commit the work done so far, then raise error to the caller
        """
        self.deferred_error = error


class UnitOfWorkFactory:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        lock_manager: ScheduleLockManager,
        clock: Clock = system_clock,
        notifier: Optional[Notifier] = None,
        retry_attempts: int = None,
        retry_backoff: float = None
    ):
        self.session_factory = session_factory
        self.lock_manager = lock_manager
        self.clock = clock
        self.notifier = notifier or LoggingNotifier()
        self.retry_attempts = settings.LOCK_RETRY_ATTEMPTS if retry_attempts is None else retry_attempts
        self.retry_backoff = settings.LOCK_RETRY_BACKOFF_SECONDS if retry_backoff is None else retry_backoff

    @asynccontextmanager
    async def schedule_scope(self, schedule_id: UUID):
        """
        One attempt: lock, transaction, schedule row FOR UPDATE
        """
        now = self.clock.now()
        async with self.lock_manager.hold(schedule_id):
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(Schedule).where(Schedule.id == schedule_id).with_for_update()
                    )
                    schedule = result.scalar_one_or_none()
                    if schedule is None:
                        raise NotFoundError("Schedule", schedule_id)
                    gym_class = await session.get(GymClass, schedule.class_id)
                    uow = ScheduleUnitOfWork(
                        session=session,
                        schedule=schedule,
                        gym_class=gym_class,
                        now=now,
                    )
                    yield uow

        await dispatch_notifications(self.notifier, uow.notifications)
        if uow.deferred_error is not None:
            raise uow.deferred_error

    async def run(
        self,
        schedule_id: UUID,
        work: Callable[[ScheduleUnitOfWork], Awaitable[T]],
        operation: str = "operation"
    ) -> T:
        """
        Run work under the schedule lock, retrying transient failures
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self.schedule_scope(schedule_id) as uow:
                    outcome = await work(uow)
                return outcome
            except Exception as e:
                if not is_transient_error(e) or attempt >= self.retry_attempts:
                    raise
                TRANSIENT_RETRIES.labels(operation=operation).inc()
                logger.warning(
                    f"Transient failure in {operation} (attempt {attempt}/{self.retry_attempts}): "
                    f"{type(e).__name__}: {e}",
                    extra={"schedule_id": schedule_id, "operation": operation}
                )
                await asyncio.sleep(self.retry_backoff * attempt)
