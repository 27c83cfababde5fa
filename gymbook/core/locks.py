"""
Per-schedule mutual exclusion

Every mutation of a schedule's capacity ledger or waiting list runs while
holding the lock for that schedule. Operations on different schedules never
contend with each other.

Two backends are available:
- LocalLockBackend: asyncio locks, correct for a single process
- RedisLockBackend: Redis SET NX locks shared between processes
"""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Dict, Optional, Protocol

from gymbook.config import settings
from gymbook.core.exceptions import LockAcquisitionError
from gymbook.core.metrics import LOCK_TIMEOUTS, LOCK_WAIT

logger = logging.getLogger(__name__)


def schedule_lock_key(schedule_id) -> str:
    return f"schedule:{schedule_id}"


class LockBackend(Protocol):
    name: str

    def hold(self, key: str, timeout: float):
        ...


class LocalLockBackend:
    """
    In-process locks keyed by resource name

    Locks are created on first use and dropped once no task holds or waits
    for them, so the registry does not grow with the number of schedules.
    """

    name = "local"

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def _checkout(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _checkin(self, key: str):
        remaining = self._users.get(key, 1) - 1
        if remaining <= 0:
            self._users.pop(key, None)
            self._locks.pop(key, None)
        else:
            self._users[key] = remaining

    @property
    def active_keys(self):
        return set(self._locks)

    @asynccontextmanager
    async def hold(self, key: str, timeout: float):
        lock = self._checkout(key)
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                raise LockAcquisitionError(key)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)


class RedisLockBackend:
    """
    Distributed locks using the Redis manager's atomic scripts

    Acquisition polls with a growing backoff until the timeout elapses. The
    TTL bounds how long a crashed holder can block a schedule.
    """

    name = "redis"

    def __init__(self, manager=None, ttl: int = None, poll_interval: float = 0.05):
        if manager is None:
            from gymbook.core.redis import redis_manager
            manager = redis_manager
        self.manager = manager
        self.ttl = ttl or settings.LOCK_TTL_SECONDS
        self.poll_interval = poll_interval

    @asynccontextmanager
    async def hold(self, key: str, timeout: float):
        identifier = str(uuid.uuid4())
        deadline = time.monotonic() + timeout
        delay = self.poll_interval
        while True:
            owner = await self.manager.acquire_lock(key, identifier=identifier, ttl=self.ttl)
            if owner:
                break
            if time.monotonic() >= deadline:
                raise LockAcquisitionError(key)
            await asyncio.sleep(min(delay, max(deadline - time.monotonic(), 0)))
            delay = min(delay * 2, 1.0)
        try:
            yield
        finally:
            await self.manager.release_lock(key, identifier)


class ScheduleLockManager:
    """Acquires the lock guarding one schedule"""

    def __init__(self, backend: Optional[LockBackend] = None, timeout: float = None):
        self.backend = backend or LocalLockBackend()
        self.timeout = timeout if timeout is not None else settings.LOCK_TIMEOUT_SECONDS

    @asynccontextmanager
    async def hold(self, schedule_id):
        key = schedule_lock_key(schedule_id)
        start_time = time.time()
        try:
            async with self.backend.hold(key, self.timeout):
                LOCK_WAIT.labels(backend=self.backend.name).observe(time.time() - start_time)
                yield
        except LockAcquisitionError:
            LOCK_TIMEOUTS.labels(backend=self.backend.name).inc()
            logger.warning(
                f"Timed out after {self.timeout}s waiting for lock {key}",
                extra={"schedule_id": schedule_id}
            )
            raise


def build_lock_manager() -> ScheduleLockManager:
    """
    Lock manager for the configured LOCK_BACKEND
    """
    if settings.LOCK_BACKEND == "redis":
        return ScheduleLockManager(RedisLockBackend())
    return ScheduleLockManager(LocalLockBackend())
