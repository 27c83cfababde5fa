"""
Redis connection management and distributed locks

Only used when LOCK_BACKEND is "redis", so several application processes can
share per-schedule locks.
"""

import redis.asyncio as redis
from typing import Optional
import logging
import time
import uuid

from gymbook.config import settings

logger = logging.getLogger(__name__)

# Global Redis client
redis_client: Optional[redis.Redis] = None


async def init_redis():
    """
    Initialize Redis connection
    """
    global redis_client
    try:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True
        )
        await redis_client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise


async def close_redis():
    """
    Close Redis connection
    """
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")


async def get_redis() -> redis.Redis:
    """
    Get Redis client
    """
    if not redis_client:
        await init_redis()
    return redis_client


class RedisManager:
    """
    Distributed lock primitives backed by atomic Lua scripts
    """

    ACQUIRE_SCRIPT = """
    local lock_key = KEYS[1]
    local lock_value = ARGV[1]
    local ttl = tonumber(ARGV[2])
    local timestamp = ARGV[3]

    if redis.call("set", lock_key, lock_value, "NX", "EX", ttl) then
        local meta_key = lock_key .. ":meta"
        redis.call("hset", meta_key, "owner", lock_value, "acquired_at", timestamp, "ttl", ttl)
        redis.call("expire", meta_key, ttl)
        return lock_value
    else
        return nil
    end
    """

    RELEASE_SCRIPT = """
    local lock_key = KEYS[1]
    local identifier = ARGV[1]
    local meta_key = lock_key .. ":meta"

    local current_owner = redis.call("get", lock_key)
    if current_owner == identifier then
        redis.call("del", lock_key)
        redis.call("del", meta_key)
        return 1
    else
        return 0
    end
    """

    def __init__(self):
        self.client: Optional[redis.Redis] = None
        self.logger = logging.getLogger(__name__)

    async def get_client(self) -> redis.Redis:
        if not self.client:
            self.client = await get_redis()
        return self.client

    async def acquire_lock(
        self,
        resource: str,
        identifier: Optional[str] = None,
        ttl: int = 30
    ) -> Optional[str]:
        """
        Try once to acquire a lock; returns the owner identifier or None
        """
        client = await self.get_client()
        lock_key = f"lock:{resource}"
        lock_value = identifier or str(uuid.uuid4())

        result = await client.eval(
            self.ACQUIRE_SCRIPT,
            1,
            lock_key,
            lock_value,
            ttl,
            str(int(time.time()))
        )
        if result:
            self.logger.debug(f"Lock acquired for {resource} with identifier {lock_value}")
            return result.decode() if isinstance(result, bytes) else result
        return None

    async def release_lock(self, resource: str, identifier: str) -> bool:
        """
        Release a lock only if it is still owned by identifier
        """
        client = await self.get_client()
        result = await client.eval(self.RELEASE_SCRIPT, 1, f"lock:{resource}", identifier)
        released = result == 1

        if released:
            self.logger.debug(f"Lock released for {resource}")
        else:
            self.logger.warning(f"Failed to release lock for {resource} - wrong identifier or lock expired")
        return released


redis_manager = RedisManager()
