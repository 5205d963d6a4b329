"""
Advisory locks serializing batch advancement per (cycle, round).

Two admins triggering the same round at once must not double-advance
anyone: the second trigger waits behind the first and then finds nothing
left to do.

Usage:
    async with round_lock.hold(cycle_id, Round.COFFEE_CHAT):
        ...
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis.asyncio import Redis, from_url
from redis.exceptions import LockError

from core.errors import ConcurrencyConflict
from core.workflow.rounds import Round

logger = logging.getLogger(__name__)


def lock_key(cycle_id: int, round_: Round, prefix: str = "ats:round-lock") -> str:
    """Build the lock name for a cycle and round."""
    return f"{prefix}:{cycle_id}:{Round(round_).value}"


class LocalRoundLock:
    """In-process lock registry. Correct for a single API worker."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_held(self, cycle_id: int, round_: Round) -> bool:
        lock = self._locks.get(lock_key(cycle_id, round_))
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, cycle_id: int, round_: Round) -> AsyncIterator[None]:
        key = lock_key(cycle_id, round_)
        lock = self._lock_for(key)
        if lock.locked():
            logger.info(f"Waiting for round lock {key}")
        async with lock:
            yield

    async def close(self) -> None:
        self._locks.clear()


class RedisRoundLock:
    """Redis-backed lock shared by every API worker."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        timeout: int = 600,
        blocking_timeout: int = 30,
        client: Optional[Redis] = None,
    ):
        """
        Initialize the Redis lock provider.

        Args:
            redis_url: Redis connection URL (ignored when client is given)
            timeout: Seconds after which a held lock expires on its own
            blocking_timeout: Seconds to wait for a lock held by another batch
            client: Pre-built Redis client
        """
        self._redis = client or from_url(redis_url, encoding="utf-8", decode_responses=True)
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, cycle_id: int, round_: Round) -> AsyncIterator[None]:
        key = lock_key(cycle_id, round_)
        lock = self._redis.lock(
            key,
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            raise ConcurrencyConflict(
                f"Another batch is already advancing {Round(round_).value} for cycle {cycle_id}"
            )
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while the batch was running
                logger.warning(f"Round lock {key} expired before release")

    async def close(self) -> None:
        await self._redis.close()


def build_round_lock(backend: str, redis_url: str, timeout: int, blocking_timeout: int):
    """Create the lock provider selected by configuration."""
    if backend == "redis":
        logger.info("Using Redis round locks")
        return RedisRoundLock(redis_url, timeout=timeout, blocking_timeout=blocking_timeout)
    return LocalRoundLock()
