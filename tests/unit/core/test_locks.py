"""
Tests for per-(cycle, round) advancement locks.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import LockError

from core.errors import ConcurrencyConflict
from core.locks import LocalRoundLock, RedisRoundLock, build_round_lock, lock_key
from core.workflow.rounds import Round


class TestLockKey:
    def test_includes_cycle_and_round(self):
        assert lock_key(3, Round.COFFEE_CHAT) == "ats:round-lock:3:COFFEE_CHAT"

    def test_custom_prefix(self):
        assert lock_key(1, Round.FINAL_ROUND, prefix="x") == "x:1:FINAL_ROUND"


class TestLocalRoundLock:
    @pytest.mark.asyncio
    async def test_is_held_while_inside(self):
        lock = LocalRoundLock()

        async with lock.hold(1, Round.COFFEE_CHAT):
            assert lock.is_held(1, Round.COFFEE_CHAT)
            assert not lock.is_held(1, Round.FIRST_ROUND)
            assert not lock.is_held(2, Round.COFFEE_CHAT)

        assert not lock.is_held(1, Round.COFFEE_CHAT)

    @pytest.mark.asyncio
    async def test_serializes_same_key(self):
        lock = LocalRoundLock()
        events = []

        async def batch(name):
            async with lock.hold(1, Round.COFFEE_CHAT):
                events.append(f"{name}:start")
                await asyncio.sleep(0.01)
                events.append(f"{name}:end")

        await asyncio.gather(batch("a"), batch("b"))

        assert events == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_different_rounds_run_concurrently(self):
        lock = LocalRoundLock()
        inside = asyncio.Event()

        async def first():
            async with lock.hold(1, Round.COFFEE_CHAT):
                await asyncio.wait_for(inside.wait(), timeout=1)

        async def second():
            async with lock.hold(1, Round.FIRST_ROUND):
                inside.set()

        await asyncio.gather(first(), second())

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        lock = LocalRoundLock()

        with pytest.raises(RuntimeError):
            async with lock.hold(1, Round.COFFEE_CHAT):
                raise RuntimeError("batch failed")

        assert not lock.is_held(1, Round.COFFEE_CHAT)

    @pytest.mark.asyncio
    async def test_close(self):
        lock = LocalRoundLock()
        async with lock.hold(1, Round.COFFEE_CHAT):
            pass

        await lock.close()

        assert not lock.is_held(1, Round.COFFEE_CHAT)


class TestRedisRoundLock:
    """Redis lock behaviour against a mocked client."""

    def _client(self, acquired=True):
        redis_lock = MagicMock()
        redis_lock.acquire = AsyncMock(return_value=acquired)
        redis_lock.release = AsyncMock()
        client = MagicMock()
        client.lock.return_value = redis_lock
        client.close = AsyncMock()
        return client, redis_lock

    @pytest.mark.asyncio
    async def test_acquires_and_releases(self):
        client, redis_lock = self._client()
        lock = RedisRoundLock(client=client, timeout=60, blocking_timeout=5)

        async with lock.hold(2, Round.FIRST_ROUND):
            redis_lock.release.assert_not_awaited()

        client.lock.assert_called_once_with(
            "ats:round-lock:2:FIRST_ROUND", timeout=60, blocking_timeout=5
        )
        redis_lock.acquire.assert_awaited_once()
        redis_lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_conflict_when_not_acquired(self):
        client, redis_lock = self._client(acquired=False)
        lock = RedisRoundLock(client=client)

        with pytest.raises(ConcurrencyConflict, match="already advancing"):
            async with lock.hold(2, Round.FIRST_ROUND):
                pass

        redis_lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_lock_release_is_tolerated(self):
        client, redis_lock = self._client()
        redis_lock.release.side_effect = LockError("Cannot release an unlocked lock")
        lock = RedisRoundLock(client=client)

        async with lock.hold(2, Round.FIRST_ROUND):
            pass

        redis_lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close(self):
        client, _ = self._client()

        await RedisRoundLock(client=client).close()

        client.close.assert_awaited_once()


class TestBuildRoundLock:
    def test_local_backend(self):
        assert isinstance(build_round_lock("local", "redis://localhost", 60, 5), LocalRoundLock)

    def test_redis_backend(self):
        with patch("core.locks.from_url") as from_url:
            lock = build_round_lock("redis", "redis://cache:6379/0", 60, 5)

        assert isinstance(lock, RedisRoundLock)
        from_url.assert_called_once_with(
            "redis://cache:6379/0", encoding="utf-8", decode_responses=True
        )
        assert lock.timeout == 60
        assert lock.blocking_timeout == 5
