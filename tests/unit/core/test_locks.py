"""Tests for per-identity submission locks."""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from redis.exceptions import LockError

from core import locks
from core.locks import (
    InProcessLockRegistry,
    RedisLockRegistry,
    SubmissionInProgressError,
    close_submission_locks,
    get_submission_locks,
)


class TestInProcessLockRegistry:
    async def test_serializes_same_key(self):
        registry = InProcessLockRegistry()
        order = []

        async def worker(name):
            async with registry.hold("alice@example.com"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    async def test_different_keys_do_not_block(self):
        registry = InProcessLockRegistry()
        async with registry.hold("alice@example.com"):
            await asyncio.wait_for(self._enter(registry, "bob@example.com"), timeout=1)

    @staticmethod
    async def _enter(registry, key):
        async with registry.hold(key):
            pass

    async def test_submitting_marker_is_separate_from_lock(self):
        registry = InProcessLockRegistry()
        async with registry.hold("alice@example.com"):
            assert await registry.is_submitting("alice@example.com") is False
            async with registry.submitting("alice@example.com"):
                assert await registry.is_submitting("alice@example.com") is True
                assert await registry.is_submitting("bob@example.com") is False
        assert await registry.is_submitting("alice@example.com") is False
        assert registry._submitting == {}

    async def test_submitting_marker_cleared_on_error(self):
        registry = InProcessLockRegistry()
        with pytest.raises(RuntimeError):
            async with registry.submitting("alice@example.com"):
                raise RuntimeError("boom")
        assert await registry.is_submitting("alice@example.com") is False

    async def test_released_on_error(self):
        registry = InProcessLockRegistry()
        with pytest.raises(RuntimeError):
            async with registry.hold("alice@example.com"):
                raise RuntimeError("boom")
        assert registry._locks == {}


def _redis_with_lock(lock):
    redis = MagicMock()
    redis.lock.return_value = lock
    redis.exists = AsyncMock(return_value=1)
    redis.aclose = AsyncMock()
    return redis


class TestRedisLockRegistry:
    async def test_acquire_and_release(self):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=True)
        lock.release = AsyncMock()
        redis = _redis_with_lock(lock)
        registry = RedisLockRegistry(redis, timeout=5)

        async with registry.hold("alice@example.com"):
            pass

        redis.lock.assert_called_once_with(
            "assessment:submit:alice@example.com", timeout=5, blocking_timeout=5
        )
        lock.release.assert_awaited_once()

    async def test_not_acquired(self):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=False)
        registry = RedisLockRegistry(_redis_with_lock(lock))

        with pytest.raises(SubmissionInProgressError) as exc_info:
            async with registry.hold("alice@example.com"):
                pass
        assert exc_info.value.retryable is True

    async def test_acquire_error(self):
        lock = MagicMock()
        lock.acquire = AsyncMock(side_effect=LockError("no"))
        registry = RedisLockRegistry(_redis_with_lock(lock))

        with pytest.raises(SubmissionInProgressError):
            async with registry.hold("alice@example.com"):
                pass

    async def test_expired_lock_on_release_is_tolerated(self):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=True)
        lock.release = AsyncMock(side_effect=LockError("expired"))
        registry = RedisLockRegistry(_redis_with_lock(lock))

        async with registry.hold("alice@example.com"):
            pass

    async def test_submitting_marker(self):
        redis = _redis_with_lock(MagicMock())
        redis.set = AsyncMock()
        redis.delete = AsyncMock()
        registry = RedisLockRegistry(redis, timeout=5)

        async with registry.submitting("alice@example.com"):
            redis.set.assert_awaited_once_with(
                "assessment:submit:active:alice@example.com", "1", ex=5
            )
        redis.delete.assert_awaited_once_with("assessment:submit:active:alice@example.com")

    async def test_is_submitting_and_close(self):
        redis = _redis_with_lock(MagicMock())
        registry = RedisLockRegistry(redis)

        assert await registry.is_submitting("alice@example.com") is True
        redis.exists.assert_awaited_once_with("assessment:submit:active:alice@example.com")
        await registry.close()
        redis.aclose.assert_awaited_once()


class TestRegistryFactory:
    async def test_in_process_without_redis(self):
        await close_submission_locks()
        with patch.object(locks.settings, "redis_url", None):
            assert isinstance(get_submission_locks(), InProcessLockRegistry)
            assert get_submission_locks() is get_submission_locks()
        await close_submission_locks()

    async def test_redis_when_configured(self):
        await close_submission_locks()
        redis = _redis_with_lock(MagicMock())
        with patch.object(locks.settings, "redis_url", "redis://localhost:6379/0"), \
                patch("core.locks.from_url", return_value=redis) as from_url:
            registry = get_submission_locks()
            assert isinstance(registry, RedisLockRegistry)
            from_url.assert_called_once_with("redis://localhost:6379/0", decode_responses=True)
        await close_submission_locks()
        redis.aclose.assert_awaited_once()
