"""
Per-identity submission locks.

Usage:
    from core.locks import get_submission_locks

    async with get_submission_locks().hold(email):
        ...

The in-process registry serializes submits inside one worker. When
``REDIS_URL`` is set a Redis lock is used instead so concurrent submits for the
same candidate are serialized across workers too.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis.asyncio import Redis, from_url
from redis.exceptions import LockError

from core.config import settings
from core.errors import PersistenceError

logger = logging.getLogger(__name__)


class SubmissionInProgressError(PersistenceError):
    """Raised when another submit for the same identity holds the lock too long."""

    code = "SUBMISSION_IN_PROGRESS"


class InProcessLockRegistry:
    """asyncio locks keyed by identity, dropped once nobody waits on them."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}
        self._submitting: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    @asynccontextmanager
    async def submitting(self, key: str) -> AsyncIterator[None]:
        """Mark a submit for ``key`` as in flight. Enter only while holding the lock."""
        self._submitting[key] = self._submitting.get(key, 0) + 1
        try:
            yield
        finally:
            self._submitting[key] -= 1
            if self._submitting[key] == 0:
                del self._submitting[key]

    async def is_submitting(self, key: str) -> bool:
        return key in self._submitting


class RedisLockRegistry:
    """Redis-backed locks shared by every worker."""

    def __init__(
        self,
        redis: Redis,
        timeout: int = 30,
        key_prefix: str = "assessment:submit",
    ):
        self.redis = redis
        self.timeout = timeout
        self.key_prefix = key_prefix

    def _name(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self.redis.lock(
            self._name(key), timeout=self.timeout, blocking_timeout=self.timeout
        )
        try:
            acquired = await lock.acquire()
        except LockError as e:
            raise SubmissionInProgressError("Submission already in progress") from e
        if not acquired:
            raise SubmissionInProgressError("Submission already in progress")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; the next holder already owns the key
                logger.warning(f"Submission lock for {key} expired before release")

    def _marker(self, key: str) -> str:
        return f"{self.key_prefix}:active:{key}"

    @asynccontextmanager
    async def submitting(self, key: str) -> AsyncIterator[None]:
        """Mark a submit for ``key`` as in flight. Enter only while holding the lock."""
        name = self._marker(key)
        await self.redis.set(name, "1", ex=self.timeout)
        try:
            yield
        finally:
            await self.redis.delete(name)

    async def is_submitting(self, key: str) -> bool:
        return bool(await self.redis.exists(self._marker(key)))

    async def close(self) -> None:
        await self.redis.aclose()


_registry: Optional[InProcessLockRegistry | RedisLockRegistry] = None


def get_submission_locks() -> InProcessLockRegistry | RedisLockRegistry:
    """Process-wide lock registry built from settings on first use."""
    global _registry
    if _registry is None:
        if settings.redis_url:
            _registry = RedisLockRegistry(
                from_url(str(settings.redis_url), decode_responses=True),
                timeout=settings.submit_lock_timeout,
            )
            logger.info("Using Redis submission locks")
        else:
            _registry = InProcessLockRegistry()
    return _registry


async def close_submission_locks() -> None:
    global _registry
    if isinstance(_registry, RedisLockRegistry):
        await _registry.close()
    _registry = None
