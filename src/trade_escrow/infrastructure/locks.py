"""Per-deal exclusive access.

Every deal operation runs its check-then-set sequence while holding the
lock for that deal identifier, so two operations on the same deal never
interleave. Operations on different deals never wait on each other.

Locks are not reentrant. Code that may be re-entered while holding a lock
(the payout transfers) must run after the lock is released.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Protocol

from trade_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import redis.asyncio as aioredis

    from trade_escrow.config import Settings

logger = get_logger(__name__)

REDIS_LOCK_PREFIX = "escrow:deal-lock:"


class DealLockManager(Protocol):
    """Hands out one exclusive lock per deal identifier."""

    def hold(self, deal_id: str) -> contextlib.AbstractAsyncContextManager[None]:
        ...


class InProcessDealLocks:
    """One asyncio.Lock per deal identifier, for single-process deployments."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, deal_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(deal_id, asyncio.Lock())
        self._waiters[deal_id] = self._waiters.get(deal_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[deal_id] -= 1
            if self._waiters[deal_id] == 0:
                del self._waiters[deal_id]
                del self._locks[deal_id]

    def __len__(self) -> int:
        return len(self._locks)


class RedisDealLocks:
    """Distributed per-deal locks backed by redis-py's Lock.

    The lock expires after ``timeout`` seconds even while held. A unit of work
    holds it across the buyer pull in lock_deal, so ``timeout`` must exceed the
    slowest expected transfer_from plus the database round trips. If it
    expires first, another process can enter the same deal and the release
    raises LockNotOwnedError after the work has committed.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        timeout: float = 30.0,
        blocking_timeout: float | None = 10.0,
    ) -> None:
        self._redis = redis
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @staticmethod
    def key_for(deal_id: str) -> str:
        return f"{REDIS_LOCK_PREFIX}{deal_id}"

    @contextlib.asynccontextmanager
    async def hold(self, deal_id: str) -> AsyncIterator[None]:
        lock = self._redis.lock(
            self.key_for(deal_id),
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        # redis-py raises LockError if the lock cannot be acquired in time.
        async with lock:
            yield


def build_lock_manager(settings: Settings) -> DealLockManager:
    """Select the lock backend configured in settings."""
    if settings.deal_lock_backend == "redis":
        from trade_escrow.infrastructure.redis_client import get_redis

        logger.info("locks.backend_selected", backend="redis")
        return RedisDealLocks(
            get_redis(),
            timeout=settings.deal_lock_timeout_seconds,
            blocking_timeout=settings.deal_lock_blocking_timeout_seconds,
        )
    logger.info("locks.backend_selected", backend="memory")
    return InProcessDealLocks()
