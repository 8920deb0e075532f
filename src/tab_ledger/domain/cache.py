"""Account balance cache (Redis, cache-aside).

  - Key: f"tab:balance:{account_id}", short TTL (BALANCE_CACHE_TTL_SECONDS)
  - Read: cache -> DB on miss -> populate cache
  - Write: DB commit first, then invalidate; never write-through
  - Redis errors degrade to a DB read; PostgreSQL stays the source of truth
"""

import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings
from src.tab_common.redis_client import get_redis

logger = logging.getLogger(__name__)

RedisFactory = Callable[[], Awaitable[aioredis.Redis]]


def balance_key(account_id: str) -> str:
    return f"tab:balance:{account_id}"


class BalanceCache:
    def __init__(
        self,
        redis_factory: RedisFactory = get_redis,
        ttl_seconds: int | None = None,
        enabled: bool | None = None,
    ) -> None:
        self._redis_factory = redis_factory
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.BALANCE_CACHE_TTL_SECONDS
        self._enabled = settings.BALANCE_CACHE_ENABLED if enabled is None else enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def get(self, account_id: str) -> int | None:
        if not self._enabled:
            return None
        try:
            redis = await self._redis_factory()
            value = await redis.get(balance_key(account_id))
        except RedisError as exc:
            logger.warning("Balance cache read failed for %s: %s", account_id, exc)
            return None
        return int(value) if value is not None else None

    async def set(self, account_id: str, balance: int) -> None:
        if not self._enabled:
            return
        try:
            redis = await self._redis_factory()
            await redis.set(balance_key(account_id), balance, ex=self._ttl)
        except RedisError as exc:
            logger.warning("Balance cache write failed for %s: %s", account_id, exc)

    async def invalidate(self, *account_ids: str) -> None:
        if not self._enabled or not account_ids:
            return
        try:
            redis = await self._redis_factory()
            await redis.delete(*(balance_key(a) for a in account_ids))
        except RedisError as exc:
            # A stale entry expires after the TTL at the latest.
            logger.warning("Balance cache invalidation failed for %s: %s", account_ids, exc)
