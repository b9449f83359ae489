"""
Short-lived exclusive locks for background reconciliation units.

Two overlapping scheduler ticks must not evaluate the same location or
advance the same enrollment at the same time. Each unit is claimed with
a Redis ``SET NX EX`` before work starts and released afterwards with a
compare-and-delete, so a lock that outlived its TTL is never released by
the wrong owner.

Usage:
    async with run_lock.hold(f"action-engine:location:{location_id}") as acquired:
        if not acquired:
            return  # another run owns this location
        ...
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from franchise_ops.config import settings
from franchise_ops.infrastructure.locks.redis_client import RedisClient, redis_client
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

KEY_PREFIX = "franchise-ops:lock:"


class RunLock:
    def __init__(
        self,
        client: RedisClient | None = None,
        ttl_seconds: int | None = None,
        enabled: bool | None = None,
    ):
        self._client = client or redis_client
        self._ttl_seconds = ttl_seconds or settings.RUN_LOCK_TTL_SECONDS
        self._enabled = settings.RUN_LOCKS_ENABLED if enabled is None else enabled

    async def acquire(self, name: str) -> str | None:
        """
        Claim the lock and return the owner token, or None when held elsewhere.

        An unreachable Redis yields a token anyway: the partial unique index on
        action_items stays the enforcement point, and a Redis outage must not
        stop every run.
        """
        token = uuid.uuid4().hex
        if not self._enabled:
            return token

        try:
            acquired = await self._client.set_if_absent(
                KEY_PREFIX + name, token, self._ttl_seconds
            )
        except Exception as e:
            logger.warning("Run lock unavailable, continuing unlocked", lock=name, error=str(e))
            return token

        if not acquired:
            logger.info("Run lock held by another run", lock=name)
            return None
        return token

    async def release(self, name: str, token: str) -> None:
        if not self._enabled:
            return

        try:
            await self._client.delete_if_value(KEY_PREFIX + name, token)
        except Exception as e:
            # TTL expiry frees the key on its own
            logger.warning("Run lock release failed", lock=name, error=str(e))

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncGenerator[bool, None]:
        token = await self.acquire(name)
        if token is None:
            yield False
            return

        try:
            yield True
        finally:
            await self.release(name, token)


run_lock = RunLock()
