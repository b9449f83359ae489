"""
Shared plumbing for background jobs run by the worker process.

`job_resources` opens the database pool (required) and the Redis client
(best effort: run locks degrade without it) for the lifetime of a job.
`run_periodically` drives a one-pass coroutine at a fixed interval and
keeps going when a pass fails.
"""

import asyncio
import time
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog

from franchise_ops.db.pool import db_pool
from franchise_ops.infrastructure.locks.redis_client import redis_client
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

ERROR_BACKOFF_SECONDS = 60


@asynccontextmanager
async def job_resources() -> AsyncGenerator[None, None]:
    await db_pool.initialize()
    try:
        await redis_client.initialize()
    except RuntimeError as e:
        logger.warning("Redis unavailable, run locks degraded", error=str(e))

    try:
        yield
    finally:
        await redis_client.close()
        await db_pool.close()


async def run_pass(job: str, run_once: Callable[[], Awaitable[Any]]) -> Any:
    """Run one pass with the job name and a fresh run id bound to every log line."""
    run_id = uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(job=job, run_id=run_id):
        logger.info("Background run started")
        return await run_once()


async def run_periodically(
    job: str,
    run_once: Callable[[], Awaitable[Any]],
    interval_seconds: float,
) -> None:
    logger.info("Starting job scheduler", job=job, interval_seconds=interval_seconds)

    while True:
        started = time.monotonic()
        try:
            await run_pass(job, run_once)
        except Exception as e:
            logger.error(
                "Error in job scheduler",
                job=job,
                error=str(e),
                error_type=type(e).__name__,
            )
            await asyncio.sleep(ERROR_BACKOFF_SECONDS)
            continue

        elapsed = time.monotonic() - started
        await asyncio.sleep(max(0.0, interval_seconds - elapsed))
