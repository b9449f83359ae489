"""
Action engine job runners for the worker process.
"""

import asyncio

from franchise_ops.config import settings
from franchise_ops.features.action_engine.domain import EngineRunResult
from franchise_ops.features.action_engine.services import engine as engine_service
from franchise_ops.jobs.runtime import job_resources, run_pass, run_periodically

JOB_NAME = "action_engine"


async def run_action_engine_once() -> EngineRunResult:
    """Open resources, run a single engine pass, close resources."""
    async with job_resources():
        return await run_pass(JOB_NAME, engine_service.run_action_engine)


async def start_action_engine_scheduler() -> None:
    async with job_resources():
        await run_periodically(
            JOB_NAME,
            engine_service.run_action_engine,
            settings.ACTION_ENGINE_INTERVAL_MINUTES * 60,
        )


if __name__ == "__main__":
    asyncio.run(run_action_engine_once())
