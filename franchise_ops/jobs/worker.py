"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and delegates to the matching job runner.

    python -m franchise_ops.jobs.worker action_engine
    WORKER_JOB=automation_processor python -m franchise_ops.jobs.worker
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from franchise_ops.config import settings
from franchise_ops.features.action_engine.jobs.engine_job import (
    run_action_engine_once,
    start_action_engine_scheduler,
)
from franchise_ops.features.automations.jobs.processor_job import (
    run_automation_processor_once,
    start_automation_processor_scheduler,
)
from franchise_ops.infrastructure.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[Any]]

JOB_REGISTRY: dict[str, JobCoroutine] = {
    "action_engine": start_action_engine_scheduler,
    "automation_processor": start_automation_processor_scheduler,
    "action_engine_once": run_action_engine_once,
    "automation_processor_once": run_automation_processor_once,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "action_engine").strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)
    await JOB_REGISTRY[name]()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    asyncio.run(run_worker(job_name))


if __name__ == "__main__":
    main()
