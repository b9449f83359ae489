"""
Automation processor job runners for the worker process.
"""

import asyncio

from franchise_ops.config import settings
from franchise_ops.features.automations.domain import ProcessorRunResult
from franchise_ops.features.automations.services import processor as processor_service
from franchise_ops.jobs.runtime import job_resources, run_pass, run_periodically

JOB_NAME = "automation_processor"


async def run_automation_processor_once() -> ProcessorRunResult:
    async with job_resources():
        return await run_pass(JOB_NAME, processor_service.run_automation_processor)


async def start_automation_processor_scheduler() -> None:
    async with job_resources():
        await run_periodically(
            JOB_NAME,
            processor_service.run_automation_processor,
            settings.AUTOMATION_INTERVAL_SECONDS,
        )


if __name__ == "__main__":
    asyncio.run(run_automation_processor_once())
