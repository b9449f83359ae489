"""
Automation processor: advances due lead enrollments one step per tick.

For each due enrollment (batch of AUTOMATION_BATCH_SIZE):

1. Paused automation: leave the enrollment untouched.
2. No step at the current position: the workflow is exhausted, complete it.
3. Otherwise execute the step and, in one transaction, apply its
   allow-listed lead mutation, write the step log and the lead timeline
   entry, and advance the position (or complete when no next step exists).

The mutation runs under a savepoint. A failed mutation rolls back alone
and does not hold the enrollment back: re-running a step that already
described a send would send twice. The failure is logged to
automation_logs with status "failed" and reported in the run summary.
If any other write fails the whole step rolls back, mutation included,
and the next tick retries it.
"""

import time
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime, timedelta
from typing import Any

from franchise_ops.config import settings
from franchise_ops.db.pool import db_pool
from franchise_ops.features.automations.domain import (
    AutomationEnrollment,
    AutomationStep,
    ProcessorRunResult,
    StepResult,
)
from franchise_ops.features.automations.repository.activity_log_repository import (
    ActivityLogRepository,
)
from franchise_ops.features.automations.repository.automation_repository import (
    AutomationRepository,
)
from franchise_ops.features.automations.steps import StepCatalog, activity_type, default_steps
from franchise_ops.infrastructure.locks.run_lock import RunLock, run_lock
from franchise_ops.infrastructure.observability.logging import get_logger, log_run_summary

logger = get_logger(__name__)

MOCK_PREFIX = "[MOCK] "

TransactionFactory = Callable[[], AbstractAsyncContextManager[Any]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AutomationProcessor:
    def __init__(
        self,
        repository: Any = AutomationRepository,
        logs: Any = ActivityLogRepository,
        steps: StepCatalog | None = None,
        lock: RunLock | None = None,
        transaction: TransactionFactory | None = None,
        batch_size: int | None = None,
        mock_mode: bool | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._repository = repository
        self._logs = logs
        self._steps = steps or default_steps
        self._lock = lock or run_lock
        self._transaction = transaction or db_pool.transaction
        self._batch_size = batch_size or settings.AUTOMATION_BATCH_SIZE
        self._mock_mode = settings.AUTOMATION_MOCK_MODE if mock_mode is None else mock_mode
        self._clock = clock

    async def run(self) -> ProcessorRunResult:
        started = time.monotonic()
        now = self._clock()
        result = ProcessorRunResult()

        enrollments = await self._repository.load_due_enrollments(now, self._batch_size)
        result.total = len(enrollments)
        if not enrollments:
            logger.info("No enrollments to process")
            return result

        for enrollment in enrollments:
            try:
                async with self._lock.hold(f"automation:enrollment:{enrollment.id}") as acquired:
                    if not acquired:
                        result.skipped += 1
                        continue
                    if await self._process(enrollment, now, result):
                        result.processed += 1
                    else:
                        result.skipped += 1
            except Exception as e:
                logger.error(
                    "Error processing enrollment",
                    enrollment_id=enrollment.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.record_error(f"Enrollment {enrollment.id} failed: {e}")

        log_run_summary("automation_processor", result.to_dict(), time.monotonic() - started)
        return result

    async def _process(
        self, enrollment: AutomationEnrollment, now: datetime, result: ProcessorRunResult
    ) -> bool:
        """Advance one enrollment. False when it was left untouched."""
        if not enrollment.automation.is_active:
            logger.debug(
                "Automation paused, enrollment left as is",
                enrollment_id=enrollment.id,
                automation_id=enrollment.automation_id,
            )
            return False

        step = await self._repository.load_step(
            enrollment.automation_id, enrollment.current_step_order
        )
        if step is None:
            await self._repository.complete_enrollment(enrollment.id, now)
            return True

        step_result = self._steps.execute(step, enrollment.lead, enrollment.automation)

        next_position = (
            step_result.flow.next_position if step_result.flow else step.position + 1
        )
        next_step = None
        if next_position is not None:
            next_step = await self._repository.load_step(enrollment.automation_id, next_position)

        async with self._transaction() as conn:
            mutation_error = await self._apply_mutation(enrollment, step, step_result, conn)
            await self._write_logs(enrollment, step, step_result, mutation_error, conn)
            if next_step is not None:
                await self._repository.advance_enrollment(
                    enrollment.id,
                    enrollment.current_step_order,
                    next_step.position,
                    now + timedelta(seconds=next_step.delay_seconds or 0),
                    connection=conn,
                )
            else:
                await self._repository.complete_enrollment(enrollment.id, now, connection=conn)

        if mutation_error is not None:
            result.error_messages.append(
                f"Step {step.position} mutation failed for enrollment {enrollment.id}: "
                f"{mutation_error}"
            )

        logger.info(
            "Enrollment step executed",
            enrollment_id=enrollment.id,
            step_position=step.position,
            step_type=step.step_type,
            next_position=next_step.position if next_step else None,
        )
        return True

    async def _apply_mutation(
        self,
        enrollment: AutomationEnrollment,
        step: AutomationStep,
        step_result: StepResult,
        conn: Any,
    ) -> str | None:
        if step_result.mutation is None:
            return None

        try:
            async with conn.transaction():
                await self._repository.apply_lead_mutation(
                    enrollment.lead_id, step_result.mutation, connection=conn
                )
        except Exception as e:
            logger.error(
                "Lead mutation failed, advancing anyway",
                enrollment_id=enrollment.id,
                step_id=step.id,
                column=step_result.mutation.column,
                error=str(e),
            )
            return str(e)
        return None

    async def _write_logs(
        self,
        enrollment: AutomationEnrollment,
        step: AutomationStep,
        step_result: StepResult,
        mutation_error: str | None,
        conn: Any,
    ) -> None:
        await self._logs.insert_automation_log(
            enrollment.id, step.id, "success", step_result.to_log(), connection=conn
        )

        prefix = MOCK_PREFIX if self._mock_mode else ""
        await self._logs.insert_activity(
            enrollment.lead_id,
            activity_type(step.step_type),
            f"{prefix}{step_result.description}",
            {"automation_name": enrollment.automation.name, "step_position": step.position},
            connection=conn,
        )

        if mutation_error is not None:
            await self._logs.insert_automation_log(
                enrollment.id,
                step.id,
                "failed",
                {
                    "type": "mutation",
                    "column": step_result.mutation.column,
                    "error": mutation_error,
                },
                connection=conn,
            )


automation_processor = AutomationProcessor()


async def run_automation_processor() -> ProcessorRunResult:
    return await automation_processor.run()
