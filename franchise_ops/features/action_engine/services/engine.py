"""
Action engine run orchestration.

One run evaluates every active location of the configured organization:
build the location's context, evaluate the rule catalog, then reconcile
the fired outputs against the location's active action items. Failures
are isolated per rule and per location and collected into the run's
error list; nothing short of failing to load the location list stops
the run.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from franchise_ops.config import settings
from franchise_ops.features.action_engine.domain import (
    ActionItemOutput,
    EngineRunResult,
    Location,
    NetworkBenchmark,
)
from franchise_ops.features.action_engine.repository.action_item_repository import (
    ActionItemRepository,
)
from franchise_ops.features.action_engine.repository.context_repository import (
    ContextSourceRepository,
    LocationRepository,
)
from franchise_ops.features.action_engine.rules import RuleCatalog, default_catalog
from franchise_ops.features.action_engine.services.context_builder import ContextBuilder
from franchise_ops.features.action_engine.services.reconciler import (
    ReconciliationPlan,
    plan_reconciliation,
)
from franchise_ops.infrastructure.locks.run_lock import RunLock, run_lock
from franchise_ops.infrastructure.observability.logging import get_logger, log_run_summary

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ActionEngine:
    def __init__(
        self,
        locations: Any = LocationRepository,
        sources: Any = ContextSourceRepository,
        items: Any = ActionItemRepository,
        catalog: RuleCatalog | None = None,
        lock: RunLock | None = None,
        organization_id: str | None = None,
        expiry_days: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._locations = locations
        self._sources = sources
        self._items = items
        self._catalog = catalog if catalog is not None else default_catalog
        self._lock = lock or run_lock
        self._organization_id = organization_id or settings.ORGANIZATION_ID
        self._expiry_days = expiry_days or settings.ACTION_ITEM_EXPIRY_DAYS
        self._clock = clock
        self._builder = ContextBuilder(sources)

    async def run(self) -> EngineRunResult:
        """Evaluate all active locations and reconcile their action items."""
        started = time.monotonic()
        now = self._clock()
        result = EngineRunResult()

        try:
            locations = await self._locations.load_active_locations(self._organization_id)
        except Exception as e:
            logger.error(
                "Failed to load locations",
                organization_id=self._organization_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            result.errors.append(f"Failed to load locations: {e}")
            return result

        if not locations:
            logger.warning("No active locations found", organization_id=self._organization_id)
            result.errors.append("No active locations found")
            return result

        benchmark = await self._load_benchmark()

        for location in locations:
            try:
                async with self._lock.hold(f"action-engine:location:{location.id}") as acquired:
                    if not acquired:
                        result.locations_skipped += 1
                        continue
                    await self._process_location(location, benchmark, now, result)
            except Exception as e:
                message = f"Engine failed for {location.name}: {e}"
                logger.error(
                    "Location evaluation failed",
                    location_id=location.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.errors.append(message)
            result.locations_processed += 1

        log_run_summary("action_engine", result.to_dict(), time.monotonic() - started)
        return result

    async def _load_benchmark(self) -> NetworkBenchmark | None:
        try:
            return await self._sources.load_latest_benchmark(self._organization_id)
        except Exception as e:
            logger.debug("Network benchmark unavailable", error=str(e))
            return None

    async def _process_location(
        self,
        location: Location,
        benchmark: NetworkBenchmark | None,
        now: datetime,
        result: EngineRunResult,
    ) -> None:
        built = await self._builder.build(location, benchmark, now)
        for failure in built.failed_sources:
            result.errors.append(f"Context source failed for {location.name}: {failure}")

        outputs: list[ActionItemOutput] = []
        for outcome in self._catalog.evaluate(built.context):
            if not outcome.ok:
                logger.warning(
                    "Rule evaluation failed",
                    location_id=location.id,
                    rule_id=outcome.rule_id,
                    error=outcome.error,
                )
                result.errors.append(
                    f"Rule {outcome.rule_id} failed for {location.name}: {outcome.error}"
                )
            elif outcome.fired:
                outputs.append(outcome.output)

        active_items = await self._items.load_active_items(location.id)
        plan = plan_reconciliation(outputs, active_items)
        await self._apply_plan(location, plan, now, result)

        result.actions_generated += len(outputs)
        logger.info(
            "Location evaluated",
            location_id=location.id,
            fired=len(outputs),
            resolved=len(plan.resolve),
            updated=len(plan.update),
            created=len(plan.create),
        )

    async def _apply_plan(
        self,
        location: Location,
        plan: ReconciliationPlan,
        now: datetime,
        result: EngineRunResult,
    ) -> None:
        if plan.resolve:
            result.items_resolved += await self._items.resolve_open_items(
                location.id, [item.id for item in plan.resolve]
            )

        to_create = list(plan.create)
        for existing, output in plan.update:
            if await self._items.update_content(existing.id, output):
                result.items_updated += 1
            else:
                # Item left the active set since it was read
                to_create.append(output)

        expires_at = now + timedelta(days=self._expiry_days)
        for output in to_create:
            created = await self._items.insert_item(
                location.organization_id, location.id, output, expires_at
            )
            if created is not None:
                result.items_created += 1
            elif await self._items.update_content_by_rule(location.id, output):
                # A concurrent run inserted the active row first
                result.items_updated += 1


action_engine = ActionEngine()


async def run_action_engine() -> EngineRunResult:
    return await action_engine.run()
