"""
Assembles the EvaluationContext for one location.

All source queries for a location run concurrently. Each one fails soft:
a failing source contributes an empty value instead of aborting the
location. Regular sources report the failure back to the caller so it
can be surfaced in the run's error list; optional sources (the
uncontacted-leads stored function, which not every deployment installs)
are only logged.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any

from franchise_ops.config import settings
from franchise_ops.features.action_engine.domain import (
    ComplianceItem,
    EvaluationContext,
    KpiSnapshot,
    Location,
    NetworkBenchmark,
)
from franchise_ops.features.action_engine.repository.context_repository import (
    ContextSourceRepository,
)
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

EXPIRING_SOON_DAYS = 30
DERIVED_COMPLIANCE_STATUSES = {"current", "expiring_soon", "expired"}


@dataclass(slots=True)
class ContextBuildResult:
    context: EvaluationContext
    failed_sources: list[str] = field(default_factory=list)


def select_today_kpi(history: list[KpiSnapshot], today: date) -> KpiSnapshot | None:
    """Today's row if the rollup already ran, otherwise the most recent one."""
    for row in history:
        if row.date == today:
            return row
    return history[-1] if history else None


def classify_compliance(item: ComplianceItem, today: date) -> ComplianceItem:
    """Fill days_until_expiry and derive status from the expiry date."""
    if item.expiry_date is None:
        return item

    days_left = (item.expiry_date - today).days
    status = item.status
    if not status or status in DERIVED_COMPLIANCE_STATUSES:
        if days_left < 0:
            status = "expired"
        elif days_left <= EXPIRING_SOON_DAYS:
            status = "expiring_soon"
        else:
            status = "current"

    return replace(item, status=status, days_until_expiry=days_left)


class ContextBuilder:
    OPTIONAL_SOURCES = frozenset({"uncontacted_leads"})

    def __init__(
        self,
        sources: Any = ContextSourceRepository,
        history_days: int | None = None,
        recent_days: int | None = None,
    ):
        self._sources = sources
        self._history_days = history_days or settings.KPI_HISTORY_DAYS
        self._recent_days = recent_days or settings.RECENT_WINDOW_DAYS

    async def build(
        self,
        location: Location,
        benchmark: NetworkBenchmark | None,
        now: datetime,
    ) -> ContextBuildResult:
        today = now.date()
        history_since = today - timedelta(days=self._history_days)
        recent_since = today - timedelta(days=self._recent_days)
        failed: list[str] = []

        async def load(name: str, fetch: Callable[[], Awaitable[list]]) -> list:
            try:
                return list(await fetch())
            except Exception as e:
                if name in self.OPTIONAL_SOURCES:
                    logger.debug(
                        "Optional context source unavailable",
                        location_id=location.id,
                        source=name,
                        error=str(e),
                    )
                else:
                    logger.warning(
                        "Context source failed, using empty value",
                        location_id=location.id,
                        source=name,
                        error=str(e),
                    )
                    failed.append(f"{name}: {e}")
                return []

        src = self._sources
        (
            kpi_history,
            uncontacted,
            recent_leads,
            compliance,
            ad_spend,
            reviews,
            drives,
            students,
        ) = await asyncio.gather(
            load("kpi_history", lambda: src.load_kpi_history(location.id, history_since)),
            load("uncontacted_leads", lambda: src.load_uncontacted_leads(location.id, recent_since)),
            load("recent_leads", lambda: src.load_recent_leads(location.id, recent_since)),
            load("compliance_items", lambda: src.load_compliance_items(location.id)),
            load("ad_spend", lambda: src.load_ad_spend(location.id, history_since)),
            load("unreplied_reviews", lambda: src.load_unreplied_reviews(location.id)),
            load("recent_drives", lambda: src.load_recent_drives(location.id, recent_since)),
            load("active_students", lambda: src.load_active_students(location.id)),
        )

        kpi_history.sort(key=lambda row: row.date)

        context = EvaluationContext(
            location_id=location.id,
            location_name=location.name,
            organization_id=location.organization_id,
            evaluated_at=now,
            today_kpi=select_today_kpi(kpi_history, today),
            kpi_history=tuple(kpi_history),
            uncontacted_leads=tuple(uncontacted),
            recent_leads=tuple(recent_leads),
            compliance_items=tuple(classify_compliance(item, today) for item in compliance),
            ad_spend_recent=tuple(row for row in ad_spend if row.date >= recent_since),
            ad_spend_baseline=tuple(ad_spend),
            unreplied_reviews=tuple(reviews),
            recent_drives=tuple(drives),
            active_students=tuple(students),
            network_benchmarks=benchmark,
        )

        logger.debug(
            "Evaluation context built",
            location_id=location.id,
            kpi_days=len(kpi_history),
            failed_sources=len(failed),
        )
        return ContextBuildResult(context=context, failed_sources=failed)
