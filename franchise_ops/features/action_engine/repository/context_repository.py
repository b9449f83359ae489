"""
Read-only persistence for the action engine's evaluation inputs.

Every method returns domain rows for one location. Numeric columns come
back from Postgres as Decimal; they are converted to float here so rule
predicates only ever deal with plain numbers.
"""

from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any

from franchise_ops.db.helpers import fetch_all, fetch_one, with_db_retry
from franchise_ops.features.action_engine.domain import (
    AdSpendDay,
    ComplianceItem,
    DriveAppointment,
    KpiSnapshot,
    LeadSummary,
    Location,
    NetworkBenchmark,
    Review,
    StudentBalance,
)
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

KPI_COLUMNS = (
    "new_leads",
    "leads_enrolled",
    "contact_rate",
    "cost_per_lead",
    "total_calls_inbound",
    "total_calls_outbound",
    "calls_missed",
    "missed_call_rate",
    "compliance_score",
    "gbp_overall_rating",
    "active_instructors",
    "active_vehicles",
    "vehicles_in_maintenance",
    "active_students",
    "revenue_collected",
    "revenue_outstanding",
)

BENCHMARK_COLUMNS = (
    "avg_contact_rate",
    "avg_cost_per_lead",
    "avg_missed_call_rate",
    "avg_compliance_score",
    "avg_review_score",
)


def _num(value: Any) -> Any:
    return float(value) if isinstance(value, Decimal) else value


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    return datetime.combine(value, time.min, tzinfo=UTC)


def _to_lead(row: dict) -> LeadSummary:
    return LeadSummary(
        id=str(row["id"]),
        first_name=row.get("first_name"),
        last_name=row.get("last_name"),
        source=row.get("source"),
        created_at=_as_datetime(row["created_at"]),
        converted_at=row.get("converted_at"),
    )


class LocationRepository:
    """Locations are owned elsewhere; the engine only reads them."""

    @classmethod
    @with_db_retry()
    async def load_active_locations(cls, organization_id: str) -> list[Location]:
        query = """
            SELECT id, name, organization_id, is_active
            FROM locations
            WHERE organization_id = %s AND is_active = true
            ORDER BY name
        """
        rows = await fetch_all(query, (organization_id,))
        return [
            Location(
                id=str(row["id"]),
                name=row["name"],
                organization_id=str(row["organization_id"]),
                is_active=row["is_active"],
            )
            for row in rows
        ]


class ContextSourceRepository:
    """Queries behind the EvaluationContext, one method per source table."""

    @classmethod
    async def load_kpi_history(cls, location_id: str, since: date) -> list[KpiSnapshot]:
        query = f"""
            SELECT date, {", ".join(KPI_COLUMNS)}
            FROM kpi_daily
            WHERE location_id = %s AND date >= %s
            ORDER BY date ASC
        """
        rows = await fetch_all(query, (location_id, since))
        return [
            KpiSnapshot(date=row["date"], **{col: _num(row.get(col)) for col in KPI_COLUMNS})
            for row in rows
        ]

    @classmethod
    async def load_uncontacted_leads(cls, location_id: str, since: date) -> list[LeadSummary]:
        """Backed by the optional get_uncontacted_leads() stored function."""
        query = "SELECT * FROM get_uncontacted_leads(%s, %s)"
        rows = await fetch_all(query, (location_id, since))
        return [_to_lead(row) for row in rows]

    @classmethod
    async def load_recent_leads(cls, location_id: str, since: date) -> list[LeadSummary]:
        query = """
            SELECT id, first_name, last_name, source, created_at, converted_at
            FROM leads
            WHERE location_id = %s AND is_archived = false AND created_at >= %s
            ORDER BY created_at ASC
        """
        rows = await fetch_all(query, (location_id, since))
        return [_to_lead(row) for row in rows]

    @classmethod
    async def load_compliance_items(cls, location_id: str) -> list[ComplianceItem]:
        query = """
            SELECT id, entity_type, entity_name, compliance_type, expiry_date, status
            FROM compliance_items
            WHERE location_id = %s
        """
        rows = await fetch_all(query, (location_id,))
        return [
            ComplianceItem(
                id=str(row["id"]),
                entity_type=row.get("entity_type"),
                entity_name=row["entity_name"],
                compliance_type=row["compliance_type"],
                expiry_date=row.get("expiry_date"),
                status=row.get("status") or "current",
                days_until_expiry=None,
            )
            for row in rows
        ]

    @classmethod
    async def load_ad_spend(cls, location_id: str, since: date) -> list[AdSpendDay]:
        query = """
            SELECT date, source, spend, impressions, clicks, conversions, cpa
            FROM ad_spend_daily
            WHERE location_id = %s AND date >= %s
            ORDER BY date ASC
        """
        rows = await fetch_all(query, (location_id, since))
        return [
            AdSpendDay(
                date=row["date"],
                source=row.get("source"),
                spend=_num(row.get("spend")) or 0.0,
                impressions=row.get("impressions") or 0,
                clicks=row.get("clicks") or 0,
                conversions=row.get("conversions") or 0,
                cpa=_num(row.get("cpa")),
            )
            for row in rows
        ]

    @classmethod
    async def load_unreplied_reviews(cls, location_id: str) -> list[Review]:
        query = """
            SELECT id, reviewer_name, star_rating, review_date, sentiment
            FROM gbp_reviews
            WHERE location_id = %s AND has_reply = false
            ORDER BY review_date ASC
        """
        rows = await fetch_all(query, (location_id,))
        return [
            Review(
                id=str(row["id"]),
                reviewer_name=row.get("reviewer_name"),
                star_rating=int(row["star_rating"]),
                review_date=_as_datetime(row["review_date"]),
                sentiment=row.get("sentiment"),
            )
            for row in rows
        ]

    @classmethod
    async def load_recent_drives(cls, location_id: str, since: date) -> list[DriveAppointment]:
        query = """
            SELECT id, student_id, instructor_id, scheduled_date, status
            FROM drive_appointments
            WHERE location_id = %s AND scheduled_date >= %s
        """
        rows = await fetch_all(query, (location_id, since))
        return [
            DriveAppointment(
                id=str(row["id"]),
                student_id=str(row["student_id"]) if row.get("student_id") else None,
                instructor_id=str(row["instructor_id"]) if row.get("instructor_id") else None,
                scheduled_date=row["scheduled_date"],
                status=row["status"],
            )
            for row in rows
        ]

    @classmethod
    async def load_active_students(cls, location_id: str) -> list[StudentBalance]:
        query = """
            SELECT id, first_name, last_name, lessons_remaining, balance_due
            FROM students
            WHERE location_id = %s AND status = 'active'
        """
        rows = await fetch_all(query, (location_id,))
        return [
            StudentBalance(
                id=str(row["id"]),
                first_name=row.get("first_name"),
                last_name=row.get("last_name"),
                lessons_remaining=row.get("lessons_remaining") or 0,
                balance_due=_num(row.get("balance_due")) or 0.0,
            )
            for row in rows
        ]

    @classmethod
    async def load_latest_benchmark(cls, organization_id: str) -> NetworkBenchmark | None:
        query = f"""
            SELECT period_end, {", ".join(BENCHMARK_COLUMNS)}
            FROM network_benchmarks
            WHERE organization_id = %s
            ORDER BY period_end DESC
            LIMIT 1
        """
        row = await fetch_one(query, (organization_id,))
        if not row:
            return None
        return NetworkBenchmark(
            period_end=row["period_end"],
            **{col: _num(row.get(col)) for col in BENCHMARK_COLUMNS},
        )
