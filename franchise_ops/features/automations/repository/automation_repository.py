"""
Persistence for automations, their steps and lead enrollments.
"""

from datetime import datetime
from typing import Any

import psycopg
from psycopg import sql

from franchise_ops.db.helpers import execute_query, fetch_all, fetch_one
from franchise_ops.features.automations.domain import (
    FIRST_POSITION,
    Automation,
    AutomationEnrollment,
    AutomationStep,
    LeadMutation,
    LeadRecord,
)
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Lead columns automations may write. Column names never come from step config.
WRITABLE_LEAD_COLUMNS: dict[str, sql.Identifier] = {
    name: sql.Identifier(name) for name in ("score", "source", "email", "phone", "stage_id")
}


class AutomationRepositoryError(Exception):
    """Raised when an enrollment write does not match the expected state."""

    def __init__(self, message: str, enrollment_id: str | None = None):
        super().__init__(message)
        self.enrollment_id = enrollment_id


def _to_lead(row: dict, id_key: str = "lead_id") -> LeadRecord | None:
    if not row.get(id_key):
        return None
    return LeadRecord(
        id=str(row[id_key]),
        first_name=row.get("first_name"),
        last_name=row.get("last_name"),
        email=row.get("email"),
        phone=row.get("phone"),
        source=row.get("source"),
        score=row.get("score"),
        stage_id=str(row["stage_id"]) if row.get("stage_id") else None,
    )


def _to_automation(row: dict) -> Automation:
    return Automation(
        id=str(row["automation_id"]),
        name=row["automation_name"],
        location_id=str(row["location_id"]),
        is_active=bool(row["automation_is_active"]),
        location_name=row.get("location_name"),
        location_phone=row.get("location_phone"),
    )


def _to_enrollment(row: dict, automation: Automation | None = None) -> AutomationEnrollment:
    return AutomationEnrollment(
        id=str(row["id"]),
        automation_id=str(row["automation_id"]),
        lead_id=str(row["lead_id"]),
        current_step_order=row["current_step_order"],
        status=row["status"],
        next_execution_at=row.get("next_execution_at"),
        automation=automation or _to_automation(row),
        lead=_to_lead(row, "lead_record_id"),
        started_at=row.get("started_at"),
        completed_at=row.get("completed_at"),
    )


class AutomationRepository:
    ENROLLMENT_SELECT = """
        SELECT e.id, e.automation_id, e.lead_id, e.current_step_order, e.status,
               e.next_execution_at, e.started_at, e.completed_at,
               a.name AS automation_name, a.location_id, a.is_active AS automation_is_active,
               loc.name AS location_name, loc.phone AS location_phone,
               ld.id AS lead_record_id, ld.first_name, ld.last_name, ld.email, ld.phone,
               ld.source, ld.score, ld.stage_id
        FROM automation_enrollments e
        JOIN automations a ON a.id = e.automation_id
        LEFT JOIN locations loc ON loc.id = a.location_id
        LEFT JOIN leads ld ON ld.id = e.lead_id
    """

    @classmethod
    async def load_due_enrollments(cls, now: datetime, limit: int) -> list[AutomationEnrollment]:
        """Active enrollments whose next execution is at or before now, oldest due first."""
        query = f"""
            {cls.ENROLLMENT_SELECT}
            WHERE e.status = 'active' AND e.next_execution_at <= %s
            ORDER BY e.next_execution_at ASC
            LIMIT %s
        """
        rows = await fetch_all(query, (now, limit))
        return [_to_enrollment(row) for row in rows]

    @classmethod
    async def list_enrollments(cls, automation_id: str) -> list[AutomationEnrollment]:
        query = f"""
            {cls.ENROLLMENT_SELECT}
            WHERE e.automation_id = %s
            ORDER BY e.started_at DESC
        """
        rows = await fetch_all(query, (automation_id,))
        return [_to_enrollment(row) for row in rows]

    @classmethod
    async def load_automation(cls, automation_id: str) -> Automation | None:
        query = """
            SELECT a.id AS automation_id, a.name AS automation_name, a.location_id,
                   a.is_active AS automation_is_active,
                   loc.name AS location_name, loc.phone AS location_phone
            FROM automations a
            LEFT JOIN locations loc ON loc.id = a.location_id
            WHERE a.id = %s
        """
        row = await fetch_one(query, (automation_id,))
        return _to_automation(row) if row else None

    @classmethod
    async def load_lead(cls, lead_id: str) -> LeadRecord | None:
        query = """
            SELECT id AS lead_id, first_name, last_name, email, phone, source, score, stage_id
            FROM leads
            WHERE id = %s
        """
        row = await fetch_one(query, (lead_id,))
        return _to_lead(row) if row else None

    @classmethod
    async def load_step(cls, automation_id: str, position: int) -> AutomationStep | None:
        query = """
            SELECT id, automation_id, position, step_type, step_config, delay_seconds
            FROM automation_steps
            WHERE automation_id = %s AND position = %s
        """
        row = await fetch_one(query, (automation_id, position))
        if not row:
            return None
        return AutomationStep(
            id=str(row["id"]),
            automation_id=str(row["automation_id"]),
            position=row["position"],
            step_type=row["step_type"],
            step_config=row.get("step_config") or {},
            delay_seconds=row.get("delay_seconds") or 0,
        )

    @classmethod
    async def advance_enrollment(
        cls,
        enrollment_id: str,
        from_position: int,
        next_position: int,
        next_execution_at: datetime,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> None:
        """Move an active enrollment forward; fails if another writer moved it first."""
        query = """
            UPDATE automation_enrollments
            SET current_step_order = %s, next_execution_at = %s
            WHERE id = %s AND status = 'active' AND current_step_order = %s
        """
        affected = await execute_query(
            query,
            (next_position, next_execution_at, enrollment_id, from_position),
            connection=connection,
        )
        if affected == 0:
            raise AutomationRepositoryError(
                f"Enrollment {enrollment_id} is no longer active at step {from_position}",
                enrollment_id=enrollment_id,
            )

    @classmethod
    async def complete_enrollment(
        cls,
        enrollment_id: str,
        completed_at: datetime,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> bool:
        query = """
            UPDATE automation_enrollments
            SET status = 'completed', completed_at = %s
            WHERE id = %s AND status = 'active'
        """
        affected = await execute_query(query, (completed_at, enrollment_id), connection=connection)
        if affected:
            logger.info("Enrollment completed", enrollment_id=enrollment_id)
        return affected > 0

    @classmethod
    async def apply_lead_mutation(
        cls,
        lead_id: str,
        mutation: LeadMutation,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> None:
        column = WRITABLE_LEAD_COLUMNS.get(mutation.column)
        if column is None:
            raise ValueError(f"Lead column {mutation.column!r} is not writable by automations")

        query = sql.SQL("UPDATE leads SET {column} = %s, updated_at = NOW() WHERE id = %s").format(
            column=column
        )
        affected = await execute_query(query, (mutation.value, lead_id), connection=connection)
        if affected == 0:
            raise AutomationRepositoryError(f"Lead {lead_id} not found")

        logger.info("Lead updated by automation", lead_id=lead_id, column=mutation.column)

    @classmethod
    async def create_enrollment(
        cls, automation: Automation, lead_id: str, now: datetime
    ) -> AutomationEnrollment | None:
        """Insert an active enrollment at the first step. None if one is already active."""
        query = """
            INSERT INTO automation_enrollments (
                automation_id, lead_id, current_step_order, status, next_execution_at, started_at
            )
            VALUES (%s, %s, %s, 'active', %s, %s)
            ON CONFLICT (automation_id, lead_id) WHERE status = 'active'
            DO NOTHING
            RETURNING id, automation_id, lead_id, current_step_order, status,
                      next_execution_at, started_at, completed_at
        """
        row = await fetch_one(query, (automation.id, lead_id, FIRST_POSITION, now, now))
        if row is None:
            return None

        logger.info("Lead enrolled", automation_id=automation.id, lead_id=lead_id)
        return _to_enrollment(row, automation)

    @classmethod
    async def find_active_enrollment(cls, automation_id: str, lead_id: str) -> dict[str, Any] | None:
        query = """
            SELECT id
            FROM automation_enrollments
            WHERE automation_id = %s AND lead_id = %s AND status = 'active'
            LIMIT 1
        """
        return await fetch_one(query, (automation_id, lead_id))
