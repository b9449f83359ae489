"""
Insert-only audit trail: per-step automation logs and the lead timeline.
"""

from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from franchise_ops.db.helpers import execute_query


class ActivityLogRepository:
    @classmethod
    async def insert_automation_log(
        cls,
        enrollment_id: str,
        step_id: str,
        status: str,
        result: dict[str, Any],
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> None:
        query = """
            INSERT INTO automation_logs (enrollment_id, step_id, status, result)
            VALUES (%s, %s, %s, %s)
        """
        await execute_query(
            query, (enrollment_id, step_id, status, Jsonb(result)), connection=connection
        )

    @classmethod
    async def insert_activity(
        cls,
        lead_id: str,
        activity_type: str,
        notes: str,
        metadata: dict[str, Any],
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> None:
        query = """
            INSERT INTO activity_logs (lead_id, activity_type, notes, metadata)
            VALUES (%s, %s, %s, %s)
        """
        await execute_query(
            query, (lead_id, activity_type, notes, Jsonb(metadata)), connection=connection
        )
