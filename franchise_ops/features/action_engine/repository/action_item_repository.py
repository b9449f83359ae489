"""
Persistence for action_items.

Writes are guarded by status in their WHERE clauses, so a row a user has
moved on (dismissed, resolved, expired) since it was read is never
overwritten by a stale engine decision.
"""

from collections.abc import Iterable
from datetime import datetime

from psycopg.types.json import Jsonb

from franchise_ops.db.helpers import execute_query, fetch_all, fetch_one
from franchise_ops.features.action_engine.domain import ActionItem, ActionItemOutput
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ActionItemRepository:
    SELECT_COLUMNS = """
        ai.id, ai.organization_id, ai.location_id, ai.rule_id, ai.category, ai.priority,
        ai.status, ai.title, ai.description, ai.recommended_action, ai.data_context,
        ai.generated_by, ai.expires_at, ai.created_at, ai.updated_at
    """

    @classmethod
    def _row_to_item(cls, row: dict | None) -> ActionItem | None:
        if not row:
            return None

        return ActionItem(
            id=str(row["id"]),
            organization_id=str(row["organization_id"]),
            location_id=str(row["location_id"]),
            rule_id=row["rule_id"],
            category=row["category"],
            priority=row["priority"],
            status=row["status"],
            title=row["title"],
            description=row.get("description") or "",
            recommended_action=row.get("recommended_action") or "",
            data_context=row.get("data_context") or {},
            generated_by=row.get("generated_by"),
            expires_at=row.get("expires_at"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            location_name=row.get("location_name"),
        )

    @classmethod
    async def load_active_items(cls, location_id: str) -> list[ActionItem]:
        """Items for the location in open or in_progress."""
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM action_items ai
            WHERE ai.location_id = %s AND ai.status IN ('open', 'in_progress')
            ORDER BY ai.updated_at DESC
        """
        rows = await fetch_all(query, (location_id,))
        return [cls._row_to_item(row) for row in rows]

    @classmethod
    async def resolve_open_items(cls, location_id: str, item_ids: Iterable[str]) -> int:
        """Move still-open items to resolved; in_progress rows are left alone."""
        ids = list(item_ids)
        if not ids:
            return 0

        query = """
            UPDATE action_items
            SET status = 'resolved', updated_at = NOW()
            WHERE location_id = %s AND id = ANY(%s::uuid[]) AND status = 'open'
        """
        resolved = await execute_query(query, (location_id, ids))
        logger.info("Action items auto-resolved", location_id=location_id, count=resolved)
        return resolved

    @classmethod
    async def update_content(cls, item_id: str, output: ActionItemOutput) -> bool:
        """Refresh content of an active item in place; identity and status are kept."""
        query = """
            UPDATE action_items
            SET priority = %s,
                title = %s,
                description = %s,
                recommended_action = %s,
                data_context = %s,
                updated_at = NOW()
            WHERE id = %s AND status IN ('open', 'in_progress')
        """
        affected = await execute_query(query, (*cls._content_params(output), item_id))
        return affected > 0

    @classmethod
    async def update_content_by_rule(cls, location_id: str, output: ActionItemOutput) -> bool:
        """Same as update_content, addressed by the (location, rule_id) dedup key."""
        query = """
            UPDATE action_items
            SET priority = %s,
                title = %s,
                description = %s,
                recommended_action = %s,
                data_context = %s,
                updated_at = NOW()
            WHERE location_id = %s AND rule_id = %s AND status IN ('open', 'in_progress')
        """
        affected = await execute_query(
            query, (*cls._content_params(output), location_id, output.rule_id)
        )
        return affected > 0

    @classmethod
    async def insert_item(
        cls,
        organization_id: str,
        location_id: str,
        output: ActionItemOutput,
        expires_at: datetime,
    ) -> ActionItem | None:
        """
        Insert a new open item. Returns None when an active row for the same
        (location, rule_id) already exists (partial unique index conflict).
        """
        query = f"""
            INSERT INTO action_items AS ai (
                organization_id, location_id, rule_id, category, priority, status,
                title, description, recommended_action, data_context, generated_by, expires_at
            )
            VALUES (%s, %s, %s, %s, %s, 'open', %s, %s, %s, %s, %s, %s)
            ON CONFLICT (location_id, rule_id) WHERE status IN ('open', 'in_progress')
            DO NOTHING
            RETURNING {cls.SELECT_COLUMNS}
        """
        params = (
            organization_id,
            location_id,
            output.rule_id,
            output.category,
            output.priority,
            output.title,
            output.description,
            output.recommended_action,
            Jsonb(output.data_context),
            output.generated_by,
            expires_at,
        )
        row = await fetch_one(query, params)
        if row is None:
            logger.info(
                "Active action item already exists",
                location_id=location_id,
                rule_id=output.rule_id,
            )
            return None

        logger.info(
            "Action item created",
            location_id=location_id,
            rule_id=output.rule_id,
            priority=output.priority,
        )
        return cls._row_to_item(row)

    @classmethod
    async def list_items(
        cls,
        organization_id: str,
        statuses: list[str],
        location_id: str | None = None,
    ) -> list[ActionItem]:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}, l.name AS location_name
            FROM action_items ai
            LEFT JOIN locations l ON l.id = ai.location_id
            WHERE ai.organization_id = %s AND ai.status = ANY(%s)
        """
        params: tuple = (organization_id, statuses)
        if location_id:
            query += " AND ai.location_id = %s"
            params += (location_id,)
        query += " ORDER BY ai.created_at DESC"

        rows = await fetch_all(query, params)
        return [cls._row_to_item(row) for row in rows]

    @classmethod
    async def load_item(cls, item_id: str) -> ActionItem | None:
        query = f"SELECT {cls.SELECT_COLUMNS} FROM action_items ai WHERE ai.id = %s"
        return cls._row_to_item(await fetch_one(query, (item_id,)))

    @classmethod
    async def transition_status(
        cls, item_id: str, from_status: str, to_status: str
    ) -> ActionItem | None:
        """Compare-and-set status change. None if the row moved in the meantime."""
        query = f"""
            UPDATE action_items AS ai
            SET status = %s, updated_at = NOW()
            WHERE ai.id = %s AND ai.status = %s
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(query, (to_status, item_id, from_status))
        if row:
            logger.info(
                "Action item status changed",
                item_id=item_id,
                from_status=from_status,
                to_status=to_status,
            )
        return cls._row_to_item(row)

    @staticmethod
    def _content_params(output: ActionItemOutput) -> tuple:
        return (
            output.priority,
            output.title,
            output.description,
            output.recommended_action,
            Jsonb(output.data_context),
        )
