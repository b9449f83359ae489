"""
User-facing operations on action items: listing for the dashboard and
lifecycle transitions (start, resolve, dismiss, expire).
"""

from collections import Counter
from typing import Any

from franchise_ops.config import settings
from franchise_ops.features.action_engine.domain import (
    ACTIVE_STATUSES,
    PRIORITY_RANK,
    ActionItem,
    can_transition,
)
from franchise_ops.features.action_engine.repository.action_item_repository import (
    ActionItemRepository,
)
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ActionItemNotFoundError(Exception):
    """Raised when an action item id does not exist."""


class InvalidStatusTransition(Exception):
    """Raised when a status change is not allowed from the item's current status."""

    def __init__(self, item_id: str, current: str, target: str):
        super().__init__(f"Cannot move action item from '{current}' to '{target}'")
        self.item_id = item_id
        self.current = current
        self.target = target


def sort_items(items: list[ActionItem]) -> list[ActionItem]:
    """Most urgent first; newest first within the same priority."""
    newest_first = sorted(items, key=lambda item: item.created_at, reverse=True)
    return sorted(newest_first, key=lambda item: PRIORITY_RANK.get(item.priority, len(PRIORITY_RANK)))


def summarize(items: list[ActionItem]) -> dict[str, Any]:
    return {
        "total": len(items),
        "by_priority": dict(Counter(item.priority for item in items)),
        "by_category": dict(Counter(item.category for item in items)),
    }


class ActionItemService:
    def __init__(self, repository: Any = ActionItemRepository, organization_id: str | None = None):
        self._repository = repository
        self._organization_id = organization_id or settings.ORGANIZATION_ID

    async def list_items(
        self,
        statuses: list[str] | None = None,
        location_id: str | None = None,
    ) -> tuple[list[ActionItem], dict[str, Any]]:
        items = await self._repository.list_items(
            self._organization_id, list(statuses or ACTIVE_STATUSES), location_id
        )
        ordered = sort_items(items)
        return ordered, summarize(ordered)

    async def change_status(self, item_id: str, target: str) -> ActionItem:
        item = await self._repository.load_item(item_id)
        if item is None:
            raise ActionItemNotFoundError(item_id)

        if not can_transition(item.status, target):
            raise InvalidStatusTransition(item_id, item.status, target)

        updated = await self._repository.transition_status(item_id, item.status, target)
        if updated is None:
            # Row changed between read and write; report against what it is now
            latest = await self._repository.load_item(item_id)
            current = latest.status if latest else item.status
            raise InvalidStatusTransition(item_id, current, target)

        return updated


action_item_service = ActionItemService()
