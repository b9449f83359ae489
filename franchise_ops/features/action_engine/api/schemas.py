"""
Action engine API request/response models.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from franchise_ops.features.action_engine.domain import ActionItem


class ActionItemResponse(BaseModel):
    """Response model for one action item."""

    id: str
    location_id: str
    location_name: str | None = None
    rule_id: str
    category: str
    priority: str
    status: str
    title: str
    description: str
    recommended_action: str
    data_context: dict[str, Any] = Field(default_factory=dict)
    generated_by: str | None = None
    expires_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_item(cls, item: ActionItem) -> "ActionItemResponse":
        return cls(
            id=item.id,
            location_id=item.location_id,
            location_name=item.location_name,
            rule_id=item.rule_id,
            category=item.category,
            priority=item.priority,
            status=item.status,
            title=item.title,
            description=item.description,
            recommended_action=item.recommended_action,
            data_context=item.data_context,
            generated_by=item.generated_by,
            expires_at=item.expires_at,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


class ActionItemSummary(BaseModel):
    total: int = Field(..., description="Number of items returned")
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)


class ActionItemListResponse(BaseModel):
    items: list[ActionItemResponse]
    summary: ActionItemSummary


class StatusChangeRequest(BaseModel):
    """Request for moving an action item through its lifecycle."""

    status: str = Field(..., description="Target status: in_progress, resolved, dismissed or expired")
