"""
Action engine routes.

- /engine/evaluate is called by the scheduler; it runs one full engine
  pass and returns the run summary. It requires the bearer secret only
  once one is configured.
- /actions serves the dashboard's action item list and lifecycle
  changes; it always requires the service bearer secret.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from franchise_ops.auth.cron import cron_auth_if_configured, require_cron_auth
from franchise_ops.features.action_engine.api.schemas import (
    ActionItemListResponse,
    ActionItemResponse,
    ActionItemSummary,
    StatusChangeRequest,
)
from franchise_ops.features.action_engine.services import engine as engine_service
from franchise_ops.features.action_engine.services.action_item_service import (
    ActionItemNotFoundError,
    InvalidStatusTransition,
    action_item_service,
)
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["action-engine"])


@router.api_route(
    "/engine/evaluate",
    methods=["GET", "POST"],
    dependencies=[Depends(cron_auth_if_configured)],
    summary="Run the action engine once",
)
async def evaluate():
    try:
        result = await engine_service.run_action_engine()
    except Exception as e:
        logger.error("Action engine run failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content={"error": str(e)})

    return {"success": True, **result.to_dict()}


@router.get(
    "/actions",
    response_model=ActionItemListResponse,
    dependencies=[Depends(require_cron_auth)],
)
async def list_actions(
    location_id: str | None = Query(None, description="Restrict to one location"),
    status_filter: str = Query(
        "open,in_progress", alias="status", description="Comma-separated statuses"
    ),
):
    statuses = [s.strip() for s in status_filter.split(",") if s.strip()]
    items, summary = await action_item_service.list_items(statuses, location_id)
    return ActionItemListResponse(
        items=[ActionItemResponse.from_item(item) for item in items],
        summary=ActionItemSummary(**summary),
    )


@router.patch(
    "/actions/{item_id}",
    response_model=ActionItemResponse,
    dependencies=[Depends(require_cron_auth)],
)
async def change_action_status(item_id: str, request: StatusChangeRequest):
    try:
        item = await action_item_service.change_status(item_id, request.status)
    except ActionItemNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Action item not found")
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return ActionItemResponse.from_item(item)
