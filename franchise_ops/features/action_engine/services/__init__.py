"""
Service layer for the action engine feature.
"""

from .action_item_service import (
    ActionItemNotFoundError,
    ActionItemService,
    InvalidStatusTransition,
    action_item_service,
)
from .context_builder import ContextBuilder, ContextBuildResult
from .engine import ActionEngine, action_engine, run_action_engine
from .reconciler import ReconciliationPlan, plan_reconciliation

__all__ = [
    "ActionEngine",
    "ActionItemNotFoundError",
    "ActionItemService",
    "ContextBuildResult",
    "ContextBuilder",
    "InvalidStatusTransition",
    "ReconciliationPlan",
    "action_engine",
    "action_item_service",
    "plan_reconciliation",
    "run_action_engine",
]
