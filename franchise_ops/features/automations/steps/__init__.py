"""
Step executors for lead automations.
"""

from .catalog import (
    MUTABLE_LEAD_FIELDS,
    StepCatalog,
    StepConfigurationError,
    activity_type,
    default_steps,
    evaluate_condition,
    merge_values,
    render,
)

__all__ = [
    "MUTABLE_LEAD_FIELDS",
    "StepCatalog",
    "StepConfigurationError",
    "activity_type",
    "default_steps",
    "evaluate_condition",
    "merge_values",
    "render",
]
