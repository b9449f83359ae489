"""
Domain subpackage for the automations feature.
"""

from .models import (
    FIRST_POSITION,
    STEP_TYPES,
    Automation,
    AutomationEnrollment,
    AutomationStep,
    FlowDirective,
    LeadMutation,
    LeadRecord,
    ProcessorRunResult,
    StepResult,
)

__all__ = [
    "FIRST_POSITION",
    "STEP_TYPES",
    "Automation",
    "AutomationEnrollment",
    "AutomationStep",
    "FlowDirective",
    "LeadMutation",
    "LeadRecord",
    "ProcessorRunResult",
    "StepResult",
]
