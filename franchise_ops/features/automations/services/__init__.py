"""
Service layer for the automations feature.
"""

from .enrollment_service import (
    AutomationNotFoundError,
    EnrollmentConflictError,
    EnrollmentService,
    LeadNotFoundError,
    enrollment_service,
)
from .processor import AutomationProcessor, automation_processor, run_automation_processor

__all__ = [
    "AutomationNotFoundError",
    "AutomationProcessor",
    "EnrollmentConflictError",
    "EnrollmentService",
    "LeadNotFoundError",
    "automation_processor",
    "enrollment_service",
    "run_automation_processor",
]
