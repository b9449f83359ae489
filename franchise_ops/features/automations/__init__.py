"""
Automations feature package.

Ordered per-lead workflows: step executors, the processor that advances
due enrollments, manual enrollment, and the scheduler-facing routes.
"""

from .api.router import router as automations_router  # noqa: F401
from .services.processor import AutomationProcessor, run_automation_processor  # noqa: F401
from .jobs.processor_job import (  # noqa: F401
    run_automation_processor_once,
    start_automation_processor_scheduler,
)
