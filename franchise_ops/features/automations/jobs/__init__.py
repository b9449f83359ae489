"""
Job runners for the automations feature.
"""

from .processor_job import run_automation_processor_once, start_automation_processor_scheduler

__all__ = ["run_automation_processor_once", "start_automation_processor_scheduler"]
