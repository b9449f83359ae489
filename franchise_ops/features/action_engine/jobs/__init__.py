"""
Job runners for the action engine feature.
"""

from .engine_job import run_action_engine_once, start_action_engine_scheduler

__all__ = ["run_action_engine_once", "start_action_engine_scheduler"]
