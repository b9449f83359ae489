"""
Action engine feature package.

Evaluates every active location against the rule catalog and reconciles
the findings into deduplicated, lifecycle-managed action items. Domain
models, rules, repositories, services, jobs and the HTTP router live
side by side in this package.
"""

from .api.router import router as action_engine_router  # noqa: F401
from .services.engine import ActionEngine, action_engine, run_action_engine  # noqa: F401
from .jobs.engine_job import run_action_engine_once, start_action_engine_scheduler  # noqa: F401
