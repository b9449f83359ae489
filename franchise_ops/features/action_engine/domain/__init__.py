"""
Domain subpackage for the action engine feature.
"""

from .models import (
    ACTIVE_STATUSES,
    PRIORITY_RANK,
    ActionItem,
    ActionItemOutput,
    AdSpendDay,
    ComplianceItem,
    DriveAppointment,
    EngineRunResult,
    EvaluationContext,
    Finding,
    KpiSnapshot,
    LeadSummary,
    Location,
    NetworkBenchmark,
    Review,
    RuleOutcome,
    StudentBalance,
    can_transition,
)

__all__ = [
    "ACTIVE_STATUSES",
    "PRIORITY_RANK",
    "ActionItem",
    "ActionItemOutput",
    "AdSpendDay",
    "ComplianceItem",
    "DriveAppointment",
    "EngineRunResult",
    "EvaluationContext",
    "Finding",
    "KpiSnapshot",
    "LeadSummary",
    "Location",
    "NetworkBenchmark",
    "Review",
    "RuleOutcome",
    "StudentBalance",
    "can_transition",
]
