"""
Domain models for the action engine.

Source rows are frozen dataclasses so a built EvaluationContext can be
handed to every rule without any rule being able to change what the next
one sees. Persisted action items stay mutable-free as well; repositories
return fresh instances after every write.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal

Priority = Literal["critical", "high", "medium", "low"]
Category = Literal[
    "lead_followup",
    "scheduling",
    "marketing",
    "compliance",
    "operations",
    "financial",
    "performance",
    "reputation",
]
GeneratedBy = Literal["system_rule", "benchmark_comparison", "compliance_check", "trend_alert"]
ActionStatus = Literal["open", "in_progress", "resolved", "expired", "dismissed"]

PRIORITIES: tuple[Priority, ...] = ("critical", "high", "medium", "low")
PRIORITY_RANK: dict[str, int] = {name: rank for rank, name in enumerate(PRIORITIES)}

CATEGORIES: tuple[Category, ...] = (
    "lead_followup",
    "scheduling",
    "marketing",
    "compliance",
    "operations",
    "financial",
    "performance",
    "reputation",
)

ACTIVE_STATUSES: tuple[ActionStatus, ...] = ("open", "in_progress")
TERMINAL_STATUSES: tuple[ActionStatus, ...] = ("resolved", "expired", "dismissed")

# User-driven lifecycle. The engine itself only creates "open" rows and
# moves "open" rows to "resolved".
STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "open": ("in_progress", "resolved", "dismissed", "expired"),
    "in_progress": ("resolved", "expired"),
    "resolved": (),
    "expired": (),
    "dismissed": (),
}


def can_transition(current: str, target: str) -> bool:
    return target in STATUS_TRANSITIONS.get(current, ())


# =================================================================
# CONTEXT SOURCE ROWS
# =================================================================


@dataclass(frozen=True, slots=True)
class Location:
    id: str
    name: str
    organization_id: str
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class KpiSnapshot:
    """One kpi_daily row. Metrics are None when the rollup had no data."""

    date: date
    new_leads: int | None = None
    leads_enrolled: int | None = None
    contact_rate: float | None = None
    cost_per_lead: float | None = None
    total_calls_inbound: int | None = None
    total_calls_outbound: int | None = None
    calls_missed: int | None = None
    missed_call_rate: float | None = None
    compliance_score: float | None = None
    gbp_overall_rating: float | None = None
    active_instructors: int | None = None
    active_vehicles: int | None = None
    vehicles_in_maintenance: int | None = None
    active_students: int | None = None
    revenue_collected: float | None = None
    revenue_outstanding: float | None = None


@dataclass(frozen=True, slots=True)
class LeadSummary:
    id: str
    first_name: str | None
    last_name: str | None
    source: str | None
    created_at: datetime
    converted_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


@dataclass(frozen=True, slots=True)
class ComplianceItem:
    id: str
    entity_type: str | None
    entity_name: str
    compliance_type: str
    expiry_date: date | None
    status: str  # current | expiring_soon | expired
    days_until_expiry: int | None


@dataclass(frozen=True, slots=True)
class AdSpendDay:
    date: date
    source: str | None
    spend: float
    impressions: int
    clicks: int
    conversions: int
    cpa: float | None


@dataclass(frozen=True, slots=True)
class Review:
    id: str
    reviewer_name: str | None
    star_rating: int
    review_date: datetime
    sentiment: str | None = None


@dataclass(frozen=True, slots=True)
class DriveAppointment:
    id: str
    student_id: str | None
    instructor_id: str | None
    scheduled_date: date
    status: str


@dataclass(frozen=True, slots=True)
class StudentBalance:
    id: str
    first_name: str | None
    last_name: str | None
    lessons_remaining: int
    balance_due: float


@dataclass(frozen=True, slots=True)
class NetworkBenchmark:
    period_end: date
    avg_contact_rate: float | None = None
    avg_cost_per_lead: float | None = None
    avg_missed_call_rate: float | None = None
    avg_compliance_score: float | None = None
    avg_review_score: float | None = None


# =================================================================
# EVALUATION
# =================================================================


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """Everything one location's rules may look at during a single run."""

    location_id: str
    location_name: str
    organization_id: str
    evaluated_at: datetime
    today_kpi: KpiSnapshot | None = None
    kpi_history: tuple[KpiSnapshot, ...] = ()
    uncontacted_leads: tuple[LeadSummary, ...] = ()
    recent_leads: tuple[LeadSummary, ...] = ()
    compliance_items: tuple[ComplianceItem, ...] = ()
    ad_spend_recent: tuple[AdSpendDay, ...] = ()
    ad_spend_baseline: tuple[AdSpendDay, ...] = ()
    unreplied_reviews: tuple[Review, ...] = ()
    recent_drives: tuple[DriveAppointment, ...] = ()
    active_students: tuple[StudentBalance, ...] = ()
    network_benchmarks: NetworkBenchmark | None = None


@dataclass(frozen=True, slots=True)
class Finding:
    """What a rule predicate reports; the catalog stamps the rule id."""

    category: Category
    priority: Priority
    title: str
    description: str
    recommended_action: str
    data: dict[str, Any] = field(default_factory=dict)
    generated_by: GeneratedBy = "system_rule"


@dataclass(frozen=True, slots=True)
class ActionItemOutput:
    rule_id: str
    category: Category
    priority: Priority
    title: str
    description: str
    recommended_action: str
    data_context: dict[str, Any]
    generated_by: GeneratedBy

    @classmethod
    def from_finding(cls, rule_id: str, finding: Finding) -> "ActionItemOutput":
        return cls(
            rule_id=rule_id,
            category=finding.category,
            priority=finding.priority,
            title=finding.title,
            description=finding.description,
            recommended_action=finding.recommended_action,
            data_context=dict(finding.data),
            generated_by=finding.generated_by,
        )


@dataclass(frozen=True, slots=True)
class RuleOutcome:
    """Result of one guarded rule call: a finding, nothing, or an error."""

    rule_id: str
    output: ActionItemOutput | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def fired(self) -> bool:
        return self.output is not None


# =================================================================
# PERSISTENCE
# =================================================================


@dataclass(frozen=True, slots=True)
class ActionItem:
    """Represents an action_items row."""

    id: str
    organization_id: str
    location_id: str
    rule_id: str
    category: str
    priority: str
    status: str
    title: str
    description: str
    recommended_action: str
    data_context: dict[str, Any]
    generated_by: str | None
    expires_at: datetime | None
    created_at: datetime
    updated_at: datetime
    location_name: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


@dataclass(slots=True)
class EngineRunResult:
    locations_processed: int = 0
    actions_generated: int = 0
    items_created: int = 0
    items_updated: int = 0
    items_resolved: int = 0
    locations_skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "locations_processed": self.locations_processed,
            "actions_generated": self.actions_generated,
            "items_created": self.items_created,
            "items_updated": self.items_updated,
            "items_resolved": self.items_resolved,
            "locations_skipped": self.locations_skipped,
            "errors": list(self.errors),
        }
