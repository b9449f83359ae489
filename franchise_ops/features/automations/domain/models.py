"""
Domain models for lead automations.

An automation is an ordered list of steps (positions start at 1). An
enrollment is one lead's pointer into that list; the processor advances
it one step per tick once its next_execution_at is due.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

StepType = Literal[
    "send_sms",
    "send_email",
    "wait_delay",
    "change_stage",
    "update_lead",
    "notify_user",
    "webhook",
    "condition",
]
EnrollmentStatus = Literal["active", "completed"]
LogStatus = Literal["success", "failed"]

STEP_TYPES: tuple[StepType, ...] = (
    "send_sms",
    "send_email",
    "wait_delay",
    "change_stage",
    "update_lead",
    "notify_user",
    "webhook",
    "condition",
)

FIRST_POSITION = 1


@dataclass(frozen=True, slots=True)
class LeadRecord:
    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    source: str | None = None
    score: int | None = None
    stage_id: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


@dataclass(frozen=True, slots=True)
class Automation:
    id: str
    name: str
    location_id: str
    is_active: bool
    location_name: str | None = None
    location_phone: str | None = None


@dataclass(frozen=True, slots=True)
class AutomationStep:
    id: str
    automation_id: str
    position: int
    step_type: str
    step_config: dict[str, Any] = field(default_factory=dict)
    delay_seconds: int = 0


@dataclass(frozen=True, slots=True)
class AutomationEnrollment:
    """A due enrollment together with its automation and lead."""

    id: str
    automation_id: str
    lead_id: str
    current_step_order: int
    status: str
    next_execution_at: datetime | None
    automation: Automation
    lead: LeadRecord | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class LeadMutation:
    """A durable lead change requested by a step; column is always allow-listed."""

    column: str
    value: Any


@dataclass(frozen=True, slots=True)
class FlowDirective:
    """
    Where the enrollment goes after a step.

    next_position None means the enrollment ends after this step.
    """

    next_position: int | None
    reason: str = "next"


@dataclass(frozen=True, slots=True)
class StepResult:
    type: str
    description: str
    details: dict[str, Any] = field(default_factory=dict)
    mutation: LeadMutation | None = None
    flow: FlowDirective | None = None

    def to_log(self) -> dict[str, Any]:
        return {"type": self.type, "description": self.description, **self.details}


@dataclass(slots=True)
class ProcessorRunResult:
    processed: int = 0
    errors: int = 0
    total: int = 0
    skipped: int = 0
    error_messages: list[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        self.errors += 1
        self.error_messages.append(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "errors": self.errors,
            "total": self.total,
            "skipped": self.skipped,
            "error_messages": list(self.error_messages),
        }
