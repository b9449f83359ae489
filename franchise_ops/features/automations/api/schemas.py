"""
Automations API request/response models.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from franchise_ops.features.automations.domain import AutomationEnrollment


class EnrollRequest(BaseModel):
    """Request for manually enrolling a lead."""

    lead_id: str = Field(..., min_length=1, description="Lead to enroll")


class EnrolledLead(BaseModel):
    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None


class EnrollmentResponse(BaseModel):
    id: str
    automation_id: str
    lead_id: str
    current_step_order: int
    status: str
    next_execution_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    lead: EnrolledLead | None = None

    @classmethod
    def from_enrollment(cls, enrollment: AutomationEnrollment) -> "EnrollmentResponse":
        lead = enrollment.lead
        return cls(
            id=enrollment.id,
            automation_id=enrollment.automation_id,
            lead_id=enrollment.lead_id,
            current_step_order=enrollment.current_step_order,
            status=enrollment.status,
            next_execution_at=enrollment.next_execution_at,
            started_at=enrollment.started_at,
            completed_at=enrollment.completed_at,
            lead=(
                EnrolledLead(
                    id=lead.id,
                    first_name=lead.first_name,
                    last_name=lead.last_name,
                    email=lead.email,
                    phone=lead.phone,
                )
                if lead
                else None
            ),
        )
