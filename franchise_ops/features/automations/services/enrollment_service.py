"""
Manual enrollment of leads into automations.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from franchise_ops.features.automations.domain import AutomationEnrollment
from franchise_ops.features.automations.repository.automation_repository import (
    AutomationRepository,
)
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class AutomationNotFoundError(Exception):
    """Raised when an automation id does not exist."""


class LeadNotFoundError(Exception):
    """Raised when a lead id does not exist."""


class EnrollmentConflictError(Exception):
    """Raised when the lead already has an active enrollment in the automation."""

    def __init__(self, automation_id: str, lead_id: str):
        super().__init__("Lead is already enrolled in this automation")
        self.automation_id = automation_id
        self.lead_id = lead_id


class EnrollmentService:
    def __init__(
        self,
        repository: Any = AutomationRepository,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self._repository = repository
        self._clock = clock

    async def enroll(self, automation_id: str, lead_id: str) -> AutomationEnrollment:
        """Enroll a lead at the first step, due immediately."""
        automation = await self._repository.load_automation(automation_id)
        if automation is None:
            raise AutomationNotFoundError(automation_id)

        if await self._repository.load_lead(lead_id) is None:
            raise LeadNotFoundError(lead_id)

        if await self._repository.find_active_enrollment(automation_id, lead_id):
            raise EnrollmentConflictError(automation_id, lead_id)

        enrollment = await self._repository.create_enrollment(automation, lead_id, self._clock())
        if enrollment is None:
            # Lost the race against a concurrent enrollment of the same lead
            raise EnrollmentConflictError(automation_id, lead_id)

        return enrollment

    async def list_enrollments(self, automation_id: str) -> list[AutomationEnrollment]:
        if await self._repository.load_automation(automation_id) is None:
            raise AutomationNotFoundError(automation_id)
        return await self._repository.list_enrollments(automation_id)


enrollment_service = EnrollmentService()
