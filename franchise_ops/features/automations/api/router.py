"""
Automation routes.

/cron/process-automations is hit by the scheduler and always requires
the bearer secret; a deployment without a configured secret rejects
every call. The enrollment endpoints share the same guard.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from franchise_ops.auth.cron import require_cron_auth
from franchise_ops.features.automations.api.schemas import EnrollmentResponse, EnrollRequest
from franchise_ops.features.automations.services import processor as processor_service
from franchise_ops.features.automations.services.enrollment_service import (
    AutomationNotFoundError,
    EnrollmentConflictError,
    LeadNotFoundError,
    enrollment_service,
)
from franchise_ops.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["automations"], dependencies=[Depends(require_cron_auth)])


@router.api_route("/cron/process-automations", methods=["GET", "POST"])
async def process_automations():
    try:
        result = await processor_service.run_automation_processor()
    except Exception as e:
        logger.error("Automation processor run failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content={"error": str(e)})

    body = result.to_dict()
    if result.total == 0:
        body["message"] = "No enrollments to process"
    return body


@router.get("/automations/{automation_id}/enrollments", response_model=list[EnrollmentResponse])
async def list_enrollments(automation_id: str):
    try:
        enrollments = await enrollment_service.list_enrollments(automation_id)
    except AutomationNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Automation not found")

    return [EnrollmentResponse.from_enrollment(e) for e in enrollments]


@router.post(
    "/automations/{automation_id}/enrollments",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_lead(automation_id: str, request: EnrollRequest):
    try:
        enrollment = await enrollment_service.enroll(automation_id, request.lead_id)
    except AutomationNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Automation not found")
    except LeadNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
    except EnrollmentConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return EnrollmentResponse.from_enrollment(enrollment)
