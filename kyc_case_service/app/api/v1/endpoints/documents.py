# API Router for document submissions on a case
from fastapi import APIRouter, Depends, HTTPException, Body, status
import logging
from typing import Optional

from kyc_case_service.app.api.errors import to_http_exception
from kyc_case_service.app.api.v1 import schemas
from kyc_case_service.app.dependencies.auth import get_current_user
from kyc_case_service.app.dependencies.repositories import get_case_repository, get_notification_publisher
from kyc_case_service.app.models import CaseDB, User
from kyc_case_service.app.service.commands import handlers
from kyc_case_service.app.service.commands.models import (
    AddSubmissionCommand, UpdateSubmissionStatusCommand, ExpireSubmissionsCommand,
)
from kyc_case_service.app.service.exceptions import BaseCaseManagementError
from kyc_case_service.app.service.interfaces.case_repository import AbstractCaseRepository
from kyc_case_service.app.service.interfaces.notification_publisher import AbstractNotificationPublisher

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/cases/{case_id}/documents/{requirement_id}/submissions",
    response_model=schemas.SubmissionCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Documents"],
)
async def add_submission_api(
    case_id: str,
    requirement_id: str,
    request_data: schemas.AddSubmissionRequest = Body(...),
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    """Records an uploaded document against a requirement; it starts in Pending Checker Verification."""
    command = AddSubmissionCommand(case_id=case_id, requirement_id=requirement_id, **request_data.model_dump())
    try:
        saved, submission_id = await handlers.handle_add_submission_command(command, user, case_repository, publisher)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error adding submission for {requirement_id} on case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to add submission.")
    return schemas.SubmissionCreatedResponse(submission_id=submission_id, case=saved)


@router.put(
    "/cases/{case_id}/documents/{requirement_id}/submissions/{submission_id}",
    response_model=CaseDB,
    tags=["Documents"],
)
async def update_submission_status_api(
    case_id: str,
    requirement_id: str,
    submission_id: str,
    request_data: schemas.UpdateSubmissionStatusRequest = Body(...),
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    command = UpdateSubmissionStatusCommand(
        case_id=case_id,
        requirement_id=requirement_id,
        submission_id=submission_id,
        new_status=request_data.status,
        comment=request_data.comment,
        is_internal=request_data.is_internal,
    )
    try:
        return await handlers.handle_update_submission_status_command(command, user, case_repository, publisher)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error updating submission {submission_id} on case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update submission status.")


@router.post("/cases/{case_id}/documents/expire", response_model=schemas.ExpiredSubmissionsResponse, tags=["Documents"])
async def expire_submissions_api(
    case_id: str,
    request_data: Optional[schemas.ExpireSubmissionsRequest] = Body(default=None),
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    command = ExpireSubmissionsCommand(case_id=case_id, as_of=request_data.as_of if request_data else None)
    try:
        saved, expired_ids = await handlers.handle_expire_submissions_command(command, user, case_repository, publisher)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error expiring submissions on case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to expire submissions.")
    return schemas.ExpiredSubmissionsResponse(expired_submission_ids=expired_ids, case=saved)
