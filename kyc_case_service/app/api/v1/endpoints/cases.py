# API Router for Cases
from fastapi import APIRouter, Depends, HTTPException, Body, Query, Response, status
import logging
from typing import Any, Dict, List, Optional

from kyc_case_service.app.api.errors import to_http_exception
from kyc_case_service.app.api.v1 import schemas
from kyc_case_service.app.dependencies.auth import get_current_user
from kyc_case_service.app.dependencies.repositories import (
    get_case_repository, get_party_repository, get_notification_publisher,
)
from kyc_case_service.app.models import CaseDB, User
from kyc_case_service.app.service.commands import handlers
from kyc_case_service.app.service.commands.models import (
    CreateCaseCommand, ApplyCaseTransitionCommand, ActivateCaseCommand, DeleteCaseCommand,
    DetermineDocumentRequirementsCommand, AddAccountCommand, UpdateAccountStatusCommand, LinkPartyCommand,
)
from kyc_case_service.app.service.exceptions import BaseCaseManagementError
from kyc_case_service.app.service.interfaces.case_repository import AbstractCaseRepository, AbstractPartyRepository
from kyc_case_service.app.service.interfaces.notification_publisher import AbstractNotificationPublisher
from kyc_case_service.app.service.workflow.case_transitions import available_actions, describe_transition_table
from kyc_case_service.app.service.workflow.requirements import build_checklist, case_progress, unmet_requirements

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/cases", response_model=List[CaseDB], tags=["Cases"])
async def list_cases(
    limit: int = 50,
    skip: int = 0,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
):
    try:
        return await case_repository.list_cases(limit=limit, skip=skip, status=status_filter)
    except Exception as e:
        logger.error(f"Error listing cases: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list cases")


@router.post("/cases", response_model=CaseDB, status_code=status.HTTP_201_CREATED, summary="Create a new case", tags=["Cases"])
async def create_case_api(
    request_data: schemas.CreateCaseRequest = Body(...),
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    party_repository: AbstractPartyRepository = Depends(get_party_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    """
    Creates a Draft case and seeds its initial document requirements.
    Individual Account cases also get their primary holder linked.
    """
    command = CreateCaseCommand(**request_data.model_dump())
    try:
        return await handlers.handle_create_case_command(command, user, case_repository, party_repository, publisher)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error creating case: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while creating the case.")


@router.get("/cases/{case_id}", response_model=CaseDB, tags=["Cases"])
async def get_case_by_id(
    case_id: str,
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
):
    try:
        return await case_repository.load_case(case_id)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error retrieving case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to retrieve case {case_id}")


@router.delete("/cases/{case_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Cases"])
async def delete_case_api(
    case_id: str,
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    try:
        await handlers.handle_delete_case_command(DeleteCaseCommand(case_id=case_id), user, case_repository, publisher)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error deleting case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to delete case {case_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Workflow ---

@router.get("/workflow/transitions", tags=["Workflow"])
async def get_transition_table() -> List[Dict[str, Any]]:
    return describe_transition_table()


@router.get("/cases/{case_id}/actions", response_model=schemas.AvailableActionsResponse, tags=["Workflow"])
async def get_available_actions(
    case_id: str,
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
):
    try:
        case = await case_repository.load_case(case_id)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    unmet = unmet_requirements(case)
    return schemas.AvailableActionsResponse(
        case_id=case.case_id,
        status=case.status,
        role=user.role,
        available_actions=[action.value for action in available_actions(user.role, case)],
        is_submittable=not unmet,
        unmet_requirements=unmet,
    )


@router.post("/cases/{case_id}/transitions", response_model=CaseDB, tags=["Workflow"])
async def apply_transition_api(
    case_id: str,
    request_data: schemas.TransitionRequest = Body(...),
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    party_repository: AbstractPartyRepository = Depends(get_party_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    command = ApplyCaseTransitionCommand(case_id=case_id, action=request_data.action, details=request_data.details)
    try:
        return await handlers.handle_apply_transition_command(command, user, case_repository, party_repository, publisher)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error applying '{request_data.action}' to case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while applying the action.")


@router.post("/cases/{case_id}/activate", response_model=CaseDB, tags=["Workflow"])
async def activate_case_api(
    case_id: str,
    request_data: Optional[schemas.ActivateRequest] = Body(default=None),
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    command = ActivateCaseCommand(case_id=case_id, details=request_data.details if request_data else None)
    try:
        return await handlers.handle_activate_case_command(command, user, case_repository, publisher)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error activating case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while activating the case.")


@router.get("/cases/{case_id}/submittability", response_model=schemas.SubmittabilityResponse, tags=["Workflow"])
async def get_submittability(
    case_id: str,
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
):
    try:
        case = await case_repository.load_case(case_id)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    unmet = unmet_requirements(case)
    return schemas.SubmittabilityResponse(case_id=case.case_id, is_submittable=not unmet, unmet_requirements=unmet)


@router.get("/cases/{case_id}/checklist", response_model=schemas.ChecklistResponse, tags=["Workflow"])
async def get_checklist(
    case_id: str,
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
):
    try:
        case = await case_repository.load_case(case_id)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    return schemas.ChecklistResponse(
        case_id=case.case_id,
        progress=case_progress(case, user.role),
        sections=build_checklist(case),
    )


@router.post(
    "/cases/{case_id}/document-requirements/determine",
    response_model=schemas.DeterminedRequirementsResponse,
    tags=["Document Requirements"],
)
async def determine_requirements_api(
    case_id: str,
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    party_repository: AbstractPartyRepository = Depends(get_party_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    command = DetermineDocumentRequirementsCommand(case_id=case_id)
    try:
        saved, added = await handlers.handle_determine_document_requirements_command(
            command, user, case_repository, party_repository, publisher
        )
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error determining document requirements for case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to determine document requirements.")
    return schemas.DeterminedRequirementsResponse(case_id=saved.case_id, added_requirement_ids=added, version=saved.version)


# --- Accounts ---

@router.post(
    "/cases/{case_id}/accounts",
    response_model=schemas.AccountCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Accounts"],
)
async def add_account_api(
    case_id: str,
    request_data: schemas.AddAccountRequest = Body(...),
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    party_repository: AbstractPartyRepository = Depends(get_party_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    command = AddAccountCommand(case_id=case_id, account_data=request_data.model_dump())
    try:
        saved, account_id = await handlers.handle_add_account_command(
            command, user, case_repository, party_repository, publisher
        )
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error adding account to case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to add account.")
    return schemas.AccountCreatedResponse(account_id=account_id, case=saved)


@router.put("/cases/{case_id}/accounts/{account_id}/status", response_model=CaseDB, tags=["Accounts"])
async def update_account_status_api(
    case_id: str,
    account_id: str,
    request_data: schemas.AccountStatusRequest = Body(...),
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    command = UpdateAccountStatusCommand(case_id=case_id, account_id=account_id, status=request_data.status)
    try:
        return await handlers.handle_update_account_status_command(command, user, case_repository, publisher)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error updating account {account_id} on case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update account status.")


# --- Parties on a case ---

@router.post("/cases/{case_id}/parties", response_model=CaseDB, tags=["Cases"])
async def link_party_api(
    case_id: str,
    request_data: schemas.LinkPartyRequest = Body(...),
    user: User = Depends(get_current_user),
    case_repository: AbstractCaseRepository = Depends(get_case_repository),
    party_repository: AbstractPartyRepository = Depends(get_party_repository),
    publisher: AbstractNotificationPublisher = Depends(get_notification_publisher),
):
    command = LinkPartyCommand(case_id=case_id, **request_data.model_dump())
    try:
        return await handlers.handle_link_party_command(command, user, case_repository, party_repository, publisher)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error linking party {request_data.party_id} to case {case_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to link party.")
