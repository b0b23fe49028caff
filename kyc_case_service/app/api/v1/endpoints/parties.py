# API Router for Parties
from fastapi import APIRouter, Depends, HTTPException, Body, status
import logging
from typing import List

from kyc_case_service.app.api.errors import to_http_exception
from kyc_case_service.app.api.v1 import schemas
from kyc_case_service.app.dependencies.auth import get_current_user
from kyc_case_service.app.dependencies.repositories import get_party_repository
from kyc_case_service.app.models import PartyDB, User
from kyc_case_service.app.models.enums import EntityType
from kyc_case_service.app.service.commands import handlers
from kyc_case_service.app.service.commands.models import CreatePartyCommand
from kyc_case_service.app.service.exceptions import BaseCaseManagementError
from kyc_case_service.app.service.interfaces.case_repository import AbstractPartyRepository
from kyc_case_service.app.service.workflow.party_links import can_link_party, valid_roles_for

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/parties", response_model=List[PartyDB], tags=["Parties"])
async def list_parties(
    user: User = Depends(get_current_user),
    party_repository: AbstractPartyRepository = Depends(get_party_repository),
):
    try:
        return await party_repository.load_party_catalog()
    except Exception as e:
        logger.error(f"Error listing parties: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list parties")


@router.post("/parties", response_model=PartyDB, status_code=status.HTTP_201_CREATED, tags=["Parties"])
async def create_party_api(
    request_data: schemas.CreatePartyRequest = Body(...),
    user: User = Depends(get_current_user),
    party_repository: AbstractPartyRepository = Depends(get_party_repository),
):
    command = CreatePartyCommand(**request_data.model_dump())
    try:
        return await handlers.handle_create_party_command(command, user, party_repository)
    except Exception as e:
        logger.error(f"Error creating party '{request_data.name}': {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create party.")


@router.get("/parties/roles/{entity_type}", response_model=schemas.EntityRolesResponse, tags=["Parties"])
async def get_roles_for_entity_type(entity_type: EntityType):
    return schemas.EntityRolesResponse(
        entity_type=entity_type,
        can_link_parties=can_link_party(entity_type),
        roles=valid_roles_for(entity_type),
    )


@router.get("/parties/{party_id}", response_model=PartyDB, tags=["Parties"])
async def get_party_by_id(
    party_id: str,
    user: User = Depends(get_current_user),
    party_repository: AbstractPartyRepository = Depends(get_party_repository),
):
    try:
        return await party_repository.get_party(party_id)
    except BaseCaseManagementError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error retrieving party {party_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to retrieve party {party_id}")
