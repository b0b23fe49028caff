# Pydantic models for Commands
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
import datetime
import uuid

from kyc_case_service.app.models.enums import (
    AccountStatus, CasePriority, EntityType, ResidencyStatus, RiskLevel,
    SubmissionMethod, SubmissionStatus, PartyType,
)


class BaseCommand(BaseModel):
    command_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class CreateCaseCommand(BaseCommand):
    entity_name: str
    entity_type: EntityType
    risk_level: RiskLevel = RiskLevel.MEDIUM
    priority: CasePriority = CasePriority.NORMAL
    assigned_to: Optional[str] = None
    assigned_team: Optional[str] = None
    tax_id: Optional[str] = None
    registration_number: Optional[str] = None
    incorporation_country: Optional[str] = None
    compliance_notes: Optional[str] = None
    # Individual Account cases only: the primary holder, found by name or created
    primary_party_name: Optional[str] = None
    primary_party_residency_status: Optional[ResidencyStatus] = None


class ApplyCaseTransitionCommand(BaseCommand):
    case_id: str
    action: str
    details: Optional[str] = None


class ActivateCaseCommand(BaseCommand):
    case_id: str
    details: Optional[str] = None


class DeleteCaseCommand(BaseCommand):
    case_id: str


class UpdateSubmissionStatusCommand(BaseCommand):
    case_id: str
    requirement_id: str
    submission_id: str
    new_status: SubmissionStatus
    comment: Optional[str] = None
    is_internal: bool = False


class AddSubmissionCommand(BaseCommand):
    case_id: str
    requirement_id: str
    master_doc_id: str
    submission_method: SubmissionMethod = SubmissionMethod.UPLOAD
    published_date: Optional[str] = None
    expiry_date: Optional[datetime.date] = None
    pages: Optional[int] = None
    # Used only when the requirement is not yet on the case
    requirement_name: Optional[str] = None
    owner_party_id: Optional[str] = None


class ExpireSubmissionsCommand(BaseCommand):
    case_id: str
    as_of: Optional[datetime.datetime] = None


class LinkPartyCommand(BaseCommand):
    case_id: str
    party_id: str
    relationship_type: str
    is_primary: Optional[bool] = None
    ownership_percentage: Optional[float] = None


class AddAccountCommand(BaseCommand):
    case_id: str
    account_data: Dict[str, Any]


class UpdateAccountStatusCommand(BaseCommand):
    case_id: str
    account_id: str
    status: AccountStatus


class DetermineDocumentRequirementsCommand(BaseCommand):
    case_id: str


class CreatePartyCommand(BaseCommand):
    name: str
    type: PartyType = PartyType.INDIVIDUAL
    residency_status: Optional[ResidencyStatus] = None
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_pep: bool = False
    risk_score: Optional[int] = None
    risk_factors: List[str] = Field(default_factory=list)
