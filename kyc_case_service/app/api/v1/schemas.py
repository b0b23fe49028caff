# Request and response bodies for the v1 API (camelCase on the wire)
import datetime
from typing import List, Optional

from pydantic import Field

from kyc_case_service.app.models import CamelModel, CaseDB
from kyc_case_service.app.models.enums import (
    AccountStatus, AccountType, CasePriority, CaseStatus, EntityType, PartyType,
    ResidencyStatus, RiskLevel, SubmissionMethod, SubmissionStatus, UserRole,
)
from kyc_case_service.app.service.workflow.requirements import ChecklistSection


# --- Cases ---
class CreateCaseRequest(CamelModel):
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
    primary_party_name: Optional[str] = None
    primary_party_residency_status: Optional[ResidencyStatus] = None


class TransitionRequest(CamelModel):
    action: str
    details: Optional[str] = None


class ActivateRequest(CamelModel):
    details: Optional[str] = None


class SubmittabilityResponse(CamelModel):
    case_id: str
    is_submittable: bool
    unmet_requirements: List[str]


class AvailableActionsResponse(SubmittabilityResponse):
    status: CaseStatus
    role: UserRole
    available_actions: List[str]


class ChecklistResponse(CamelModel):
    case_id: str
    progress: float
    sections: List[ChecklistSection]


class DeterminedRequirementsResponse(CamelModel):
    case_id: str
    added_requirement_ids: List[str]
    version: int


# --- Accounts ---
class AddAccountRequest(CamelModel):
    account_type: AccountType
    currency: str
    purpose: str
    account_number: Optional[str] = None
    primary_holder_id: Optional[str] = None
    joint_holder_ids: List[str] = Field(default_factory=list)
    signatory_ids: List[str] = Field(default_factory=list)
    signature_rules: Optional[str] = None
    requested_services: List[str] = Field(default_factory=list)
    online_banking: bool = False
    check_book: bool = False
    debit_card: bool = False


class AccountCreatedResponse(CamelModel):
    account_id: str
    case: CaseDB


class AccountStatusRequest(CamelModel):
    status: AccountStatus


# --- Parties ---
class LinkPartyRequest(CamelModel):
    party_id: str
    relationship_type: str
    is_primary: Optional[bool] = None
    ownership_percentage: Optional[float] = None


class CreatePartyRequest(CamelModel):
    name: str
    type: PartyType = PartyType.INDIVIDUAL
    residency_status: Optional[ResidencyStatus] = None
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_pep: bool = Field(default=False, alias="isPEP")
    risk_score: Optional[int] = None
    risk_factors: List[str] = Field(default_factory=list)


class EntityRolesResponse(CamelModel):
    entity_type: EntityType
    can_link_parties: bool
    roles: List[str]


# --- Documents ---
class AddSubmissionRequest(CamelModel):
    master_doc_id: str
    submission_method: SubmissionMethod = SubmissionMethod.UPLOAD
    published_date: Optional[str] = None
    expiry_date: Optional[datetime.date] = None
    pages: Optional[int] = None
    requirement_name: Optional[str] = None
    owner_party_id: Optional[str] = None


class SubmissionCreatedResponse(CamelModel):
    submission_id: str
    case: CaseDB


class UpdateSubmissionStatusRequest(CamelModel):
    status: SubmissionStatus
    comment: Optional[str] = None
    is_internal: bool = False


class ExpireSubmissionsRequest(CamelModel):
    as_of: Optional[datetime.datetime] = None


class ExpiredSubmissionsResponse(CamelModel):
    expired_submission_ids: List[str]
    case: CaseDB
