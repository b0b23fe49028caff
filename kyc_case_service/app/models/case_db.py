import datetime
import uuid
from typing import Optional, List

from pydantic import Field

from .base import CamelModel, Address, PLACEHOLDER_ADDRESS
from .enums import (
    CaseStatus, RiskLevel, CasePriority, EntityType, AccountStatus, AccountType,
    RequirementType, SubmissionStatus, SubmissionMethod, UserRole,
    ActivityActionType, ActivityEntityType,
)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class EntityData(CamelModel):
    entity_name: str
    entity_type: EntityType
    registered_address: Address = Field(default_factory=lambda: Address(**PLACEHOLDER_ADDRESS))
    tax_id: Optional[str] = ""
    registration_number: Optional[str] = None
    legal_form: Optional[str] = None
    incorporation_date: Optional[str] = None
    incorporation_country: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class CasePartyLink(CamelModel):
    party_id: str
    relationship_type: str # The role of the party in this case, e.g. "Director"
    is_primary: bool = False
    ownership_percentage: Optional[float] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class AccountDB(CamelModel):
    account_id: str = Field(default_factory=lambda: f"ACC-{uuid.uuid4().hex[:12].upper()}")
    account_number: Optional[str] = None
    account_type: AccountType
    status: AccountStatus = AccountStatus.PROPOSED
    currency: str
    purpose: str
    primary_holder_id: Optional[str] = None
    joint_holder_ids: List[str] = Field(default_factory=list)
    signatory_ids: List[str] = Field(default_factory=list)
    signature_rules: Optional[str] = None # e.g. "Any one", "Any two", "All"
    requested_services: List[str] = Field(default_factory=list)
    online_banking: bool = False
    check_book: bool = False
    debit_card: bool = False
    created_at: datetime.datetime = Field(default_factory=_utcnow)
    updated_at: datetime.datetime = Field(default_factory=_utcnow)


class Comment(CamelModel):
    comment_id: str = Field(default_factory=lambda: f"C-{uuid.uuid4().hex[:12]}")
    author: str
    author_role: UserRole
    timestamp: datetime.datetime = Field(default_factory=_utcnow)
    text: str
    is_internal: bool = False
    attachments: List[str] = Field(default_factory=list)


class Submission(CamelModel):
    submission_id: str = Field(default_factory=lambda: f"SUB-{uuid.uuid4().hex[:12]}")
    master_doc_id: str # Handle returned by the blob store
    status: SubmissionStatus = SubmissionStatus.PENDING_CHECKER_VERIFICATION
    submitted_at: datetime.datetime = Field(default_factory=_utcnow)
    submitted_by: str
    submission_method: SubmissionMethod = SubmissionMethod.UPLOAD
    published_date: Optional[str] = None
    expiry_date: Optional[datetime.date] = None
    pages: Optional[int] = None

    checker_reviewed_at: Optional[datetime.datetime] = None
    checker_reviewed_by: Optional[str] = None
    compliance_reviewed_at: Optional[datetime.datetime] = None
    compliance_reviewed_by: Optional[str] = None

    comments: List[Comment] = Field(default_factory=list)
    rejection_reasons: List[str] = Field(default_factory=list)


class CaseDocumentLink(CamelModel):
    link_id: str = Field(default_factory=lambda: f"LNK-{uuid.uuid4().hex[:12]}")
    requirement_id: str
    requirement_type: RequirementType = RequirementType.STANDARD
    requirement_name: Optional[str] = None
    requirement_group: Optional[str] = None # Checklist section, e.g. "Entity Documents", "Account Forms"
    owner_party_id: Optional[str] = None # "ENTITY" or a party id
    is_mandatory: bool = True
    submissions: List[Submission] = Field(default_factory=list)
    due_date: Optional[str] = None

    @property
    def latest_submission(self) -> Optional[Submission]:
        return self.submissions[-1] if self.submissions else None


class ActivityLog(CamelModel):
    id: str = Field(default_factory=lambda: f"ACT-{uuid.uuid4().hex[:12]}")
    timestamp: datetime.datetime = Field(default_factory=_utcnow)
    actor: str
    actor_role: UserRole
    actor_id: str
    action: str
    action_type: ActivityActionType
    entity_type: ActivityEntityType
    entity_id: str
    details: Optional[str] = None
    previous_value: Optional[str] = None
    new_value: Optional[str] = None


class CaseDB(CamelModel): # Persisted case record
    case_id: str = Field(default_factory=lambda: f"CASE-{uuid.uuid4().hex[:12].upper()}")
    status: CaseStatus = CaseStatus.DRAFT
    risk_level: RiskLevel = RiskLevel.MEDIUM
    priority: CasePriority = CasePriority.NORMAL

    assigned_to: str = "Unassigned"
    assigned_team: Optional[str] = None

    entity_data: EntityData

    related_party_links: List[CasePartyLink] = Field(default_factory=list)
    accounts: List[AccountDB] = Field(default_factory=list)
    document_links: List[CaseDocumentLink] = Field(default_factory=list)
    compliance_notes: Optional[str] = None

    activities: List[ActivityLog] = Field(default_factory=list)

    version: int = 1 # Optimistic concurrency counter, bumped on every save
    created_at: datetime.datetime = Field(default_factory=_utcnow)
    updated_at: datetime.datetime = Field(default_factory=_utcnow)

    def find_document_link(self, requirement_id: str) -> Optional[CaseDocumentLink]:
        return next((link for link in self.document_links if link.requirement_id == requirement_id), None)

    def find_party_link(self, party_id: str) -> Optional[CasePartyLink]:
        return next((link for link in self.related_party_links if link.party_id == party_id), None)
