# Builders shared by the test modules
import datetime
from typing import Iterable, Optional

from kyc_case_service.app.models import (
    CaseDB, CaseDocumentLink, CasePartyLink, EntityData, PartyDB, Submission, User,
)
from kyc_case_service.app.models.enums import (
    CaseStatus, EntityType, ResidencyStatus, RiskLevel, SubmissionStatus, UserRole,
)

RM_USER = User(id="u-rm", name="Rita Tan", role=UserRole.RM)
CHECKER_USER = User(id="u-checker", name="Chen Wei", role=UserRole.CHECKER)
COMPLIANCE_USER = User(id="u-compliance", name="Priya Nair", role=UserRole.COMPLIANCE)
GM_USER = User(id="u-gm", name="Graham Lim", role=UserRole.GM)
ADMIN_USER = User(id="u-admin", name="Ada Koh", role=UserRole.ADMIN)

USERS_BY_ROLE = {
    UserRole.RM: RM_USER,
    UserRole.CHECKER: CHECKER_USER,
    UserRole.COMPLIANCE: COMPLIANCE_USER,
    UserRole.GM: GM_USER,
    UserRole.ADMIN: ADMIN_USER,
}

FIXED_NOW = datetime.datetime(2024, 3, 1, 9, 30, tzinfo=datetime.UTC)


def make_submission(
    status: SubmissionStatus = SubmissionStatus.PENDING_CHECKER_VERIFICATION,
    submission_id: Optional[str] = None,
    expiry_date: Optional[datetime.date] = None,
) -> Submission:
    kwargs = {"submission_id": submission_id} if submission_id else {}
    return Submission(
        master_doc_id="DOC-1",
        status=status,
        submitted_by=RM_USER.id,
        submitted_at=FIXED_NOW,
        expiry_date=expiry_date,
        **kwargs,
    )


def make_link(
    requirement_id: str,
    statuses: Iterable[SubmissionStatus] = (),
    group: Optional[str] = "Entity Documents",
    mandatory: bool = True,
) -> CaseDocumentLink:
    return CaseDocumentLink(
        requirement_id=requirement_id,
        requirement_name=f"Document {requirement_id}",
        requirement_group=group,
        owner_party_id="ENTITY",
        is_mandatory=mandatory,
        submissions=[make_submission(s, submission_id=f"SUB-{requirement_id}-{i}") for i, s in enumerate(statuses)],
    )


def make_case(
    status: CaseStatus = CaseStatus.DRAFT,
    risk_level: RiskLevel = RiskLevel.MEDIUM,
    entity_type: EntityType = EntityType.NON_LISTED_COMPANY,
    document_links: Optional[list] = None,
    party_links: Optional[list] = None,
    case_id: str = "CASE-TEST0001",
    version: int = 1,
) -> CaseDB:
    return CaseDB(
        case_id=case_id,
        status=status,
        risk_level=risk_level,
        version=version,
        entity_data=EntityData(entity_name="Acme Pte Ltd", entity_type=entity_type),
        document_links=document_links or [],
        related_party_links=party_links or [],
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
    )


def make_party(
    party_id: str = "P-0001",
    name: str = "Jane Lee",
    residency_status: Optional[ResidencyStatus] = ResidencyStatus.SINGAPOREAN_PR,
    is_pep: bool = False,
    risk_score: Optional[int] = None,
) -> PartyDB:
    return PartyDB(
        party_id=party_id,
        name=name,
        residency_status=residency_status,
        is_pep=is_pep,
        risk_score=risk_score,
    )


def make_party_link(party_id: str = "P-0001", role: str = "Director", is_primary: bool = True) -> CasePartyLink:
    return CasePartyLink(party_id=party_id, relationship_type=role, is_primary=is_primary)


def user_headers(user: User) -> dict:
    return {"X-User-Id": user.id, "X-User-Role": user.role.value, "X-User-Name": user.name}
