"""
Requirement gating and checklist views over a case's document links.

Nothing here is cached: submittability is recomputed from the current
document links on every call.
"""
import datetime
import logging
from typing import List, Optional, Union

from pydantic import Field

from kyc_case_service.app.models import CamelModel, CaseDB, CaseDocumentLink
from kyc_case_service.app.models.enums import SubmissionStatus, UserRole

logger = logging.getLogger(__name__)

QUALIFYING_STATUSES = frozenset({
    SubmissionStatus.PENDING_CHECKER_VERIFICATION,
    SubmissionStatus.PENDING_COMPLIANCE_VERIFICATION,
    SubmissionStatus.VERIFIED,
})

ACCOUNT_FORMS_GROUP = "Account Forms"
ACCOUNT_FORM_PREFIX = "req-acct-"
DEFAULT_GROUP = "Other Documents"


def is_account_form(link: CaseDocumentLink) -> bool:
    """Account opening forms gate account activation, not the case review."""
    group = link.requirement_group or ""
    return group.startswith(ACCOUNT_FORMS_GROUP) or link.requirement_id.startswith(ACCOUNT_FORM_PREFIX)


def has_qualifying_submission(link: CaseDocumentLink) -> bool:
    return any(sub.status in QUALIFYING_STATUSES for sub in link.submissions)


def unmet_requirements(case: CaseDB) -> List[str]:
    """Mandatory, non-account-form requirement ids with no qualifying submission, in link order."""
    return [
        link.requirement_id for link in case.document_links
        if link.is_mandatory and not is_account_form(link) and not has_qualifying_submission(link)
    ]


def is_submittable(case: CaseDB) -> bool:
    return not unmet_requirements(case)


def unmet_account_forms(case: CaseDB, account_id: str) -> List[str]:
    """Mandatory opening forms of one account with no qualifying submission."""
    prefix = f"{ACCOUNT_FORM_PREFIX}{account_id}-"
    return [
        link.requirement_id for link in case.document_links
        if link.is_mandatory and link.requirement_id.startswith(prefix) and not has_qualifying_submission(link)
    ]


def effective_status(link: CaseDocumentLink, today: Optional[datetime.date] = None) -> SubmissionStatus:
    """Latest submission status; a Verified document past its expiry date reads as Expired."""
    latest = link.latest_submission
    if latest is None:
        return SubmissionStatus.MISSING
    if latest.status == SubmissionStatus.VERIFIED and latest.expiry_date is not None:
        today = today or datetime.datetime.now(datetime.UTC).date()
        if latest.expiry_date < today:
            return SubmissionStatus.EXPIRED
    return latest.status


class ChecklistItem(CamelModel):
    requirement_id: str
    name: str
    owner_party_id: Optional[str] = None
    is_mandatory: bool
    status: SubmissionStatus
    # Any qualifying submission, as the submit gate counts it
    satisfied: bool = False
    submission_count: int = 0
    last_submitted_at: Optional[datetime.datetime] = None


class ChecklistSection(CamelModel):
    title: str
    items: List[ChecklistItem] = Field(default_factory=list)
    completed: int = 0
    total: int = 0
    percent_complete: float = 0.0


def build_checklist(case: CaseDB, today: Optional[datetime.date] = None) -> List[ChecklistSection]:
    """
    Groups document links into sections by requirement group, preserving first-seen order.

    Item `status` reflects the latest submission only, so an item can read
    Rejected or Expired while `satisfied` is true because an earlier
    submission still qualifies for the submit gate.
    """
    sections: dict[str, ChecklistSection] = {}
    for link in case.document_links:
        title = link.requirement_group or DEFAULT_GROUP
        section = sections.setdefault(title, ChecklistSection(title=title))
        latest = link.latest_submission
        section.items.append(ChecklistItem(
            requirement_id=link.requirement_id,
            name=link.requirement_name or link.requirement_id,
            owner_party_id=link.owner_party_id,
            is_mandatory=link.is_mandatory,
            status=effective_status(link, today),
            satisfied=has_qualifying_submission(link),
            submission_count=len(link.submissions),
            last_submitted_at=latest.submitted_at if latest else None,
        ))

    for section in sections.values():
        section.total = len(section.items)
        section.completed = sum(1 for item in section.items if item.status in QUALIFYING_STATUSES)
        section.percent_complete = round(section.completed / section.total * 100, 2) if section.total else 100.0
    return list(sections.values())


_NOT_SUBMITTED = frozenset({SubmissionStatus.MISSING, SubmissionStatus.REJECTED, SubmissionStatus.EXPIRED})


def case_progress(case: CaseDB, role: Union[UserRole, str], today: Optional[datetime.date] = None) -> float:
    """
    Percentage of mandatory checklist items complete from the viewpoint of `role`.

    For an RM an item is complete once something has been submitted for it;
    for reviewers it is complete only when Verified. A case with no mandatory
    items is fully complete.
    """
    mandatory = [link for link in case.document_links if link.is_mandatory]
    if not mandatory:
        return 100.0

    statuses = [effective_status(link, today) for link in mandatory]
    if role == UserRole.RM:
        completed = sum(1 for status in statuses if status not in _NOT_SUBMITTED)
    else:
        completed = sum(1 for status in statuses if status == SubmissionStatus.VERIFIED)
    return round(completed / len(mandatory) * 100, 2)
