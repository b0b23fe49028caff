"""
Document submission status machine.

    Missing -> Pending Checker Verification -> Pending Compliance Verification -> Verified -> Expired
                           |                                 |
                           +------------> Rejected <---------+
"""
import datetime
import logging
from typing import Dict, FrozenSet, List, Optional, Tuple

from kyc_case_service.app.models import CaseDB, CaseDocumentLink, Comment, Submission, User, SYSTEM_USER
from kyc_case_service.app.models.enums import (
    SubmissionStatus, SubmissionMethod, RequirementType, UserRole,
    ActivityActionType, ActivityEntityType,
)
from kyc_case_service.app.service.exceptions import (
    RequirementNotFoundError, SubmissionNotFoundError, InvalidSubmissionTransitionError,
)
from kyc_case_service.app.service.workflow.activity import record_activity

logger = logging.getLogger(__name__)

# (from, to) -> roles allowed to make the move
SUBMISSION_TRANSITIONS: Dict[Tuple[SubmissionStatus, SubmissionStatus], FrozenSet[UserRole]] = {
    (SubmissionStatus.MISSING, SubmissionStatus.PENDING_CHECKER_VERIFICATION): frozenset({UserRole.RM}),
    (SubmissionStatus.PENDING_CHECKER_VERIFICATION, SubmissionStatus.PENDING_COMPLIANCE_VERIFICATION): frozenset({UserRole.CHECKER}),
    (SubmissionStatus.PENDING_CHECKER_VERIFICATION, SubmissionStatus.REJECTED): frozenset({UserRole.CHECKER}),
    (SubmissionStatus.PENDING_COMPLIANCE_VERIFICATION, SubmissionStatus.VERIFIED): frozenset({UserRole.COMPLIANCE}),
    (SubmissionStatus.PENDING_COMPLIANCE_VERIFICATION, SubmissionStatus.REJECTED): frozenset({UserRole.COMPLIANCE}),
    (SubmissionStatus.VERIFIED, SubmissionStatus.EXPIRED): frozenset({UserRole.COMPLIANCE, UserRole.ADMIN}),
}

_ACTIVITY_LABELS = {
    SubmissionStatus.PENDING_CHECKER_VERIFICATION: ("Document Submitted", ActivityActionType.SUBMIT),
    SubmissionStatus.PENDING_COMPLIANCE_VERIFICATION: ("Document Approved by Checker", ActivityActionType.APPROVE),
    SubmissionStatus.VERIFIED: ("Document Verified", ActivityActionType.APPROVE),
    SubmissionStatus.REJECTED: ("Document Rejected", ActivityActionType.REJECT),
    SubmissionStatus.EXPIRED: ("Document Expired", ActivityActionType.UPDATE),
}


def allowed_roles(current: SubmissionStatus, new: SubmissionStatus) -> FrozenSet[UserRole]:
    return SUBMISSION_TRANSITIONS.get((current, new), frozenset())


def _locate(case: CaseDB, requirement_id: str, submission_id: str) -> Tuple[CaseDocumentLink, Submission]:
    link = case.find_document_link(requirement_id)
    if link is None:
        raise RequirementNotFoundError(requirement_id)
    submission = next((s for s in link.submissions if s.submission_id == submission_id), None)
    if submission is None:
        raise SubmissionNotFoundError(submission_id)
    return link, submission


def _requirement_label(link: CaseDocumentLink) -> str:
    return link.requirement_name or link.requirement_id


def update_submission_status(
    case: CaseDB,
    requirement_id: str,
    submission_id: str,
    new_status: SubmissionStatus,
    actor: User,
    comment_text: Optional[str] = None,
    is_internal: bool = False,
    now: Optional[datetime.datetime] = None,
) -> CaseDB:
    """
    Moves one submission to `new_status` and returns the updated copy of the case.

    Review attribution is stamped on entry to Pending Compliance Verification
    (checker) and Verified (compliance). The optional comment is recorded with
    the status change.

    Raises:
        RequirementNotFoundError, SubmissionNotFoundError: unknown ids.
        InvalidSubmissionTransitionError: move not in the status machine, or not for this role.
    """
    new_status = SubmissionStatus(new_status)
    _, current_submission = _locate(case, requirement_id, submission_id)
    current_status = current_submission.status

    roles = allowed_roles(current_status, new_status)
    if not roles:
        raise InvalidSubmissionTransitionError(submission_id, current_status.value, new_status.value)
    if actor.role not in roles:
        raise InvalidSubmissionTransitionError(submission_id, current_status.value, new_status.value, actor.role.value)

    timestamp = now or datetime.datetime.now(datetime.UTC)
    updated = case.model_copy(deep=True)
    link, submission = _locate(updated, requirement_id, submission_id)

    submission.status = new_status
    if new_status == SubmissionStatus.PENDING_COMPLIANCE_VERIFICATION:
        submission.checker_reviewed_at = timestamp
        submission.checker_reviewed_by = actor.id
    elif new_status == SubmissionStatus.VERIFIED:
        submission.compliance_reviewed_at = timestamp
        submission.compliance_reviewed_by = actor.id

    if comment_text:
        submission.comments.append(Comment(
            author=actor.name, author_role=actor.role, timestamp=timestamp,
            text=comment_text, is_internal=is_internal,
        ))
        if new_status == SubmissionStatus.REJECTED:
            submission.rejection_reasons.append(comment_text)

    label, action_type = _ACTIVITY_LABELS[new_status]
    record_activity(
        updated, actor, label, action_type, ActivityEntityType.DOCUMENT, submission_id,
        details=f"{_requirement_label(link)}" + (f": {comment_text}" if comment_text else ""),
        previous_value=current_status.value, new_value=new_status.value, now=timestamp,
    )
    logger.info(f"Submission {submission_id} on case {case.case_id}: '{current_status.value}' -> '{new_status.value}' by {actor.id}.")
    return updated


def add_submission(
    case: CaseDB,
    requirement_id: str,
    actor: User,
    master_doc_id: str,
    submission_method: SubmissionMethod = SubmissionMethod.UPLOAD,
    published_date: Optional[str] = None,
    expiry_date: Optional[datetime.date] = None,
    pages: Optional[int] = None,
    requirement_name: Optional[str] = None,
    owner_party_id: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
) -> Tuple[CaseDB, Submission]:
    """Records a new upload awaiting checker review. Unknown requirements get an ad-hoc mandatory link."""
    timestamp = now or datetime.datetime.now(datetime.UTC)
    updated = case.model_copy(deep=True)

    link = updated.find_document_link(requirement_id)
    if link is None:
        link = CaseDocumentLink(
            requirement_id=requirement_id,
            requirement_type=RequirementType.AD_HOC,
            requirement_name=requirement_name,
            owner_party_id=owner_party_id,
            is_mandatory=True,
        )
        updated.document_links.append(link)
        logger.info(f"Created ad-hoc requirement '{requirement_id}' on case {case.case_id}.")

    submission = Submission(
        master_doc_id=master_doc_id,
        status=SubmissionStatus.PENDING_CHECKER_VERIFICATION,
        submitted_at=timestamp,
        submitted_by=actor.id,
        submission_method=submission_method,
        published_date=published_date,
        expiry_date=expiry_date,
        pages=pages,
    )
    link.submissions.append(submission)

    record_activity(
        updated, actor, "Document Uploaded", ActivityActionType.UPLOAD, ActivityEntityType.DOCUMENT,
        submission.submission_id, details=_requirement_label(link),
        new_value=submission.status.value, now=timestamp,
    )
    return updated, submission


def expire_submissions(
    case: CaseDB,
    now: Optional[datetime.datetime] = None,
    actor: User = SYSTEM_USER,
) -> Tuple[CaseDB, List[str]]:
    """Moves Verified submissions whose expiry date has passed to Expired. Returns the case and the expired ids."""
    timestamp = now or datetime.datetime.now(datetime.UTC)
    today = timestamp.date()
    updated = case.model_copy(deep=True)
    expired_ids: List[str] = []

    for link in updated.document_links:
        for submission in link.submissions:
            if submission.status != SubmissionStatus.VERIFIED or submission.expiry_date is None:
                continue
            if submission.expiry_date >= today:
                continue
            submission.status = SubmissionStatus.EXPIRED
            expired_ids.append(submission.submission_id)
            record_activity(
                updated, actor, "Document Expired", ActivityActionType.UPDATE, ActivityEntityType.DOCUMENT,
                submission.submission_id,
                details=f"{_requirement_label(link)} expired on {submission.expiry_date.isoformat()}",
                previous_value=SubmissionStatus.VERIFIED.value, new_value=SubmissionStatus.EXPIRED.value,
                now=timestamp,
            )

    if not expired_ids:
        return case, expired_ids
    logger.info(f"Expired {len(expired_ids)} submission(s) on case {case.case_id}.")
    return updated, expired_ids
