import datetime
import pytest

from kyc_case_service.app.models.enums import (
    SubmissionStatus, RequirementType, UserRole, ActivityEntityType, ActivityActionType,
)
from kyc_case_service.app.service.exceptions import (
    InvalidSubmissionTransitionError, RequirementNotFoundError, SubmissionNotFoundError,
)
from kyc_case_service.app.service.workflow.submissions import (
    SUBMISSION_TRANSITIONS, update_submission_status, add_submission, expire_submissions,
)
from kyc_case_service.tests.factories import (
    make_case, make_link, make_submission, RM_USER, CHECKER_USER, COMPLIANCE_USER, ADMIN_USER, GM_USER, FIXED_NOW,
)

S = SubmissionStatus


def _case_with(status: SubmissionStatus):
    return make_case(document_links=[make_link("req-entity-0", [status])])


def _submission(case):
    return case.find_document_link("req-entity-0").submissions[0]


def test_review_progression_retains_attribution_stamps():
    case = _case_with(S.PENDING_CHECKER_VERIFICATION)
    checker_time = FIXED_NOW
    compliance_time = FIXED_NOW + datetime.timedelta(hours=2)

    case = update_submission_status(case, "req-entity-0", "SUB-req-entity-0-0", S.PENDING_COMPLIANCE_VERIFICATION,
                                    CHECKER_USER, now=checker_time)
    sub = _submission(case)
    assert sub.status == S.PENDING_COMPLIANCE_VERIFICATION
    assert sub.checker_reviewed_by == CHECKER_USER.id
    assert sub.checker_reviewed_at == checker_time
    assert sub.compliance_reviewed_by is None

    case = update_submission_status(case, "req-entity-0", "SUB-req-entity-0-0", S.VERIFIED,
                                    COMPLIANCE_USER, now=compliance_time)
    sub = _submission(case)
    assert sub.status == S.VERIFIED
    assert sub.checker_reviewed_by == CHECKER_USER.id
    assert sub.checker_reviewed_at == checker_time
    assert sub.compliance_reviewed_by == COMPLIANCE_USER.id
    assert sub.compliance_reviewed_at == compliance_time
    assert [a.entity_type for a in case.activities] == [ActivityEntityType.DOCUMENT] * 2


def test_rejection_records_comment_and_reason():
    case = _case_with(S.PENDING_CHECKER_VERIFICATION)
    updated = update_submission_status(
        case, "req-entity-0", "SUB-req-entity-0-0", S.REJECTED, CHECKER_USER,
        comment_text="Illegible scan", is_internal=True,
    )
    sub = _submission(updated)
    assert sub.status == S.REJECTED
    assert sub.rejection_reasons == ["Illegible scan"]
    assert sub.comments[0].text == "Illegible scan"
    assert sub.comments[0].is_internal is True
    assert sub.comments[0].author_role == UserRole.CHECKER
    assert updated.activities[-1].action_type == ActivityActionType.REJECT
    assert _submission(case).status == S.PENDING_CHECKER_VERIFICATION # input untouched


@pytest.mark.parametrize("current, new, actor", [
    (S.PENDING_CHECKER_VERIFICATION, S.VERIFIED, COMPLIANCE_USER), # skips checker
    (S.VERIFIED, S.PENDING_CHECKER_VERIFICATION, RM_USER),
    (S.REJECTED, S.VERIFIED, COMPLIANCE_USER),
    (S.EXPIRED, S.VERIFIED, COMPLIANCE_USER),
    (S.VERIFIED, S.VERIFIED, COMPLIANCE_USER),
])
def test_moves_outside_the_machine_are_rejected(current, new, actor):
    with pytest.raises(InvalidSubmissionTransitionError) as exc_info:
        update_submission_status(_case_with(current), "req-entity-0", "SUB-req-entity-0-0", new, actor)
    assert exc_info.value.role is None


@pytest.mark.parametrize("current, new, actor", [
    (S.PENDING_CHECKER_VERIFICATION, S.PENDING_COMPLIANCE_VERIFICATION, COMPLIANCE_USER),
    (S.PENDING_COMPLIANCE_VERIFICATION, S.VERIFIED, CHECKER_USER),
    (S.PENDING_CHECKER_VERIFICATION, S.REJECTED, RM_USER),
    (S.VERIFIED, S.EXPIRED, GM_USER),
])
def test_wrong_role_is_rejected(current, new, actor):
    with pytest.raises(InvalidSubmissionTransitionError) as exc_info:
        update_submission_status(_case_with(current), "req-entity-0", "SUB-req-entity-0-0", new, actor)
    assert exc_info.value.role == actor.role.value


def test_every_machine_edge_is_reachable_by_some_role():
    for (current, new), roles in SUBMISSION_TRANSITIONS.items():
        actor = {UserRole.RM: RM_USER, UserRole.CHECKER: CHECKER_USER,
                 UserRole.COMPLIANCE: COMPLIANCE_USER, UserRole.ADMIN: ADMIN_USER}[sorted(roles)[0]]
        updated = update_submission_status(_case_with(current), "req-entity-0", "SUB-req-entity-0-0", new, actor)
        assert _submission(updated).status == new


def test_unknown_requirement_or_submission():
    case = _case_with(S.PENDING_CHECKER_VERIFICATION)
    with pytest.raises(RequirementNotFoundError):
        update_submission_status(case, "req-nope", "SUB-req-entity-0-0", S.REJECTED, CHECKER_USER)
    with pytest.raises(SubmissionNotFoundError):
        update_submission_status(case, "req-entity-0", "SUB-nope", S.REJECTED, CHECKER_USER)


def test_add_submission_to_existing_requirement():
    case = make_case(document_links=[make_link("req-entity-0", [S.REJECTED])])
    updated, submission = add_submission(case, "req-entity-0", RM_USER, "DOC-42", pages=3, now=FIXED_NOW)

    link = updated.find_document_link("req-entity-0")
    assert len(link.submissions) == 2
    assert link.latest_submission.submission_id == submission.submission_id
    assert submission.status == S.PENDING_CHECKER_VERIFICATION
    assert submission.submitted_by == RM_USER.id
    assert updated.activities[-1].action_type == ActivityActionType.UPLOAD
    assert len(case.find_document_link("req-entity-0").submissions) == 1


def test_add_submission_creates_ad_hoc_requirement():
    updated, _ = add_submission(make_case(), "req-adhoc-1", RM_USER, "DOC-7", requirement_name="Bank Reference Letter")
    link = updated.find_document_link("req-adhoc-1")
    assert link.requirement_type == RequirementType.AD_HOC
    assert link.is_mandatory is True
    assert link.requirement_name == "Bank Reference Letter"


def test_expire_submissions_moves_only_past_expiry_verified():
    expired = make_submission(S.VERIFIED, submission_id="SUB-OLD", expiry_date=datetime.date(2024, 2, 28))
    still_valid = make_submission(S.VERIFIED, submission_id="SUB-OK", expiry_date=datetime.date(2024, 3, 1))
    pending = make_submission(S.PENDING_CHECKER_VERIFICATION, submission_id="SUB-PEND", expiry_date=datetime.date(2020, 1, 1))
    link = make_link("req-party-P1-0")
    link.submissions.extend([expired, still_valid, pending])
    case = make_case(document_links=[link])

    updated, expired_ids = expire_submissions(case, now=FIXED_NOW)

    assert expired_ids == ["SUB-OLD"]
    statuses = {s.submission_id: s.status for s in updated.find_document_link("req-party-P1-0").submissions}
    assert statuses == {"SUB-OLD": S.EXPIRED, "SUB-OK": S.VERIFIED, "SUB-PEND": S.PENDING_CHECKER_VERIFICATION}
    assert updated.activities[-1].actor_id == "SYSTEM"


def test_expire_submissions_noop():
    case = _case_with(S.VERIFIED)
    updated, expired_ids = expire_submissions(case, now=FIXED_NOW)
    assert expired_ids == []
    assert updated.activities == []
