import pytest

from kyc_case_service.app.models.enums import (
    AccountStatus, AccountType, ActivityEntityType, SubmissionStatus, UserRole,
)
from kyc_case_service.app.service.exceptions import (
    AccountNotFoundError, InvalidTransitionError, RequirementsNotMetError,
)
from kyc_case_service.app.service.workflow.accounts import (
    ACCOUNT_TRANSITIONS, add_account, allowed_account_roles, update_account_status,
)
from kyc_case_service.tests.factories import (
    make_case, make_link, RM_USER, CHECKER_USER, COMPLIANCE_USER, GM_USER, ADMIN_USER,
)


def _case_with_account(status=AccountStatus.PROPOSED, forms_submitted=True):
    case, account = add_account(make_case(), {"account_type": "Savings", "currency": "USD", "purpose": "Reserves"}, RM_USER)
    statuses = [SubmissionStatus.PENDING_CHECKER_VERIFICATION] if forms_submitted else []
    case.document_links = [
        make_link(f"req-acct-{account.account_id}-{i}", statuses, group="Account Forms - Savings (USD)")
        for i in range(2)
    ]
    case.accounts[0].status = status
    return case, account


def test_add_account_is_proposed_regardless_of_input_status():
    case = make_case()
    updated, account = add_account(case, {
        "accountType": "Current", "currency": "SGD", "purpose": "Operating", "status": "Active",
    }, RM_USER)

    assert account.status == AccountStatus.PROPOSED
    assert account.account_type == AccountType.CURRENT
    assert updated.accounts == [account]
    assert updated.activities[-1].entity_type == ActivityEntityType.ACCOUNT
    assert case.accounts == []


@pytest.mark.parametrize("user, from_status, to_status, label", [
    (RM_USER, AccountStatus.PROPOSED, AccountStatus.PENDING_CHECKER_REVIEW, "Account Submitted for Review"),
    (CHECKER_USER, AccountStatus.PENDING_CHECKER_REVIEW, AccountStatus.PENDING_COMPLIANCE_REVIEW, "Account Approved by Checker"),
    (CHECKER_USER, AccountStatus.PENDING_CHECKER_REVIEW, AccountStatus.REJECTED, "Account Rejected"),
    (COMPLIANCE_USER, AccountStatus.PENDING_COMPLIANCE_REVIEW, AccountStatus.ACTIVE, "Account Approved"),
    (COMPLIANCE_USER, AccountStatus.PENDING_COMPLIANCE_REVIEW, AccountStatus.REJECTED, "Account Rejected"),
])
def test_allowed_account_moves(user, from_status, to_status, label):
    case, account = _case_with_account(from_status)
    updated = update_account_status(case, account.account_id, to_status, user)

    assert updated.accounts[0].status == to_status
    assert case.accounts[0].status == from_status
    activity = updated.activities[-1]
    assert activity.action == label
    assert activity.entity_id == account.account_id
    assert activity.previous_value == from_status.value
    assert activity.new_value == to_status.value


@pytest.mark.parametrize("user, from_status, to_status", [
    (ADMIN_USER, AccountStatus.PROPOSED, AccountStatus.ACTIVE),
    (RM_USER, AccountStatus.PROPOSED, AccountStatus.ACTIVE),
    (CHECKER_USER, AccountStatus.PROPOSED, AccountStatus.PENDING_CHECKER_REVIEW),
    (RM_USER, AccountStatus.PENDING_CHECKER_REVIEW, AccountStatus.PENDING_COMPLIANCE_REVIEW),
    (COMPLIANCE_USER, AccountStatus.PENDING_CHECKER_REVIEW, AccountStatus.REJECTED),
    (GM_USER, AccountStatus.PENDING_COMPLIANCE_REVIEW, AccountStatus.ACTIVE),
    (COMPLIANCE_USER, AccountStatus.ACTIVE, AccountStatus.CLOSED),
])
def test_account_moves_outside_the_flow_are_rejected(user, from_status, to_status):
    case, account = _case_with_account(from_status)
    with pytest.raises(InvalidTransitionError) as exc_info:
        update_account_status(case, account.account_id, to_status, user)
    assert exc_info.value.current_status == from_status.value
    assert case.accounts[0].status == from_status


def test_submit_account_needs_its_forms():
    case, account = _case_with_account(forms_submitted=False)
    with pytest.raises(RequirementsNotMetError) as exc_info:
        update_account_status(case, account.account_id, AccountStatus.PENDING_CHECKER_REVIEW, RM_USER)
    assert exc_info.value.unmet_requirement_ids == [
        f"req-acct-{account.account_id}-0", f"req-acct-{account.account_id}-1",
    ]


def test_allowed_account_roles():
    assert allowed_account_roles(AccountStatus.PROPOSED, AccountStatus.PENDING_CHECKER_REVIEW) == frozenset({UserRole.RM})
    assert allowed_account_roles(AccountStatus.ACTIVE, AccountStatus.DORMANT) == frozenset()
    assert all(len(roles) == 1 for roles in ACCOUNT_TRANSITIONS.values())


def test_update_unknown_account():
    with pytest.raises(AccountNotFoundError):
        update_account_status(make_case(), "ACC-NOPE", AccountStatus.CLOSED, ADMIN_USER)
