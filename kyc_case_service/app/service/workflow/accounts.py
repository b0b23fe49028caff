import datetime
import logging
from typing import Any, Dict, FrozenSet, Optional, Tuple

from kyc_case_service.app.models import AccountDB, CaseDB, User
from kyc_case_service.app.models.enums import AccountStatus, ActivityActionType, ActivityEntityType, UserRole
from kyc_case_service.app.service.exceptions import (
    AccountNotFoundError, InvalidTransitionError, RequirementsNotMetError,
)
from kyc_case_service.app.service.workflow.activity import record_activity
from kyc_case_service.app.service.workflow.requirements import unmet_account_forms

logger = logging.getLogger(__name__)

# (from, to) -> roles allowed to make the move
ACCOUNT_TRANSITIONS: Dict[Tuple[AccountStatus, AccountStatus], FrozenSet[UserRole]] = {
    (AccountStatus.PROPOSED, AccountStatus.PENDING_CHECKER_REVIEW): frozenset({UserRole.RM}),
    (AccountStatus.PENDING_CHECKER_REVIEW, AccountStatus.PENDING_COMPLIANCE_REVIEW): frozenset({UserRole.CHECKER}),
    (AccountStatus.PENDING_CHECKER_REVIEW, AccountStatus.REJECTED): frozenset({UserRole.CHECKER}),
    (AccountStatus.PENDING_COMPLIANCE_REVIEW, AccountStatus.ACTIVE): frozenset({UserRole.COMPLIANCE}),
    (AccountStatus.PENDING_COMPLIANCE_REVIEW, AccountStatus.REJECTED): frozenset({UserRole.COMPLIANCE}),
}

_ACTIVITY_LABELS = {
    AccountStatus.PENDING_CHECKER_REVIEW: ("Account Submitted for Review", ActivityActionType.SUBMIT),
    AccountStatus.PENDING_COMPLIANCE_REVIEW: ("Account Approved by Checker", ActivityActionType.APPROVE),
    AccountStatus.ACTIVE: ("Account Approved", ActivityActionType.APPROVE),
    AccountStatus.REJECTED: ("Account Rejected", ActivityActionType.REJECT),
}


def allowed_account_roles(current: AccountStatus, new: AccountStatus) -> FrozenSet[UserRole]:
    return ACCOUNT_TRANSITIONS.get((current, new), frozenset())


def add_account(
    case: CaseDB,
    account_data: Dict[str, Any],
    actor: User,
    now: Optional[datetime.datetime] = None,
) -> Tuple[CaseDB, AccountDB]:
    """Appends a Proposed account built from `account_data` (snake_case or camelCase keys)."""
    timestamp = now or datetime.datetime.now(datetime.UTC)
    data = {k: v for k, v in account_data.items() if k not in ("status", "accountId", "account_id")}
    account = AccountDB.model_validate({**data, "status": AccountStatus.PROPOSED,
                                        "created_at": timestamp, "updated_at": timestamp})

    updated = case.model_copy(deep=True)
    updated.accounts.append(account)
    record_activity(
        updated, actor, "Account Added", ActivityActionType.CREATE, ActivityEntityType.ACCOUNT, account.account_id,
        details=f"{account.account_type.value} account in {account.currency}",
        new_value=account.status.value, now=timestamp,
    )
    logger.info(f"Added account {account.account_id} to case {case.case_id}.")
    return updated, account


def update_account_status(
    case: CaseDB,
    account_id: str,
    status: AccountStatus,
    actor: User,
    now: Optional[datetime.datetime] = None,
) -> CaseDB:
    """
    Moves one account along its approval flow and returns the updated copy of the case.

    RM submits a Proposed account once all of its opening forms are submitted,
    Checker approves or rejects it, then Compliance activates or rejects it.

    Raises:
        AccountNotFoundError: no account with `account_id` on the case.
        InvalidTransitionError: the move is not in ACCOUNT_TRANSITIONS for the actor's role.
        RequirementsNotMetError: RM submit while account forms are outstanding.
    """
    status = AccountStatus(status)
    current = next((a for a in case.accounts if a.account_id == account_id), None)
    if current is None:
        raise AccountNotFoundError(account_id)

    if actor.role not in allowed_account_roles(current.status, status):
        role_label = actor.role.value if isinstance(actor.role, UserRole) else str(actor.role)
        logger.info(f"Rejected account move '{current.status.value}' -> '{status.value}' by {role_label} on {account_id}.")
        raise InvalidTransitionError(case.case_id, current.status.value, role_label, f"Set account status to {status.value}")

    if status == AccountStatus.PENDING_CHECKER_REVIEW:
        unmet = unmet_account_forms(case, account_id)
        if unmet:
            raise RequirementsNotMetError(case.case_id, unmet)

    timestamp = now or datetime.datetime.now(datetime.UTC)
    updated = case.model_copy(deep=True)
    account = next(a for a in updated.accounts if a.account_id == account_id)
    previous = account.status
    account.status = status
    account.updated_at = timestamp
    label, action_type = _ACTIVITY_LABELS[status]
    record_activity(
        updated, actor, label, action_type, ActivityEntityType.ACCOUNT, account_id,
        previous_value=previous.value, new_value=status.value, now=timestamp,
    )
    return updated
