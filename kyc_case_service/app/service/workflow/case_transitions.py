"""
Case approval state machine.

The rule table is keyed by (role, current status, action). Anything not in the
table is "no action available": `available_actions` returns nothing for it and
`apply_transition` raises `InvalidTransitionError`.
"""
import datetime
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from kyc_case_service.app.models import CaseDB, User
from kyc_case_service.app.models.enums import (
    CaseStatus, RiskLevel, UserRole, ActivityActionType, ActivityEntityType,
)
from kyc_case_service.app.service.exceptions import InvalidTransitionError, RequirementsNotMetError
from kyc_case_service.app.service.workflow.activity import record_activity
from kyc_case_service.app.service.workflow.requirements import unmet_requirements

logger = logging.getLogger(__name__)


class CaseAction(str, Enum):
    SUBMIT_FOR_REVIEW = "SubmitForReview"
    APPROVE = "Approve"
    REJECT = "Reject"
    ESCALATE_TO_HIGH_RISK = "EscalateToHighRisk"
    FINAL_APPROVE = "FinalApprove"


# Compliance approval of these risk levels needs a GM sign-off.
GM_APPROVAL_RISK_LEVELS = frozenset({RiskLevel.HIGH, RiskLevel.CRITICAL})


@dataclass(frozen=True)
class TransitionRule:
    role: UserRole
    from_status: CaseStatus
    action: CaseAction
    to_status: CaseStatus
    label: str # Activity log text
    action_type: ActivityActionType
    gm_approval_to_status: Optional[CaseStatus] = None # Destination when risk needs GM sign-off
    sets_risk_level: Optional[RiskLevel] = None
    requires_submittable: bool = False

    def destination(self, risk_level: RiskLevel) -> CaseStatus:
        if self.gm_approval_to_status is not None and risk_level in GM_APPROVAL_RISK_LEVELS:
            return self.gm_approval_to_status
        return self.to_status

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {
            "role": self.role.value,
            "fromStatus": self.from_status.value,
            "action": self.action.value,
            "toStatus": self.to_status.value,
            "gmApprovalToStatus": self.gm_approval_to_status.value if self.gm_approval_to_status else None,
            "setsRiskLevel": self.sets_risk_level.value if self.sets_risk_level else None,
            "requiresSubmittable": self.requires_submittable,
            "label": self.label,
        }


TRANSITION_RULES: Tuple[TransitionRule, ...] = (
    # RM
    TransitionRule(UserRole.RM, CaseStatus.DRAFT, CaseAction.SUBMIT_FOR_REVIEW,
                   CaseStatus.PENDING_CHECKER_REVIEW, "Submitted KYC for Checker Review",
                   ActivityActionType.SUBMIT, requires_submittable=True),
    # Checker
    TransitionRule(UserRole.CHECKER, CaseStatus.PENDING_CHECKER_REVIEW, CaseAction.APPROVE,
                   CaseStatus.PENDING_COMPLIANCE_REVIEW, "Checker Approved", ActivityActionType.APPROVE),
    TransitionRule(UserRole.CHECKER, CaseStatus.PENDING_CHECKER_REVIEW, CaseAction.REJECT,
                   CaseStatus.DRAFT, "Checker Rejected", ActivityActionType.REJECT),
    # Compliance
    TransitionRule(UserRole.COMPLIANCE, CaseStatus.PENDING_COMPLIANCE_REVIEW, CaseAction.APPROVE,
                   CaseStatus.APPROVED, "Compliance Approved", ActivityActionType.APPROVE,
                   gm_approval_to_status=CaseStatus.PENDING_GM_APPROVAL),
    TransitionRule(UserRole.COMPLIANCE, CaseStatus.PENDING_COMPLIANCE_REVIEW, CaseAction.REJECT,
                   CaseStatus.DRAFT, "Compliance Rejected", ActivityActionType.REJECT),
    TransitionRule(UserRole.COMPLIANCE, CaseStatus.PENDING_COMPLIANCE_REVIEW, CaseAction.ESCALATE_TO_HIGH_RISK,
                   CaseStatus.DRAFT, "Case Escalated to High Risk", ActivityActionType.UPDATE,
                   sets_risk_level=RiskLevel.HIGH),
    # GM
    TransitionRule(UserRole.GM, CaseStatus.PENDING_GM_APPROVAL, CaseAction.FINAL_APPROVE,
                   CaseStatus.APPROVED, "GM Final Approved", ActivityActionType.APPROVE),
    TransitionRule(UserRole.GM, CaseStatus.PENDING_GM_APPROVAL, CaseAction.REJECT,
                   CaseStatus.DRAFT, "Case Rejected by GM", ActivityActionType.REJECT),
)

TRANSITION_TABLE: Dict[Tuple[UserRole, CaseStatus, CaseAction], TransitionRule] = {
    (rule.role, rule.from_status, rule.action): rule for rule in TRANSITION_RULES
}


def _coerce_role(role: Union[UserRole, str]) -> Optional[UserRole]:
    try:
        return UserRole(role)
    except ValueError:
        return None


def _coerce_action(action: Union[CaseAction, str]) -> Optional[CaseAction]:
    try:
        return CaseAction(action)
    except ValueError:
        return None


def find_rule(role: Union[UserRole, str], status: CaseStatus, action: Union[CaseAction, str]) -> Optional[TransitionRule]:
    role_enum = _coerce_role(role)
    action_enum = _coerce_action(action)
    if role_enum is None or action_enum is None:
        return None
    return TRANSITION_TABLE.get((role_enum, CaseStatus(status), action_enum))


def available_actions(role: Union[UserRole, str], case: CaseDB) -> List[CaseAction]:
    """Actions the role may take on the case in its current status, in table order."""
    role_enum = _coerce_role(role)
    if role_enum is None:
        return []
    return [
        rule.action for rule in TRANSITION_RULES
        if rule.role == role_enum and rule.from_status == case.status
    ]


def describe_transition_table() -> List[Dict[str, Optional[str]]]:
    return [rule.as_dict() for rule in TRANSITION_RULES]


def apply_transition(
    case: CaseDB,
    actor: User,
    action: Union[CaseAction, str],
    details: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
) -> CaseDB:
    """
    Applies a workflow action and returns the updated copy of the case.

    The input case is never modified. Status, risk level and the single
    activity entry change together in the returned copy.

    Raises:
        InvalidTransitionError: no rule for (actor role, case status, action).
        RequirementsNotMetError: the submit gate failed; lists blocking requirement ids.
    """
    rule = find_rule(actor.role, case.status, action)
    if rule is None:
        action_label = action.value if isinstance(action, CaseAction) else str(action)
        role_label = actor.role.value if isinstance(actor.role, UserRole) else str(actor.role)
        logger.info(f"Rejected action '{action_label}' by {role_label} on case {case.case_id} in status '{case.status.value}'.")
        raise InvalidTransitionError(case.case_id, case.status.value, role_label, action_label)

    if rule.requires_submittable:
        unmet = unmet_requirements(case)
        if unmet:
            logger.info(f"Case {case.case_id} not submittable; unmet requirements: {unmet}")
            raise RequirementsNotMetError(case.case_id, unmet)

    updated = case.model_copy(deep=True)
    previous_status = updated.status
    previous_risk = updated.risk_level
    updated.status = rule.destination(updated.risk_level)
    if rule.sets_risk_level is not None:
        updated.risk_level = rule.sets_risk_level
        if details is None and previous_risk != rule.sets_risk_level:
            details = f"Risk level changed from {previous_risk.value} to {rule.sets_risk_level.value}"

    record_activity(
        updated, actor, rule.label, rule.action_type, ActivityEntityType.CASE, updated.case_id,
        details=details, previous_value=previous_status.value, new_value=updated.status.value, now=now,
    )
    logger.info(f"Case {updated.case_id}: '{previous_status.value}' -> '{updated.status.value}' via {rule.action.value} by {actor.id}.")
    return updated


def activate_case(case: CaseDB, actor: User, details: Optional[str] = None, now: Optional[datetime.datetime] = None) -> CaseDB:
    """External onward step from Approved to Active, outside the role table."""
    if case.status != CaseStatus.APPROVED:
        raise InvalidTransitionError(case.case_id, case.status.value, str(getattr(actor.role, "value", actor.role)), "Activate")
    updated = case.model_copy(deep=True)
    updated.status = CaseStatus.ACTIVE
    record_activity(
        updated, actor, "Case Activated", ActivityActionType.UPDATE, ActivityEntityType.CASE, updated.case_id,
        details=details, previous_value=CaseStatus.APPROVED.value, new_value=CaseStatus.ACTIVE.value, now=now,
    )
    return updated
