import datetime
import logging
from typing import Dict, List, Optional, Union

from kyc_case_service.app.models import CaseDB, CasePartyLink, PartyDB, User
from kyc_case_service.app.models.enums import EntityType, ActivityActionType, ActivityEntityType
from kyc_case_service.app.service.exceptions import (
    InvalidRoleError, PartyLinkingDisabledError, AlreadyLinkedError,
)
from kyc_case_service.app.service.workflow.activity import record_activity

logger = logging.getLogger(__name__)

PRIMARY_HOLDER = "Primary Holder"

ENTITY_ROLE_MAPPING: Dict[EntityType, List[str]] = {
    EntityType.INDIVIDUAL_ACCOUNT: [PRIMARY_HOLDER],
    EntityType.NON_LISTED_COMPANY: [
        "Director", "Top Executive", "Authorised Signatory", "Beneficial Owner", "Power of Attorney",
    ],
    EntityType.PARTNERSHIP: ["Partner", "Manager (LLP)", "Authorised Signatory", "Beneficial Owner"],
    EntityType.TRUST: [
        "Trustee", "Settlor", "Protector", "Authorised Signatory", "Beneficiary", "Ultimate Controller",
    ],
}

# Corporate entity types without their own mapping
DEFAULT_CORPORATE_ROLES: List[str] = [
    "Director", "Authorised Signatory", "Beneficial Owner", "Power of Attorney",
]

PRIMARY_ROLES = frozenset({PRIMARY_HOLDER, "Director"})


def can_link_party(entity_type: Union[EntityType, str]) -> bool:
    return EntityType(entity_type) != EntityType.INDIVIDUAL_ACCOUNT


def valid_roles_for(entity_type: Union[EntityType, str]) -> List[str]:
    return list(ENTITY_ROLE_MAPPING.get(EntityType(entity_type), DEFAULT_CORPORATE_ROLES))


def _attach(
    case: CaseDB,
    party: PartyDB,
    role: str,
    actor: User,
    is_primary: Optional[bool],
    ownership_percentage: Optional[float],
    now: Optional[datetime.datetime],
    record: bool = True,
) -> CaseDB:
    updated = case.model_copy(deep=True)
    updated.related_party_links.append(CasePartyLink(
        party_id=party.party_id,
        relationship_type=role,
        is_primary=role in PRIMARY_ROLES if is_primary is None else is_primary,
        ownership_percentage=ownership_percentage,
    ))
    if record:
        record_activity(
            updated, actor, "Party Linked", ActivityActionType.CREATE, ActivityEntityType.PARTY, party.party_id,
            details=f"{party.name} linked as {role}", new_value=role, now=now,
        )
    logger.info(f"Linked party {party.party_id} to case {case.case_id} as '{role}'.")
    return updated


def link_party(
    case: CaseDB,
    party: PartyDB,
    role: str,
    actor: User,
    is_primary: Optional[bool] = None,
    ownership_percentage: Optional[float] = None,
    now: Optional[datetime.datetime] = None,
) -> CaseDB:
    """
    Links an existing party to the case in the given relationship role.

    Raises:
        PartyLinkingDisabledError: the case is an Individual Account.
        InvalidRoleError: role is not valid for the case's entity type.
        AlreadyLinkedError: the party is already linked to the case.
    """
    entity_type = case.entity_data.entity_type
    if not can_link_party(entity_type):
        raise PartyLinkingDisabledError(entity_type.value, role)
    if role not in valid_roles_for(entity_type):
        raise InvalidRoleError(entity_type.value, role)
    if case.find_party_link(party.party_id) is not None:
        raise AlreadyLinkedError(case.case_id, party.party_id)
    return _attach(case, party, role, actor, is_primary, ownership_percentage, now)


def link_primary_holder(
    case: CaseDB,
    party: PartyDB,
    actor: User,
    now: Optional[datetime.datetime] = None,
    record: bool = True,
) -> CaseDB:
    """
    Case-creation path for Individual Account cases, where user-driven linking is disabled.

    With `record=False` no activity entry is written; case creation logs the holder itself.
    """
    if case.find_party_link(party.party_id) is not None:
        raise AlreadyLinkedError(case.case_id, party.party_id)
    return _attach(case, party, PRIMARY_HOLDER, actor, True, None, now, record)
