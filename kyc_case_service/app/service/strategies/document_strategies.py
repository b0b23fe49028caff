import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from kyc_case_service.app.models import CaseDB, CaseDocumentLink, PartyDB, AccountDB
from kyc_case_service.app.models.enums import (
    EntityType, RiskLevel, ResidencyStatus, RequirementType,
)

logger = logging.getLogger(__name__)

ENTITY_OWNER = "ENTITY"
ENTITY_DOCUMENTS_GROUP = "Entity Documents"
PEP_RISK_SCORE_THRESHOLD = 50


@dataclass(frozen=True)
class DocumentTemplate:
    name: str
    category: str
    required: bool = True
    validity_months: Optional[int] = None
    description: Optional[str] = None


@dataclass
class RequirementContext:
    """Everything a strategy may look at: the case and the parties it references."""
    case: CaseDB
    parties: Dict[str, PartyDB] = field(default_factory=dict)


INDIVIDUAL_TEMPLATES: Dict[ResidencyStatus, List[DocumentTemplate]] = {
    ResidencyStatus.SINGAPOREAN_PR: [
        DocumentTemplate("Identity Document / NRIC / Birth Certificate", "Identity"),
    ],
    ResidencyStatus.FOREIGNER: [
        DocumentTemplate("Passport", "Identity", validity_months=6),
        DocumentTemplate("Work Permit / Employment Pass", "Legal", description="(Only if employed in SG)"),
        DocumentTemplate("Proof of Residential Address", "Address", validity_months=3,
                         description="(Needed if address not on ID)"),
    ],
}

ENTITY_TEMPLATES: Dict[EntityType, List[DocumentTemplate]] = {
    EntityType.INDIVIDUAL_ACCOUNT: [],
    EntityType.NON_LISTED_COMPANY: [
        DocumentTemplate("ARCA / Questnet Search", "Corporate", validity_months=1),
        DocumentTemplate("Certificate of Incorporation", "Corporate"),
        DocumentTemplate("Memorandum & Articles of Association", "Corporate"),
    ],
    EntityType.PARTNERSHIP: [
        DocumentTemplate("Certificate of Partnership", "Corporate"),
        DocumentTemplate("Partnership Deed / Agreement", "Legal"),
        DocumentTemplate("ARCA / Questnet Search", "Corporate", validity_months=1),
    ],
    EntityType.TRUST: [
        DocumentTemplate("Declaration of Trusts / Registration", "Legal"),
        DocumentTemplate("Trust Deed or Indenture of Trust", "Legal", description="(Sighted & CTC by bank officer)"),
        DocumentTemplate("Trustee Resolution", "Corporate", validity_months=2),
    ],
}

CORPORATE_MANDATORY_FORMS = [
    "Signature Card",
    "Board Resolutions",
    "Account Application Form",
    "Declaration of Beneficial Owner(s) Form",
    "KYC Form",
]
INDIVIDUAL_STAKEHOLDER_FORMS = [
    "Signature Card",
    "Account Application Form",
    "Mandate Form",
    "FATCA & CRS Supplemental Form (Individuals)",
]

ACCOUNT_OPENING_FORMS = [
    DocumentTemplate("Account Application Form", "Other"),
    DocumentTemplate("Signature Card", "Other"),
]

_HIGH_RISK_DOCUMENTS = [
    DocumentTemplate("Source of Wealth Declaration", "Financial"),
    DocumentTemplate("GM Approval Memo", "Other"),
]
RISK_BASED_DOCUMENTS: Dict[RiskLevel, List[DocumentTemplate]] = {
    RiskLevel.CRITICAL: _HIGH_RISK_DOCUMENTS,
    RiskLevel.HIGH: _HIGH_RISK_DOCUMENTS,
    RiskLevel.MEDIUM: [],
    RiskLevel.LOW: [],
}

SOURCE_OF_WEALTH = DocumentTemplate(
    "Source of Wealth Declaration", "Financial", description="Required for high-risk individuals",
)


def _link(requirement_id: str, template: DocumentTemplate, group: str, owner: str,
          requirement_type: RequirementType = RequirementType.STANDARD) -> CaseDocumentLink:
    return CaseDocumentLink(
        requirement_id=requirement_id,
        requirement_type=requirement_type,
        requirement_name=template.name,
        requirement_group=group,
        owner_party_id=owner,
        is_mandatory=template.required,
    )


def account_forms_group(account: AccountDB) -> str:
    return f"Account Forms - {account.account_type.value} ({account.currency})"


class DocumentDeterminationStrategy(ABC):
    @abstractmethod
    async def determine_requirements(self, context: RequirementContext) -> List[CaseDocumentLink]:
        """
        Determines the document requirements this strategy is responsible for.

        Args:
            context: The case and the parties linked to it.

        Returns:
            Document links with deterministic requirement ids. Links already
            present on the case are filtered out by the caller.
        """
        pass


class EntityDocumentsStrategy(DocumentDeterminationStrategy):
    async def determine_requirements(self, context: RequirementContext) -> List[CaseDocumentLink]:
        templates = ENTITY_TEMPLATES.get(context.case.entity_data.entity_type, [])
        return [
            _link(f"req-entity-{i}", template, ENTITY_DOCUMENTS_GROUP, ENTITY_OWNER)
            for i, template in enumerate(templates)
        ]


class BankFormsStrategy(DocumentDeterminationStrategy):
    async def determine_requirements(self, context: RequirementContext) -> List[CaseDocumentLink]:
        if context.case.entity_data.entity_type == EntityType.INDIVIDUAL_ACCOUNT:
            forms = INDIVIDUAL_STAKEHOLDER_FORMS
        else:
            forms = CORPORATE_MANDATORY_FORMS
        return [
            _link(f"req-forms-{i}", DocumentTemplate(name, "Corporate"), ENTITY_DOCUMENTS_GROUP, ENTITY_OWNER)
            for i, name in enumerate(forms)
        ]


class RiskBasedStrategy(DocumentDeterminationStrategy):
    async def determine_requirements(self, context: RequirementContext) -> List[CaseDocumentLink]:
        templates = RISK_BASED_DOCUMENTS.get(context.case.risk_level, [])
        return [
            _link(f"req-risk-{i}", template, ENTITY_DOCUMENTS_GROUP, ENTITY_OWNER, RequirementType.RISK_BASED)
            for i, template in enumerate(templates)
        ]


class RelatedPartyStrategy(DocumentDeterminationStrategy):
    """Identity documents per linked party, plus source of wealth for PEPs and high risk scores."""
    async def determine_requirements(self, context: RequirementContext) -> List[CaseDocumentLink]:
        links: List[CaseDocumentLink] = []
        for party_link in context.case.related_party_links:
            party = context.parties.get(party_link.party_id)
            if party is None:
                logger.warning(f"Party {party_link.party_id} linked to case {context.case.case_id} not found; skipping its documents.")
                continue
            group = f"{party.name} ({party_link.relationship_type})"

            templates = INDIVIDUAL_TEMPLATES.get(party.residency_status, []) if party.residency_status else []
            for i, template in enumerate(templates):
                links.append(_link(f"req-party-{party.party_id}-{i}", template, group, party.party_id))

            if party.is_pep or (party.risk_score is not None and party.risk_score > PEP_RISK_SCORE_THRESHOLD):
                links.append(_link(f"req-party-{party.party_id}-sow", SOURCE_OF_WEALTH, group, party.party_id,
                                   RequirementType.RISK_BASED))
        return links


class AccountFormsStrategy(DocumentDeterminationStrategy):
    async def determine_requirements(self, context: RequirementContext) -> List[CaseDocumentLink]:
        return [
            _link(f"req-acct-{account.account_id}-{i}", template, account_forms_group(account), ENTITY_OWNER)
            for account in context.case.accounts
            for i, template in enumerate(ACCOUNT_OPENING_FORMS)
        ]


def get_document_strategies() -> List[DocumentDeterminationStrategy]:
    return [
        EntityDocumentsStrategy(),
        BankFormsStrategy(),
        RiskBasedStrategy(),
        RelatedPartyStrategy(),
        AccountFormsStrategy(),
    ]


async def determine_document_links(case: CaseDB, parties: Iterable[PartyDB]) -> List[CaseDocumentLink]:
    """Runs every strategy and returns the links not yet on the case, in strategy order."""
    context = RequirementContext(case=case, parties={p.party_id: p for p in parties})
    existing = {link.requirement_id for link in case.document_links}
    new_links: List[CaseDocumentLink] = []
    for strategy in get_document_strategies():
        for link in await strategy.determine_requirements(context):
            if link.requirement_id in existing:
                continue
            existing.add(link.requirement_id)
            new_links.append(link)
    return new_links
