# Command Handler Implementation
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from opentelemetry import trace

from .models import (
    CreateCaseCommand, ApplyCaseTransitionCommand, ActivateCaseCommand, DeleteCaseCommand,
    UpdateSubmissionStatusCommand, AddSubmissionCommand, ExpireSubmissionsCommand,
    LinkPartyCommand, AddAccountCommand, UpdateAccountStatusCommand,
    DetermineDocumentRequirementsCommand, CreatePartyCommand, BaseCommand,
)
from kyc_case_service.app.config import settings
from kyc_case_service.app.models import CaseDB, CaseDocumentLink, EntityData, PartyDB, User
from kyc_case_service.app.models.enums import (
    EntityType, PartyType, ActivityActionType, ActivityEntityType,
)
from kyc_case_service.app.observability import (
    case_transitions_counter, case_transition_rejections_counter, submission_status_updates_counter,
    version_conflict_retries_counter, notification_publish_failures_counter,
)
from kyc_case_service.app.service.events import models as domain_event_models
from kyc_case_service.app.service.exceptions import (
    InvalidTransitionError, RequirementsNotMetError, VersionConflictError,
)
from kyc_case_service.app.service.interfaces.case_repository import AbstractCaseRepository, AbstractPartyRepository
from kyc_case_service.app.service.interfaces.notification_publisher import AbstractNotificationPublisher
from kyc_case_service.app.service.strategies.document_strategies import determine_document_links
from kyc_case_service.app.service.workflow.activity import record_activity
from kyc_case_service.app.service.workflow import accounts as account_rules
from kyc_case_service.app.service.workflow import case_transitions
from kyc_case_service.app.service.workflow import party_links
from kyc_case_service.app.service.workflow import submissions as submission_rules

logger = logging.getLogger(__name__)

CaseMutation = Callable[[CaseDB], Awaitable[CaseDB]]


def _start_span(command: BaseCommand, actor: User, case_id: Optional[str] = None):
    current_span = trace.get_current_span()
    current_span.set_attribute("command.name", type(command).__name__)
    current_span.set_attribute("command.id", command.command_id)
    current_span.set_attribute("actor.role", actor.role.value)
    if case_id:
        current_span.set_attribute("case.id", case_id)
    current_span.add_event(f"{type(command).__name__}HandlerStarted")
    return current_span


def _metadata(command: BaseCommand, actor: User) -> domain_event_models.EventMetaData:
    return domain_event_models.EventMetaData(
        causation_id=command.command_id, actor_id=actor.id, actor_role=actor.role.value,
    )


async def _update_case_with_retry(
    case_repository: AbstractCaseRepository,
    case_id: str,
    mutate: CaseMutation,
    command_name: str,
) -> CaseDB:
    """
    Load, apply `mutate`, save with a version check. On a version conflict the
    case is re-read and the mutation re-applied, with exponential backoff,
    up to VERSION_CONFLICT_MAX_RETRIES times before the conflict is raised.

    Validation errors from `mutate` propagate immediately without retry.
    A mutation that hands back the loaded case itself has nothing to write,
    so no save happens and the version is left alone.
    """
    attempt = 0
    while True:
        case = await case_repository.load_case(case_id)
        updated = await mutate(case)
        if updated is case:
            logger.debug(f"{command_name} on case {case_id} changed nothing; skipping save.")
            return case
        try:
            return await case_repository.save_case(updated)
        except VersionConflictError as e:
            if attempt >= settings.VERSION_CONFLICT_MAX_RETRIES:
                logger.error(f"{command_name} on case {case_id} gave up after {attempt} retries: {e}")
                raise
            delay = settings.VERSION_CONFLICT_BACKOFF_SECONDS * (2 ** attempt)
            attempt += 1
            version_conflict_retries_counter.add(1, {"command.name": command_name})
            logger.warning(f"{command_name} on case {case_id} hit a version conflict; retry {attempt} in {delay:.3f}s.")
            await asyncio.sleep(delay)


async def _publish_best_effort(
    publisher: Optional[AbstractNotificationPublisher],
    event: domain_event_models.BaseEvent,
) -> bool:
    """Publishes after the save has committed. Failures are logged and counted, never raised."""
    if publisher is None:
        return False
    attempts = settings.NOTIFICATION_PUBLISH_RETRIES + 1
    for attempt in range(1, attempts + 1):
        try:
            await publisher.publish(event)
            return True
        except Exception as e: # Any broker or serialization failure
            logger.warning(f"Publish attempt {attempt}/{attempts} for {event.event_type} on {event.aggregate_id} failed: {e}")
    logger.error(f"Dropping {event.event_type} notification for {event.aggregate_id} after {attempts} attempts.")
    notification_publish_failures_counter.add(1, {"event.type": event.event_type})
    trace.get_current_span().add_event("NotificationPublishFailed", {"event.type": event.event_type})
    return False


async def _determine_new_links(
    case: CaseDB,
    party_repository: AbstractPartyRepository,
) -> List[CaseDocumentLink]:
    party_ids = [link.party_id for link in case.related_party_links]
    parties = await party_repository.get_parties(party_ids) if party_ids else []
    return await determine_document_links(case, parties)


def _attach_requirements(case: CaseDB, new_links: List[CaseDocumentLink]) -> List[str]:
    """
    Adds `new_links` to a working copy of the case and notes their ids on the
    latest activity entry, so the action that caused them still logs one entry.
    """
    if not new_links:
        return []
    case.document_links.extend(new_links)
    requirement_ids = [link.requirement_id for link in new_links]
    activity = case.activities[-1]
    note = f"requirements added: {', '.join(requirement_ids)}"
    activity.details = f"{activity.details}; {note}" if activity.details else f"Document {note}"
    return requirement_ids


async def _with_determined_requirements(
    case: CaseDB,
    party_repository: AbstractPartyRepository,
    actor: User,
) -> Tuple[CaseDB, List[str]]:
    """Explicit determination: appends missing document links under their own activity entry."""
    new_links = await _determine_new_links(case, party_repository)
    if not new_links:
        return case, []

    updated = case.model_copy(deep=True)
    updated.document_links.extend(new_links)
    requirement_ids = [link.requirement_id for link in new_links]
    record_activity(
        updated, actor, "Document Requirements Determined", ActivityActionType.CREATE,
        ActivityEntityType.CASE, updated.case_id, details=f"{len(new_links)} requirement(s) added",
    )
    return updated, requirement_ids


# --- Case lifecycle ---

async def handle_create_case_command(
    command: CreateCaseCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    party_repository: AbstractPartyRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> CaseDB:
    current_span = _start_span(command, actor)
    logger.info(f"Handling CreateCaseCommand {command.command_id}: '{command.entity_name}' ({command.entity_type.value})")

    case = CaseDB(
        risk_level=command.risk_level,
        priority=command.priority,
        assigned_to=command.assigned_to or actor.name,
        assigned_team=command.assigned_team,
        compliance_notes=command.compliance_notes,
        entity_data=EntityData(
            entity_name=command.entity_name,
            entity_type=command.entity_type,
            tax_id=command.tax_id or "",
            registration_number=command.registration_number,
            incorporation_country=command.incorporation_country,
        ),
    )
    details = f"{command.entity_type.value} case for {command.entity_name}"

    if command.entity_type == EntityType.INDIVIDUAL_ACCOUNT:
        holder_name = command.primary_party_name or command.entity_name
        party = await party_repository.find_party_by_name(holder_name)
        if party is None:
            party = await party_repository.save_party(PartyDB(
                name=holder_name,
                type=PartyType.INDIVIDUAL,
                residency_status=command.primary_party_residency_status,
                created_by=actor.name,
            ))
            logger.info(f"Created primary holder party {party.party_id} for '{holder_name}'.")
        # Logged as part of "Case Created"
        case = party_links.link_primary_holder(case, party, actor, record=False)
        details += f"; primary holder {party.name}"

    record_activity(
        case, actor, "Case Created", ActivityActionType.CREATE, ActivityEntityType.CASE, case.case_id,
        details=details, new_value=case.status.value,
    )

    requirement_ids = _attach_requirements(case, await _determine_new_links(case, party_repository))
    saved = await case_repository.create_case(case)
    current_span.set_attribute("case.id", saved.case_id)

    await _publish_best_effort(publisher, domain_event_models.CaseCreatedEvent(
        aggregate_id=saved.case_id,
        version=saved.version,
        metadata=_metadata(command, actor),
        payload=domain_event_models.CaseCreatedEventPayload(
            entity_name=saved.entity_data.entity_name,
            entity_type=saved.entity_data.entity_type.value,
            risk_level=saved.risk_level.value,
            status=saved.status.value,
        ),
    ))
    logger.info(f"Created case {saved.case_id} with {len(requirement_ids)} initial requirement(s).")
    current_span.add_event("CreateCaseCommandHandlerFinished", {"case.id": saved.case_id})
    return saved


async def handle_apply_transition_command(
    command: ApplyCaseTransitionCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    party_repository: AbstractPartyRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> CaseDB:
    current_span = _start_span(command, actor, command.case_id)
    current_span.set_attribute("workflow.action", command.action)
    previous: Dict[str, str] = {}

    async def mutate(case: CaseDB) -> CaseDB:
        previous["status"] = case.status.value
        updated = case_transitions.apply_transition(case, actor, command.action, command.details)
        rule = case_transitions.find_rule(actor.role, case.status, command.action)
        if rule.sets_risk_level is not None:
            # Escalation brings in the risk-based requirements for the new level
            _attach_requirements(updated, await _determine_new_links(updated, party_repository))
        return updated

    try:
        saved = await _update_case_with_retry(case_repository, command.case_id, mutate, "ApplyCaseTransition")
    except (InvalidTransitionError, RequirementsNotMetError) as e:
        case_transition_rejections_counter.add(1, {
            "action": command.action, "role": actor.role.value, "reason": type(e).__name__,
        })
        current_span.set_attribute("error", True)
        current_span.set_attribute("error.message", str(e))
        raise

    case_transitions_counter.add(1, {"action": command.action, "to_status": saved.status.value})
    current_span.add_event("CaseTransitionApplied", {"from": previous["status"], "to": saved.status.value})

    await _publish_best_effort(publisher, domain_event_models.CaseStatusChangedEvent(
        aggregate_id=saved.case_id,
        version=saved.version,
        metadata=_metadata(command, actor),
        payload=domain_event_models.CaseStatusChangedEventPayload(
            action=command.action,
            previous_status=previous["status"],
            new_status=saved.status.value,
            risk_level=saved.risk_level.value,
            details=command.details,
        ),
    ))
    return saved


async def handle_activate_case_command(
    command: ActivateCaseCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> CaseDB:
    _start_span(command, actor, command.case_id)

    async def mutate(case: CaseDB) -> CaseDB:
        return case_transitions.activate_case(case, actor, command.details)

    saved = await _update_case_with_retry(case_repository, command.case_id, mutate, "ActivateCase")
    case_transitions_counter.add(1, {"action": "Activate", "to_status": saved.status.value})
    await _publish_best_effort(publisher, domain_event_models.CaseStatusChangedEvent(
        aggregate_id=saved.case_id,
        version=saved.version,
        metadata=_metadata(command, actor),
        payload=domain_event_models.CaseStatusChangedEventPayload(
            action="Activate",
            previous_status="Approved",
            new_status=saved.status.value,
            risk_level=saved.risk_level.value,
            details=command.details,
        ),
    ))
    return saved


async def handle_delete_case_command(
    command: DeleteCaseCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> None:
    _start_span(command, actor, command.case_id)
    await case_repository.delete_case(command.case_id)
    logger.info(f"Case {command.case_id} deleted by {actor.id}.")
    await _publish_best_effort(publisher, domain_event_models.CaseDeletedEvent(
        aggregate_id=command.case_id,
        metadata=_metadata(command, actor),
        payload=domain_event_models.CaseDeletedEventPayload(deleted_by=actor.id),
    ))


# --- Document submissions ---

async def handle_update_submission_status_command(
    command: UpdateSubmissionStatusCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> CaseDB:
    current_span = _start_span(command, actor, command.case_id)
    current_span.set_attribute("submission.id", command.submission_id)
    previous: Dict[str, str] = {}

    async def mutate(case: CaseDB) -> CaseDB:
        link = case.find_document_link(command.requirement_id)
        current = next((s for s in link.submissions if s.submission_id == command.submission_id), None) if link else None
        if current is not None:
            previous["status"] = current.status.value
        return submission_rules.update_submission_status(
            case, command.requirement_id, command.submission_id, command.new_status, actor,
            comment_text=command.comment, is_internal=command.is_internal,
        )

    saved = await _update_case_with_retry(case_repository, command.case_id, mutate, "UpdateSubmissionStatus")
    submission_status_updates_counter.add(1, {"new_status": command.new_status.value})

    await _publish_best_effort(publisher, domain_event_models.SubmissionStatusChangedEvent(
        aggregate_id=saved.case_id,
        version=saved.version,
        metadata=_metadata(command, actor),
        payload=domain_event_models.SubmissionStatusChangedEventPayload(
            requirement_id=command.requirement_id,
            submission_id=command.submission_id,
            previous_status=previous.get("status"),
            new_status=command.new_status.value,
        ),
    ))
    return saved


async def handle_add_submission_command(
    command: AddSubmissionCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> Tuple[CaseDB, str]:
    _start_span(command, actor, command.case_id)
    created: Dict[str, str] = {}

    async def mutate(case: CaseDB) -> CaseDB:
        updated, submission = submission_rules.add_submission(
            case, command.requirement_id, actor, command.master_doc_id,
            submission_method=command.submission_method,
            published_date=command.published_date,
            expiry_date=command.expiry_date,
            pages=command.pages,
            requirement_name=command.requirement_name,
            owner_party_id=command.owner_party_id,
        )
        created["submission_id"] = submission.submission_id
        return updated

    saved = await _update_case_with_retry(case_repository, command.case_id, mutate, "AddSubmission")
    submission_id = created["submission_id"]
    submission_status_updates_counter.add(1, {"new_status": "Pending Checker Verification"})

    await _publish_best_effort(publisher, domain_event_models.SubmissionStatusChangedEvent(
        aggregate_id=saved.case_id,
        version=saved.version,
        metadata=_metadata(command, actor),
        payload=domain_event_models.SubmissionStatusChangedEventPayload(
            requirement_id=command.requirement_id,
            submission_id=submission_id,
            new_status="Pending Checker Verification",
        ),
    ))
    return saved, submission_id


async def handle_expire_submissions_command(
    command: ExpireSubmissionsCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> Tuple[CaseDB, List[str]]:
    _start_span(command, actor, command.case_id)
    expired: Dict[str, List[str]] = {}

    async def mutate(case: CaseDB) -> CaseDB:
        updated, expired_ids = submission_rules.expire_submissions(case, command.as_of, actor)
        expired["ids"] = expired_ids
        return updated

    saved = await _update_case_with_retry(case_repository, command.case_id, mutate, "ExpireSubmissions")
    expired_ids = expired["ids"]
    if expired_ids:
        submission_status_updates_counter.add(len(expired_ids), {"new_status": "Expired"})
        await _publish_best_effort(publisher, domain_event_models.SubmissionsExpiredEvent(
            aggregate_id=saved.case_id,
            version=saved.version,
            metadata=_metadata(command, actor),
            payload=domain_event_models.SubmissionsExpiredEventPayload(submission_ids=expired_ids),
        ))
    return saved, expired_ids


# --- Parties, accounts and requirements ---

async def handle_link_party_command(
    command: LinkPartyCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    party_repository: AbstractPartyRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> CaseDB:
    current_span = _start_span(command, actor, command.case_id)
    current_span.set_attribute("party.id", command.party_id)
    party = await party_repository.get_party(command.party_id)

    async def mutate(case: CaseDB) -> CaseDB:
        linked = party_links.link_party(
            case, party, command.relationship_type, actor,
            is_primary=command.is_primary, ownership_percentage=command.ownership_percentage,
        )
        _attach_requirements(linked, await _determine_new_links(linked, party_repository))
        return linked

    saved = await _update_case_with_retry(case_repository, command.case_id, mutate, "LinkParty")
    party_link = saved.find_party_link(party.party_id)

    await _publish_best_effort(publisher, domain_event_models.PartyLinkedEvent(
        aggregate_id=saved.case_id,
        version=saved.version,
        metadata=_metadata(command, actor),
        payload=domain_event_models.PartyLinkedEventPayload(
            party_id=party.party_id,
            relationship_type=party_link.relationship_type,
            is_primary=party_link.is_primary,
        ),
    ))
    return saved


async def handle_add_account_command(
    command: AddAccountCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    party_repository: AbstractPartyRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> Tuple[CaseDB, str]:
    _start_span(command, actor, command.case_id)
    created: Dict[str, str] = {}

    async def mutate(case: CaseDB) -> CaseDB:
        updated, account = account_rules.add_account(case, command.account_data, actor)
        created["account_id"] = account.account_id
        _attach_requirements(updated, await _determine_new_links(updated, party_repository))
        return updated

    saved = await _update_case_with_retry(case_repository, command.case_id, mutate, "AddAccount")
    account_id = created["account_id"]
    await _publish_best_effort(publisher, domain_event_models.AccountChangedEvent(
        aggregate_id=saved.case_id,
        version=saved.version,
        metadata=_metadata(command, actor),
        payload=domain_event_models.AccountChangedEventPayload(account_id=account_id, new_status="Proposed"),
    ))
    return saved, account_id


async def handle_update_account_status_command(
    command: UpdateAccountStatusCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> CaseDB:
    _start_span(command, actor, command.case_id)
    previous: Dict[str, str] = {}

    async def mutate(case: CaseDB) -> CaseDB:
        account = next((a for a in case.accounts if a.account_id == command.account_id), None)
        if account is not None:
            previous["status"] = account.status.value
        return account_rules.update_account_status(case, command.account_id, command.status, actor)

    saved = await _update_case_with_retry(case_repository, command.case_id, mutate, "UpdateAccountStatus")
    await _publish_best_effort(publisher, domain_event_models.AccountChangedEvent(
        aggregate_id=saved.case_id,
        version=saved.version,
        metadata=_metadata(command, actor),
        payload=domain_event_models.AccountChangedEventPayload(
            account_id=command.account_id,
            previous_status=previous.get("status"),
            new_status=command.status.value,
        ),
    ))
    return saved


async def handle_determine_document_requirements_command(
    command: DetermineDocumentRequirementsCommand,
    actor: User,
    case_repository: AbstractCaseRepository,
    party_repository: AbstractPartyRepository,
    publisher: Optional[AbstractNotificationPublisher] = None,
) -> Tuple[CaseDB, List[str]]:
    current_span = _start_span(command, actor, command.case_id)
    added: Dict[str, List[str]] = {}

    async def mutate(case: CaseDB) -> CaseDB:
        updated, requirement_ids = await _with_determined_requirements(case, party_repository, actor)
        added["ids"] = requirement_ids
        return updated

    saved = await _update_case_with_retry(case_repository, command.case_id, mutate, "DetermineDocumentRequirements")
    requirement_ids = added["ids"]
    current_span.add_event("DocumentRequirementsDetermined", {"requirements.added.count": len(requirement_ids)})
    logger.info(f"Determined {len(requirement_ids)} new document requirement(s) for case {command.case_id}.")

    if requirement_ids:
        await _publish_best_effort(publisher, domain_event_models.DocumentRequirementsDeterminedEvent(
            aggregate_id=saved.case_id,
            version=saved.version,
            metadata=_metadata(command, actor),
            payload=domain_event_models.DocumentRequirementsDeterminedEventPayload(requirement_ids=requirement_ids),
        ))
    return saved, requirement_ids


async def handle_create_party_command(
    command: CreatePartyCommand,
    actor: User,
    party_repository: AbstractPartyRepository,
) -> PartyDB:
    _start_span(command, actor)
    party = PartyDB(
        name=command.name,
        type=command.type,
        residency_status=command.residency_status,
        nationality=command.nationality,
        date_of_birth=command.date_of_birth,
        email=command.email,
        phone=command.phone,
        is_pep=command.is_pep,
        risk_score=command.risk_score,
        risk_factors=command.risk_factors,
        created_by=actor.name,
    )
    saved = await party_repository.save_party(party)
    logger.info(f"Party {saved.party_id} ('{saved.name}') created by {actor.id}.")
    return saved
