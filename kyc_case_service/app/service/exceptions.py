"""
Custom exceptions for the KYC case service.

Every error raised by the workflow engine is recoverable by the caller and is
raised before any state is mutated.
"""
from typing import List, Optional


class BaseCaseManagementError(Exception):
    """Base class for exceptions in this module."""
    pass


# --- Not found ---

class NotFoundError(BaseCaseManagementError):
    """Raised when a case, party, requirement, submission or account is absent."""
    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} with ID '{resource_id}' not found.")

class CaseNotFoundError(NotFoundError):
    def __init__(self, case_id: str):
        super().__init__("Case", case_id)

class PartyNotFoundError(NotFoundError):
    def __init__(self, party_id: str):
        super().__init__("Party", party_id)

class RequirementNotFoundError(NotFoundError):
    def __init__(self, requirement_id: str):
        super().__init__("Document requirement", requirement_id)

class SubmissionNotFoundError(NotFoundError):
    def __init__(self, submission_id: str):
        super().__init__("Submission", submission_id)

class AccountNotFoundError(NotFoundError):
    def __init__(self, account_id: str):
        super().__init__("Account", account_id)


# --- Workflow rule violations ---

class InvalidTransitionError(BaseCaseManagementError):
    """Raised when an action is not permitted for the caller's role and the case's current status."""
    def __init__(self, case_id: str, current_status: str, role: str, attempted_action: str):
        self.case_id = case_id
        self.current_status = current_status
        self.role = role
        self.attempted_action = attempted_action
        super().__init__(
            f"Action '{attempted_action}' is not available to role '{role}' "
            f"for case '{case_id}' in status '{current_status}'."
        )

class RequirementsNotMetError(BaseCaseManagementError):
    """Raised when a case is submitted for review before every mandatory requirement is satisfied."""
    def __init__(self, case_id: str, unmet_requirement_ids: List[str]):
        self.case_id = case_id
        self.unmet_requirement_ids = list(unmet_requirement_ids)
        super().__init__(
            f"All required documents must be submitted before review. Case '{case_id}' "
            f"has unmet requirements: {', '.join(self.unmet_requirement_ids)}."
        )

class InvalidSubmissionTransitionError(BaseCaseManagementError):
    """Raised when a submission status change is not permitted from its current status."""
    def __init__(self, submission_id: str, current_status: str, new_status: str, role: Optional[str] = None):
        self.submission_id = submission_id
        self.current_status = current_status
        self.new_status = new_status
        self.role = role
        role_part = f" by role '{role}'" if role else ""
        super().__init__(
            f"Submission '{submission_id}' cannot move from '{current_status}' to '{new_status}'{role_part}."
        )

class InvalidRoleError(BaseCaseManagementError):
    """Raised when a party-link relationship role is not valid for the case's entity type."""
    def __init__(self, entity_type: str, role: str, message: Optional[str] = None):
        self.entity_type = entity_type
        self.role = role
        super().__init__(message or f"Role '{role}' is not valid for entity type '{entity_type}'.")

class PartyLinkingDisabledError(InvalidRoleError):
    """Raised when linking parties to a case whose entity type does not allow additional parties."""
    def __init__(self, entity_type: str, role: str):
        super().__init__(
            entity_type, role,
            message=f"Cases of entity type '{entity_type}' do not allow linking additional parties."
        )

class AlreadyLinkedError(BaseCaseManagementError):
    """Raised when a party is already linked to the case."""
    def __init__(self, case_id: str, party_id: str):
        self.case_id = case_id
        self.party_id = party_id
        super().__init__(f"Party '{party_id}' is already linked to case '{case_id}'.")


# --- Infrastructure ---

class VersionConflictError(BaseCaseManagementError):
    """Raised when a version conflict is detected during an update operation."""
    def __init__(self, aggregate_id: str, expected_version: int, actual_version: Optional[int]):
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrency conflict for case '{aggregate_id}'. "
            f"Expected version {expected_version}, but found {actual_version}."
        )

class ConfigurationError(BaseCaseManagementError):
    """Raised when a configuration issue is detected."""
    pass

class KafkaProducerError(BaseCaseManagementError):
    """Raised when there's an issue with Kafka message production."""
    pass

class IdentityServiceError(BaseCaseManagementError):
    """Raised when the caller cannot be authenticated."""
    pass
