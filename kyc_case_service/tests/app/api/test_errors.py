import pytest

from kyc_case_service.app.api.errors import status_code_for, to_http_exception
from kyc_case_service.app.service.exceptions import (
    CaseNotFoundError, SubmissionNotFoundError, InvalidTransitionError, RequirementsNotMetError,
    InvalidSubmissionTransitionError, InvalidRoleError, PartyLinkingDisabledError, AlreadyLinkedError,
    VersionConflictError, IdentityServiceError, KafkaProducerError, ConfigurationError,
)


@pytest.mark.parametrize("error, expected", [
    (CaseNotFoundError("C1"), 404),
    (SubmissionNotFoundError("S1"), 404),
    (InvalidTransitionError("C1", "Draft", "GM", "FinalApprove"), 409),
    (InvalidSubmissionTransitionError("S1", "Verified", "Missing"), 409),
    (AlreadyLinkedError("C1", "P1"), 409),
    (VersionConflictError("C1", 1, 2), 409),
    (RequirementsNotMetError("C1", ["r1"]), 422),
    (InvalidRoleError("Trust", "Director"), 422),
    (PartyLinkingDisabledError("Individual Account", "Director"), 422),
    (IdentityServiceError("bad token"), 401),
    (KafkaProducerError("down"), 502),
    (ConfigurationError("missing"), 500),
])
def test_status_code_for(error, expected):
    assert status_code_for(error) == expected


def test_requirements_not_met_detail_lists_ids():
    exc = to_http_exception(RequirementsNotMetError("C1", ["req-entity-1", "req-forms-0"]))
    assert exc.status_code == 422
    assert exc.detail["error"] == "RequirementsNotMetError"
    assert exc.detail["unmetRequirementIds"] == ["req-entity-1", "req-forms-0"]
