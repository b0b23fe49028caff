import pytest
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient
from kyc_case_service.app.main import app
from kyc_case_service.app.config import settings
from kyc_case_service.app.dependencies.repositories import (
    get_case_repository, get_party_repository, get_notification_publisher,
)
from kyc_case_service.app.models.enums import CaseStatus, EntityType, RiskLevel, SubmissionStatus
from kyc_case_service.app.service.exceptions import VersionConflictError
from kyc_case_service.app.service.interfaces.notification_publisher import AbstractNotificationPublisher
from kyc_case_service.infrastructure.database.in_memory import InMemoryCaseRepository, InMemoryPartyRepository
from kyc_case_service.tests.factories import (
    make_case, make_link, make_party, make_submission, user_headers,
    RM_USER, CHECKER_USER, COMPLIANCE_USER, GM_USER, ADMIN_USER,
)

CASE_ID = "CASE-TEST0001"

# --- Fixtures ---

@pytest.fixture
def case_repository():
    return InMemoryCaseRepository()


@pytest.fixture
def party_repository():
    return InMemoryPartyRepository([make_party("P-0001", "Jane Lee")])


@pytest.fixture
def mock_publisher():
    publisher = AsyncMock(spec=AbstractNotificationPublisher)
    publisher.publish = AsyncMock()
    return publisher


@pytest.fixture
def client(case_repository, party_repository, mock_publisher, monkeypatch):
    monkeypatch.setattr(settings, "IDENTITY_SERVICE_URL", None)
    app.dependency_overrides = {
        get_case_repository: lambda: case_repository,
        get_party_repository: lambda: party_repository,
        get_notification_publisher: lambda: mock_publisher,
    }
    yield TestClient(app)
    app.dependency_overrides = {}


def seed(case_repository, case):
    case_repository._cases[case.case_id] = case


# --- Identity ---

def test_missing_identity_is_unauthorized(client: TestClient):
    response = client.get(f"/api/v1/cases/{CASE_ID}")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_unknown_role_is_unauthorized(client: TestClient):
    response = client.get(f"/api/v1/cases/{CASE_ID}", headers={"X-User-Id": "u-1", "X-User-Role": "Auditor"})
    assert response.status_code == 401


# --- CRUD ---

def test_create_case(client: TestClient, mock_publisher):
    response = client.post("/api/v1/cases", headers=user_headers(RM_USER), json={
        "entityName": "Acme Pte Ltd", "entityType": "Non-Listed Company", "riskLevel": "High",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "Draft"
    assert body["version"] == 1
    assert body["entityData"]["entityName"] == "Acme Pte Ltd"
    assert "req-risk-0" in [l["requirementId"] for l in body["documentLinks"]]
    mock_publisher.publish.assert_awaited_once()


def test_create_case_invalid_entity_type(client: TestClient):
    response = client.post("/api/v1/cases", headers=user_headers(RM_USER), json={
        "entityName": "Acme", "entityType": "Spaceship",
    })
    assert response.status_code == 422


def test_get_list_and_delete_case(client: TestClient, case_repository):
    seed(case_repository, make_case())

    response = client.get(f"/api/v1/cases/{CASE_ID}", headers=user_headers(CHECKER_USER))
    assert response.status_code == 200
    assert response.json()["caseId"] == CASE_ID

    response = client.get("/api/v1/cases", params={"status": "Draft"}, headers=user_headers(CHECKER_USER))
    assert [c["caseId"] for c in response.json()] == [CASE_ID]
    response = client.get("/api/v1/cases", params={"status": "Approved"}, headers=user_headers(CHECKER_USER))
    assert response.json() == []

    assert client.delete(f"/api/v1/cases/{CASE_ID}", headers=user_headers(ADMIN_USER)).status_code == 204
    assert client.get(f"/api/v1/cases/{CASE_ID}", headers=user_headers(ADMIN_USER)).status_code == 404


def test_get_case_not_found(client: TestClient):
    response = client.get("/api/v1/cases/CASE-NOPE", headers=user_headers(RM_USER))
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "CaseNotFoundError"


# --- Workflow ---

def test_transition_table_is_public(client: TestClient):
    response = client.get("/api/v1/workflow/transitions")
    assert response.status_code == 200
    assert len(response.json()) == 8


def test_available_actions(client: TestClient, case_repository):
    seed(case_repository, make_case(CaseStatus.PENDING_COMPLIANCE_REVIEW))

    response = client.get(f"/api/v1/cases/{CASE_ID}/actions", headers=user_headers(COMPLIANCE_USER))

    assert response.status_code == 200
    assert response.json()["availableActions"] == ["Approve", "Reject", "EscalateToHighRisk"]
    assert response.json()["role"] == "Compliance"

    response = client.get(f"/api/v1/cases/{CASE_ID}/actions", headers=user_headers(RM_USER))
    assert response.json()["availableActions"] == []


def test_submit_blocked_by_unmet_requirements(client: TestClient, case_repository, mock_publisher):
    seed(case_repository, make_case(document_links=[
        make_link("req-entity-0", [SubmissionStatus.VERIFIED]),
        make_link("req-entity-1", [SubmissionStatus.REJECTED]),
    ]))

    response = client.post(f"/api/v1/cases/{CASE_ID}/transitions", headers=user_headers(RM_USER),
                           json={"action": "SubmitForReview"})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error"] == "RequirementsNotMetError"
    assert detail["unmetRequirementIds"] == ["req-entity-1"]
    mock_publisher.publish.assert_not_awaited()

    response = client.get(f"/api/v1/cases/{CASE_ID}/submittability", headers=user_headers(RM_USER))
    assert response.json() == {"caseId": CASE_ID, "isSubmittable": False, "unmetRequirements": ["req-entity-1"]}


def test_wrong_role_transition_is_conflict(client: TestClient, case_repository):
    seed(case_repository, make_case(CaseStatus.PENDING_CHECKER_REVIEW))
    response = client.post(f"/api/v1/cases/{CASE_ID}/transitions", headers=user_headers(GM_USER),
                           json={"action": "FinalApprove"})
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "InvalidTransitionError"


def test_high_risk_case_through_full_approval(client: TestClient, case_repository):
    seed(case_repository, make_case(risk_level=RiskLevel.HIGH, document_links=[
        make_link("req-entity-0", [SubmissionStatus.PENDING_CHECKER_VERIFICATION]),
    ]))
    steps = [
        (RM_USER, "SubmitForReview", "Pending Checker Review"),
        (CHECKER_USER, "Approve", "Pending Compliance Review"),
        (COMPLIANCE_USER, "Approve", "Pending GM Approval"),
        (GM_USER, "FinalApprove", "Approved"),
    ]
    for user, action, expected in steps:
        response = client.post(f"/api/v1/cases/{CASE_ID}/transitions", headers=user_headers(user),
                               json={"action": action})
        assert response.status_code == 200, response.text
        assert response.json()["status"] == expected

    response = client.post(f"/api/v1/cases/{CASE_ID}/activate", headers=user_headers(ADMIN_USER))
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "Active"
    assert body["version"] == 6
    assert len(body["activities"]) == 5


def test_escalated_case_cannot_be_resubmitted_without_risk_documents(client: TestClient, case_repository):
    seed(case_repository, make_case(CaseStatus.PENDING_COMPLIANCE_REVIEW, document_links=[
        make_link("req-entity-0", [SubmissionStatus.VERIFIED]),
    ]))

    response = client.post(f"/api/v1/cases/{CASE_ID}/transitions", headers=user_headers(COMPLIANCE_USER),
                           json={"action": "EscalateToHighRisk"})
    assert response.status_code == 200
    body = response.json()
    assert body["riskLevel"] == "High"
    assert {"req-risk-0", "req-risk-1"} <= {l["requirementId"] for l in body["documentLinks"]}
    assert len(body["activities"]) == 1

    response = client.post(f"/api/v1/cases/{CASE_ID}/transitions", headers=user_headers(RM_USER),
                           json={"action": "SubmitForReview"})
    assert response.status_code == 422
    assert {"req-risk-0", "req-risk-1"} <= set(response.json()["detail"]["unmetRequirementIds"])


def test_version_conflict_after_retries_is_conflict(client: TestClient, case_repository, mocker):
    seed(case_repository, make_case(CaseStatus.PENDING_CHECKER_REVIEW))
    mocker.patch.object(case_repository, "save_case", AsyncMock(side_effect=VersionConflictError(CASE_ID, 1, 2)))
    mocker.patch("kyc_case_service.app.service.commands.handlers.asyncio.sleep", new_callable=AsyncMock)

    response = client.post(f"/api/v1/cases/{CASE_ID}/transitions", headers=user_headers(CHECKER_USER),
                           json={"action": "Approve"})

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "VersionConflictError"


def test_checklist(client: TestClient, case_repository):
    seed(case_repository, make_case(document_links=[
        make_link("req-entity-0", [SubmissionStatus.VERIFIED]),
        make_link("req-entity-1", [SubmissionStatus.PENDING_CHECKER_VERIFICATION]),
    ]))

    response = client.get(f"/api/v1/cases/{CASE_ID}/checklist", headers=user_headers(RM_USER))

    assert response.status_code == 200
    body = response.json()
    assert body["progress"] == 100.0
    assert body["sections"][0]["title"] == "Entity Documents"
    assert body["sections"][0]["percentComplete"] == 100.0

    response = client.get(f"/api/v1/cases/{CASE_ID}/checklist", headers=user_headers(CHECKER_USER))
    assert response.json()["progress"] == 50.0


def test_determine_requirements(client: TestClient, case_repository):
    seed(case_repository, make_case())
    response = client.post(f"/api/v1/cases/{CASE_ID}/document-requirements/determine", headers=user_headers(RM_USER))
    assert response.status_code == 200
    body = response.json()
    assert body["addedRequirementIds"][:3] == ["req-entity-0", "req-entity-1", "req-entity-2"]
    assert body["version"] == 2


# --- Accounts and parties ---

def test_add_account_and_update_status(client: TestClient, case_repository):
    seed(case_repository, make_case())

    response = client.post(f"/api/v1/cases/{CASE_ID}/accounts", headers=user_headers(RM_USER), json={
        "accountType": "Current", "currency": "SGD", "purpose": "Operating",
    })
    assert response.status_code == 201
    account_id = response.json()["accountId"]
    links = response.json()["case"]["documentLinks"]
    assert {l["requirementGroup"] for l in links if l["requirementId"].startswith("req-acct-")} == {
        "Account Forms - Current (SGD)",
    }

    response = client.put(f"/api/v1/cases/{CASE_ID}/accounts/{account_id}/status",
                          headers=user_headers(RM_USER), json={"status": "Pending Checker Review"})
    assert response.status_code == 422
    assert response.json()["detail"]["unmetRequirementIds"] == [f"req-acct-{account_id}-0", f"req-acct-{account_id}-1"]

    for link in case_repository._cases[CASE_ID].document_links:
        if link.requirement_id.startswith("req-acct-"):
            link.submissions.append(make_submission())

    steps = [
        (RM_USER, "Pending Checker Review"),
        (CHECKER_USER, "Pending Compliance Review"),
        (COMPLIANCE_USER, "Active"),
    ]
    for user, status in steps:
        response = client.put(f"/api/v1/cases/{CASE_ID}/accounts/{account_id}/status",
                              headers=user_headers(user), json={"status": status})
        assert response.status_code == 200, response.text
        assert response.json()["accounts"][0]["status"] == status

    response = client.put(f"/api/v1/cases/{CASE_ID}/accounts/ACC-NOPE/status",
                          headers=user_headers(ADMIN_USER), json={"status": "Active"})
    assert response.status_code == 404


def test_link_party(client: TestClient, case_repository):
    seed(case_repository, make_case())

    response = client.post(f"/api/v1/cases/{CASE_ID}/parties", headers=user_headers(RM_USER), json={
        "partyId": "P-0001", "relationshipType": "Beneficial Owner", "ownershipPercentage": 30,
    })
    assert response.status_code == 200
    link = response.json()["relatedPartyLinks"][0]
    assert link["isPrimary"] is False
    assert link["ownershipPercentage"] == 30

    response = client.post(f"/api/v1/cases/{CASE_ID}/parties", headers=user_headers(RM_USER), json={
        "partyId": "P-0001", "relationshipType": "Director",
    })
    assert response.status_code == 409


@pytest.mark.parametrize("entity_type, role, expected_error", [
    ("Individual Account", "Primary Holder", "PartyLinkingDisabledError"),
    ("Trust", "Director", "InvalidRoleError"),
])
def test_link_party_rejected_roles(client: TestClient, case_repository, entity_type, role, expected_error):
    seed(case_repository, make_case(entity_type=EntityType(entity_type)))
    response = client.post(f"/api/v1/cases/{CASE_ID}/parties", headers=user_headers(RM_USER), json={
        "partyId": "P-0001", "relationshipType": role,
    })
    assert response.status_code == 422
    assert response.json()["detail"]["error"] == expected_error


def test_account_status_move_outside_role_flow_is_conflict(client: TestClient, case_repository):
    seed(case_repository, make_case())
    response = client.post(f"/api/v1/cases/{CASE_ID}/accounts", headers=user_headers(RM_USER), json={
        "accountType": "Current", "currency": "SGD", "purpose": "Operating",
    })
    account_id = response.json()["accountId"]

    response = client.put(f"/api/v1/cases/{CASE_ID}/accounts/{account_id}/status",
                          headers=user_headers(ADMIN_USER), json={"status": "Active"})

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "InvalidTransitionError"
    assert case_repository._cases[CASE_ID].accounts[0].status.value == "Proposed"
