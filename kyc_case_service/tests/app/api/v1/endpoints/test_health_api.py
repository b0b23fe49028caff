import pytest
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient
from kyc_case_service.app.main import app
from kyc_case_service.app.config import settings

# --- Fixtures ---

@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "CASE_STORE_BACKEND", "mongo")
    monkeypatch.setattr(settings, "KAFKA_BOOTSTRAP_SERVERS", "kafka:29092")
    yield TestClient(app)
    app.state.db = None


@pytest.fixture
def mock_db():
    db = MagicMock()
    db.command = AsyncMock()
    return db

# --- Tests for GET /health ---

def test_health_check_db_connected(client: TestClient, mock_db: MagicMock):
    mock_db.command.return_value = {"ok": 1}
    app.state.db = mock_db

    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "components": {"case_store": "mongo", "mongodb": "connected", "notifications": "kafka"},
        "service_name": settings.SERVICE_NAME_API,
    }
    mock_db.command.assert_awaited_once_with('ping')


def test_health_check_db_disconnected(client: TestClient, mock_db: MagicMock):
    mock_db.command.side_effect = Exception("Connection failed")
    app.state.db = mock_db

    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["components"]["mongodb"] == "disconnected"


def test_health_check_memory_backend(client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "CASE_STORE_BACKEND", "memory")
    monkeypatch.setattr(settings, "KAFKA_BOOTSTRAP_SERVERS", None)
    app.state.db = None

    response = client.get("/api/v1/health")

    assert response.json()["components"] == {"case_store": "memory", "notifications": "log-only"}
