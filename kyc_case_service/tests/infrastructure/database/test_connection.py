# Unit Tests for the Motor connection helpers
import pytest
from unittest.mock import patch, AsyncMock, MagicMock

from kyc_case_service.infrastructure.database import connection as db_connection
from kyc_case_service.app import config

TEST_DB_NAME = config.settings.DB_NAME


def reset_db_connection_module_state():
    db_connection.client = None
    db_connection.db = None


@pytest.fixture(autouse=True)
def auto_reset_db_module_state():
    reset_db_connection_module_state()
    yield
    reset_db_connection_module_state()


@pytest.mark.asyncio
@patch('kyc_case_service.infrastructure.database.connection.AsyncIOMotorClient')
async def test_connect_to_mongo_success(mock_motor_client_cls):
    mock_client_instance = MagicMock()
    mock_client_instance.admin.command = AsyncMock(return_value={"ok": 1})
    mock_motor_client_cls.return_value = mock_client_instance

    await db_connection.connect_to_mongo()

    mock_motor_client_cls.assert_called_once_with(config.settings.MONGO_DETAILS)
    mock_client_instance.admin.command.assert_awaited_once_with('ping')
    db_instance = await db_connection.get_db()
    assert db_instance == mock_client_instance[TEST_DB_NAME]
    assert mock_motor_client_cls.call_count == 1

    db_connection.close_mongo_connection()
    mock_client_instance.close.assert_called_once()
    assert db_connection.client is None


@pytest.mark.asyncio
@patch('kyc_case_service.infrastructure.database.connection.AsyncIOMotorClient')
async def test_connect_to_mongo_failure(mock_motor_client_cls):
    mock_client_instance = MagicMock()
    mock_client_instance.admin.command = AsyncMock(side_effect=Exception("Mock Connection Error"))
    mock_motor_client_cls.return_value = mock_client_instance

    with pytest.raises(ConnectionError, match="Failed to connect to MongoDB: Mock Connection Error"):
        await db_connection.connect_to_mongo()
    assert db_connection.db is None
    with pytest.raises(ConnectionError):
        await db_connection.get_db()
