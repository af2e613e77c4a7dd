import pytest


@pytest.fixture
def teachers(db):
    from tests.factories import create_teachers
    return create_teachers()


@pytest.fixture
def admin_client():
    """API client authenticated as an admin"""
    from rest_framework.test import APIClient
    from tests.factories import ADMIN_ID, make_token
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {make_token(ADMIN_ID, role='admin')}")
    return client


@pytest.fixture
def mock_twilio_client():
    """Mock Twilio client for testing"""
    from unittest.mock import MagicMock, patch

    mock_client = MagicMock()
    mock_message = MagicMock()
    mock_message.sid = "SM1234567890"
    mock_message.status = "queued"
    mock_client.messages.create.return_value = mock_message

    with patch('notifications.channels.sms_handler.Client', return_value=mock_client):
        yield mock_client


# Custom test markers
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "websocket: marks tests as WebSocket tests")
    config.addinivalue_line("markers", "event: marks tests as event system tests")
    config.addinivalue_line("markers", "client: marks tests of the client-side sync component")
