"""
PyTest Configuration for the institute chatbot backend
Provides fixtures for testing with a throwaway SQLite database and mock services.
"""
import os

# ── SQLite for tests (no external DB required); set before the app is imported ──
TEST_DATABASE_URL = os.getenv('TEST_DATABASE_URL', 'sqlite:///./test.db')
os.environ['DATABASE_URL'] = TEST_DATABASE_URL

import pytest
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
from config.database import Base, get_db, engine as test_engine
from whatsapp_chats.sender import reset_settings_cache
from main import app

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database for each test and drop it afterwards.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """WhatsApp settings are cached per process; start every test clean."""
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture(scope="function")
def client(db_session):
    """
    FastAPI TestClient with overridden database dependency.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _make_headers(user_id: int, role: str):
    import jwt
    from main import JWT_SECRET, JWT_ALGORITHM

    token = jwt.encode(
        {
            "sub": str(user_id),
            "role": role,
        },
        JWT_SECRET,
        algorithm=JWT_ALGORITHM
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Headers for a regular counselor (user 1)."""
    return _make_headers(1, "counselor")


@pytest.fixture
def other_user_headers():
    """Headers for a second counselor (user 2)."""
    return _make_headers(2, "counselor")


@pytest.fixture
def admin_headers():
    """Headers for an admin (user 99)."""
    return _make_headers(99, "admin")


@pytest.fixture
def sample_lead(db_session):
    """Create a sample lead for testing."""
    from leads.models import Lead

    lead = Lead(
        full_name="Test Lead",
        phone="+971501234567",
        whatsapp_number="+971501234567",
        consultant_id=5,
        created_by=5,
        status="New",
        priority="High",
        source="Website",
    )
    db_session.add(lead)
    db_session.commit()
    db_session.refresh(lead)
    return lead


@pytest.fixture
def welcome_flow(db_session):
    """
    Flow "Welcome" triggered by "hi": the start node says "Hello!" and a
    single contains-"course" condition leads to an end node saying "Thanks!".
    """
    from chatbot.models import ChatbotFlow, ChatbotNode, ChatbotCondition

    flow = ChatbotFlow(name="Welcome", trigger_keywords=["hi"], is_active=True, is_default=False)
    db_session.add(flow)
    db_session.commit()

    start = ChatbotNode(flow_id=flow.id, type="start", message="Hello!", position=1)
    thanks = ChatbotNode(flow_id=flow.id, type="end", message="Thanks!", position=2)
    db_session.add_all([start, thanks])
    db_session.commit()

    condition = ChatbotCondition(node_id=start.id, type="contains", value="course", next_node_id=thanks.id)
    db_session.add(condition)
    db_session.commit()

    return {"flow": flow, "start": start, "end": thanks, "condition": condition}


@pytest.fixture
def whatsapp_settings(db_session):
    """Configured WhatsApp Cloud API credentials."""
    from whatsapp_chats.models import WhatsappSettings

    settings = WhatsappSettings(
        api_key="test-access-token",
        phone_number_id="1234567890",
        business_account_id="555",
        webhook_verify_token="verify-me",
    )
    db_session.add(settings)
    db_session.commit()
    db_session.refresh(settings)
    return settings


@pytest.fixture
def mock_whatsapp_sender(mocker):
    """Mock outbound WhatsApp API calls."""
    mock = mocker.patch('whatsapp_chats.router.WhatsAppSender.send_text')
    mock.return_value = {
        'sent': True,
        'message_id': 'wamid.test123',
        'error': None,
    }
    return mock


# Pytest configuration
def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "unit: mark test as unit test")
