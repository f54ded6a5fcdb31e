"""
Pytest configuration and shared fixtures.

Test environment variables are set here before any chat_relay import so the
cached settings, engine and app are built against the test database.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_relay.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("GENERATION_API_KEY", "test-generation-key")
os.environ.setdefault("GENERATION_API_URL", "https://generation.test/v1")

import pytest

# Clear settings cache before any app imports to ensure test env vars are used
from chat_relay.config import get_settings
get_settings.cache_clear()

from chat_relay.auth import issue_session_token
from chat_relay.storage import Base, SessionLocal, engine


class FakeGenerationClient:
    """
    Stand-in for GenerationClient that records calls.

    Set chat / send_result / resume_result for successful answers, or
    error to make every call raise it.
    """

    def __init__(self):
        self.calls = []
        self.chat = {"id": "s1", "messages": []}
        self.send_result = {"id": "m-new", "object": "message"}
        self.resume_result = {"id": "m9", "status": "completed"}
        self.error = None

    async def get_by_id(self, session_id):
        self.calls.append(("get_by_id", session_id))
        if self.error:
            raise self.error
        return self.chat

    async def send_message(self, payload):
        self.calls.append(("send_message", payload))
        if self.error:
            raise self.error
        return self.send_result

    async def resume(self, session_id, message_id):
        self.calls.append(("resume", session_id, message_id))
        if self.error:
            raise self.error
        return self.resume_result


@pytest.fixture
def fake_upstream():
    return FakeGenerationClient()


@pytest.fixture
def db_session():
    """Database session on fresh tables, dropped after the test."""
    from chat_relay.models import Application  # noqa: F401

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def auth_headers():
    token = issue_session_token("user-1", os.environ["SESSION_SECRET"])
    return {"Authorization": f"Bearer {token}"}
