"""
Tests for the ChatRelay orchestrator, independent of the HTTP layer.

Tests cover:
- Identity is checked before inputs
- Missing inputs make no upstream or store calls
- Send succeeds regardless of the accounting outcome
- Upstream messages are surfaced, with fallbacks
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from chat_relay.accounting import AccountingResult
from chat_relay.auth import CallerIdentity
from chat_relay.client import GenerationAPIError
from chat_relay.errors import ConfigurationError, InvalidInput, Unauthorized, UpstreamFailure
from chat_relay.models import Application
from chat_relay.relay import ChatRelay

CALLER = CallerIdentity(caller_id="user-1")


@pytest.fixture
def store():
    """A db session mock that records every call made to it."""
    return MagicMock()


@pytest.fixture
def relay(fake_upstream, store):
    return ChatRelay(client=fake_upstream, db=store)


class TestIdentityGate:
    @pytest.mark.parametrize("operation,args", [
        ("fetch_messages", ("",)),
        ("send_message", ("", "")),
        ("resume", ("", None)),
        ("get_chat", (None,)),
    ])
    def test_unauthorized_before_validation(self, relay, fake_upstream, store, operation, args):
        with pytest.raises(Unauthorized):
            asyncio.run(getattr(relay, operation)(None, *args))

        assert fake_upstream.calls == []
        assert store.mock_calls == []


class TestValidation:
    def test_fetch_empty_session_id(self, relay, fake_upstream, store):
        with pytest.raises(InvalidInput) as exc_info:
            asyncio.run(relay.fetch_messages(CALLER, ""))

        assert exc_info.value.message == "Missing required parameter: sessionId"
        assert fake_upstream.calls == []
        assert store.mock_calls == []

    def test_fetch_with_non_list_messages(self, relay, fake_upstream):
        fake_upstream.chat = {"id": "s1", "messages": 5}

        result = asyncio.run(relay.fetch_messages(CALLER, "s1"))

        assert result.messages == []

    @pytest.mark.parametrize("session_id,message", [("", "hello"), ("s1", ""), (None, "hello"), ("s1", None)])
    def test_send_missing_fields(self, relay, fake_upstream, store, session_id, message):
        with pytest.raises(InvalidInput):
            asyncio.run(relay.send_message(CALLER, session_id, message))

        assert fake_upstream.calls == []
        assert store.mock_calls == []

    def test_send_files_must_be_a_list(self, relay, fake_upstream):
        with pytest.raises(InvalidInput):
            asyncio.run(relay.send_message(CALLER, "s1", "hello", files="app.tsx"))

        assert fake_upstream.calls == []

    def test_resume_absent_message_id(self, relay, fake_upstream, store):
        with pytest.raises(InvalidInput):
            asyncio.run(relay.resume(CALLER, "s1", None))

        assert fake_upstream.calls == []
        assert store.mock_calls == []


class TestSendMessage:
    def test_counter_goes_from_three_to_four(self, fake_upstream, db_session):
        db_session.add(Application(id="app-1", chat_id="s1", number_of_messages=3, updated_at="2025-01-01T00:00:00.000Z"))
        db_session.commit()
        relay = ChatRelay(client=fake_upstream, db=db_session)

        outcome = asyncio.run(relay.send_message(CALLER, "s1", "hello"))

        assert outcome.response.success is True
        assert outcome.response.message == fake_upstream.send_result
        assert outcome.accounting is AccountingResult.UPDATED
        db_session.expire_all()
        application = db_session.get(Application, "app-1")
        assert application.number_of_messages == 4
        assert application.updated_at > "2025-01-01T00:00:00.000Z"

    def test_store_failing_on_every_call_still_succeeds(self, relay, fake_upstream, store):
        store.query.side_effect = RuntimeError("connection refused")

        outcome = asyncio.run(relay.send_message(CALLER, "s1", "hello"))

        assert outcome.response.model_dump() == {"success": True, "message": fake_upstream.send_result}
        assert outcome.accounting is AccountingResult.FAILED

    def test_accounting_runs_after_upstream_send(self, fake_upstream, monkeypatch):
        order = []

        async def send_message(payload):
            order.append("upstream")
            return {"ok": True}

        def increment(db, session_id):
            order.append("accounting")
            return AccountingResult.SKIPPED

        fake_upstream.send_message = send_message
        monkeypatch.setattr("chat_relay.relay.increment_message_count", increment)
        relay = ChatRelay(client=fake_upstream, db=MagicMock())

        asyncio.run(relay.send_message(CALLER, "s1", "hello"))

        assert order == ["upstream", "accounting"]

    def test_no_accounting_when_upstream_fails(self, relay, fake_upstream, monkeypatch):
        increment = MagicMock()
        monkeypatch.setattr("chat_relay.relay.increment_message_count", increment)
        fake_upstream.error = RuntimeError("boom")

        with pytest.raises(UpstreamFailure):
            asyncio.run(relay.send_message(CALLER, "s1", "hello"))

        increment.assert_not_called()


class TestUpstreamFailures:
    def test_resume_surfaces_upstream_message(self, relay, fake_upstream):
        fake_upstream.error = RuntimeError("rate limited")

        with pytest.raises(UpstreamFailure) as exc_info:
            asyncio.run(relay.resume(CALLER, "s1", "m9"))

        assert exc_info.value.message == "rate limited"

    def test_resume_fallback_message(self, relay, fake_upstream):
        fake_upstream.error = RuntimeError()

        with pytest.raises(UpstreamFailure) as exc_info:
            asyncio.run(relay.resume(CALLER, "s1", "m9"))

        assert exc_info.value.message == "Failed to resume message processing"

    def test_api_error_message_used(self, relay, fake_upstream):
        fake_upstream.error = GenerationAPIError("Chat is archived", 409)

        with pytest.raises(UpstreamFailure) as exc_info:
            asyncio.run(relay.fetch_messages(CALLER, "s1"))

        assert exc_info.value.message == "Chat is archived"

    def test_configuration_error_passes_through(self, relay, fake_upstream):
        fake_upstream.error = ConfigurationError()

        with pytest.raises(ConfigurationError):
            asyncio.run(relay.get_chat(CALLER, "s1"))

    def test_get_chat_http_404_is_provisioning(self, relay, fake_upstream):
        fake_upstream.error = GenerationAPIError("Not Found", 404)

        chat = asyncio.run(relay.get_chat(CALLER, "s1"))

        assert chat.success is False
        assert chat.status == "provisioning"
        assert chat.transient is True
