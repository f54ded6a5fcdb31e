"""
Relay orchestrator.

ChatRelay turns caller requests into calls against the generation API and,
after a successful send, bumps the local usage counter. Each operation
checks the caller identity first, then its inputs, then performs the
upstream call. Usage accounting runs only after the upstream send returned
and its outcome never changes what the caller sees.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from sqlalchemy.orm import Session

from chat_relay.accounting import AccountingResult, increment_message_count
from chat_relay.auth import CallerIdentity, authorize
from chat_relay.client import GenerationClient
from chat_relay.errors import InvalidInput, RelayError, UpstreamFailure
from chat_relay.normalizer import normalize_messages
from chat_relay.schemas import (
    ChatResponse,
    MessagesResponse,
    ResumeResponse,
    SendMessageResponse,
)

logger = logging.getLogger(__name__)


def _upstream_failure(exc: Exception, fallback: str) -> RelayError:
    if isinstance(exc, RelayError):
        return exc
    message = getattr(exc, "message", None) or str(exc)
    return UpstreamFailure(message or fallback)


def _is_chat_not_found(exc: Exception) -> bool:
    if getattr(exc, "status_code", None) == 404:
        return True
    message = str(exc)
    return "HTTP 404" in message or "chat not found" in message.lower()


@dataclass
class SendOutcome:
    response: SendMessageResponse
    accounting: AccountingResult


class ChatRelay:
    def __init__(self, client: GenerationClient, db: Session):
        self.client = client
        self.db = db

    async def fetch_messages(self, identity: Optional[CallerIdentity], session_id: Optional[str]) -> MessagesResponse:
        """Fetch a chat session and return its messages in normalized form."""
        authorize(identity)
        if not session_id:
            raise InvalidInput("Missing required parameter: sessionId")

        try:
            chat = await self.client.get_by_id(session_id)
        except Exception as e:
            logger.error(f"Error fetching chat messages for {session_id}: {e}")
            raise _upstream_failure(e, "Failed to fetch chat messages") from e

        raw_messages = chat.get("messages") if isinstance(chat, dict) else None
        messages = normalize_messages(raw_messages)
        logger.info(f"Fetched {len(messages)} messages for chat {session_id}")
        return MessagesResponse(session_id=session_id, messages=messages)

    async def send_message(
        self,
        identity: Optional[CallerIdentity],
        session_id: Optional[str],
        message: Optional[str],
        files: Optional[Sequence[Any]] = None,
    ) -> SendOutcome:
        """
        Send a message upstream, then count it against the owning application.

        The operation succeeds whenever the upstream send succeeds; the
        accounting result is returned for diagnostics only.
        """
        authorize(identity)
        if not session_id or not message:
            raise InvalidInput("Missing required parameters: sessionId or message")
        if files is not None and not isinstance(files, (list, tuple)):
            raise InvalidInput("files must be a list")

        payload: dict[str, Any] = {"sessionId": session_id, "message": message}
        if files:
            payload["files"] = list(files)

        try:
            result = await self.client.send_message(payload)
        except Exception as e:
            logger.error(f"Error sending message to chat {session_id}: {e}")
            raise _upstream_failure(e, "Failed to send message") from e

        accounting = increment_message_count(self.db, session_id)
        logger.info(f"Message sent to chat {session_id}, accounting: {accounting.value}")
        return SendOutcome(
            response=SendMessageResponse(success=True, message=result),
            accounting=accounting,
        )

    async def resume(
        self,
        identity: Optional[CallerIdentity],
        session_id: Optional[str],
        message_id: Optional[str],
    ) -> ResumeResponse:
        """
        Resume an interrupted generation turn.

        Repeated or concurrent resumes of the same message are passed through
        as-is; deduplication is up to the generation API.
        """
        authorize(identity)
        if not session_id or not message_id:
            raise InvalidInput("Missing required parameters: sessionId or messageId")

        try:
            result = await self.client.resume(session_id, message_id)
        except Exception as e:
            logger.error(f"Error resuming message {message_id} in chat {session_id}: {e}")
            raise _upstream_failure(e, "Failed to resume message processing") from e

        logger.info(f"Resumed message {message_id} in chat {session_id}")
        return ResumeResponse(success=True, result=result)

    async def get_chat(self, identity: Optional[CallerIdentity], session_id: Optional[str]) -> ChatResponse:
        """
        Fetch the full chat snapshot (messages, demo URL, latest version, status).

        A chat the upstream does not know yet is reported as provisioning
        instead of failing, since new chats take a moment to propagate.
        """
        authorize(identity)
        if not session_id:
            raise InvalidInput("Missing required parameter: sessionId")

        try:
            chat = await self.client.get_by_id(session_id)
        except Exception as e:
            if not isinstance(e, RelayError) and _is_chat_not_found(e):
                logger.info(f"Chat {session_id} not available yet, reporting provisioning")
                return ChatResponse(
                    success=False,
                    session_id=session_id,
                    messages=[],
                    status="provisioning",
                    transient=True,
                )
            logger.error(f"Error fetching chat {session_id}: {e}")
            raise _upstream_failure(e, "Failed to fetch chat messages") from e

        chat = chat if isinstance(chat, dict) else {}
        latest_version = chat.get("latestVersion") or None
        return ChatResponse(
            success=True,
            session_id=session_id,
            messages=chat.get("messages") or [],
            demo=chat.get("demo") or None,
            latest_version=latest_version,
            status=chat.get("status"),
            latest_version_status=latest_version.get("status") if isinstance(latest_version, dict) else None,
        )
