"""
HTTP client for the external generation service.

The relay only addresses existing chat sessions: it reads them, sends
messages into them and resumes interrupted generations. Retries and
backoff are left to the service; every call here is a single request.
"""

import logging
from typing import Any, Optional

import httpx

from chat_relay.config import settings
from chat_relay.errors import ConfigurationError

logger = logging.getLogger(__name__)


class GenerationAPIError(Exception):
    """The generation API answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    fallback = f"HTTP {response.status_code} from generation API"
    try:
        data = response.json()
    except ValueError:
        return fallback

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str) and error:
            return error
        if isinstance(data.get("message"), str) and data["message"]:
            return data["message"]
    return fallback


class GenerationClient:
    """
    Thin async wrapper over the generation API chat endpoints.

    Args:
        api_key: Bearer token for the generation API
        base_url: API root, e.g. https://api.v0.dev/v1
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, json: Optional[dict[str, Any]] = None) -> Any:
        if not self._api_key:
            raise ConfigurationError()

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
        }
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(method, path, headers=headers, json=json)

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(f"Generation API {method} {path} failed: {response.status_code} {message}")
            raise GenerationAPIError(message, response.status_code)

        if not response.content:
            return None
        return response.json()

    async def get_by_id(self, session_id: str) -> dict[str, Any]:
        """Fetch a chat session including its messages."""
        return await self._request("GET", f"/chats/{session_id}")

    async def send_message(self, payload: dict[str, Any]) -> Any:
        """
        Send a message into an existing chat.

        payload holds sessionId, message and optionally files.
        """
        body = {"message": payload["message"]}
        if payload.get("files"):
            body["files"] = payload["files"]
        return await self._request("POST", f"/chats/{payload['sessionId']}/messages", json=body)

    async def resume(self, session_id: str, message_id: str) -> Any:
        """Resume an interrupted generation turn."""
        return await self._request("POST", f"/chats/{session_id}/messages/{message_id}/resume")


def get_generation_client() -> GenerationClient:
    """Dependency returning a client configured from settings."""
    return GenerationClient(
        api_key=settings.GENERATION_API_KEY,
        base_url=settings.GENERATION_API_URL,
        timeout=settings.GENERATION_TIMEOUT_SECONDS,
    )
