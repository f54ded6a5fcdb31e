"""
Caller identity for relay operations.

A caller presents a session token either as "Authorization: Bearer <token>"
or in the relay_session cookie. Tokens have the form
"<caller_id>.<hex HMAC-SHA256 of caller_id>" signed with SESSION_SECRET.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Cookie, Depends, Header

from chat_relay.config import settings
from chat_relay.errors import Unauthorized
from chat_relay.utils import compute_hmac_signature, verify_hmac_signature

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "relay_session"


@dataclass(frozen=True)
class CallerIdentity:
    caller_id: str


def issue_session_token(caller_id: str, secret: str) -> str:
    """Create a signed session token for caller_id."""
    signature = compute_hmac_signature(caller_id.encode("utf-8"), secret)
    return f"{caller_id}.{signature}"


def resolve_identity(token: Optional[str], secret: str) -> Optional[CallerIdentity]:
    """
    Verify a session token.

    Returns:
        The caller identity, or None if the token is missing or invalid
    """
    if not token or not secret:
        return None

    caller_id, sep, signature = token.rpartition(".")
    if not sep or not caller_id or not signature or not signature.isascii():
        logger.debug("Malformed session token")
        return None

    if not verify_hmac_signature(caller_id.encode("utf-8"), signature, secret):
        return None
    return CallerIdentity(caller_id=caller_id)


def authorize(identity: Optional[CallerIdentity]) -> CallerIdentity:
    """Fail with Unauthorized unless a caller identity is present."""
    if identity is None:
        raise Unauthorized()
    return identity


async def current_identity(
    authorization: Annotated[str | None, Header()] = None,
    relay_session: Annotated[str | None, Cookie(alias=SESSION_COOKIE_NAME)] = None,
) -> Optional[CallerIdentity]:
    """Identity provider dependency: the current caller, or None."""
    token = None
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer":
            token = credentials.strip()
    if not token:
        token = relay_session
    return resolve_identity(token, settings.SESSION_SECRET)


async def require_identity(
    identity: Optional[CallerIdentity] = Depends(current_identity),
) -> CallerIdentity:
    """
    Route dependency that rejects unauthenticated callers.

    Resolved before request bodies are validated, so an unauthenticated
    caller gets 401 rather than a validation error.
    """
    return authorize(identity)
