"""
Utility functions for the relay API.
"""

import hmac
import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def compute_hmac_signature(body: bytes, secret: str) -> str:
    """
    Compute a hex-encoded HMAC-SHA256 signature.

    Args:
        body: Bytes to sign
        secret: Shared secret

    Returns:
        Hex digest of the signature
    """
    return hmac.new(
        secret.encode("utf-8"),
        body,
        hashlib.sha256
    ).hexdigest()


def verify_hmac_signature(body: bytes, signature: str, secret: str) -> bool:
    """
    Verify HMAC-SHA256 signature.

    Args:
        body: Signed bytes
        signature: Hex-encoded signature presented by the caller
        secret: SESSION_SECRET

    Returns:
        True if signature is valid, False otherwise
    """
    logger.debug(f"Verifying HMAC signature: body length {len(body)} bytes, signature: {signature[:8]}...")

    expected_signature = compute_hmac_signature(body, secret)

    # Use constant-time comparison to prevent timing attacks
    is_valid = hmac.compare_digest(expected_signature, signature)
    logger.debug(f"HMAC signature verification: {'valid' if is_valid else 'invalid'}")

    return is_valid


def utc_now_iso(now: Optional[datetime] = None) -> str:
    """
    Format a UTC timestamp as ISO-8601 with millisecond precision and Z suffix.

    Args:
        now: Timestamp to format (defaults to the current time)
    """
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
