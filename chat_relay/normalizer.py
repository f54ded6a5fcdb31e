"""
Normalization of upstream chat messages into the client-facing shape.

Upstream records carry their text under either "text" or "content" and may
omit files or timestamps. normalize_messages never fails: whatever a record
is missing maps to a documented default.
"""

from collections.abc import Mapping
from typing import Any, Optional

from chat_relay.schemas import NormalizedMessage

# Ordered fallback chain for message text; first non-empty string wins.
CONTENT_FIELDS = ("text", "content")
CREATED_AT_FIELDS = ("createdAt", "created_at")


def _first_string(record: Mapping[str, Any], fields: tuple[str, ...]) -> Optional[str]:
    for field in fields:
        value = record.get(field)
        if isinstance(value, str) and value:
            return value
    return None


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def normalize_message(record: Any) -> NormalizedMessage:
    """Map one raw upstream record to a NormalizedMessage."""
    if not isinstance(record, Mapping):
        return NormalizedMessage()

    files = record.get("files")
    return NormalizedMessage(
        id=_as_str(record.get("id")),
        role=_as_str(record.get("role")),
        content=_first_string(record, CONTENT_FIELDS) or "",
        created_at=_first_string(record, CREATED_AT_FIELDS),
        files=list(files) if isinstance(files, (list, tuple)) else [],
    )


def normalize_messages(raw_messages: Any) -> list[NormalizedMessage]:
    """
    Normalize a sequence of raw upstream message records.

    Output order equals input order and output length equals input length.
    Anything other than a list or tuple yields an empty list.
    """
    if not isinstance(raw_messages, (list, tuple)):
        return []
    return [normalize_message(record) for record in raw_messages]
