"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming relay calls
- Response models for API responses
- The normalized message shape returned to clients
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Shared Models
# =============================================================================

class NormalizedMessage(BaseModel):
    """
    Stable client-facing shape of a chat message.
    content is always a string, files always a list.
    """
    id: str = Field(default="", description="Upstream message identifier")
    role: str = Field(default="", description="Message author role (user, assistant, system, ...)")
    content: str = Field(default="", description="Message text")
    created_at: Optional[str] = Field(
        None,
        alias="createdAt",
        serialization_alias="createdAt",
        description="Upstream creation timestamp"
    )
    files: list[Any] = Field(default_factory=list, description="Attached files")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Pydantic Request Models
# =============================================================================

class SendMessageRequest(BaseModel):
    """
    Body of POST /api/messages.

    Presence of sessionId and message is checked by the relay, not here, so
    that missing fields are reported as 400 with the relay's error message.
    Attachments ({name?, meta?: {file?, lang?}, source?, content?}) are not
    inspected beyond being a list.
    """
    session_id: Optional[str] = Field(None, alias="sessionId", description="External chat session id")
    message: Optional[str] = Field(None, description="Message text to send")
    files: Optional[list[Any]] = Field(
        None,
        description="Optional attachments, forwarded to the generation API exactly as sent"
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "sessionId": "s1",
                    "message": "Add a dark mode toggle",
                    "files": [{"name": "app/page.tsx", "meta": {"lang": "tsx"}}],
                }
            ]
        },
    )


class ResumeRequest(BaseModel):
    """Body of POST /api/resume."""
    session_id: Optional[str] = Field(None, alias="sessionId", description="External chat session id")
    message_id: Optional[str] = Field(None, alias="messageId", description="Interrupted message id")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Pydantic Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Response model for error responses."""
    error: str = Field(..., description="Error description")


class MessagesResponse(BaseModel):
    """Response model for GET /api/messages."""
    success: bool = True
    session_id: str = Field(..., alias="sessionId", serialization_alias="sessionId")
    messages: list[NormalizedMessage] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class SendMessageResponse(BaseModel):
    """Response model for POST /api/messages. message is the upstream result."""
    success: bool = True
    message: Any = None


class ResumeResponse(BaseModel):
    """Response model for POST /api/resume. result is the upstream result."""
    success: bool = True
    result: Any = None


class ChatResponse(BaseModel):
    """
    Response model for GET /api/chat.

    While the upstream is still provisioning a new chat, success is false,
    status is "provisioning" and transient is true.
    """
    success: bool
    session_id: str = Field(..., alias="sessionId", serialization_alias="sessionId")
    messages: list[Any] = Field(default_factory=list)
    demo: Optional[Any] = None
    latest_version: Optional[Any] = Field(None, alias="latestVersion", serialization_alias="latestVersion")
    status: Optional[str] = None
    latest_version_status: Optional[str] = Field(
        None,
        alias="latestVersionStatus",
        serialization_alias="latestVersionStatus"
    )
    transient: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
