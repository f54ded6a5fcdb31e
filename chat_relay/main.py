import logging
from contextlib import asynccontextmanager
from typing import Annotated, Optional

from fastapi import FastAPI, Response, Request, Depends, Query, status
from pydantic import BaseModel, ValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from chat_relay.auth import CallerIdentity, require_identity
from chat_relay.client import GenerationClient, get_generation_client
from chat_relay.config import settings
from chat_relay.errors import InvalidInput, RelayError
from chat_relay.logging_utils import setup_logging, RequestLoggingMiddleware, log_relay_data
from chat_relay.metrics import record_relay_outcome, get_metrics, get_metrics_content_type
from chat_relay.relay import ChatRelay
from chat_relay.storage import init_db, check_db_health, get_db
from chat_relay.schemas import (
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    MessagesResponse,
    ResumeRequest,
    ResumeResponse,
    SendMessageRequest,
    SendMessageResponse,
)


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or invalid input"},
    401: {"model": ErrorResponse, "description": "No caller identity"},
    500: {"model": ErrorResponse, "description": "Generation API or configuration failure"},
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables
    """
    init_db()
    yield


app = FastAPI(
    title="Chat Relay API",
    description="Relays chat sessions to the generation API and tracks per-application usage",
    version="1.0.0",
    lifespan=lifespan,
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)


def get_relay(
    db: Session = Depends(get_db),
    client: GenerationClient = Depends(get_generation_client),
) -> ChatRelay:
    return ChatRelay(client=client, db=db)


# =============================================================================
# Error Handlers
# =============================================================================

def _record_failure(request: Request, kind: str) -> None:
    relay_data = getattr(request.state, "relay_log_data", None)
    if relay_data is not None:
        relay_data["result"] = kind
        record_relay_outcome(relay_data["operation"], kind)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    _record_failure(request, exc.kind)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# =============================================================================
# Request Helpers
# =============================================================================

def track_operation(operation: str):
    """
    Route dependency that tags the request with its relay operation.

    Listed in the route decorator so it runs before require_identity and
    rejected callers are still counted against the operation.
    """
    async def dependency(request: Request) -> None:
        log_relay_data(request, operation=operation)
    return dependency


def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"Invalid request: {location}: {message}" if location else f"Invalid request: {message}"


async def read_body(request: Request, model: type[BaseModel]):
    """
    Parse and validate a JSON request body.

    Called from the route body, after require_identity has resolved, so
    anonymous callers get 401 even when the body is malformed.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidInput("Invalid request: body is not valid JSON")

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        message = _validation_message(e)
        logger.warning(f"Request validation failed: {message}")
        raise InvalidInput(message)


def _request_body_schema(model: type[BaseModel]) -> dict:
    return {
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": model.model_json_schema(by_alias=True)}},
        }
    }


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if:
    1. GENERATION_API_KEY is set (non-empty)
    2. DB is reachable and schema is applied

    Otherwise returns 503 (Service Unavailable).
    """
    if not settings.GENERATION_API_KEY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="GENERATION_API_KEY not configured"
        )

    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Relay Routes
# =============================================================================

@app.get(
    "/api/messages",
    response_model=MessagesResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(track_operation("fetch_messages"))],
)
async def fetch_messages(
    request: Request,
    identity: CallerIdentity = Depends(require_identity),
    session_id: Annotated[Optional[str], Query(alias="sessionId", description="External chat session id")] = None,
    relay: ChatRelay = Depends(get_relay),
) -> MessagesResponse:
    """
    Return the messages of a chat session in normalized form.

    Each message has id, role, content, createdAt and files; content is
    always a string.
    """
    log_relay_data(request, operation="fetch_messages", session_id=session_id)
    result = await relay.fetch_messages(identity, session_id)
    log_relay_data(request, operation="fetch_messages", session_id=session_id, result="ok")
    record_relay_outcome("fetch_messages", "ok")
    return result


@app.post(
    "/api/messages",
    response_model=SendMessageResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(track_operation("send_message"))],
    openapi_extra=_request_body_schema(SendMessageRequest),
)
async def send_message(
    request: Request,
    identity: CallerIdentity = Depends(require_identity),
    relay: ChatRelay = Depends(get_relay),
) -> SendMessageResponse:
    """
    Send a message into a chat session.

    Succeeds whenever the generation API accepts the message. The owning
    application's message counter is updated afterwards on a best-effort
    basis; failures there are logged but never reported to the caller.
    Attachments are forwarded exactly as received.
    """
    body = await read_body(request, SendMessageRequest)
    log_relay_data(request, operation="send_message", session_id=body.session_id)

    outcome = await relay.send_message(identity, body.session_id, body.message, body.files)

    log_relay_data(
        request,
        operation="send_message",
        session_id=body.session_id,
        result="ok",
        accounting=outcome.accounting.value,
    )
    record_relay_outcome("send_message", "ok")
    return outcome.response


@app.post(
    "/api/resume",
    response_model=ResumeResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(track_operation("resume"))],
    openapi_extra=_request_body_schema(ResumeRequest),
)
async def resume(
    request: Request,
    identity: CallerIdentity = Depends(require_identity),
    relay: ChatRelay = Depends(get_relay),
) -> ResumeResponse:
    """
    Resume a previously interrupted generation turn.
    """
    body = await read_body(request, ResumeRequest)
    log_relay_data(request, operation="resume", session_id=body.session_id)
    result = await relay.resume(identity, body.session_id, body.message_id)
    log_relay_data(request, operation="resume", session_id=body.session_id, result="ok")
    record_relay_outcome("resume", "ok")
    return result


@app.get(
    "/api/chat",
    response_model=ChatResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(track_operation("get_chat"))],
)
async def get_chat(
    request: Request,
    identity: CallerIdentity = Depends(require_identity),
    session_id: Annotated[Optional[str], Query(alias="sessionId", description="External chat session id")] = None,
    relay: ChatRelay = Depends(get_relay),
) -> JSONResponse:
    """
    Return the full chat snapshot including demo URL and latest version.

    While a new chat is still propagating upstream the response has
    status "provisioning" and transient true. Responses are never cached.
    """
    log_relay_data(request, operation="get_chat", session_id=session_id)
    chat = await relay.get_chat(identity, session_id)

    outcome = "provisioning" if chat.transient else "ok"
    log_relay_data(request, operation="get_chat", session_id=session_id, result=outcome)
    record_relay_outcome("get_chat", outcome)

    content = chat.model_dump(by_alias=True, exclude={"transient"} if chat.transient is None else None)
    return JSONResponse(content=content, headers=NO_STORE_HEADERS)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.

    Returns metrics in Prometheus text exposition format including:
    - http_requests_total: Total HTTP requests by method, path, status
    - relay_operations_total: Relay outcomes by operation and result
    - usage_accounting_total: Usage accounting outcomes by result
    - request_latency_seconds: Request latency histogram
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
