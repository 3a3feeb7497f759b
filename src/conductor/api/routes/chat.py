"""
Chat API -- multi-agent chat streamed as Server-Sent Events.

  POST /api/v1/chat  -- validate, start the run, stream its events

The request is validated completely before anything is streamed: a bad
request gets a 400 JSON body, never an error event. After that the run is a
background task and the response only reads its channel, so a client that
disconnects does not stop the run.

Security:
  - Input size validation
  - Rate limiting (chat bucket)
  - API key authentication
  - Injection patterns logged via the prompt guard
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from ...memory.models import ChatMode
from ...orchestration.conductor import ChatTurn, Orchestrator
from ...security import (
    MAX_MESSAGE_LENGTH,
    ValidationError,
    detect_injection_attempt,
    validate_identifier,
    validate_in_choices,
    validate_length,
    validate_not_empty,
    validate_optional_text,
)
from ...streaming.channel import EventChannel
from ..middleware.auth import AuthContext, verify_api_key
from ..middleware.rate_limit import check_chat_rate_limit
from ..models.requests import ChatRequest

logger = logging.getLogger(__name__)
router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Strong references to in-flight runs until they finish.
_background_runs: set[asyncio.Task] = set()


def active_run_count() -> int:
    return len(_background_runs)


def parse_chat_request(body: object) -> ChatTurn:
    """
    Validate a raw JSON body into a ChatTurn.

    Raises:
        ValidationError: missing message or mode, unknown mode, bad ids or
            oversized fields.
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        req = ChatRequest.model_validate(body)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "body"
        raise ValidationError(f"Invalid field {field}: {first.get('msg', 'invalid value')}")

    if not req.message or not req.mode:
        raise ValidationError("Missing required fields: message, mode")
    message = validate_not_empty(req.message, "message")
    validate_length(message, "message", max_length=MAX_MESSAGE_LENGTH)
    mode = validate_in_choices(req.mode, ChatMode.ALL, "mode")

    conversation_id = req.conversation_id or None
    if conversation_id:
        validate_identifier(conversation_id, "conversation_id")
    project_id = req.project_id or None
    if project_id:
        validate_identifier(project_id, "project_id")

    return ChatTurn(
        message=message,
        mode=mode,
        conversation_id=conversation_id,
        project_id=project_id,
        project_context=validate_optional_text(req.project_context, "project_context"),
        editor_content=validate_optional_text(
            req.context.editor_content if req.context else None, "context.editor_content"
        ),
    )


@router.post("/chat", response_model=None)
async def chat(
    request: Request,
    auth: AuthContext = Depends(verify_api_key),
    _rate_limit: None = Depends(check_chat_rate_limit),
) -> StreamingResponse | JSONResponse:
    """
    Start a chat run and stream it.

    SSE frames (one JSON object each):
      - conversation_id: first, once
      - typing / message: per agent stage
      - done (with metadata) or error: terminal
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(status_code=400, content={"error": "Request body must be JSON"})

    try:
        turn = parse_chat_request(body)
    except ValidationError as e:
        logger.info(f"[Chat] Rejected request from {auth.user_id}: {e}")
        return JSONResponse(status_code=400, content={"error": str(e)})

    detect_injection_attempt(turn.message)

    orchestrator: Orchestrator = request.app.state.orchestrator
    channel = EventChannel(heartbeat_interval=request.app.state.config.heartbeat_interval)

    task = asyncio.create_task(orchestrator.run(turn, channel))
    _background_runs.add(task)
    task.add_done_callback(_background_runs.discard)

    logger.info(
        f"[Chat] {turn.mode} run started "
        f"(conversation={turn.conversation_id or 'new'}, user={auth.user_id})"
    )
    return StreamingResponse(
        channel.frames(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
