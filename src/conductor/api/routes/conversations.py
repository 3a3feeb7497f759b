"""
Conversations API -- read access to stored chat threads.

  GET /api/v1/conversations                 -- List conversations (newest activity first)
  GET /api/v1/conversations/{id}/messages   -- Messages of one conversation
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ...memory.store import PersistenceGateway
from ..middleware.auth import AuthContext, verify_api_key
from ..middleware.rate_limit import check_rate_limit
from ..models.responses import (
    ConversationListResponse,
    ConversationResponse,
    MessageListResponse,
    MessageResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    request: Request,
    project_id: str | None = Query(None, max_length=64),
    auth: AuthContext = Depends(verify_api_key),
    _rate_limit: None = Depends(check_rate_limit),
) -> ConversationListResponse:
    store: PersistenceGateway = request.app.state.store
    conversations = await store.list_conversations(project_id)
    return ConversationListResponse(
        conversations=[ConversationResponse(**vars(c)) for c in conversations],
        total=len(conversations),
    )


@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def get_messages(
    conversation_id: str,
    request: Request,
    limit: int = Query(50, ge=1, le=500),
    auth: AuthContext = Depends(verify_api_key),
    _rate_limit: None = Depends(check_rate_limit),
) -> MessageListResponse:
    store: PersistenceGateway = request.app.state.store
    if await store.get_conversation(conversation_id) is None:
        raise HTTPException(status_code=404, detail=f"Conversation '{conversation_id}' not found")
    messages = await store.get_messages(conversation_id, limit)
    return MessageListResponse(
        conversation_id=conversation_id,
        messages=[MessageResponse(**vars(m)) for m in messages],
        total=len(messages),
    )
