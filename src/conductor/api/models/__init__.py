"""Pydantic models for API request/response contracts."""
from .requests import ChatRequest, EditorContext, PreferenceRequest
from .responses import (
    AgentInfo,
    ConversationListResponse,
    ConversationResponse,
    ErrorResponse,
    HealthResponse,
    MessageListResponse,
    MessageResponse,
    PreferenceListResponse,
    PreferenceResponse,
)
