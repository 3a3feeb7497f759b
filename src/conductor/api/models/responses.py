"""
Pydantic response models -- what the supporting routes return.

The chat route itself streams SSE frames (see streaming/events.py).
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str


class PreferenceResponse(BaseModel):
    id: str
    category: str
    key: str
    value: str
    created_at: str
    updated_at: str


class PreferenceListResponse(BaseModel):
    preferences: list[PreferenceResponse] = Field(default_factory=list)
    total: int = 0


class ConversationResponse(BaseModel):
    id: str
    title: str
    mode: str
    project_id: str | None = None
    created_at: str
    updated_at: str


class ConversationListResponse(BaseModel):
    conversations: list[ConversationResponse] = Field(default_factory=list)
    total: int = 0


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender: str
    content: str
    created_at: str


class MessageListResponse(BaseModel):
    conversation_id: str
    messages: list[MessageResponse] = Field(default_factory=list)
    total: int = 0


class AgentInfo(BaseModel):
    agent_id: str
    provider: str
    model: str | None = None
    loaded: bool = False


class HealthResponse(BaseModel):
    status: str = "healthy"
    database: bool = True
    agents: list[AgentInfo] = Field(default_factory=list)
    active_runs: int = 0
    uptime_seconds: float = 0.0
