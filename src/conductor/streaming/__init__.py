"""Streaming transport -- SSE events and the per-run event channel."""

from .channel import EventChannel
from .events import (
    HEARTBEAT_FRAME,
    EventType,
    StreamEvent,
    conversation_id_event,
    done_event,
    error_event,
    message_event,
    typing_event,
)
