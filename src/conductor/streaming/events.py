"""
Stream events and their Server-Sent Events wire format.

Each event is one `data: <json>\n\n` frame:

    {"type": "conversation_id", "id": "..."}         first, exactly once
    {"type": "typing", "sender": "claude"}
    {"type": "message", "sender": "claude", "content": "..."}
    {"type": "done", "metadata": {...}}               terminal
    {"type": "error", "error": "..."}                 terminal

Heartbeats are SSE comment frames, which clients ignore.
"""

import json
from dataclasses import dataclass, field
from typing import Any

HEARTBEAT_FRAME = ": heartbeat\n\n"


class EventType:
    CONVERSATION_ID = "conversation_id"
    TYPING = "typing"
    MESSAGE = "message"
    DONE = "done"
    ERROR = "error"

    TERMINAL = (DONE, ERROR)


@dataclass(frozen=True)
class StreamEvent:
    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in EventType.TERMINAL

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, **self.payload}

    def encode(self) -> str:
        """Render as one SSE data frame."""
        return f"data: {json.dumps(self.to_dict(), ensure_ascii=False, default=str)}\n\n"


def conversation_id_event(conversation_id: str) -> StreamEvent:
    return StreamEvent(EventType.CONVERSATION_ID, {"id": conversation_id})


def typing_event(sender: str) -> StreamEvent:
    return StreamEvent(EventType.TYPING, {"sender": sender})


def message_event(sender: str, content: str) -> StreamEvent:
    return StreamEvent(EventType.MESSAGE, {"sender": sender, "content": content})


def done_event(metadata: dict[str, Any] | None = None) -> StreamEvent:
    return StreamEvent(EventType.DONE, {"metadata": metadata} if metadata is not None else {})


def error_event(error: str) -> StreamEvent:
    return StreamEvent(EventType.ERROR, {"error": error})
