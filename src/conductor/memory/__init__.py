"""Conversation memory: records, schema and the persistence gateway."""

from .models import (
    AIContext,
    AutoSaveRecord,
    Bug,
    ChatMessage,
    ChatMode,
    Conversation,
    Decision,
    PatternKind,
    Preference,
    Project,
    ProjectRule,
    Prompt,
    ReviewFeedback,
    TechItem,
    USER_SENDER,
)
from .store import PersistenceGateway, SQLiteStore

__all__ = [
    "AIContext",
    "AutoSaveRecord",
    "Bug",
    "ChatMessage",
    "ChatMode",
    "Conversation",
    "Decision",
    "PatternKind",
    "PersistenceGateway",
    "Preference",
    "Project",
    "ProjectRule",
    "Prompt",
    "ReviewFeedback",
    "SQLiteStore",
    "TechItem",
    "USER_SENDER",
]
