"""
Conversation and knowledge data models.

Categories and enum-like values are plain string constants (not Enum) so
records round-trip through SQLite and JSON untouched. The constants classes
only name the values the core itself produces.

Keep this file under 250 lines.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# CONSTANTS
# =============================================================================


class ChatMode:
    """Conversation modes -- which agents take part in a run."""

    SOLO = "solo"
    DUO = "duo"
    TEAM = "team"

    ALL = (SOLO, DUO, TEAM)


USER_SENDER = "user"


class PatternKind:
    """Auto-save pattern kinds detected in agent output."""

    DECISION = "decision"
    BUG = "bug"
    PROMPT = "prompt"
    RULE = "rule"
    TECH = "tech"
    FEEDBACK = "feedback"

    ALL = (DECISION, BUG, PROMPT, RULE, TECH, FEEDBACK)


# =============================================================================
# CONVERSATIONS
# =============================================================================


@dataclass
class Conversation:
    """A chat thread. updated_at moves forward with every saved message."""

    title: str
    mode: str
    project_id: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)


@dataclass
class ChatMessage:
    """One immutable message. sender is "user" or an agent id."""

    conversation_id: str
    sender: str
    content: str
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_now)


@dataclass
class Preference:
    """
    A user preference -- key is the identity.

    category: "general", "personal", "tech", "work", "communication", ...
    key: Normalized identifier, e.g. "name", "prefers", "favorite_color".
    value: Free text as the user said it.
    """

    category: str
    key: str
    value: str
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)


@dataclass
class Project:
    """Read-only project metadata injected into agent prompts."""

    id: str
    name: str
    description: str = ""
    repo_url: str = ""
    tech_stack: list[str] = field(default_factory=list)


# =============================================================================
# AUTO-SAVE RECORDS
# =============================================================================


@dataclass
class Decision:
    """An architectural decision stated by an agent."""

    title: str
    description: str
    reason: str
    alternatives: str | None = None
    project_id: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_now)


@dataclass
class Bug:
    """A bug and its fix, as described by an agent."""

    description: str
    solution: str
    file_path: str | None = None
    line_number: int | None = None
    severity: str = "medium"  # low / medium / high / critical
    project_id: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_now)


@dataclass
class ProjectRule:
    """A project convention ("always ...", "never ...")."""

    rule: str
    category: str = "other"  # code_style / architecture / testing / security / naming / other
    project_id: str | None = None
    is_active: bool = True
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_now)


@dataclass
class TechItem:
    """A technology used by the project."""

    name: str
    category: str = "other"  # framework / library / language / database / ...
    version: str | None = None
    project_id: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_now)


@dataclass
class Prompt:
    """A prompt an agent wrote for another coding tool."""

    name: str
    content: str
    llm_target: str = "claude_code"  # claude_code / codex / gemini
    description: str | None = None
    tags: list[str] = field(default_factory=list)
    project_id: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_now)


@dataclass
class ReviewFeedback:
    """A review remark from a reviewer agent."""

    reviewer: str
    feedback_type: str  # bug / optimization / edge_case / best_practice / ui / ux / a11y
    description: str
    suggestion: str | None = None
    conversation_id: str | None = None
    project_id: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_now)


AutoSaveRecord = Decision | Bug | ProjectRule | TechItem | Prompt | ReviewFeedback


# =============================================================================
# REQUEST CONTEXT
# =============================================================================


@dataclass
class AIContext:
    """
    Everything an agent sees besides the message itself.

    Built fresh for every request and never cached.

    history: Recent messages, chronological (default: none).
    preferences: All stored preferences (default: none).
    project: Project metadata when the request names a project.
    project_context: Pre-rendered project structure/file snapshot.
    editor_content: Code currently open in the user's editor.
    """

    history: list[ChatMessage] = field(default_factory=list)
    preferences: list[Preference] = field(default_factory=list)
    project: Project | None = None
    project_context: str | None = None
    editor_content: str | None = None

    @property
    def project_id(self) -> str | None:
        return self.project.id if self.project else None

    def to_log_dict(self) -> dict[str, Any]:
        """Size summary for debug logging (never the content itself)."""
        return {
            "history": len(self.history),
            "preferences": len(self.preferences),
            "project": self.project_id,
            "project_context_chars": len(self.project_context or ""),
            "editor_chars": len(self.editor_content or ""),
        }
