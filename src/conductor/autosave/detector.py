"""
AutoSaveDetector -- persists the knowledge records found in agent output.

Runs after every agent response. Each detected kind is extracted and every
candidate saved on the spot; a failure on one record (extraction bug, store
error, duplicate) is logged and skipped, so it never affects the other kinds
or the chat run.

Usage:
    detector = AutoSaveDetector(store)
    result = await detector.process(reply, user_message, "gpt", context, conversation_id)
    result.detected   # ["bug", "feedback"]
    result.saved      # [SavedRecordRef(type="bug", table="bugs_history", id="...")]
"""

import logging
from dataclasses import dataclass, field

from ..memory.models import (
    AIContext,
    Bug,
    Decision,
    PatternKind,
    ProjectRule,
    Prompt,
    ReviewFeedback,
    TechItem,
)
from ..memory.store import PersistenceGateway
from . import patterns

logger = logging.getLogger(__name__)

RECORD_TABLES = {
    PatternKind.DECISION: "decisions",
    PatternKind.BUG: "bugs_history",
    PatternKind.PROMPT: "prompts",
    PatternKind.RULE: "project_rules",
    PatternKind.TECH: "tech_stack",
    PatternKind.FEEDBACK: "review_feedback",
}


@dataclass
class SavedRecordRef:
    type: str
    table: str
    id: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "table": self.table, "id": self.id}


@dataclass
class AutoSaveResult:
    """What one response produced: kinds detected and records actually stored."""

    detected: list[str] = field(default_factory=list)
    saved: list[SavedRecordRef] = field(default_factory=list)


class AutoSaveDetector:
    """Detect, extract and persist knowledge records from agent text."""

    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway

    async def process(
        self,
        text: str,
        user_message: str,
        agent_id: str,
        context: AIContext | None = None,
        conversation_id: str | None = None,
    ) -> AutoSaveResult:
        result = AutoSaveResult()
        kinds = patterns.detect(text)
        project_id = context.project_id if context else None

        for kind in PatternKind.ALL:
            if kind not in kinds:
                continue
            result.detected.append(kind)
            try:
                candidates = patterns.extract(
                    kind,
                    text,
                    user_message,
                    project_id=project_id,
                    agent_id=agent_id,
                    conversation_id=conversation_id,
                )
            except Exception as e:
                logger.error(f"[AutoSave] Extracting {kind} from {agent_id} failed: {e}")
                continue

            for candidate in candidates:
                ref = await self._save(kind, candidate)
                if ref is not None:
                    result.saved.append(ref)

        if result.detected:
            logger.info(
                f"[AutoSave] {agent_id}: detected {result.detected}, "
                f"saved {len(result.saved)} record(s)"
            )
        return result

    async def _save(self, kind: str, record) -> SavedRecordRef | None:
        try:
            if isinstance(record, Decision):
                saved = await self._gateway.save_decision(record)
            elif isinstance(record, Bug):
                saved = await self._gateway.save_bug(record)
            elif isinstance(record, ProjectRule):
                saved = await self._gateway.save_rule(record)
            elif isinstance(record, TechItem):
                saved = await self._gateway.save_tech_item(record)
            elif isinstance(record, Prompt):
                saved = await self._gateway.save_prompt(record)
            elif isinstance(record, ReviewFeedback):
                saved = await self._gateway.save_review_feedback(record)
            else:
                raise TypeError(f"Unsupported record type: {type(record).__name__}")
        except Exception as e:
            logger.error(f"[AutoSave] Saving {kind} record failed: {e}")
            return None

        if saved is None:
            return None
        return SavedRecordRef(type=kind, table=RECORD_TABLES[kind], id=saved.id)
