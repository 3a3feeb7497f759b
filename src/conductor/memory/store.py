"""
Persistence gateway -- the storage operations the orchestrator depends on.

PersistenceGateway is the protocol; SQLiteStore is the bundled backend.
Anything implementing the protocol (a Postgres adapter, an in-memory fake in
tests) can be injected into the Orchestrator instead.

Failure contract:
  - Conversation and message writes raise PersistenceError.
  - Preference writes raise PersistenceError.
  - save_<record>() methods never raise -- they log and return None.
  - Preference/history reads log and return an empty list.

SQLite work is synchronous, so every public method hops to a worker thread
with asyncio.to_thread and opens its own connection there.
"""

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Callable, Protocol, runtime_checkable

from ..config import DEFAULT_DB_PATH
from ..exceptions import PersistenceError
from .models import (
    Bug,
    ChatMessage,
    Conversation,
    Decision,
    Preference,
    Project,
    ProjectRule,
    Prompt,
    ReviewFeedback,
    TechItem,
    _now,
)
from .schema import dict_from_row, get_connection, initialize_schema

logger = logging.getLogger(__name__)


@runtime_checkable
class PersistenceGateway(Protocol):
    """Storage operations consumed by the orchestration core."""

    async def create_conversation(
        self, title: str, mode: str, project_id: str | None = None
    ) -> Conversation: ...

    async def get_conversation(self, conversation_id: str) -> Conversation | None: ...

    async def list_conversations(self, project_id: str | None = None) -> list[Conversation]: ...

    async def save_message(
        self, conversation_id: str, sender: str, content: str
    ) -> ChatMessage: ...

    async def get_history(self, conversation_id: str, limit: int) -> list[ChatMessage]: ...

    async def get_messages(self, conversation_id: str, limit: int = 50) -> list[ChatMessage]: ...

    async def get_preferences(self) -> list[Preference]: ...

    async def upsert_preference(self, category: str, key: str, value: str) -> None: ...

    async def delete_preference(self, key: str) -> None: ...

    async def get_project(self, project_id: str) -> Project | None: ...

    async def save_decision(self, record: Decision) -> Decision | None: ...

    async def save_bug(self, record: Bug) -> Bug | None: ...

    async def save_rule(self, record: ProjectRule) -> ProjectRule | None: ...

    async def save_tech_item(self, record: TechItem) -> TechItem | None: ...

    async def save_prompt(self, record: Prompt) -> Prompt | None: ...

    async def save_review_feedback(self, record: ReviewFeedback) -> ReviewFeedback | None: ...


class SQLiteStore:
    """
    SQLite implementation of PersistenceGateway.

    Usage:
        store = SQLiteStore(Path("data/conductor.db"))
        convo = await store.create_conversation("Hello", "team")
        await store.save_message(convo.id, "user", "Hello")
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH, initialize: bool = True):
        self._db_path = db_path
        if initialize:
            initialize_schema(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(fn, *args)

    # =========================================================================
    # CONVERSATIONS
    # =========================================================================

    async def create_conversation(
        self, title: str, mode: str, project_id: str | None = None
    ) -> Conversation:
        convo = Conversation(title=title, mode=mode, project_id=project_id)
        try:
            await self._run(self._insert_conversation, convo)
        except sqlite3.Error as e:
            logger.error(f"[Store] Failed to create conversation: {e}")
            raise PersistenceError(f"Could not create conversation: {e}") from e
        logger.debug(f"[Store] Created conversation {convo.id} ({mode})")
        return convo

    def _insert_conversation(self, convo: Conversation) -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """INSERT INTO conversations
                   (id, title, mode, project_id, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (convo.id, convo.title, convo.mode, convo.project_id,
                 convo.created_at, convo.updated_at),
            )
            conn.commit()
        finally:
            conn.close()

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        rows = await self._run(
            self._select, "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        )
        return Conversation(**rows[0]) if rows else None

    async def list_conversations(self, project_id: str | None = None) -> list[Conversation]:
        if project_id:
            rows = await self._run(
                self._select,
                "SELECT * FROM conversations WHERE project_id = ? ORDER BY updated_at DESC",
                (project_id,),
            )
        else:
            rows = await self._run(
                self._select, "SELECT * FROM conversations ORDER BY updated_at DESC", ()
            )
        return [Conversation(**r) for r in rows]

    # =========================================================================
    # MESSAGES
    # =========================================================================

    async def save_message(
        self, conversation_id: str, sender: str, content: str
    ) -> ChatMessage:
        message = ChatMessage(
            conversation_id=conversation_id, sender=sender, content=content
        )
        try:
            await self._run(self._insert_message, message)
        except sqlite3.Error as e:
            logger.error(f"[Store] Failed to save {sender} message: {e}")
            raise PersistenceError(f"Could not save message: {e}") from e
        return message

    def _insert_message(self, message: ChatMessage) -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """INSERT INTO chat_messages
                   (id, conversation_id, sender, content, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (message.id, message.conversation_id, message.sender,
                 message.content, message.created_at),
            )
            conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (message.created_at, message.conversation_id),
            )
            conn.commit()
        finally:
            conn.close()

    async def get_history(self, conversation_id: str, limit: int = 20) -> list[ChatMessage]:
        """Latest `limit` messages, returned oldest first."""
        try:
            rows = await self._run(
                self._select,
                """SELECT id, conversation_id, sender, content, created_at
                   FROM chat_messages WHERE conversation_id = ?
                   ORDER BY seq DESC LIMIT ?""",
                (conversation_id, limit),
            )
        except sqlite3.Error as e:
            logger.error(f"[Store] Failed to load history: {e}")
            return []
        return [ChatMessage(**r) for r in reversed(rows)]

    async def get_messages(self, conversation_id: str, limit: int = 50) -> list[ChatMessage]:
        """First `limit` messages of a conversation, oldest first."""
        rows = await self._run(
            self._select,
            """SELECT id, conversation_id, sender, content, created_at
               FROM chat_messages WHERE conversation_id = ?
               ORDER BY seq ASC LIMIT ?""",
            (conversation_id, limit),
        )
        return [ChatMessage(**r) for r in rows]

    # =========================================================================
    # PREFERENCES
    # =========================================================================

    async def get_preferences(self) -> list[Preference]:
        try:
            rows = await self._run(
                self._select,
                "SELECT * FROM preferences ORDER BY category ASC, created_at ASC",
                (),
            )
        except sqlite3.Error as e:
            logger.error(f"[Store] Failed to load preferences: {e}")
            return []
        return [Preference(**r) for r in rows]

    async def upsert_preference(self, category: str, key: str, value: str) -> None:
        pref = Preference(category=category, key=key, value=value)
        try:
            await self._run(self._upsert_preference, pref)
        except sqlite3.Error as e:
            logger.error(f"[Store] Failed to save preference {key}: {e}")
            raise PersistenceError(f"Could not save preference: {e}") from e
        logger.debug(f"[Store] Saved preference {key}={value} ({category})")

    def _upsert_preference(self, pref: Preference) -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """INSERT INTO preferences
                   (id, category, key, value, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                    category = excluded.category,
                    value = excluded.value,
                    updated_at = excluded.updated_at""",
                (pref.id, pref.category, pref.key, pref.value,
                 pref.created_at, pref.updated_at),
            )
            conn.commit()
        finally:
            conn.close()

    async def delete_preference(self, key: str) -> None:
        try:
            await self._run(self._execute, "DELETE FROM preferences WHERE key = ?", (key,))
        except sqlite3.Error as e:
            logger.error(f"[Store] Failed to delete preference {key}: {e}")
            raise PersistenceError(f"Could not delete preference: {e}") from e

    # =========================================================================
    # PROJECTS
    # =========================================================================

    async def get_project(self, project_id: str) -> Project | None:
        try:
            rows = await self._run(
                self._select, "SELECT * FROM projects WHERE id = ?", (project_id,)
            )
        except sqlite3.Error as e:
            logger.error(f"[Store] Failed to load project {project_id}: {e}")
            return None
        if not rows:
            return None
        row = rows[0]
        return Project(
            id=row["id"],
            name=row["name"],
            description=row.get("description") or "",
            repo_url=row.get("repo_url") or "",
            tech_stack=row.get("tech_stack") or [],
        )

    async def save_project(self, project: Project) -> Project:
        try:
            await self._run(
                self._execute,
                """INSERT INTO projects
                   (id, name, description, repo_url, tech_stack_json, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    description = excluded.description,
                    repo_url = excluded.repo_url,
                    tech_stack_json = excluded.tech_stack_json""",
                (project.id, project.name, project.description, project.repo_url,
                 json.dumps(project.tech_stack), _now()),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not save project: {e}") from e
        return project

    # =========================================================================
    # AUTO-SAVE RECORDS (never raise)
    # =========================================================================

    async def save_decision(self, record: Decision) -> Decision | None:
        return await self._save_record(
            "decisions",
            record,
            """INSERT INTO decisions
               (id, project_id, title, description, reason, alternatives, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (record.id, record.project_id, record.title, record.description,
             record.reason, record.alternatives, record.created_at),
        )

    async def save_bug(self, record: Bug) -> Bug | None:
        return await self._save_record(
            "bugs_history",
            record,
            """INSERT INTO bugs_history
               (id, project_id, description, solution, file_path, line_number,
                severity, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (record.id, record.project_id, record.description, record.solution,
             record.file_path, record.line_number, record.severity, record.created_at),
        )

    async def save_rule(self, record: ProjectRule) -> ProjectRule | None:
        try:
            existing = await self._run(
                self._select,
                "SELECT id FROM project_rules WHERE project_id IS ? AND rule = ?",
                (record.project_id, record.rule),
            )
        except sqlite3.Error as e:
            logger.error(f"[AutoSave] Rule lookup failed: {e}")
            return None
        if existing:
            logger.debug("[AutoSave] Rule already stored, skipping")
            return None
        return await self._save_record(
            "project_rules",
            record,
            """INSERT INTO project_rules
               (id, project_id, rule, category, is_active, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (record.id, record.project_id, record.rule, record.category,
             1 if record.is_active else 0, record.created_at),
        )

    async def save_tech_item(self, record: TechItem) -> TechItem | None:
        try:
            existing = await self._run(
                self._select,
                "SELECT id FROM tech_stack WHERE project_id IS ? AND lower(name) = lower(?)",
                (record.project_id, record.name),
            )
        except sqlite3.Error as e:
            logger.error(f"[AutoSave] Tech lookup failed: {e}")
            return None
        if existing:
            logger.debug(f"[AutoSave] {record.name} already in tech stack, skipping")
            return None
        return await self._save_record(
            "tech_stack",
            record,
            """INSERT INTO tech_stack
               (id, project_id, name, category, version, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (record.id, record.project_id, record.name, record.category,
             record.version, record.created_at),
        )

    async def save_prompt(self, record: Prompt) -> Prompt | None:
        return await self._save_record(
            "prompts",
            record,
            """INSERT INTO prompts
               (id, project_id, name, llm_target, content, description,
                tags_json, use_count, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?)""",
            (record.id, record.project_id, record.name, record.llm_target,
             record.content, record.description, json.dumps(record.tags),
             record.created_at),
        )

    async def save_review_feedback(self, record: ReviewFeedback) -> ReviewFeedback | None:
        return await self._save_record(
            "review_feedback",
            record,
            """INSERT INTO review_feedback
               (id, project_id, conversation_id, reviewer, feedback_type,
                description, suggestion, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (record.id, record.project_id, record.conversation_id, record.reviewer,
             record.feedback_type, record.description, record.suggestion,
             record.created_at),
        )

    async def count_records(self, table: str) -> int:
        """Row count of an auto-save table (diagnostics and tests)."""
        if table not in RECORD_TABLES:
            raise ValueError(f"Unknown record table: {table}")
        rows = await self._run(self._select, f"SELECT COUNT(*) AS n FROM {table}", ())
        return int(rows[0]["n"])

    async def _save_record(self, table: str, record: Any, sql: str, params: tuple) -> Any:
        try:
            await self._run(self._execute, sql, params)
        except sqlite3.Error as e:
            logger.error(f"[AutoSave] Failed to save into {table}: {e}")
            return None
        logger.info(f"[AutoSave] Saved {table} record {record.id}")
        return record

    # =========================================================================
    # SQL HELPERS (run in worker threads)
    # =========================================================================

    def _select(self, sql: str, params: tuple) -> list[dict]:
        conn = get_connection(self._db_path)
        try:
            return [dict_from_row(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    def _execute(self, sql: str, params: tuple) -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()


RECORD_TABLES = (
    "decisions",
    "bugs_history",
    "project_rules",
    "tech_stack",
    "prompts",
    "review_feedback",
)
