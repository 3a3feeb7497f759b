"""
Conductor database schema -- SQLite tables for conversations, preferences,
projects and auto-saved knowledge records.

Usage:
    initialize_schema(db_path)  # Creates tables if they don't exist
    get_connection(db_path)     # Returns a connection with WAL mode enabled

All tables use TEXT primary keys and TEXT timestamps (ISO format). JSON fields
store lists as serialized strings. chat_messages carries an autoincrement
sequence so messages with equal timestamps keep their insertion order.

Keep this file under 200 lines.
"""

import json
import logging
import sqlite3
from pathlib import Path

from ..config import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT DEFAULT '',
    repo_url TEXT DEFAULT '',
    tech_stack_json TEXT DEFAULT '[]',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    mode TEXT NOT NULL,
    project_id TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_conversations_updated
    ON conversations(project_id, updated_at);

CREATE TABLE IF NOT EXISTS chat_messages (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    conversation_id TEXT NOT NULL REFERENCES conversations(id),
    sender TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation
    ON chat_messages(conversation_id, seq);

-- Preferences: key is the identity
CREATE TABLE IF NOT EXISTS preferences (
    id TEXT PRIMARY KEY,
    category TEXT NOT NULL,
    key TEXT NOT NULL UNIQUE,
    value TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Auto-saved knowledge
CREATE TABLE IF NOT EXISTS decisions (
    id TEXT PRIMARY KEY,
    project_id TEXT,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    reason TEXT NOT NULL,
    alternatives TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS bugs_history (
    id TEXT PRIMARY KEY,
    project_id TEXT,
    description TEXT NOT NULL,
    solution TEXT NOT NULL,
    file_path TEXT,
    line_number INTEGER,
    severity TEXT DEFAULT 'medium',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS project_rules (
    id TEXT PRIMARY KEY,
    project_id TEXT,
    rule TEXT NOT NULL,
    category TEXT NOT NULL,
    is_active INTEGER DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tech_stack (
    id TEXT PRIMARY KEY,
    project_id TEXT,
    name TEXT NOT NULL,
    category TEXT NOT NULL,
    version TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS prompts (
    id TEXT PRIMARY KEY,
    project_id TEXT,
    name TEXT NOT NULL,
    llm_target TEXT NOT NULL,
    content TEXT NOT NULL,
    description TEXT,
    tags_json TEXT DEFAULT '[]',
    use_count INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS review_feedback (
    id TEXT PRIMARY KEY,
    project_id TEXT,
    conversation_id TEXT,
    reviewer TEXT NOT NULL,
    feedback_type TEXT NOT NULL,
    description TEXT NOT NULL,
    suggestion TEXT,
    created_at TEXT NOT NULL
);
"""


def get_connection(db_path: Path = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Get a SQLite connection with WAL mode and foreign keys enabled."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def initialize_schema(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create conductor tables if they don't exist."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
        logger.info(f"[Schema] Initialized at {db_path}")
    finally:
        conn.close()


def dict_from_row(row: sqlite3.Row) -> dict:
    """Convert a sqlite3.Row to a plain dict, parsing JSON fields."""
    d = dict(row)
    for key in list(d.keys()):
        if key.endswith("_json") and isinstance(d[key], str):
            try:
                d[key.replace("_json", "")] = json.loads(d[key])
            except json.JSONDecodeError:
                d[key.replace("_json", "")] = []
            del d[key]
    return d
