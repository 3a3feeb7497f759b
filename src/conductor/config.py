"""
Runtime configuration loaded from the environment.

Every setting has a safe default so the server starts with no environment at
all (provider calls will fail until API keys are set, which only surfaces as
agent errors inside a run).

Environment:
  CONDUCTOR_DB_PATH=data/conductor.db
  CHAT_HISTORY_LIMIT=20
  RUN_TIMEOUT_SECONDS=300
  HEARTBEAT_INTERVAL_SECONDS=30
  PRIMARY_PROVIDER=anthropic   PRIMARY_MODEL=...
  REVIEWER_PROVIDER=openai     REVIEWER_MODEL=...
  DESIGNER_PROVIDER=google     DESIGNER_MODEL=...
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data/conductor.db")
DEFAULT_HISTORY_LIMIT = 20
DEFAULT_RUN_TIMEOUT = 300.0
DEFAULT_HEARTBEAT_INTERVAL = 30.0


def _get_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        logger.warning(f"[Config] {name} is not an integer, using {default}")
        return default


def _get_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        logger.warning(f"[Config] {name} is not a number, using {default}")
        return default


def _get_str(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or default


@dataclass
class AgentSettings:
    """Provider binding for one agent."""

    provider: str
    model: str | None = None


@dataclass
class ConductorConfig:
    """
    Process-wide settings.

    db_path: SQLite file for the persistence gateway.
    history_limit: How many recent messages are handed to agents.
    run_timeout: Wall-clock budget (seconds) of one orchestration run.
    heartbeat_interval: Idle seconds before the stream emits a heartbeat.
    agents: Provider per agent id (claude / gpt / gemini).
    """

    db_path: Path = DEFAULT_DB_PATH
    history_limit: int = DEFAULT_HISTORY_LIMIT
    run_timeout: float = DEFAULT_RUN_TIMEOUT
    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL
    agents: dict[str, AgentSettings] = field(
        default_factory=lambda: {
            "claude": AgentSettings(provider="anthropic"),
            "gpt": AgentSettings(provider="openai"),
            "gemini": AgentSettings(provider="google"),
        }
    )


def load_config() -> ConductorConfig:
    """Build a ConductorConfig from environment variables."""
    config = ConductorConfig(
        db_path=Path(_get_str("CONDUCTOR_DB_PATH", str(DEFAULT_DB_PATH))),
        history_limit=max(1, _get_int("CHAT_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT)),
        run_timeout=max(1.0, _get_float("RUN_TIMEOUT_SECONDS", DEFAULT_RUN_TIMEOUT)),
        heartbeat_interval=max(
            0.1, _get_float("HEARTBEAT_INTERVAL_SECONDS", DEFAULT_HEARTBEAT_INTERVAL)
        ),
        agents={
            "claude": AgentSettings(
                provider=_get_str("PRIMARY_PROVIDER", "anthropic"),
                model=_get_str("PRIMARY_MODEL"),
            ),
            "gpt": AgentSettings(
                provider=_get_str("REVIEWER_PROVIDER", "openai"),
                model=_get_str("REVIEWER_MODEL"),
            ),
            "gemini": AgentSettings(
                provider=_get_str("DESIGNER_PROVIDER", "google"),
                model=_get_str("DESIGNER_MODEL"),
            ),
        },
    )
    logger.debug(
        f"[Config] db={config.db_path} history={config.history_limit} "
        f"timeout={config.run_timeout}s heartbeat={config.heartbeat_interval}s"
    )
    return config
