"""
Conductor exception hierarchy.

All conductor-specific exceptions inherit from ConductorError. Input
validation errors live in security.validators (ValidationError) because they
are raised at the HTTP boundary before any run starts.

Scope of each error within a chat run:
  - PrimaryAgentError   -- fatal, surfaced as a terminal "error" event
  - SecondaryAgentError -- recovered with a fallback message, listed in
                           the done metadata as "fallbacks"
  - PersistenceError    -- fatal for conversation/message writes,
                           logged and skipped for auto-save records
  - TransportError      -- never escapes the channel
"""

from typing import Any


class ConductorError(Exception):
    """Base exception for all conductor errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# LLM / agent errors
class LLMCallError(ConductorError):
    """Raised when a provider call fails after all retries."""

    def __init__(self, message: str, provider: str = "", retryable: bool = False):
        super().__init__(message, {"provider": provider} if provider else None)
        self.provider = provider
        self.retryable = retryable


class AgentError(ConductorError):
    """Base exception for an agent stage that did not produce a reply."""

    def __init__(self, agent_id: str, message: str):
        super().__init__(message, {"agent": agent_id})
        self.agent_id = agent_id


class PrimaryAgentError(AgentError):
    """The first agent of the run failed -- the run cannot continue."""

    pass


class SecondaryAgentError(AgentError):
    """A reviewer or follow-up stage failed -- recovered with a fallback."""

    pass


# Persistence errors
class PersistenceError(ConductorError):
    """Raised when a core storage write or read fails."""

    pass


# Transport errors
class TransportError(ConductorError):
    """Raised internally when pushing to a closed stream."""

    pass


class RunTimeoutError(ConductorError):
    """The run exceeded its wall-clock budget."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"Run exceeded {timeout_seconds:g}s budget",
            {"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds
