"""
Orchestrator -- drives one chat run from user message to terminal event.

Run lifecycle:
  1. BOOTSTRAP  -- create the conversation if needed, save the user message,
                   push conversation_id
  2. COMMAND    -- preference commands are answered directly, no agents
  3. STAGES     -- the mode's stage plan, one agent call at a time
  4. DONE       -- metadata: mode, action, tokens, auto-saved records

Failure scope:
  - Primary stage fails          -> terminal error event
  - Reviewer / summary fails     -> fallback text, run continues
  - Auto-save fails              -> logged, run continues
  - Conversation/message write   -> terminal error event (no retry)
  - Wall-clock budget exceeded   -> terminal error event

Nothing is emitted after the terminal event, and run() itself never raises.

Usage:
    orchestrator = Orchestrator(store, AgentRegistry(config), config)
    channel = EventChannel()
    asyncio.create_task(orchestrator.run(ChatTurn("Build a todo app", "team"), channel))

Keep this file under 400 lines.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from ..agents.chat_agent import AgentReply
from ..agents.registry import AgentRegistry
from ..autosave.detector import AutoSaveDetector, SavedRecordRef
from ..config import ConductorConfig
from ..exceptions import (
    ConductorError,
    PrimaryAgentError,
    RunTimeoutError,
    SecondaryAgentError,
)
from ..llm import TokenUsage
from ..memory.models import USER_SENDER, AIContext, ChatMessage
from ..memory.store import PersistenceGateway
from ..preferences.commands import detect as detect_command
from ..preferences.handler import PreferenceCommandHandler
from ..streaming.channel import EventChannel
from ..streaming.events import (
    conversation_id_event,
    done_event,
    error_event,
    message_event,
    typing_event,
)
from .stages import PRIMARY_AGENT, Stage, StageKind, plan_for

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 50

GENERATE_TRIGGERS = (
    "ok robimy",
    "start",
    "zaczynamy",
    "generuj",
    "do dzieła",
    "let's go",
    "lets go",
    "budujemy",
    "koduj",
    "pisz kod",
    "napisz kod",
    "generate code",
    "write the code",
)
GENERATE_SUFFIX = "[GENERATE MODE - write complete, working code]"


class Action:
    GENERATE = "generate"
    DISCUSS = "discuss"


def classify_action(message: str) -> str:
    """generate if any trigger phrase occurs in the message, else discuss."""
    lowered = message.lower()
    if any(trigger in lowered for trigger in GENERATE_TRIGGERS):
        return Action.GENERATE
    return Action.DISCUSS


def conversation_title(message: str) -> str:
    title = message.strip()
    if len(title) > TITLE_MAX_CHARS:
        return title[:TITLE_MAX_CHARS] + "..."
    return title


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class ChatTurn:
    """One user request."""

    message: str
    mode: str
    conversation_id: str | None = None
    project_id: str | None = None
    project_context: str | None = None
    editor_content: str | None = None


@dataclass
class RunState:
    """Accumulators of one run, turned into the done metadata."""

    mode: str
    action: str = Action.DISCUSS
    conversation_id: str | None = None
    replies: list[tuple[str, str]] = field(default_factory=list)
    tokens: TokenUsage | None = None
    detected_patterns: list[str] = field(default_factory=list)
    auto_saved: list[SavedRecordRef] = field(default_factory=list)
    fallbacks: list[SecondaryAgentError] = field(default_factory=list)
    started: float = field(default_factory=time.monotonic)

    def add_usage(self, usage: TokenUsage | None) -> None:
        if usage is None:
            return
        if self.tokens is None:
            self.tokens = TokenUsage()
        self.tokens.add(usage)

    def metadata(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "action": self.action,
            "tokens": self.tokens.to_dict() if self.tokens else None,
            "detected_patterns": self.detected_patterns,
            "auto_saved": [ref.to_dict() for ref in self.auto_saved],
            "fallbacks": [e.agent_id for e in self.fallbacks],
            "duration_seconds": round(time.monotonic() - self.started, 2),
        }


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class Orchestrator:
    """
    Sequences agent calls for a chat turn and reports progress on a channel.

    Stateless between runs: every collaborator is injected, so one instance
    serves all concurrent requests.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        registry: AgentRegistry,
        config: ConductorConfig | None = None,
        detector: AutoSaveDetector | None = None,
        command_handler: PreferenceCommandHandler | None = None,
    ):
        self._gateway = gateway
        self._registry = registry
        self._config = config or ConductorConfig()
        self._detector = detector or AutoSaveDetector(gateway)
        self._commands = command_handler or PreferenceCommandHandler(gateway)

    async def run(self, turn: ChatTurn, channel: EventChannel) -> None:
        """Execute one run under the wall-clock budget. Never raises."""
        state = RunState(mode=turn.mode)
        timeout = self._config.run_timeout
        try:
            await asyncio.wait_for(self._run(turn, channel, state), timeout=timeout)
        except asyncio.TimeoutError:
            error = RunTimeoutError(timeout)
            logger.error(f"[Orchestrator] {error.message} (conversation {state.conversation_id})")
            channel.push(error_event(error.message))
        except PrimaryAgentError as e:
            logger.error(f"[Orchestrator] Primary agent failed: {e.message}")
            channel.push(error_event(e.message))
        except ConductorError as e:
            logger.error(f"[Orchestrator] Run aborted: {e}")
            channel.push(error_event(e.message))
        except Exception as e:
            logger.exception(f"[Orchestrator] Unexpected error: {e}")
            channel.push(error_event("Unexpected error while processing the message"))
        finally:
            channel.close()

    async def _run(self, turn: ChatTurn, channel: EventChannel, state: RunState) -> None:
        plan = plan_for(turn.mode)

        conversation_id = turn.conversation_id
        if not conversation_id:
            conversation = await self._gateway.create_conversation(
                conversation_title(turn.message), turn.mode, turn.project_id
            )
            conversation_id = conversation.id
        state.conversation_id = conversation_id
        user_message = await self._gateway.save_message(
            conversation_id, USER_SENDER, turn.message
        )
        channel.push(conversation_id_event(conversation_id))

        preferences = await self._gateway.get_preferences()

        command = detect_command(turn.message)
        if command.is_command:
            state.action = f"preferences_{command.kind}"
            reply = await self._commands.handle(command, preferences)
            channel.push(message_event(PRIMARY_AGENT, reply))
            await self._gateway.save_message(conversation_id, PRIMARY_AGENT, reply)
            channel.push(done_event(state.metadata()))
            return

        context = await self._build_context(turn, conversation_id, user_message, preferences)
        logger.debug(f"[Orchestrator] Context: {context.to_log_dict()}")

        state.action = classify_action(turn.message)
        primary_message = turn.message
        if state.action == Action.GENERATE:
            primary_message = f"{turn.message}\n\n{GENERATE_SUFFIX}"

        for stage in plan:
            channel.push(typing_event(stage.agent_id))
            content = await self._run_stage(stage, turn, primary_message, context, state)
            state.replies.append((stage.agent_id, content))
            channel.push(message_event(stage.agent_id, content))
            await self._gateway.save_message(conversation_id, stage.agent_id, content)
            await self._auto_save(content, turn.message, stage.agent_id, context, state)

        channel.push(done_event(state.metadata()))
        logger.info(
            f"[Orchestrator] {turn.mode}/{state.action} run finished "
            f"({len(state.replies)} replies, {len(state.auto_saved)} auto-saved)"
        )

    async def _build_context(
        self,
        turn: ChatTurn,
        conversation_id: str,
        user_message: ChatMessage,
        preferences: list,
    ) -> AIContext:
        history = await self._gateway.get_history(
            conversation_id, self._config.history_limit
        )
        # The current message is passed separately to every agent.
        history = [m for m in history if m.id != user_message.id]
        project = None
        if turn.project_id:
            project = await self._gateway.get_project(turn.project_id)
        return AIContext(
            history=history,
            preferences=preferences,
            project=project,
            project_context=turn.project_context,
            editor_content=turn.editor_content,
        )

    async def _run_stage(
        self,
        stage: Stage,
        turn: ChatTurn,
        primary_message: str,
        context: AIContext,
        state: RunState,
    ) -> str:
        """One agent call. Primary failures raise; others degrade to the fallback."""
        try:
            agent = self._registry.get(stage.agent_id)
            if stage.kind == StageKind.RESPOND:
                reply: AgentReply = await agent.respond(
                    primary_message, context.history, context
                )
            elif stage.kind == StageKind.REVIEW:
                reply = await agent.review(
                    turn.message, list(state.replies), context.history, context
                )
            else:
                reply = await agent.summarize(
                    turn.message, state.replies[0][1], list(state.replies[1:]), context
                )
        except Exception as e:
            if stage.is_primary:
                raise PrimaryAgentError(
                    stage.agent_id, f"{stage.agent_id} failed: {e}"
                ) from e
            error = SecondaryAgentError(stage.agent_id, str(e))
            state.fallbacks.append(error)
            logger.warning(
                f"[Orchestrator] {stage.agent_id} {stage.kind} failed, "
                f"using fallback: {error.message}"
            )
            return stage.fallback

        state.add_usage(reply.usage)
        return reply.content

    async def _auto_save(
        self,
        content: str,
        user_message: str,
        agent_id: str,
        context: AIContext,
        state: RunState,
    ) -> None:
        try:
            result = await self._detector.process(
                content, user_message, agent_id, context, state.conversation_id
            )
        except Exception as e:
            logger.error(f"[AutoSave] Processing {agent_id} reply failed: {e}")
            return
        for kind in result.detected:
            if kind not in state.detected_patterns:
                state.detected_patterns.append(kind)
        state.auto_saved.extend(result.saved)
