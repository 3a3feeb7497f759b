"""
ChatAgent -- one AI participant bound to one LLM client.

Every call is a single request/response exchange. Provider failures are
raised as AgentError; whether that ends the run or degrades to a fallback
message is the orchestrator's decision, not the agent's.

Usage:
    agent = ChatAgent("gpt", llm=create_client(provider="openai"))
    reply = await agent.review(message, [("claude", draft)], history, context)
    reply.content, reply.usage
"""

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..exceptions import AgentError, LLMCallError
from ..llm import AgentPrompt, LLMClient, TokenUsage, Turn
from ..memory.models import USER_SENDER, AIContext, ChatMessage
from . import prompts

logger = logging.getLogger(__name__)

PRIMARY_MAX_TOKENS = 4096
REVIEW_MAX_TOKENS = 2048


@dataclass
class AgentReply:
    """An agent's answer. usage is None when the provider reports nothing."""

    content: str
    usage: TokenUsage | None = None


@runtime_checkable
class ChatAgentProtocol(Protocol):
    """What the orchestrator needs from an agent."""

    @property
    def agent_id(self) -> str: ...

    async def respond(
        self, message: str, history: list[ChatMessage], context: AIContext
    ) -> AgentReply: ...

    async def review(
        self,
        message: str,
        prior_turns: list[tuple[str, str]],
        history: list[ChatMessage],
        context: AIContext,
    ) -> AgentReply: ...

    async def summarize(
        self,
        message: str,
        first_response: str,
        feedback_turns: list[tuple[str, str]],
        context: AIContext,
    ) -> AgentReply: ...


def history_to_turns(history: list[ChatMessage]) -> list[Turn]:
    """User messages stay user turns; agent messages become tagged assistant turns."""
    turns = []
    for msg in history:
        if msg.sender == USER_SENDER:
            turns.append(Turn("user", msg.content))
        else:
            turns.append(Turn("assistant", f"[{msg.sender.upper()}]: {msg.content}"))
    return turns


class ChatAgent:
    """A persona-prompted agent over an LLMClient."""

    def __init__(self, agent_id: str, llm: LLMClient, persona: str | None = None):
        self._agent_id = agent_id
        self._llm = llm
        self._persona = persona or prompts.PERSONAS.get(agent_id, "")

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def llm(self) -> LLMClient:
        return self._llm

    async def respond(
        self, message: str, history: list[ChatMessage], context: AIContext
    ) -> AgentReply:
        """First answer to the user, with the full conversation history."""
        prompt = AgentPrompt(
            system=self._persona,
            context=prompts.build_context_info(context),
            history=history_to_turns(history),
            user_message=message,
        )
        return await self._call(prompt, "respond", PRIMARY_MAX_TOKENS)

    async def review(
        self,
        message: str,
        prior_turns: list[tuple[str, str]],
        history: list[ChatMessage],
        context: AIContext,
    ) -> AgentReply:
        """Critique the answers produced so far in this run."""
        prompt = AgentPrompt(
            system=self._persona,
            context=prompts.build_context_info(context, brief=True),
            history=history_to_turns(history),
            user_message=prompts.build_review_request(message, prior_turns),
        )
        return await self._call(prompt, "review", REVIEW_MAX_TOKENS)

    async def summarize(
        self,
        message: str,
        first_response: str,
        feedback_turns: list[tuple[str, str]],
        context: AIContext,
    ) -> AgentReply:
        """Consolidate reviewer feedback into a final answer (no history)."""
        persona = prompts.FINAL_PERSONA if len(feedback_turns) > 1 else prompts.SUMMARY_PERSONA
        prompt = AgentPrompt(
            system=persona,
            context=prompts.build_context_info(context),
            user_message=prompts.build_summary_request(
                message, first_response, feedback_turns
            ),
        )
        return await self._call(prompt, "summarize", PRIMARY_MAX_TOKENS)

    async def _call(self, prompt: AgentPrompt, action: str, max_tokens: int) -> AgentReply:
        try:
            response = await self._llm.call(
                prompt, role=self._agent_id, max_tokens=max_tokens
            )
        except LLMCallError as e:
            logger.error(f"[Agent:{self._agent_id}] {action} failed: {e.message}")
            raise AgentError(self._agent_id, f"{self._agent_id} {action} failed: {e.message}") from e
        usage = response.usage if response.usage.total_tokens else None
        return AgentReply(content=response.content, usage=usage)
