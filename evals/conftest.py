"""Eval test fixtures -- scripted agents, temp SQLite store, event collection."""

import asyncio

import pytest

from conductor.agents.chat_agent import AgentReply
from conductor.agents.registry import AgentRegistry
from conductor.config import ConductorConfig
from conductor.exceptions import AgentError, PersistenceError
from conductor.llm import TokenUsage
from conductor.memory.store import SQLiteStore
from conductor.orchestration.conductor import ChatTurn, Orchestrator
from conductor.streaming.channel import EventChannel


class ScriptedAgent:
    """
    Agent that answers from a script instead of a provider.

    reply: Content returned by every call (default: "<agent_id> <action>").
    fail_on: Actions that raise AgentError ("respond", "review", "summarize").
    delay: Seconds to sleep before answering.
    """

    def __init__(self, agent_id, reply=None, fail_on=(), delay=0.0, tokens=10):
        self._agent_id = agent_id
        self._reply = reply
        self._fail_on = set(fail_on)
        self._delay = delay
        self._tokens = tokens
        self.calls = []

    @property
    def agent_id(self):
        return self._agent_id

    async def _answer(self, action, **kwargs):
        self.calls.append((action, kwargs))
        if self._delay:
            await asyncio.sleep(self._delay)
        if action in self._fail_on:
            raise AgentError(self._agent_id, f"{self._agent_id} {action} failed: provider down")
        content = self._reply if self._reply is not None else f"{self._agent_id} {action}"
        usage = TokenUsage(self._tokens, self._tokens, 2 * self._tokens) if self._tokens else None
        return AgentReply(content=content, usage=usage)

    async def respond(self, message, history, context):
        return await self._answer("respond", message=message, history=history, context=context)

    async def review(self, message, prior_turns, history, context):
        return await self._answer(
            "review", message=message, prior_turns=prior_turns, history=history, context=context
        )

    async def summarize(self, message, first_response, feedback_turns, context):
        return await self._answer(
            "summarize",
            message=message,
            first_response=first_response,
            feedback_turns=feedback_turns,
            context=context,
        )


def make_registry(*agents):
    """Registry holding the given agents; unknown ids get a default ScriptedAgent."""
    registry = AgentRegistry(factory=lambda agent_id: ScriptedAgent(agent_id))
    for agent in agents:
        registry.register(agent)
    return registry


async def run_turn(orchestrator, message, mode="solo", **kwargs):
    """Run one turn to completion and return the channel's events."""
    channel = EventChannel(heartbeat_interval=0.05)
    await orchestrator.run(ChatTurn(message=message, mode=mode, **kwargs), channel)
    return channel.history


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite store per test."""
    return SQLiteStore(tmp_path / "conductor.db")


@pytest.fixture
def config(tmp_path):
    return ConductorConfig(db_path=tmp_path / "conductor.db", run_timeout=5.0, heartbeat_interval=0.05)


@pytest.fixture
def scripted_agents():
    return {
        "claude": ScriptedAgent("claude"),
        "gpt": ScriptedAgent("gpt"),
        "gemini": ScriptedAgent("gemini"),
    }


@pytest.fixture
def orchestrator(store, config, scripted_agents):
    return Orchestrator(store, make_registry(*scripted_agents.values()), config)


class BrokenStore(SQLiteStore):
    """Store whose conversation writes fail."""

    async def create_conversation(self, title, mode, project_id=None):
        raise PersistenceError("Could not create conversation: disk I/O error")


class FailingRecordStore(SQLiteStore):
    """Store whose decision writes blow up (others work)."""

    async def save_decision(self, record):
        raise RuntimeError("decisions table locked")


@pytest.fixture
def broken_store(tmp_path):
    return BrokenStore(tmp_path / "broken.db")


@pytest.fixture
def failing_record_store(tmp_path):
    return FailingRecordStore(tmp_path / "records.db")
