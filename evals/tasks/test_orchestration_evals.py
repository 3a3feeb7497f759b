"""
Orchestration Evals -- stage order, failure scope, commands, metadata.

CODE-BASED graders: scripted agents, real SQLite store in a temp dir.
"""

import asyncio

import pytest

from conductor.config import ConductorConfig
from conductor.memory.models import PatternKind
from conductor.orchestration.conductor import (
    GENERATE_SUFFIX,
    Action,
    ChatTurn,
    Orchestrator,
    classify_action,
    conversation_title,
)
from conductor.orchestration.stages import (
    DESIGN_FALLBACK,
    REVIEW_FALLBACK,
    SUMMARY_FALLBACK,
    participants,
    plan_for,
)
from conductor.streaming.channel import EventChannel
from conductor.streaming.events import EventType
from evals.conftest import ScriptedAgent, make_registry, run_turn


def _types(events):
    return [e.type for e in events]


def _messages(events):
    return [(e.payload["sender"], e.payload["content"]) for e in events if e.type == EventType.MESSAGE]


class TestStagePlans:
    """Eval: Does each mode run the right agents in the right order?"""

    def test_participants_per_mode(self):
        assert participants("solo") == ["claude"]
        assert participants("duo") == ["claude", "gpt"]
        assert participants("team") == ["claude", "gpt", "gemini"]

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            plan_for("quartet")

    def test_only_first_stage_is_primary(self):
        for mode in ("solo", "duo", "team"):
            stages = plan_for(mode)
            assert stages[0].is_primary
            assert all(not s.is_primary for s in stages[1:])

    @pytest.mark.asyncio
    async def test_solo_run(self, orchestrator):
        events = await run_turn(orchestrator, "Hello there", mode="solo")
        assert _types(events) == [
            EventType.CONVERSATION_ID,
            EventType.TYPING,
            EventType.MESSAGE,
            EventType.DONE,
        ]
        assert _messages(events) == [("claude", "claude respond")]

    @pytest.mark.asyncio
    async def test_duo_run(self, orchestrator):
        events = await run_turn(orchestrator, "Review my plan", mode="duo")
        assert [s for s, _ in _messages(events)] == ["claude", "gpt", "claude"]
        assert events[-1].type == EventType.DONE

    @pytest.mark.asyncio
    async def test_team_run_order(self, orchestrator):
        events = await run_turn(orchestrator, "Build a todo app", mode="team")
        senders = [e.payload["sender"] for e in events if e.type == EventType.MESSAGE]
        assert senders == ["claude", "gpt", "gemini", "claude"]
        typing = [e.payload["sender"] for e in events if e.type == EventType.TYPING]
        assert typing == senders

    @pytest.mark.asyncio
    async def test_typing_precedes_each_message(self, orchestrator):
        events = await run_turn(orchestrator, "Build a todo app", mode="team")
        body = events[1:-1]
        for typing, message in zip(body[::2], body[1::2]):
            assert typing.type == EventType.TYPING
            assert message.type == EventType.MESSAGE
            assert typing.payload["sender"] == message.payload["sender"]

    @pytest.mark.asyncio
    async def test_reviewers_see_prior_turns(self, orchestrator, scripted_agents):
        await run_turn(orchestrator, "Build a todo app", mode="team")
        gemini_call = scripted_agents["gemini"].calls[0]
        assert gemini_call[0] == "review"
        assert gemini_call[1]["prior_turns"] == [
            ("claude", "claude respond"),
            ("gpt", "gpt review"),
        ]
        summary = [c for c in scripted_agents["claude"].calls if c[0] == "summarize"][0]
        assert summary[1]["first_response"] == "claude respond"
        assert [s for s, _ in summary[1]["feedback_turns"]] == ["gpt", "gemini"]


class TestFailureScope:
    """Eval: Do agent failures end or degrade the run as intended?"""

    @pytest.mark.asyncio
    async def test_reviewer_failure_uses_fallback(self, store, config):
        registry = make_registry(ScriptedAgent("gpt", fail_on={"review"}))
        orchestrator = Orchestrator(store, registry, config)
        events = await run_turn(orchestrator, "Build a todo app", mode="team")
        messages = _messages(events)
        assert [s for s, _ in messages] == ["claude", "gpt", "gemini", "claude"]
        assert messages[1] == ("gpt", REVIEW_FALLBACK)
        assert events[-1].type == EventType.DONE
        assert events[-1].payload["metadata"]["fallbacks"] == ["gpt"]

    @pytest.mark.asyncio
    async def test_designer_and_summary_fallbacks(self, store, config):
        registry = make_registry(
            ScriptedAgent("claude", fail_on={"summarize"}),
            ScriptedAgent("gemini", fail_on={"review"}),
        )
        orchestrator = Orchestrator(store, registry, config)
        events = await run_turn(orchestrator, "Build a todo app", mode="team")
        messages = _messages(events)
        assert messages[2] == ("gemini", DESIGN_FALLBACK)
        assert messages[3][0] == "claude"
        assert "final version" in messages[3][1]
        assert events[-1].type == EventType.DONE

    @pytest.mark.asyncio
    async def test_duo_summary_fallback(self, store, config):
        registry = make_registry(ScriptedAgent("claude", fail_on={"summarize"}))
        orchestrator = Orchestrator(store, registry, config)
        events = await run_turn(orchestrator, "Review this", mode="duo")
        assert _messages(events)[-1] == ("claude", SUMMARY_FALLBACK)

    @pytest.mark.asyncio
    async def test_primary_failure_is_terminal(self, store, config, scripted_agents):
        claude = ScriptedAgent("claude", fail_on={"respond"})
        orchestrator = Orchestrator(store, make_registry(claude, scripted_agents["gpt"]), config)
        events = await run_turn(orchestrator, "Build a todo app", mode="team")
        assert _types(events) == [EventType.CONVERSATION_ID, EventType.TYPING, EventType.ERROR]
        assert "claude" in events[-1].payload["error"]
        assert scripted_agents["gpt"].calls == []

    @pytest.mark.asyncio
    async def test_timeout_is_terminal(self, store, tmp_path):
        config = ConductorConfig(db_path=tmp_path / "conductor.db", run_timeout=0.1)
        registry = make_registry(ScriptedAgent("claude", delay=2.0))
        orchestrator = Orchestrator(store, registry, config)
        events = await run_turn(orchestrator, "Slow one", mode="solo")
        assert events[-1].type == EventType.ERROR
        assert "budget" in events[-1].payload["error"]
        assert EventType.MESSAGE not in _types(events)

    @pytest.mark.asyncio
    async def test_conversation_write_failure_is_terminal(self, broken_store, config):
        orchestrator = Orchestrator(broken_store, make_registry(), config)
        events = await run_turn(orchestrator, "Hello", mode="solo")
        assert _types(events) == [EventType.ERROR]
        assert "conversation" in events[0].payload["error"]

    @pytest.mark.asyncio
    async def test_unknown_conversation_id_is_terminal(self, orchestrator):
        events = await run_turn(orchestrator, "Hello", mode="solo", conversation_id="missing-1")
        assert _types(events) == [EventType.ERROR]

    @pytest.mark.asyncio
    async def test_exactly_one_terminal_event(self, store, config):
        registry = make_registry(ScriptedAgent("gpt", fail_on={"review"}))
        orchestrator = Orchestrator(store, registry, config)
        events = await run_turn(orchestrator, "Build it", mode="team")
        terminal = [e for e in events if e.is_terminal]
        assert len(terminal) == 1
        assert events[-1] is terminal[0]

    @pytest.mark.asyncio
    async def test_run_finishes_after_consumer_leaves(self, store, config):
        registry = make_registry(
            *(ScriptedAgent(agent_id, delay=0.01) for agent_id in ("claude", "gpt", "gemini"))
        )
        orchestrator = Orchestrator(store, registry, config)
        channel = EventChannel(heartbeat_interval=5)
        task = asyncio.create_task(
            orchestrator.run(ChatTurn(message="Build a todo app", mode="team"), channel)
        )

        frames = channel.frames()
        await frames.__anext__()
        await frames.aclose()
        await task

        assert channel.disconnected
        assert _types(channel.history) == [EventType.CONVERSATION_ID]
        conversation_id = channel.history[0].payload["id"]
        messages = await store.get_messages(conversation_id)
        assert [m.sender for m in messages] == ["user", "claude", "gpt", "gemini", "claude"]


class TestPreferenceCommands:
    """Eval: Are preference commands answered without calling agents?"""

    @pytest.mark.asyncio
    async def test_save_command(self, orchestrator, store, scripted_agents):
        events = await run_turn(orchestrator, "Remember that I prefer dark mode", mode="team")
        assert _types(events) == [EventType.CONVERSATION_ID, EventType.MESSAGE, EventType.DONE]
        sender, content = _messages(events)[0]
        assert sender == "claude"
        assert "dark mode" in content
        assert events[-1].payload["metadata"]["action"] == "preferences_save"
        assert all(agent.calls == [] for agent in scripted_agents.values())

        prefs = await store.get_preferences()
        assert [(p.category, p.key, p.value) for p in prefs] == [("general", "prefers", "dark mode")]

    @pytest.mark.asyncio
    async def test_save_twice_keeps_one_record(self, orchestrator, store):
        await run_turn(orchestrator, "remember that I prefer dark mode")
        await run_turn(orchestrator, "remember that I prefer light mode")
        prefs = await store.get_preferences()
        assert len(prefs) == 1
        assert prefs[0].value == "light mode"

    @pytest.mark.asyncio
    async def test_list_after_save(self, orchestrator):
        await run_turn(orchestrator, "remember that my name is Piotr")
        events = await run_turn(orchestrator, "show my preferences")
        content = _messages(events)[0][1]
        assert "name: Piotr" in content
        assert events[-1].payload["metadata"]["action"] == "preferences_list"

    @pytest.mark.asyncio
    async def test_delete_missing_key(self, orchestrator):
        events = await run_turn(orchestrator, "forget about tabs")
        assert "not found" in _messages(events)[0][1]
        assert events[-1].type == EventType.DONE

    @pytest.mark.asyncio
    async def test_delete_existing(self, orchestrator, store):
        await run_turn(orchestrator, "remember that I prefer dark mode")
        events = await run_turn(orchestrator, "forget about dark mode")
        assert "Removed" in _messages(events)[0][1]
        assert await store.get_preferences() == []

    @pytest.mark.asyncio
    async def test_command_reply_is_persisted(self, orchestrator, store):
        events = await run_turn(orchestrator, "show my preferences")
        conversation_id = events[0].payload["id"]
        messages = await store.get_messages(conversation_id)
        assert [m.sender for m in messages] == ["user", "claude"]


class TestRunBehaviour:
    """Eval: Actions, history, persistence and done metadata."""

    def test_classify_action(self):
        assert classify_action("OK robimy, start!") == Action.GENERATE
        assert classify_action("Let's go with the plan") == Action.GENERATE
        assert classify_action("What do you think about Redux?") == Action.DISCUSS

    def test_conversation_title_truncated(self):
        assert conversation_title("short") == "short"
        long_title = conversation_title("x" * 80)
        assert long_title == "x" * 50 + "..."

    @pytest.mark.asyncio
    async def test_generate_suffix_only_for_primary(self, orchestrator, scripted_agents):
        events = await run_turn(orchestrator, "generate code for the login form", mode="duo")
        claude_msg = scripted_agents["claude"].calls[0][1]["message"]
        assert claude_msg.endswith(GENERATE_SUFFIX)
        assert GENERATE_SUFFIX not in scripted_agents["gpt"].calls[0][1]["message"]
        assert events[-1].payload["metadata"]["action"] == Action.GENERATE

    @pytest.mark.asyncio
    async def test_messages_persisted_in_order(self, orchestrator, store):
        events = await run_turn(orchestrator, "Build a todo app", mode="team")
        conversation_id = events[0].payload["id"]
        messages = await store.get_messages(conversation_id)
        assert [m.sender for m in messages] == ["user", "claude", "gpt", "gemini", "claude"]

    @pytest.mark.asyncio
    async def test_history_excludes_current_message(self, orchestrator, scripted_agents):
        first = await run_turn(orchestrator, "First question", mode="solo")
        conversation_id = first[0].payload["id"]
        await run_turn(orchestrator, "Second question", mode="solo", conversation_id=conversation_id)

        history = scripted_agents["claude"].calls[1][1]["history"]
        assert [(m.sender, m.content) for m in history] == [
            ("user", "First question"),
            ("claude", "claude respond"),
        ]

    @pytest.mark.asyncio
    async def test_continuing_reuses_conversation(self, orchestrator, store):
        first = await run_turn(orchestrator, "One", mode="solo")
        conversation_id = first[0].payload["id"]
        second = await run_turn(orchestrator, "Two", mode="solo", conversation_id=conversation_id)
        assert second[0].payload["id"] == conversation_id
        assert len(await store.list_conversations()) == 1

    @pytest.mark.asyncio
    async def test_done_metadata(self, orchestrator):
        events = await run_turn(orchestrator, "Build a todo app", mode="team")
        meta = events[-1].payload["metadata"]
        assert meta["mode"] == "team"
        assert meta["action"] == Action.DISCUSS
        assert meta["tokens"] == {"input": 40, "output": 40, "total": 80}
        assert meta["fallbacks"] == []
        assert meta["duration_seconds"] >= 0

    @pytest.mark.asyncio
    async def test_tokens_none_without_usage(self, store, config):
        registry = make_registry(ScriptedAgent("claude", tokens=0))
        orchestrator = Orchestrator(store, registry, config)
        events = await run_turn(orchestrator, "Hi", mode="solo")
        assert events[-1].payload["metadata"]["tokens"] is None

    @pytest.mark.asyncio
    async def test_auto_save_reported_in_metadata(self, store, config):
        reply = "Decision: use PostgreSQL for storage because it handles JSON well."
        registry = make_registry(ScriptedAgent("claude", reply=reply))
        orchestrator = Orchestrator(store, registry, config)
        events = await run_turn(orchestrator, "Which database?", mode="solo")
        meta = events[-1].payload["metadata"]
        assert PatternKind.DECISION in meta["detected_patterns"]
        assert PatternKind.TECH in meta["detected_patterns"]
        saved_types = {ref["type"] for ref in meta["auto_saved"]}
        assert {"decision", "tech"} <= saved_types
        assert await store.count_records("decisions") == 1

    @pytest.mark.asyncio
    async def test_auto_save_failure_does_not_break_run(self, failing_record_store, config):
        reply = "Decision: use Redis for caching because it is fast."
        registry = make_registry(ScriptedAgent("claude", reply=reply))
        orchestrator = Orchestrator(failing_record_store, registry, config)
        events = await run_turn(orchestrator, "Caching?", mode="solo")
        assert events[-1].type == EventType.DONE
        saved_types = {ref["type"] for ref in events[-1].payload["metadata"]["auto_saved"]}
        assert "decision" not in saved_types
        assert "tech" in saved_types
