"""
Auto-save Evals -- pattern detection, record extraction, persistence isolation.

CODE-BASED graders: pure regex extraction plus a temp SQLite store.
"""

import pytest

from conductor.autosave.detector import AutoSaveDetector
from conductor.autosave.patterns import (
    DEFAULT_REASON,
    bug_severity,
    detect,
    extract,
    feedback_type,
    rule_category,
    scan_tech,
)
from conductor.memory.models import AIContext, PatternKind, Project

DECISION_AND_BUG = (
    "Decision: use PostgreSQL for persistence because we need transactions.\n"
    "Bug: the login form crashes when the password is empty.\n"
    "Fix: validate the field before submitting.\n"
)


class TestDetection:
    """Eval: Are knowledge kinds detected, and only those present?"""

    def test_decision_and_bug(self):
        kinds = detect(DECISION_AND_BUG)
        assert {PatternKind.DECISION, PatternKind.BUG, PatternKind.TECH} <= kinds

    def test_plain_text_detects_nothing(self):
        assert detect("Sounds good, thanks for the summary!") == set()
        assert detect("") == set()

    def test_rule_detection(self):
        assert PatternKind.RULE in detect("Rule: always use type hints in services")
        assert PatternKind.RULE in detect("We should never commit secrets to the repo.")

    def test_prompt_detection(self):
        text = "Here is the prompt for Claude Code:\n```\nRefactor the auth module\n```"
        assert PatternKind.PROMPT in detect(text)

    def test_tech_is_case_sensitive_for_common_words(self):
        assert scan_tech("This is a rust colored button and we express it in jest") == []
        names = [t.name for t in scan_tech("We use React with Vite and Rust")]
        assert names == ["React", "Rust", "Vite"]

    def test_tech_versions_and_aliases(self):
        items = {t.name: t for t in scan_tech("Upgrade to Next.js 14.2 on postgres and tailwind")}
        assert items["Next.js"].version == "14.2"
        assert items["PostgreSQL"].category == "database"
        assert "Tailwind CSS" in items


class TestExtraction:
    """Eval: Do extracted records carry the right fields?"""

    def test_decision_fields(self):
        [decision] = extract(PatternKind.DECISION, DECISION_AND_BUG)
        assert decision.title == "use PostgreSQL for persistence"
        assert decision.reason == "we need transactions"

    def test_decision_fallback(self):
        [decision] = extract(PatternKind.DECISION, "We decided. More later")
        assert decision.title == "Decision"
        assert decision.reason == DEFAULT_REASON

    def test_bug_fields(self):
        text = "Bug: token refresh loops forever in src/auth/session.py:42\nFix: reset the timer"
        [bug] = extract(PatternKind.BUG, text)
        assert bug.description.startswith("token refresh loops forever")
        assert bug.solution == "reset the timer"
        assert bug.file_path == "src/auth/session.py"
        assert bug.line_number == 42

    def test_bug_severity(self):
        assert bug_severity("security hole in auth") == "critical"
        assert bug_severity("app crashes on start") == "high"
        assert bug_severity("minor typo in footer") == "low"
        assert bug_severity("wrong label") == "medium"

    def test_rules_deduplicated_and_categorised(self):
        text = "Rule: always write tests for services\nRule: always write tests for services\nRule: use snake_case names"
        rules = extract(PatternKind.RULE, text)
        assert [r.rule for r in rules] == ["always write tests for services", "use snake_case names"]
        assert rules[0].category == "testing"
        assert rule_category("use snake_case names") == "naming"

    def test_prompt_extracted_from_fence(self):
        text = "Here is the prompt for Codex:\n```text\nAdd pagination to /users\n```"
        [prompt] = extract(PatternKind.PROMPT, text, user_message="Write a prompt for pagination")
        assert prompt.content == "Add pagination to /users"
        assert prompt.llm_target == "codex"
        assert prompt.name.startswith("Prompt: Write a prompt")
        assert "auto-saved" in prompt.tags

    def test_feedback_gets_reviewer_and_conversation(self):
        text = "I suggest adding aria labels to the icon buttons."
        [feedback] = extract(
            PatternKind.FEEDBACK, text, agent_id="gemini", conversation_id="c1", project_id="p1"
        )
        assert feedback.reviewer == "gemini"
        assert feedback.conversation_id == "c1"
        assert feedback.project_id == "p1"
        assert feedback.feedback_type == "a11y"
        assert feedback_type("this will be slow without caching") == "optimization"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            extract("poem", "text")


class TestAutoSaveDetector:
    """Eval: Are records persisted with failures isolated per record?"""

    @pytest.mark.asyncio
    async def test_saves_distinct_kinds(self, store):
        result = await AutoSaveDetector(store).process(DECISION_AND_BUG, "Which DB?", "claude")
        saved_types = [ref.type for ref in result.saved]
        assert "decision" in saved_types
        assert "bug" in saved_types
        assert await store.count_records("decisions") == 1
        assert await store.count_records("bugs_history") == 1

    @pytest.mark.asyncio
    async def test_order_follows_kind_order(self, store):
        result = await AutoSaveDetector(store).process(DECISION_AND_BUG, "", "claude")
        order = [k for k in PatternKind.ALL if k in result.detected]
        assert result.detected == order

    @pytest.mark.asyncio
    async def test_duplicate_tech_and_rules_skipped(self, store):
        detector = AutoSaveDetector(store)
        text = "Rule: never store passwords in plain text. We use Redis."
        first = await detector.process(text, "", "claude")
        second = await detector.process(text, "", "claude")
        assert {ref.type for ref in first.saved} == {"rule", "tech"}
        assert second.saved == []
        assert PatternKind.RULE in second.detected
        assert await store.count_records("tech_stack") == 1
        assert await store.count_records("project_rules") == 1

    @pytest.mark.asyncio
    async def test_project_id_stamped(self, store):
        context = AIContext(project=Project(id="shop", name="Shop"))
        result = await AutoSaveDetector(store).process(
            "Decision: use Django because the team knows it.", "", "claude", context
        )
        assert result.saved
        assert all(ref.id for ref in result.saved)

    @pytest.mark.asyncio
    async def test_one_failing_kind_does_not_block_others(self, failing_record_store):
        result = await AutoSaveDetector(failing_record_store).process(
            DECISION_AND_BUG, "", "claude"
        )
        saved_types = {ref.type for ref in result.saved}
        assert "decision" in result.detected
        assert "decision" not in saved_types
        assert "bug" in saved_types
