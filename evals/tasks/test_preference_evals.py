"""
Preference Evals -- command detection, extraction, command handling.

CODE-BASED graders: deterministic regex rules, temp SQLite store.
"""

import pytest

from conductor.memory.models import Preference
from conductor.preferences.commands import Command, CommandKind, detect
from conductor.preferences.extractor import extract, normalize_key
from conductor.preferences.handler import (
    EMPTY_LIST_HELP,
    SAVE_HELP,
    PreferenceCommandHandler,
    find_preference,
    format_preference_list,
)


class TestCommandDetection:
    """Eval: Are list/save/delete recognised in both languages?"""

    LIST_MESSAGES = [
        "show my preferences",
        "What are my preferences?",
        "list preferences",
        "pokaż moje preferencje",
        "jakie masz preferencje?",
    ]

    def test_list_commands(self):
        for message in self.LIST_MESSAGES:
            assert detect(message).kind == CommandKind.LIST, message

    def test_save_command_captures_text(self):
        command = detect("Remember that I prefer tabs over spaces")
        assert command == Command(CommandKind.SAVE, "I prefer tabs over spaces")

    def test_polish_save(self):
        command = detect("zapamiętaj że używam Vue")
        assert command.kind == CommandKind.SAVE
        assert command.captured_text == "używam Vue"

    def test_delete_commands(self):
        assert detect("forget about dark mode") == Command(CommandKind.DELETE, "dark mode")
        assert detect("zapomnij o tabach") == Command(CommandKind.DELETE, "tabach")

    def test_list_wins_over_save(self):
        assert detect("remember to show my preferences").kind == CommandKind.LIST

    def test_normal_message_is_not_a_command(self):
        for message in ["Build me a login form", "", "How do I prefer-load images?"]:
            command = detect(message)
            assert command.kind == CommandKind.NONE
            assert not command.is_command


class TestPreferenceExtraction:
    """Eval: Does free text map to the right (category, key, value)?"""

    CASES = [
        ("my name is Piotr", ("personal", "name", "Piotr")),
        ("mam na imię Anna", ("personal", "name", "Anna")),
        ("I prefer dark mode", ("general", "prefers", "dark mode")),
        ("I use React and TypeScript", ("general", "prefers", "React and TypeScript")),
        ("my favorite editor is vim", ("general", "editor", "vim")),
        ("preferuję tabulatory", ("general", "preferuje", "tabulatory")),
        ("używam PostgreSQL", ("tech", "używa", "PostgreSQL")),
        ("mój ulubiony kolor to zielony", ("general", "kolor", "zielony")),
        ("odpowiadaj mi po polsku", ("communication", "język_odpowiedzi", "polsku")),
        ("answer me in English", ("communication", "response_language", "English")),
    ]

    def test_rule_table(self):
        for text, expected in self.CASES:
            pref = extract(text)
            assert (pref.category, pref.key, pref.value) == expected, text

    def test_fallback_uses_first_three_words(self):
        pref = extract("Short functions are Better always")
        assert pref.category == "general"
        assert pref.key == "short_functions_are"
        assert pref.value == "Short functions are Better always"

    def test_normalize_key(self):
        assert normalize_key("  Favorite   Color ") == "favorite_color"


class TestPreferenceHandler:
    """Eval: Do commands read and write the store correctly?"""

    def test_empty_list_shows_help(self):
        assert format_preference_list([]) == EMPTY_LIST_HELP

    def test_list_groups_by_category(self):
        text = format_preference_list([
            Preference("tech", "używa", "Vue"),
            Preference("personal", "name", "Piotr"),
            Preference("tech", "db", "Postgres"),
        ])
        tech_at = text.index("Technology")
        assert text.index("używa: Vue") > tech_at
        assert text.index("db: Postgres") > tech_at
        assert "name: Piotr" in text

    def test_find_by_key_then_value(self):
        prefs = [
            Preference("general", "prefers", "dark mode"),
            Preference("personal", "name", "Piotr"),
        ]
        assert find_preference(prefs, "name").key == "name"
        assert find_preference(prefs, "Dark Mode").key == "prefers"
        assert find_preference(prefs, "tabs") is None

    @pytest.mark.asyncio
    async def test_save_upserts(self, store):
        handler = PreferenceCommandHandler(store)
        reply = await handler.handle(Command(CommandKind.SAVE, "my name is Piotr"), [])
        assert "**name**: Piotr" in reply
        prefs = await store.get_preferences()
        assert [(p.category, p.key, p.value) for p in prefs] == [("personal", "name", "Piotr")]

    @pytest.mark.asyncio
    async def test_save_without_text_asks_again(self, store):
        handler = PreferenceCommandHandler(store)
        assert await handler.handle(Command(CommandKind.SAVE, ""), []) == SAVE_HELP
        assert await store.get_preferences() == []

    @pytest.mark.asyncio
    async def test_delete_not_found(self, store):
        handler = PreferenceCommandHandler(store)
        reply = await handler.handle(Command(CommandKind.DELETE, "tabs"), [])
        assert "not found" in reply

    @pytest.mark.asyncio
    async def test_delete_by_value(self, store):
        await store.upsert_preference("general", "prefers", "dark mode")
        handler = PreferenceCommandHandler(store)
        prefs = await store.get_preferences()
        reply = await handler.handle(Command(CommandKind.DELETE, "dark mode"), prefs)
        assert "prefers" in reply
        assert await store.get_preferences() == []

    @pytest.mark.asyncio
    async def test_non_command_rejected(self, store):
        with pytest.raises(ValueError):
            await PreferenceCommandHandler(store).handle(Command(CommandKind.NONE), [])
