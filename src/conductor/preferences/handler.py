"""
Preference command handler -- executes a detected command and renders the reply.

The reply is plain markdown sent back as a message from the primary agent;
no LLM is involved. Storage write failures propagate as PersistenceError so
the run ends with an error event, but a delete that matches nothing is a
normal "not found" reply.
"""

import logging
from collections import defaultdict

from ..memory.models import Preference
from ..memory.store import PersistenceGateway
from .commands import Command, CommandKind
from .extractor import extract, normalize_key

logger = logging.getLogger(__name__)

CATEGORY_LABELS = {
    "general": "🎯 General",
    "tech": "💻 Technology",
    "work": "💼 Work",
    "communication": "💬 Communication",
    "ui": "🎨 Interface",
    "personal": "👤 Personal",
}

EMPTY_LIST_HELP = (
    "📋 I don't have any saved preferences yet.\n\n"
    "You can tell me for example:\n"
    '- "Remember that I prefer dark mode"\n'
    '- "Remember that I use React and TypeScript"\n'
    '- "Remember to answer me in English"'
)
SAVE_HELP = '❓ I did not understand what to remember. Try "Remember that I prefer dark mode".'
DELETE_HELP = '❓ I did not understand what to forget. Try "Forget about dark mode".'


def format_preference_list(preferences: list[Preference]) -> str:
    """Group preferences by category, in order of first appearance."""
    if not preferences:
        return EMPTY_LIST_HELP

    grouped: dict[str, list[Preference]] = defaultdict(list)
    for pref in preferences:
        grouped[pref.category].append(pref)

    lines = ["📋 **Your saved preferences:**", ""]
    for category, prefs in grouped.items():
        lines.append(f"{CATEGORY_LABELS.get(category, f'📁 {category}')}:")
        lines.extend(f"  • {p.key}: {p.value}" for p in prefs)
        lines.append("")
    lines.append('💡 Say "forget about [name]" to remove a preference.')
    return "\n".join(lines)


def find_preference(preferences: list[Preference], text: str) -> Preference | None:
    """
    Exact key match on the normalised text first, then the first preference
    whose key contains it or whose value contains the raw text.
    """
    wanted_key = normalize_key(text)
    wanted_value = text.strip().lower()
    for pref in preferences:
        if pref.key == wanted_key:
            return pref
    for pref in preferences:
        if wanted_key in pref.key or wanted_value in pref.value.lower():
            return pref
    return None


class PreferenceCommandHandler:
    """Runs list/save/delete against the gateway."""

    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway

    async def handle(self, command: Command, preferences: list[Preference]) -> str:
        """Execute the command; preferences is the snapshot loaded for this run."""
        if command.kind == CommandKind.LIST:
            return format_preference_list(preferences)
        if command.kind == CommandKind.SAVE:
            return await self._save(command.captured_text)
        if command.kind == CommandKind.DELETE:
            return await self._delete(command.captured_text, preferences)
        raise ValueError(f"Not a preference command: {command.kind}")

    async def _save(self, text: str) -> str:
        if not text:
            return SAVE_HELP
        pref = extract(text)
        await self._gateway.upsert_preference(pref.category, pref.key, pref.value)
        logger.info(f"[Preferences] Saved {pref.key} ({pref.category})")
        return (
            f"✅ Got it!\n\n**{pref.key}**: {pref.value}\n\n"
            f"I'll keep this in mind in future conversations."
        )

    async def _delete(self, text: str, preferences: list[Preference]) -> str:
        if not text:
            return DELETE_HELP
        match = find_preference(preferences, text)
        if match is None:
            logger.info(f"[Preferences] No preference matches '{text}'")
            return (
                f'❓ I could not find a preference matching "{text}" (not found).\n\n'
                f'Say "show my preferences" to see the list.'
            )
        await self._gateway.delete_preference(match.key)
        logger.info(f"[Preferences] Deleted {match.key}")
        return f"🗑️ Removed preference:\n\n**{match.key}**: {match.value}"
