"""
Command Detector -- recognises preference commands in a chat message.

Three commands, checked in priority order list > save > delete, first match
wins, case-insensitive, English and Polish phrasings:

    "show my preferences" / "pokaż moje preferencje"   -> list
    "remember that I prefer dark mode" / "zapamiętaj że ..." -> save
    "forget about dark mode" / "zapomnij o ..."         -> delete

Anything else is a normal chat turn (kind "none").
"""

import re
from dataclasses import dataclass


class CommandKind:
    LIST = "list"
    SAVE = "save"
    DELETE = "delete"
    NONE = "none"


@dataclass(frozen=True)
class Command:
    """A detected command. captured_text is the stripped remainder (save/delete)."""

    kind: str
    captured_text: str = ""

    @property
    def is_command(self) -> bool:
        return self.kind != CommandKind.NONE


# Ordered (pattern, kind). Patterns without a capture group produce no text.
COMMAND_PATTERNS: tuple[tuple[re.Pattern, str], ...] = (
    (
        re.compile(
            r"(?:jakie|pokaż|wyświetl|pokaz|wyswietl)\s*(?:masz)?\s*(?:moje)?\s*preferencje",
            re.IGNORECASE,
        ),
        CommandKind.LIST,
    ),
    (re.compile(r"(?:show|list|what are)\s*(?:my)?\s*preferences", re.IGNORECASE), CommandKind.LIST),
    (re.compile(r"zapamiętaj\s+(?:że|ze)?\s*(.+)", re.IGNORECASE | re.DOTALL), CommandKind.SAVE),
    (re.compile(r"remember\s+(?:that)?\s*(.+)", re.IGNORECASE | re.DOTALL), CommandKind.SAVE),
    (re.compile(r"zapomnij\s+(?:o)?\s*(.+)", re.IGNORECASE | re.DOTALL), CommandKind.DELETE),
    (re.compile(r"forget\s+(?:about)?\s*(.+)", re.IGNORECASE | re.DOTALL), CommandKind.DELETE),
)

NO_COMMAND = Command(kind=CommandKind.NONE)


def detect(message: str) -> Command:
    """Classify a message as a preference command or a normal turn."""
    if not message:
        return NO_COMMAND
    for pattern, kind in COMMAND_PATTERNS:
        match = pattern.search(message)
        if match:
            captured = match.group(1).strip() if pattern.groups else ""
            return Command(kind=kind, captured_text=captured)
    return NO_COMMAND
