"""
Preference Extractor -- turns free text into a (category, key, value) triple.

    extract("my name is Piotr")      -> personal / name / Piotr
    extract("I prefer dark mode")    -> general / prefers / dark mode
    extract("my favorite editor is vim") -> general / editor / vim

Rules are tried in order and the first match wins. Single-capture rules use
a fixed key; two-capture rules derive the key from the first capture. When
nothing matches, the first three words become the key and the whole text the
value. Pure and total: never raises.

Keep this file under 150 lines.
"""

import re
from dataclasses import dataclass

DEFAULT_CATEGORY = "general"


@dataclass(frozen=True)
class ExtractedPreference:
    category: str
    key: str
    value: str


@dataclass(frozen=True)
class PreferenceRule:
    """One extraction rule. key is ignored when the pattern has two captures."""

    pattern: re.Pattern
    category: str
    key: str


def _rule(regex: str, category: str, key: str) -> PreferenceRule:
    return PreferenceRule(re.compile(regex, re.IGNORECASE | re.DOTALL), category, key)


PREFERENCE_RULES: tuple[PreferenceRule, ...] = (
    _rule(r"\b(?:my name is|mam na imię|nazywam się)\s+(.+)", "personal", "name"),
    _rule(r"\bpreferuj[ęe]\s+(.+)", "general", "preferuje"),
    _rule(r"\blubi[ęe]\s+(.+)", "general", "lubi"),
    _rule(r"\bużywam\s+(.+)", "tech", "używa"),
    _rule(r"\bpracuję?\s+(?:w|z|nad)?\s*(.+)", "work", "pracuje_z"),
    _rule(r"\bmój\s+(?:ulubiony|preferowany)?\s*(.+?)\s+to\s+(.+)", "general", "ulubiony"),
    _rule(r"\bodpowiadaj\s+(?:mi\s+)?(?:po\s+)?(.+)", "communication", "język_odpowiedzi"),
    _rule(r"\bmy\s+(?:preferred|favorite|favourite)?\s*(.+?)\s+is\s+(.+)", "general", "favorite"),
    _rule(r"\bi\s+(?:prefer|like|use)\s+(.+)", "general", "prefers"),
    _rule(r"\b(?:answer|respond|reply)\s+(?:to\s+)?(?:me\s+)?in\s+(.+)", "communication", "response_language"),
)


def normalize_key(text: str) -> str:
    """Lower-case and join whitespace runs with underscores."""
    return re.sub(r"\s+", "_", text.strip().lower())


def extract(text: str) -> ExtractedPreference:
    """Extract a preference triple from the captured command text."""
    text = (text or "").strip()
    for rule in PREFERENCE_RULES:
        match = rule.pattern.search(text)
        if not match:
            continue
        if rule.pattern.groups >= 2:
            return ExtractedPreference(
                category=rule.category,
                key=normalize_key(match.group(1)),
                value=match.group(2).strip(),
            )
        return ExtractedPreference(
            category=rule.category, key=rule.key, value=match.group(1).strip()
        )

    words = text.split()
    return ExtractedPreference(
        category=DEFAULT_CATEGORY,
        key="_".join(words[:3]).lower(),
        value=text,
    )
