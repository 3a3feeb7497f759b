"""
Auto-save patterns -- pure detection and extraction of knowledge records.

    detect(text) -> {"decision", "bug", ...}
    extract(kind, text, user_message, ...) -> [Decision(...), ...]

Six independent kinds, each with a presence test and an ordered table of
sub-patterns (first match wins). A detected kind always yields at least one
candidate: when no sub-pattern matches, a generic record is built from the
first 500 characters of the text. "tech" is the exception, it scans a fixed
vocabulary over the user message plus the agent text and may yield several
records, or none.

Nothing here touches storage; see detector.py for persistence.

Keep this file under 500 lines.
"""

import re
from typing import Callable

from ..memory.models import (
    AutoSaveRecord,
    Bug,
    Decision,
    PatternKind,
    ProjectRule,
    Prompt,
    ReviewFeedback,
    TechItem,
)

FALLBACK_CHARS = 500
TITLE_CHARS = 100
MAX_RULES_PER_TEXT = 5

_LABEL = r"^\s*(?:[-*•]\s*)?\**(?:{words})\**\s*:\s*\**"


def _labelled_line(words: str, group: str) -> re.Pattern:
    """Matches a "Label: text" line, optionally bulleted or bold."""
    return re.compile(_LABEL.format(words=words) + rf"(?P<{group}>[^\n]+)$", re.I | re.M)


def _clean(value: str, limit: int = FALLBACK_CHARS) -> str:
    value = re.sub(r"\s+", " ", value.strip().strip("*`_").strip())
    return value[:limit]


def _first(patterns: tuple[re.Pattern, ...], text: str) -> re.Match | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match
    return None


# =============================================================================
# PRESENCE TESTS
# =============================================================================

DETECTORS: dict[str, re.Pattern] = {
    PatternKind.DECISION: re.compile(
        r"\b(?:decision|decided|decide to|we(?:'ll| will| should) (?:go with|use)|"
        r"let's go with|i recommend|opted for|decyzja|zdecydowa\w*|wybieramy|"
        r"wybrałem|rekomenduję)\b",
        re.I,
    ),
    PatternKind.BUG: re.compile(
        r"\b(?:bugs?|fix|fixed|fixes|crash\w*|exception|traceback|regression|broken|"
        r"błąd\w*|naprawi\w*|poprawk\w*)\b",
        re.I,
    ),
    PatternKind.PROMPT: re.compile(
        r"(?:```prompt|\bprompt (?:for|dla)\b|\bhere(?:'s| is) (?:a|the|your) prompt\b|"
        r"\bgotowy prompt\b)",
        re.I,
    ),
    PatternKind.RULE: re.compile(
        _LABEL.format(words="rule|zasada|convention|konwencja")
        + r"|\b(?:always|never|zawsze|nigdy)\s+(?:use|write|run|keep|add|put|validate|"
        r"name|call|commit|store|używaj|pisz|dodawaj|uruchamiaj|trzymaj|nazywaj)\b",
        re.I | re.M,
    ),
    PatternKind.FEEDBACK: re.compile(
        r"\b(?:suggest\w*|consider|edge cases?|improve\w*|optimi[sz]\w*|accessibility|"
        r"a11y|sugestia|sugeruję|proponuję|warto)\b",
        re.I,
    ),
}


def detect(text: str) -> set[str]:
    """Return every pattern kind present in text."""
    if not text:
        return set()
    kinds = {kind for kind, pattern in DETECTORS.items() if pattern.search(text)}
    if scan_tech(text):
        kinds.add(PatternKind.TECH)
    return kinds


# =============================================================================
# DECISION
# =============================================================================

DECISION_PATTERNS = (
    _labelled_line("decision|decyzja", "title"),
    re.compile(
        r"\b(?:we(?:'ll| will| should) (?:go with|use)|let's go with|i recommend(?: using)?|"
        r"(?:we |i )?decided to(?: use| go with)?|opted for)\s+(?P<title>[^.\n]+)",
        re.I,
    ),
    re.compile(
        r"\b(?:zdecydowa\w*(?:\s+się)?(?:\s+na|\s+użyć)?|wybieramy|wybrałem|rekomenduję)"
        r"\s+(?P<title>[^.\n]+)",
        re.I,
    ),
)
REASON_RE = re.compile(r"[,;]?\s*\b(?:because|since|as it|bo|ponieważ)\s+(?P<reason>[^.\n]+)", re.I)
ALTERNATIVES_RE = re.compile(
    r"\b(?:instead of|rather than|alternatives?\s*:|zamiast)\s+(?P<alt>[^.\n]+)", re.I
)
DEFAULT_REASON = "Stated during the conversation"


def _split_reason(fragment: str) -> tuple[str, str | None]:
    match = REASON_RE.search(fragment)
    if not match:
        return fragment, None
    return fragment[: match.start()], match.group("reason")


def extract_decisions(text: str, user_message: str) -> list[Decision]:
    alt_match = ALTERNATIVES_RE.search(text)
    alternatives = _clean(alt_match.group("alt")) if alt_match else None

    match = _first(DECISION_PATTERNS, text)
    if match is None:
        return [Decision(
            title="Decision",
            description=text[:FALLBACK_CHARS],
            reason=DEFAULT_REASON,
            alternatives=alternatives,
        )]

    head, reason = _split_reason(match.group("title"))
    if reason is None:
        anywhere = REASON_RE.search(text)
        reason = anywhere.group("reason") if anywhere else None
    return [Decision(
        title=_clean(head, TITLE_CHARS) or "Decision",
        description=_clean(match.group(0)),
        reason=_clean(reason) if reason else DEFAULT_REASON,
        alternatives=alternatives,
    )]


# =============================================================================
# BUG
# =============================================================================

BUG_PATTERNS = (
    _labelled_line("bug|issue|problem|błąd", "desc"),
    re.compile(
        r"\b(?:fixed|fixes|naprawi\w*)\s+(?:a\s+|the\s+)?(?:bug|issue|problem|crash|błąd)"
        r"\s*(?:in|where|with|when|w|gdy)?\s*(?P<desc>[^.\n]+)",
        re.I,
    ),
    re.compile(
        r"\b(?:the\s+)?(?:bug|issue|problem|crash)\s+(?:is|was|happens|occurs)\s+"
        r"(?:that\s+|when\s+|because\s+)?(?P<desc>[^.\n]+)",
        re.I,
    ),
)
SOLUTION_PATTERNS = (
    _labelled_line("fix|solution|rozwiązanie|poprawka", "sol"),
    re.compile(
        r"\b(?:to fix (?:this|it),?|the fix is(?: to)?|fixed by|naprawa:?)\s+(?P<sol>[^.\n]+)",
        re.I,
    ),
)
FILE_RE = re.compile(
    r"(?P<path>[\w./-]+\.(?:py|ts|tsx|js|jsx|go|rs|java|rb|css|scss|html|sql|vue|svelte))"
    r"(?::(?P<line>\d+)|\s+(?:line|linia|linii)\s+(?P<line2>\d+))?"
)
SEVERITY_KEYWORDS = (
    ("critical", re.compile(r"\b(?:critical|krytyczn\w*|security|data loss|vulnerab\w*)\b", re.I)),
    ("high", re.compile(r"\b(?:crash\w*|severe|poważn\w*|breaks|broken|production)\b", re.I)),
    ("low", re.compile(r"\b(?:minor|typo|cosmetic|drobn\w*|trivial)\b", re.I)),
)
DEFAULT_SOLUTION = "See the conversation for the fix"


def bug_severity(text: str) -> str:
    for severity, pattern in SEVERITY_KEYWORDS:
        if pattern.search(text):
            return severity
    return "medium"


def extract_bugs(text: str, user_message: str) -> list[Bug]:
    sol_match = _first(SOLUTION_PATTERNS, text)
    file_match = FILE_RE.search(text)
    file_path = file_match.group("path") if file_match else None
    line = None
    if file_match and (file_match.group("line") or file_match.group("line2")):
        line = int(file_match.group("line") or file_match.group("line2"))

    match = _first(BUG_PATTERNS, text)
    return [Bug(
        description=_clean(match.group("desc")) if match else text[:FALLBACK_CHARS],
        solution=_clean(sol_match.group("sol")) if sol_match else DEFAULT_SOLUTION,
        file_path=file_path,
        line_number=line,
        severity=bug_severity(text),
    )]


# =============================================================================
# PROMPT
# =============================================================================

PROMPT_PATTERNS = (
    re.compile(
        r"\bprompt (?:for|dla)\s+(?:claude code|codex|gemini)\b.*?```[\w-]*\n(?P<content>.*?)```",
        re.I | re.S,
    ),
    re.compile(r"```prompt\s*\n(?P<content>.*?)```", re.I | re.S),
    re.compile(
        r"\b(?:here(?:'s| is) (?:a|the|your) prompt|gotowy prompt)\b[^\n]*\n+```[\w-]*\n"
        r"(?P<content>.*?)```",
        re.I | re.S,
    ),
    re.compile(
        r"\b(?:here(?:'s| is) (?:a|the|your) prompt|gotowy prompt)\b[^\n]*:\s*\n+(?P<content>.+)",
        re.I | re.S,
    ),
)
TARGET_RE = re.compile(r"\b(claude code|codex|gemini)\b", re.I)


def prompt_target(text: str) -> str:
    match = TARGET_RE.search(text)
    return match.group(1).lower().replace(" ", "_") if match else "claude_code"


def extract_prompts(text: str, user_message: str) -> list[Prompt]:
    target = prompt_target(text)
    subject = _clean(user_message, 50) if user_message else "conversation"
    match = _first(PROMPT_PATTERNS, text)
    content = match.group("content").strip() if match else ""
    return [Prompt(
        name=f"Prompt: {subject}",
        content=content or text[:FALLBACK_CHARS],
        llm_target=target,
        description=f"Prompt for {target} written during the conversation",
        tags=[target, "auto-saved"],
    )]


# =============================================================================
# RULE
# =============================================================================

RULE_LINE_RE = _labelled_line("rule|zasada|convention|konwencja", "rule")
RULE_PHRASE_RE = re.compile(
    r"\b(?:always|never|zawsze|nigdy)\s+(?:use|write|run|keep|add|put|validate|name|call|"
    r"commit|store|używaj|pisz|dodawaj|uruchamiaj|trzymaj|nazywaj)\b[^.\n]*",
    re.I,
)
RULE_CATEGORIES = (
    ("testing", re.compile(r"\b(?:tests?|testing|pytest|jest|vitest|coverage|testy?)\b", re.I)),
    ("security", re.compile(r"\b(?:secur\w*|auth\w*|password|secret|token|xss|csrf|sanitiz\w*|bezpiecz\w*)\b", re.I)),
    ("naming", re.compile(r"\b(?:names?|naming|camelcase|snake_case|pascalcase|prefix|suffix|nazw\w*)\b", re.I)),
    ("architecture", re.compile(r"\b(?:architect\w*|layers?|modules?|components?|folders?|structure|services?|architektur\w*)\b", re.I)),
    ("code_style", re.compile(r"\b(?:format\w*|indent\w*|style|lint\w*|type hints?|types?|comments?|semicolons?|quotes)\b", re.I)),
)


def rule_category(rule: str) -> str:
    for category, pattern in RULE_CATEGORIES:
        if pattern.search(rule):
            return category
    return "other"


def extract_rules(text: str, user_message: str) -> list[ProjectRule]:
    rules = [_clean(m.group("rule")) for m in RULE_LINE_RE.finditer(text)]
    if not rules:
        phrase = RULE_PHRASE_RE.search(text)
        rules = [_clean(phrase.group(0))] if phrase else [text[:FALLBACK_CHARS]]
    seen: list[str] = []
    for rule in rules:
        if rule and rule not in seen:
            seen.append(rule)
    return [ProjectRule(rule=r, category=rule_category(r)) for r in seen[:MAX_RULES_PER_TEXT]]


# =============================================================================
# TECH
# =============================================================================

# (canonical name, category, aliases)
TECH_VOCABULARY: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("React", "framework", ()),
    ("Next.js", "framework", ("nextjs",)),
    ("Vue", "framework", ("vue.js", "vuejs")),
    ("Angular", "framework", ()),
    ("Svelte", "framework", ("sveltekit",)),
    ("FastAPI", "framework", ()),
    ("Django", "framework", ()),
    ("Flask", "framework", ()),
    ("Express", "framework", ("express.js", "expressjs")),
    ("TypeScript", "language", ()),
    ("JavaScript", "language", ()),
    ("Python", "language", ()),
    ("Rust", "language", ()),
    ("Java", "language", ()),
    ("Kotlin", "language", ()),
    ("PostgreSQL", "database", ("postgres",)),
    ("MySQL", "database", ()),
    ("SQLite", "database", ()),
    ("MongoDB", "database", ("mongo",)),
    ("Redis", "database", ()),
    ("Supabase", "database", ()),
    ("Prisma", "library", ()),
    ("SQLAlchemy", "library", ()),
    ("Pydantic", "library", ()),
    ("Axios", "library", ()),
    ("Zod", "library", ()),
    ("Redux", "state", ("redux toolkit",)),
    ("Zustand", "state", ()),
    ("Tailwind CSS", "styling", ("tailwind", "tailwindcss")),
    ("Sass", "styling", ("scss",)),
    ("styled-components", "styling", ()),
    ("Jest", "testing", ()),
    ("Vitest", "testing", ()),
    ("Pytest", "testing", ()),
    ("Playwright", "testing", ()),
    ("Cypress", "testing", ()),
    ("Vite", "build", ()),
    ("Webpack", "build", ()),
    ("Docker", "other", ()),
)

# Matched case-sensitively: common words in English or Polish prose otherwise.
CASE_SENSITIVE = {"React", "Rust", "Express", "Jest", "Vue", "Vite"}

_VERSION = r"(?:\s+v?|@|\s+version\s+)(?P<version>\d+(?:\.\d+){0,2})\b"


def _tech_pattern(names: tuple[str, ...], flags: int) -> re.Pattern:
    alternatives = "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True))
    return re.compile(rf"(?<![\w.-])(?:{alternatives})(?![\w-])(?:{_VERSION})?", flags)


TECH_PATTERNS = tuple(
    (name, category, _tech_pattern((name, *aliases), 0 if name in CASE_SENSITIVE else re.I))
    for name, category, aliases in TECH_VOCABULARY
)


def scan_tech(text: str) -> list[TechItem]:
    """One TechItem per vocabulary entry found, in vocabulary order."""
    items = []
    for name, category, pattern in TECH_PATTERNS:
        match = pattern.search(text)
        if match:
            items.append(TechItem(name=name, category=category, version=match.group("version")))
    return items


def extract_tech(text: str, user_message: str) -> list[TechItem]:
    return scan_tech(f"{user_message}\n{text}" if user_message else text)


# =============================================================================
# REVIEW FEEDBACK
# =============================================================================

FEEDBACK_PATTERNS = (
    _labelled_line("suggestion|sugestia|recommendation|uwaga", "desc"),
    re.compile(
        r"\b(?:i(?:'d)? suggest|consider(?:ing)?|you (?:should|could|might want to)|"
        r"warto|proponuję|sugeruję)\s+(?P<desc>[^.\n]+)",
        re.I,
    ),
    re.compile(r"(?P<desc>\b(?:edge cases?|potential issue|missing)\b[^.\n]*)", re.I),
)
SUGGESTION_RE = re.compile(r"\b(?:instead,?|better to|lepiej)\s+(?P<sugg>[^.\n]+)", re.I)
FEEDBACK_TYPES = (
    ("a11y", re.compile(r"\b(?:accessibility|a11y|aria|screen readers?|contrast|keyboard)\b", re.I)),
    ("ux", re.compile(r"\b(?:ux|user experience|usability|user flow|onboarding)\b", re.I)),
    ("ui", re.compile(r"\b(?:ui|layout|colou?rs?|spacing|fonts?|buttons?|tailwind|css|responsive)\b", re.I)),
    ("bug", re.compile(r"\b(?:bugs?|crash\w*|błąd\w*|exception)\b", re.I)),
    ("edge_case", re.compile(r"\b(?:edge cases?|empty|null|none|undefined|boundary)\b", re.I)),
    ("optimization", re.compile(r"\b(?:performance|optimi[sz]\w*|faster|slow|memo\w*|cach\w*)\b", re.I)),
)


def feedback_type(text: str) -> str:
    for kind, pattern in FEEDBACK_TYPES:
        if pattern.search(text):
            return kind
    return "best_practice"


def extract_feedback(text: str, user_message: str) -> list[ReviewFeedback]:
    match = _first(FEEDBACK_PATTERNS, text)
    description = _clean(match.group("desc")) if match else text[:FALLBACK_CHARS]
    sugg = SUGGESTION_RE.search(text)
    return [ReviewFeedback(
        reviewer="",
        feedback_type=feedback_type(description if match else text),
        description=description,
        suggestion=_clean(sugg.group("sugg")) if sugg else None,
    )]


# =============================================================================
# DISPATCH
# =============================================================================

EXTRACTORS: dict[str, Callable[[str, str], list]] = {
    PatternKind.DECISION: extract_decisions,
    PatternKind.BUG: extract_bugs,
    PatternKind.PROMPT: extract_prompts,
    PatternKind.RULE: extract_rules,
    PatternKind.TECH: extract_tech,
    PatternKind.FEEDBACK: extract_feedback,
}


def extract(
    kind: str,
    text: str,
    user_message: str = "",
    project_id: str | None = None,
    agent_id: str | None = None,
    conversation_id: str | None = None,
) -> list[AutoSaveRecord]:
    """
    Build record candidates for one detected kind.

    project_id is stamped on every candidate; feedback records also get the
    reviewing agent and the conversation.
    """
    if kind not in EXTRACTORS:
        raise ValueError(f"Unknown pattern kind: {kind}")
    records = EXTRACTORS[kind](text, user_message or "")
    for record in records:
        record.project_id = project_id
        if isinstance(record, ReviewFeedback):
            record.reviewer = agent_id or ""
            record.conversation_id = conversation_id
    return records
