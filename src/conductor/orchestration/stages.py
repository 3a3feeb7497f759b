"""
Stage plans -- which agent speaks when, per conversation mode.

    solo: claude
    duo:  claude -> gpt (review) -> claude (summary)
    team: claude -> gpt (review) -> gemini (review) -> claude (final)

The first stage of every plan is the primary stage: if it fails the run
ends. Every later stage carries a fallback text used in place of a failed
reply.
"""

from dataclasses import dataclass

from ..memory.models import ChatMode

PRIMARY_AGENT = "claude"


class StageKind:
    RESPOND = "respond"
    REVIEW = "review"
    SUMMARIZE = "summarize"


REVIEW_FALLBACK = "I couldn't review the code at the moment."
DESIGN_FALLBACK = "I couldn't review the UI/UX at the moment."
SUMMARY_FALLBACK = "Taking GPT's feedback into account, my original proposal still stands."
FINAL_FALLBACK = (
    "Taking the feedback from GPT and Gemini into account, "
    "this is the final version of my proposal."
)


@dataclass(frozen=True)
class Stage:
    agent_id: str
    kind: str
    fallback: str | None = None

    @property
    def is_primary(self) -> bool:
        return self.fallback is None


STAGE_PLANS: dict[str, tuple[Stage, ...]] = {
    ChatMode.SOLO: (
        Stage(PRIMARY_AGENT, StageKind.RESPOND),
    ),
    ChatMode.DUO: (
        Stage(PRIMARY_AGENT, StageKind.RESPOND),
        Stage("gpt", StageKind.REVIEW, REVIEW_FALLBACK),
        Stage(PRIMARY_AGENT, StageKind.SUMMARIZE, SUMMARY_FALLBACK),
    ),
    ChatMode.TEAM: (
        Stage(PRIMARY_AGENT, StageKind.RESPOND),
        Stage("gpt", StageKind.REVIEW, REVIEW_FALLBACK),
        Stage("gemini", StageKind.REVIEW, DESIGN_FALLBACK),
        Stage(PRIMARY_AGENT, StageKind.SUMMARIZE, FINAL_FALLBACK),
    ),
}


def plan_for(mode: str) -> tuple[Stage, ...]:
    try:
        return STAGE_PLANS[mode]
    except KeyError:
        raise ValueError(f"Unknown chat mode: {mode}") from None


def participants(mode: str) -> list[str]:
    """Agent ids that may speak in a run of this mode, in first-appearance order."""
    seen: list[str] = []
    for stage in plan_for(mode):
        if stage.agent_id not in seen:
            seen.append(stage.agent_id)
    return seen
