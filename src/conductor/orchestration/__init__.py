"""
Multi-agent orchestration.

- conductor.py: Orchestrator, runs one chat turn and streams its progress
- stages.py: per-mode stage plans (solo / duo / team) and fallback texts
"""
from .conductor import (
    GENERATE_SUFFIX,
    GENERATE_TRIGGERS,
    Action,
    ChatTurn,
    Orchestrator,
    classify_action,
    conversation_title,
)
from .stages import PRIMARY_AGENT, STAGE_PLANS, Stage, StageKind, participants, plan_for
