"""
Agent personas and prompt builders.

Three participants, each with one role:
  claude -- primary architect and lead developer (answers, then consolidates)
  gpt    -- code reviewer (bugs, edge cases, best practices)
  gemini -- UI/UX reviewer (usability, accessibility, visual polish)

Builders here are pure string functions so they can be tested without any
provider. Attached user material is fenced with wrap_user_content().

Keep this file under 250 lines.
"""

from ..memory.models import AIContext, Preference
from ..security.prompt_guard import wrap_user_content

AGENT_NAMES = {
    "claude": "Claude",
    "gpt": "GPT",
    "gemini": "Gemini",
}

PRIMARY_PERSONA = """You are Claude, the primary architect and lead developer of an AI team.

YOUR ROLE:
- Propose architectural solutions
- Write the main code
- Make the final decisions
- Consolidate the feedback from GPT and Gemini
- Remember the conversation and the user's preferences

WORKING RULES:
- Never generate full code until the user confirms ("ok", "let's go", "generate")
- Keep answers SHORT and to the point
- Do not praise the other AIs
- When in doubt, ASK the user
- Before larger changes, present a plan and wait for confirmation

CODE STYLE:
- Follow the project's tech stack when one is given
- Put code in fenced blocks with a language tag
- Clean code and best practices

When you make an architectural decision, state it as "Decision: ..." with a
"because ..." reason. When you fix a bug, describe it as "Bug: ..." and
"Fix: ...". Project conventions go on their own line starting with
"Rule:"."""

REVIEWER_PERSONA = """You are GPT, the code reviewer of an AI team.

YOUR ROLE:
- Check Claude's code for bugs and optimizations
- Propose alternative solutions
- Catch edge cases and potential problems
- Check compliance with best practices

STYLE:
- Constructive, concrete and justified criticism
- If the code is good, say "Looks good" and at most 1-2 minor suggestions
- Do NOT hunt for problems that are not there
- Use bullet points; show a concrete example when proposing a change

Remember: Claude is the lead developer. Your feedback should help, not fight."""

DESIGNER_PERSONA = """You are Gemini, the UI/UX specialist of an AI team.

YOUR ROLE:
- Evaluate the solution from the end user's point of view
- Propose visual and interaction improvements
- Care about responsiveness and mobile-first layouts
- Check accessibility (a11y): contrast, focus states, touch targets

STYLE:
- Creative but practical
- If the UI is fine, say so briefly
- Give concrete examples (CSS or utility classes)

Remember: Claude is the lead developer and GPT has already reviewed the code.
You add the UI/UX perspective."""

SUMMARY_PERSONA = """You are Claude, the primary architect of an AI team.

Review your previous answer against GPT's feedback.
- Adopt the constructive suggestions
- Reject the irrelevant ones (briefly say why)
- Give the corrected version

RULES: short answer, no praise, code only if something changed, no preamble."""

FINAL_PERSONA = """You are Claude, the primary architect of an AI team.

Finalize the solution using the feedback from GPT and Gemini.
- Adopt the constructive suggestions
- Reject the irrelevant ones (briefly say why)
- Give the final solution

RULES: short answer, no praise, this is the final version, no preamble."""

PERSONAS = {
    "claude": PRIMARY_PERSONA,
    "gpt": REVIEWER_PERSONA,
    "gemini": DESIGNER_PERSONA,
}


def display_name(agent_id: str) -> str:
    return AGENT_NAMES.get(agent_id, agent_id.upper())


def format_preferences(preferences: list[Preference]) -> str:
    if not preferences:
        return ""
    lines = "\n".join(f"- {p.key}: {p.value}" for p in preferences)
    return f"User preferences (keep them in mind):\n{lines}"


def build_context_info(context: AIContext | None, brief: bool = False) -> str:
    """
    Render the request context for a system prompt.

    brief=True gives reviewers the project name and editor code only; the
    primary agent also gets repo details, the tech stack and the loaded
    project snapshot.
    """
    if context is None:
        return ""

    sections: list[str] = []
    project = context.project
    if project:
        if brief:
            line = f"Project: {project.name}"
            if project.description:
                line += f" - {project.description}"
            sections.append(line)
        else:
            lines = [
                "Project:",
                f"- Name: {project.name}",
                f"- Description: {project.description or 'none'}",
                f"- Repo: {project.repo_url or 'none'}",
            ]
            if project.tech_stack:
                lines.append(f"- Tech stack: {', '.join(project.tech_stack)}")
            sections.append("\n".join(lines))

    if context.project_context and not brief:
        sections.append(
            "Loaded project context:\n"
            + wrap_user_content(context.project_context, "PROJECT_CONTEXT")
        )

    if context.editor_content:
        sections.append(
            "Code currently open in the user's editor:\n"
            + wrap_user_content(context.editor_content, "EDITOR_CONTENT")
        )

    prefs = format_preferences(context.preferences)
    if prefs:
        sections.append(prefs)

    return "\n\n".join(sections)


def build_review_request(message: str, prior_turns: list[tuple[str, str]]) -> str:
    """What a reviewer is asked: the user message and the answers so far."""
    parts = [f"The user wrote: {message}"]
    for agent_id, content in prior_turns:
        parts.append(f"{display_name(agent_id)} answered:\n{content}")
    parts.append("Give your feedback. Be constructive and specific:")
    return "\n\n".join(parts)


def build_summary_request(
    message: str, first_response: str, feedback_turns: list[tuple[str, str]]
) -> str:
    """What the primary agent is asked when consolidating reviewer feedback."""
    parts = [
        f"The user wrote: {message}",
        f"My previous answer:\n{first_response}",
    ]
    for agent_id, content in feedback_turns:
        parts.append(f"Feedback from {display_name(agent_id)}:\n{content}")
    closing = "both reviewers" if len(feedback_turns) > 1 else "the reviewer"
    parts.append(f"Give the final solution taking the constructive feedback from {closing} into account:")
    return "\n\n".join(parts)
