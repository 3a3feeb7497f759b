"""
Pydantic request models -- the HTTP contract of the chat surface.

The chat body accepts snake_case and the camelCase spellings used by the
browser client (projectContext, editorContent).
"""

from pydantic import BaseModel, ConfigDict, Field


class EditorContext(BaseModel):
    """What the user has open in the editor."""

    model_config = ConfigDict(populate_by_name=True)

    editor_content: str | None = Field(None, alias="editorContent")


class ChatRequest(BaseModel):
    """
    POST /api/v1/chat body.

    message and mode are optional here so that a missing field can be
    reported as a plain 400 by the route rather than a 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str | None = Field(None, description="Continue this conversation")
    message: str | None = Field(None, description="The user's message")
    mode: str | None = Field(None, description="solo, duo or team")
    project_id: str | None = Field(None, description="Project whose metadata agents see")
    project_context: str | None = Field(
        None, alias="projectContext", description="Pre-rendered project structure and files"
    )
    context: EditorContext | None = None


class PreferenceRequest(BaseModel):
    """Save (upsert) a preference directly, without the chat command."""

    category: str = Field("general", description="general, personal, tech, work, communication, ui")
    key: str = Field(..., description="Preference identity")
    value: str = Field(..., description="Preference value")
