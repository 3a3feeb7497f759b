"""Security utilities -- prompt fencing and boundary validation."""
from .prompt_guard import wrap_user_content, detect_injection_attempt, sanitize_for_prompt
from .validators import (
    MAX_CONTEXT_LENGTH,
    MAX_MESSAGE_LENGTH,
    ValidationError,
    validate_identifier,
    validate_in_choices,
    validate_length,
    validate_not_empty,
    validate_optional_text,
)
