"""
Input Validators - checks applied at the HTTP and CLI boundary.

Parse at the boundary: a chat request is validated completely before the
stream opens, so a bad request gets a plain 400 instead of an error event.
"""

import logging
import re

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 50_000
MAX_CONTEXT_LENGTH = 500_000


class ValidationError(ValueError):
    """Raised when input validation fails. Contains a user-friendly message."""

    pass


def validate_not_empty(value: str | None, field_name: str = "input") -> str:
    """Validate that a string is present and not whitespace-only."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def validate_length(
    value: str,
    field_name: str = "input",
    min_length: int = 0,
    max_length: int = 100_000,
) -> str:
    """Validate string length is within bounds."""
    if len(value) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return value


def validate_identifier(value: str, field_name: str = "identifier") -> str:
    """Validate an opaque id (letters, digits, underscore, hyphen)."""
    if not re.match(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$", value):
        raise ValidationError(
            f"{field_name} may contain only letters, numbers, underscores and hyphens"
        )
    return value


def validate_in_choices(value: str, choices, field_name: str = "value") -> str:
    """Validate that a value is one of the allowed choices."""
    if value not in choices:
        raise ValidationError(f"{field_name} must be one of: {', '.join(choices)}")
    return value


def validate_optional_text(
    value: str | None, field_name: str, max_length: int = MAX_CONTEXT_LENGTH
) -> str | None:
    """None and empty strings pass as None; anything else is length-checked."""
    if not value:
        return None
    return validate_length(value, field_name, max_length=max_length)
