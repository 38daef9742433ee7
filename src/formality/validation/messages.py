"""Error message resolution for validation results."""

import re
from collections.abc import Mapping

from formality.validation.types import FieldError, ValidationResult

DEFAULT_ERROR_MESSAGES: dict[str, str] = {
    "required": "This field is required",
    "invalid": "Invalid value",
    "minLength": "Too short",
    "maxLength": "Too long",
    "pattern": "Invalid format",
    "min": "Value is too small",
    "max": "Value is too large",
    "email": "Invalid email address",
    "validate": "Validation failed",
}


def format_type_as_message(error_type: str) -> str:
    """Turn a type key into a readable message.

    Examples:
        >>> format_type_as_message("minLength")
        'Min length'
        >>> format_type_as_message("validation_error")
        'Validation error'
    """
    words = re.sub(r"([a-z])([A-Z])", r"\1 \2", error_type).replace("_", " ").lower()
    return words[:1].upper() + words[1:]


def create_error_messages(overrides: Mapping[str, str] | None = None) -> dict[str, str]:
    """Default messages merged with per-form overrides."""
    return {**DEFAULT_ERROR_MESSAGES, **(overrides or {})}


def get_error_type(result: ValidationResult) -> str | None:
    """Type key of a failing result, or None for a passing one."""
    if result is True or result is None:
        return None
    if result is False:
        return "invalid"
    if isinstance(result, FieldError):
        return result.type or "validate"
    return "validate"


def resolve_error_message(
    result: ValidationResult,
    error_messages: Mapping[str, str] | None = None,
) -> str | None:
    """Map a validation result to a message.

    Args:
        result: The validator result
        error_messages: Messages keyed by error type

    Returns:
        None for a passing result, otherwise the message
    """
    messages = error_messages or {}

    if result is True or result is None:
        return None

    if isinstance(result, str):
        return result

    if result is False:
        return messages.get("invalid", "Invalid value")

    if isinstance(result, FieldError):
        if result.message:
            return result.message
        if result.type and result.type in messages:
            return messages[result.type]
        if result.type:
            return format_type_as_message(result.type)

    return "Invalid value"
