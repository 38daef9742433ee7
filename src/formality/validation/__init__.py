"""Formality field validation.

Usage:
    from formality.validation import register_builtin_validators, run_validator

    # At application startup
    register_builtin_validators()

    result = await run_validator(["required", {"minLength": 3}], value, values)
"""

from formality.validation.messages import (
    DEFAULT_ERROR_MESSAGES,
    create_error_messages,
    format_type_as_message,
    get_error_type,
    resolve_error_message,
)
from formality.validation.registry import ValidatorRegistry, validator
from formality.validation.types import (
    FieldError,
    ValidationResult,
    ValidatorFn,
    ValidatorSpec,
)
from formality.validation.validate import (
    compose_validators,
    email,
    is_valid,
    max_length,
    max_value,
    min_length,
    min_value,
    pattern,
    register_builtin_validators,
    required,
    run_validator,
)

__all__ = [
    "DEFAULT_ERROR_MESSAGES",
    "FieldError",
    "ValidationResult",
    "ValidatorFn",
    "ValidatorRegistry",
    "ValidatorSpec",
    "compose_validators",
    "create_error_messages",
    "email",
    "format_type_as_message",
    "get_error_type",
    "is_valid",
    "max_length",
    "max_value",
    "min_length",
    "min_value",
    "pattern",
    "register_builtin_validators",
    "required",
    "resolve_error_message",
    "run_validator",
    "validator",
]
