"""Validation pipeline.

``run_validator`` runs any ValidatorSpec against a value. It is async so
that sync and async validators are handled uniformly, and it never raises:
a validator that raises is reported as a ``validation_error``.
"""

import inspect
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from formality.validation.registry import ValidatorRegistry
from formality.validation.types import (
    FieldError,
    ValidationResult,
    ValidatorFn,
    ValidatorSpec,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def is_valid(result: ValidationResult) -> bool:
    """True and None are the only passing results."""
    return result is True or result is None


async def _call(fn: ValidatorFn, value: Any, form_values: Mapping[str, Any]) -> ValidationResult:
    try:
        result = fn(value, form_values)
        if inspect.isawaitable(result):
            result = await result
    except Exception as e:
        logger.debug("Validator %r raised: %s", fn, e)
        return FieldError("validation_error", str(e) or "Validation error")
    return result


async def _run_named(
    name: str, args: Any, value: Any, form_values: Mapping[str, Any]
) -> ValidationResult:
    if args is False:
        return True

    if not ValidatorRegistry.is_registered(name):
        logger.warning("Validator '%s' is not registered, skipping", name)
        return True

    try:
        if args is None or args is True:
            fn = ValidatorRegistry.resolve(name)
        else:
            fn = ValidatorRegistry.resolve(name, args)
    except (TypeError, ValueError) as e:
        return FieldError("validation_error", f"Cannot build validator '{name}': {e}")

    return await _call(fn, value, form_values)


async def run_validator(
    spec: ValidatorSpec | None,
    value: Any,
    form_values: Mapping[str, Any] | None = None,
) -> ValidationResult:
    """Run a validator spec against a value.

    Args:
        spec: A callable, a registered name, a ``{name: args}`` mapping, or
            a list of specs (run in order, stopping at the first failure)
        value: The field value
        form_values: All form values, for cross-field checks

    Returns:
        The first failing result, or True

    Example:
        await run_validator("required", "", {})
        await run_validator(["required", {"minLength": 3}], "ab", {})
    """
    form_values = form_values or {}

    if spec is None:
        return True

    if isinstance(spec, str):
        return await _run_named(spec, None, value, form_values)

    if isinstance(spec, Mapping):
        for name, args in spec.items():
            result = await _run_named(name, args, value, form_values)
            if not is_valid(result):
                return result
        return True

    if isinstance(spec, Sequence):
        for item in spec:
            result = await run_validator(item, value, form_values)
            if not is_valid(result):
                return result
        return True

    if callable(spec):
        return await _call(spec, value, form_values)

    logger.warning("Unsupported validator spec %r, skipping", spec)
    return True


def compose_validators(specs: Sequence[ValidatorSpec]) -> ValidatorFn:
    """Combine several specs into one async validator."""

    async def composed(value: Any, form_values: Mapping[str, Any]) -> ValidationResult:
        return await run_validator(list(specs), value, form_values)

    return composed


# =============================================================================
# Built-in validators
# =============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def required() -> ValidatorFn:
    """Value must not be None, empty string, or an empty collection."""

    def check(value: Any, form_values: Mapping[str, Any]) -> ValidationResult:
        if value is None or value == "":
            return FieldError("required")
        if isinstance(value, (list, tuple, dict, set)) and len(value) == 0:
            return FieldError("required")
        return True

    return check


def min_length(length: int) -> ValidatorFn:
    """Strings shorter than ``length`` fail; other values are skipped."""

    def check(value: Any, form_values: Mapping[str, Any]) -> ValidationResult:
        if isinstance(value, str) and len(value) < length:
            return FieldError("minLength", f"Must be at least {length} characters")
        return True

    return check


def max_length(length: int) -> ValidatorFn:
    """Strings longer than ``length`` fail; other values are skipped."""

    def check(value: Any, form_values: Mapping[str, Any]) -> ValidationResult:
        if isinstance(value, str) and len(value) > length:
            return FieldError("maxLength", f"Must be at most {length} characters")
        return True

    return check


def min_value(limit: int | float) -> ValidatorFn:
    def check(value: Any, form_values: Mapping[str, Any]) -> ValidationResult:
        if _is_number(value) and value < limit:
            return FieldError("min", f"Must be at least {limit}")
        return True

    return check


def max_value(limit: int | float) -> ValidatorFn:
    def check(value: Any, form_values: Mapping[str, Any]) -> ValidationResult:
        if _is_number(value) and value > limit:
            return FieldError("max", f"Must be at most {limit}")
        return True

    return check


def pattern(regex: str | re.Pattern, message: str | None = None) -> ValidatorFn:
    """Strings must contain a match for ``regex``."""
    compiled = re.compile(regex) if isinstance(regex, str) else regex

    def check(value: Any, form_values: Mapping[str, Any]) -> ValidationResult:
        if isinstance(value, str) and not compiled.search(value):
            return FieldError("pattern", message or "Invalid format")
        return True

    return check


def email() -> ValidatorFn:
    """Non-empty strings must look like an email address."""

    def check(value: Any, form_values: Mapping[str, Any]) -> ValidationResult:
        if isinstance(value, str) and value and not EMAIL_PATTERN.match(value):
            return FieldError("email")
        return True

    return check


def register_builtin_validators() -> None:
    """Register the framework-provided validators.

    Safe to call repeatedly; registration is idempotent.
    """
    ValidatorRegistry.register("required", required())
    ValidatorRegistry.register("email", email())
    ValidatorRegistry.register_factory("minLength", min_length)
    ValidatorRegistry.register_factory("maxLength", max_length)
    ValidatorRegistry.register_factory("min", min_value)
    ValidatorRegistry.register_factory("max", max_value)
    ValidatorRegistry.register_factory("pattern", pattern)
