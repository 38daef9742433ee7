"""Core types for field validation.

A validator is a sync or async callable ``(value, form_values) -> result``:
- True or None: valid
- False: invalid, generic message
- str: invalid, the string is the message
- FieldError: invalid with a type key (and optional message)
"""

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class FieldError:
    """A typed validation failure.

    Attributes:
        type: Machine-readable key (e.g., "required", "minLength")
        message: Human-readable message, or None to resolve from the type
    """

    type: str
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


ValidationResult = Union[bool, str, FieldError, None]

ValidatorFn = Callable[
    [Any, Mapping[str, Any]],
    Union[ValidationResult, Awaitable[ValidationResult]],
]

# Callable, registered name, {name: args} for a factory, or a list of specs
ValidatorSpec = Union[
    ValidatorFn,
    str,
    Mapping[str, Any],
    Sequence["ValidatorSpec"],
]
