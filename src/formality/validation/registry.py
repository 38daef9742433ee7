"""Validator registry for Formality.

Provides registration and lookup for:
- Named validators (``"required"``, ``"email"``)
- Validator factories configured with arguments (``{"minLength": 3}``)
"""

from collections.abc import Callable
from typing import Any

from formality.validation.types import ValidatorFn

ValidatorFactory = Callable[..., ValidatorFn]

_NO_ARGS = object()


class ValidatorRegistry:
    """Registry for named validators.

    Validators must be registered before form definitions can refer to
    them by name. Built-ins are registered by register_builtin_validators().

    Example:
        ValidatorRegistry.register("evenNumber", lambda v, values: v % 2 == 0)

        validator = ValidatorRegistry.resolve("evenNumber")
        limit = ValidatorRegistry.resolve("maxLength", 10)
    """

    _validators: dict[str, ValidatorFn] = {}
    _factories: dict[str, ValidatorFactory] = {}

    @classmethod
    def register(cls, name: str, validator: ValidatorFn) -> None:
        """Register a validator by name.

        Idempotent - re-registering the same name is a no-op.
        """
        if name in cls._validators:
            return
        cls._validators[name] = validator

    @classmethod
    def register_factory(cls, name: str, factory: ValidatorFactory) -> None:
        """Register a factory that builds a validator from arguments.

        Idempotent - re-registering the same name is a no-op.
        """
        if name in cls._factories:
            return
        cls._factories[name] = factory

    @classmethod
    def get(cls, name: str) -> ValidatorFn:
        """Get a registered (argument-free) validator by name.

        Raises:
            ValueError: If no validator is registered under the name
        """
        if name not in cls._validators:
            raise ValueError(
                f"Validator '{name}' is not registered. "
                "Available validators: " + ", ".join(cls.list_registered())
            )
        return cls._validators[name]

    @classmethod
    def resolve(cls, name: str, args: Any = _NO_ARGS) -> ValidatorFn:
        """Resolve a validator by name, building it from a factory if needed.

        A list or tuple of arguments is spread into the factory call; any
        other value is passed as the single argument.

        Raises:
            ValueError: If the name is unknown
        """
        if args is _NO_ARGS:
            if name in cls._validators:
                return cls._validators[name]
            if name in cls._factories:
                return cls._factories[name]()
            return cls.get(name)

        if name not in cls._factories:
            raise ValueError(
                f"Validator factory '{name}' is not registered. "
                "Available validators: " + ", ".join(cls.list_registered())
            )
        factory = cls._factories[name]
        if isinstance(args, (list, tuple)):
            return factory(*args)
        return factory(args)

    @classmethod
    def is_registered(cls, name: str) -> bool:
        """Check if a validator or factory is registered."""
        return name in cls._validators or name in cls._factories

    @classmethod
    def list_registered(cls) -> list[str]:
        """List all registered validator names."""
        return sorted(set(cls._validators) | set(cls._factories))

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._validators.clear()
        cls._factories.clear()


def validator(name: str) -> Callable[[ValidatorFn], ValidatorFn]:
    """Decorator to register a validator function.

    Usage:
        @validator("evenNumber")
        def even_number(value, form_values):
            return value % 2 == 0 or "Must be even"
    """

    def decorator(fn: ValidatorFn) -> ValidatorFn:
        ValidatorRegistry.register(name, fn)
        return fn

    return decorator
