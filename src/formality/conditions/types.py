"""Core types for field conditions.

A condition is one rule: a trigger (a field name, a mapping of field names
to matchers, or a ``selectWhen`` expression/callback), optional matchers,
and optional actions (``disabled``, ``visible``, ``set``, ``selectSet``).
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


class _Unset:
    """Marker for "not given" where None is a meaningful value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


_MATCHER_KEYS = {"is", "truthy", "isTruthy", "isValid", "isDisabled"}

_CONDITION_KEYS = _MATCHER_KEYS | {
    "when",
    "selectWhen",
    "disabled",
    "visible",
    "set",
    "selectSet",
    "subscribesTo",
}


def _optional_bool(data: Mapping[str, Any], *keys: str) -> bool | None:
    for key in keys:
        if data.get(key) is not None:
            return bool(data[key])
    return None


@dataclass(frozen=True)
class FieldMatcher:
    """Checks applied to one field's value and state.

    With no check configured, a matcher tests the value's truthiness.

    Attributes:
        is_: Exact value the field must equal (UNSET = no check)
        truthy: Required truthiness of the value
        is_valid: Required validity (no error) of the field
        is_disabled: Required disabled state of the field
    """

    is_: Any = UNSET
    truthy: bool | None = None
    is_valid: bool | None = None
    is_disabled: bool | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.is_ is UNSET
            and self.truthy is None
            and self.is_valid is None
            and self.is_disabled is None
        )

    @classmethod
    def from_dict(cls, data: Any) -> "FieldMatcher":
        """Create from a matcher mapping; a bare value means ``{"is": value}``."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            return cls(is_=data)
        return cls(
            is_=data["is"] if "is" in data else UNSET,
            truthy=_optional_bool(data, "truthy", "isTruthy"),
            is_valid=_optional_bool(data, "isValid"),
            is_disabled=_optional_bool(data, "isDisabled"),
        )


@dataclass(frozen=True)
class ConditionDescriptor:
    """One condition rule.

    Attributes:
        when: Field name, or mapping of field name to FieldMatcher
        select_when: Expression string, callable, or nested descriptor
        is_, truthy, is_valid, is_disabled: Matchers for a single-field or
            expression trigger
        disabled: Disabled state to apply when matched
        visible: Visibility to apply when matched
        set_value: Static value to apply when matched (UNSET = none)
        select_set: Computed value (expression, callable or descriptor)
        subscribes_to: Explicit dependencies, required for callables
    """

    when: str | Mapping[str, FieldMatcher] | None = None
    select_when: Any = None
    is_: Any = UNSET
    truthy: bool | None = None
    is_valid: bool | None = None
    is_disabled: bool | None = None
    disabled: bool | None = None
    visible: bool | None = None
    set_value: Any = UNSET
    select_set: Any = None
    subscribes_to: tuple[str, ...] = ()

    @property
    def matcher(self) -> FieldMatcher:
        """The rule's top-level matchers."""
        return FieldMatcher(
            is_=self.is_,
            truthy=self.truthy,
            is_valid=self.is_valid,
            is_disabled=self.is_disabled,
        )

    @property
    def has_trigger(self) -> bool:
        return bool(self.when) or self.select_when is not None

    @property
    def has_set(self) -> bool:
        return self.set_value is not UNSET or self.select_set is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConditionDescriptor":
        """Create from a configuration mapping with camelCase keys.

        Raises:
            ValueError: If the mapping is malformed
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Condition must be a mapping, got {type(data).__name__}")

        unknown = set(data) - _CONDITION_KEYS
        if unknown:
            raise ValueError(f"Unknown condition keys: {', '.join(sorted(unknown))}")

        when = data.get("when")
        if isinstance(when, Mapping):
            when = {
                str(name): FieldMatcher.from_dict(matcher)
                for name, matcher in when.items()
            }
        elif when is not None and not isinstance(when, str):
            raise ValueError(
                f"Condition 'when' must be a field name or a mapping, got {type(when).__name__}"
            )

        subscribes_to = data.get("subscribesTo") or ()
        if isinstance(subscribes_to, str):
            subscribes_to = (subscribes_to,)

        matcher = FieldMatcher.from_dict({k: data[k] for k in _MATCHER_KEYS if k in data})

        return cls(
            when=when,
            select_when=data.get("selectWhen"),
            is_=matcher.is_,
            truthy=matcher.truthy,
            is_valid=matcher.is_valid,
            is_disabled=matcher.is_disabled,
            disabled=_optional_bool(data, "disabled"),
            visible=_optional_bool(data, "visible"),
            set_value=data["set"] if "set" in data else UNSET,
            select_set=data.get("selectSet"),
            subscribes_to=tuple(str(name) for name in subscribes_to),
        )

    @classmethod
    def coerce(cls, condition: "ConditionDescriptor | Mapping[str, Any]") -> "ConditionDescriptor":
        """Accept either a descriptor or its mapping form."""
        if isinstance(condition, cls):
            return condition
        return cls.from_dict(condition)


@dataclass
class ConditionResult:
    """Merged effect of a batch of conditions.

    The ``has_*`` flags record whether any matching rule touched an axis,
    so "no disabled rule fired" reads differently from "disabled=False".
    """

    disabled: bool | None = None
    visible: bool | None = None
    set_value: Any = None
    has_disabled_condition: bool = False
    has_visible_condition: bool = False
    has_set_condition: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "disabled": self.disabled,
            "visible": self.visible,
            "setValue": self.set_value,
            "hasDisabledCondition": self.has_disabled_condition,
            "hasVisibleCondition": self.has_visible_condition,
            "hasSetCondition": self.has_set_condition,
        }
