"""Evaluation context for form expressions.

An evaluation context is a plain mapping. It exposes the qualified
namespaces (``fields``, ``record``, ``errors``, ``defaultValues``,
``touchedFields``, ``dirtyFields``, ``props``) and one unqualified shortcut
per field. Each shortcut is a FieldState: used directly it behaves as the
field's value, while ``.isTouched``, ``.error`` and friends read metadata.

Qualified namespaces win when a field name collides with one of them.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


QUALIFIED_PREFIXES = (
    "fields",
    "record",
    "errors",
    "defaultValues",
    "touchedFields",
    "dirtyFields",
    "props",
)

KEYWORDS = frozenset({
    "true",
    "false",
    "null",
    "undefined",
    "typeof",
    "instanceof",
    "new",
    "this",
    "if",
    "else",
    "return",
})

# Expression key -> FieldState attribute
_METADATA_KEYS = {
    "value": "value",
    "isTouched": "is_touched",
    "isDirty": "is_dirty",
    "isValidating": "is_validating",
    "error": "error",
    "invalid": "invalid",
    "disabled": "disabled",
}


@dataclass(frozen=True)
class FieldState:
    """A field value together with its form metadata.

    Attributes:
        value: The field's current value
        is_touched: The user has interacted with the field
        is_dirty: The value differs from its default
        is_validating: A validator is currently running for the field
        error: The field's current error, if any
        disabled: The field is currently disabled
    """

    value: Any = None
    is_touched: bool = False
    is_dirty: bool = False
    is_validating: bool = False
    error: Any = None
    disabled: bool = False

    @property
    def invalid(self) -> bool:
        return self.error is not None


def unwrap(value: Any) -> Any:
    """Return the raw value behind a FieldState (other values unchanged)."""
    while isinstance(value, FieldState):
        value = value.value
    return value


def to_plain(value: Any) -> Any:
    """Recursively unwrap FieldStates inside lists and mappings."""
    value = unwrap(value)
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    if isinstance(value, Mapping):
        return {key: to_plain(item) for key, item in value.items()}
    return value


def _to_index(key: Any) -> int | None:
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key
    if isinstance(key, float) and key.is_integer():
        return int(key)
    if isinstance(key, str) and key.isdigit():
        return int(key)
    return None


def get_property(obj: Any, key: Any) -> Any:
    """Resolve ``obj[key]`` / ``obj.key`` the way expressions see it.

    FieldState metadata keys win over the wrapped value's own properties.
    Missing properties, and any property of None, resolve to None.
    """
    if isinstance(obj, FieldState):
        attr = _METADATA_KEYS.get(key) if isinstance(key, str) else None
        if attr is not None:
            return getattr(obj, attr)
        return get_property(obj.value, key)

    if obj is None:
        return None

    if isinstance(obj, Mapping):
        try:
            return obj.get(key)
        except TypeError:
            # Unhashable key
            return None

    if isinstance(obj, (list, tuple, str)):
        if key == "length":
            return len(obj)
        index = _to_index(key)
        if index is None or not 0 <= index < len(obj):
            return None
        return obj[index]

    if isinstance(key, str) and key and not key.startswith("_"):
        return getattr(obj, key, None)

    return None


@dataclass
class FormState:
    """Snapshot of a whole form, as handed to callbacks and context builders."""

    values: dict[str, Any] = field(default_factory=dict)
    default_values: dict[str, Any] = field(default_factory=dict)
    record: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, Any] = field(default_factory=dict)
    touched: set[str] = field(default_factory=set)
    dirty: set[str] = field(default_factory=set)
    validating: set[str] = field(default_factory=set)
    disabled: set[str] = field(default_factory=set)

    def field_state(self, name: str) -> FieldState:
        return FieldState(
            value=self.values.get(name),
            is_touched=name in self.touched,
            is_dirty=name in self.dirty,
            is_validating=name in self.validating,
            error=self.errors.get(name),
            disabled=name in self.disabled,
        )

    def field_states(self) -> dict[str, FieldState]:
        names = dict.fromkeys([*self.values, *self.errors, *self.disabled])
        return {name: self.field_state(name) for name in names}


def build_evaluation_context(
    field_values: Mapping[str, Any],
    record: Mapping[str, Any] | None = None,
    props: Mapping[str, Any] | None = None,
    field_states: Mapping[str, FieldState] | None = None,
    default_values: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build an evaluation context from plain field values.

    Args:
        field_values: Current value per field name
        record: The record the form edits, exposed as ``record``
        props: Extra properties, exposed as ``props``
        field_states: Optional metadata per field; values always come
            from ``field_values``
        default_values: Initial values, exposed as ``defaultValues``

    Returns:
        A mapping suitable for ``evaluate``
    """
    states = field_states or {}
    names = dict.fromkeys([*field_values, *states])

    shortcuts: dict[str, FieldState] = {}
    for name in names:
        meta = states.get(name)
        value = field_values.get(name, meta.value if meta is not None else None)
        if meta is None:
            shortcuts[name] = FieldState(value=value)
        else:
            shortcuts[name] = FieldState(
                value=value,
                is_touched=meta.is_touched,
                is_dirty=meta.is_dirty,
                is_validating=meta.is_validating,
                error=meta.error,
                disabled=meta.disabled,
            )

    context: dict[str, Any] = dict(shortcuts)
    context.update({
        "fields": shortcuts,
        "record": dict(record or {}),
        "props": dict(props or {}),
        "errors": {
            name: state.error for name, state in shortcuts.items() if state.invalid
        },
        "touchedFields": {
            name: True for name, state in shortcuts.items() if state.is_touched
        },
        "dirtyFields": {
            name: True for name, state in shortcuts.items() if state.is_dirty
        },
        "defaultValues": dict(default_values or {}),
    })
    return context


def build_form_context(
    form_state: FormState, props: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Build an evaluation context from a full form snapshot."""
    return build_evaluation_context(
        form_state.values,
        record=form_state.record,
        props=props,
        field_states=form_state.field_states(),
        default_values=form_state.default_values,
    )


def build_field_context(
    form_state: FormState,
    field_name: str,
    extra_props: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a form context whose ``props.name`` is the given field."""
    props = dict(extra_props or {})
    props["name"] = field_name
    return build_form_context(form_state, props=props)
