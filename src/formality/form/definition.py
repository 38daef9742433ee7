"""Form definition types.

A FormDefinition describes a whole form: input types, fields, field groups
and form-level settings. Definitions are usually loaded from YAML by
FormLoader, but can be built in code (callables are only possible there).
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from formality.conditions.types import ConditionDescriptor

DEFAULT_INPUT_TYPE = "textField"


def _string_list(value: Any, what: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    raise ValueError(f"{what} must be a name or a list of names")


def _conditions(value: Any, what: str) -> list[ConditionDescriptor]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{what} conditions must be a list")
    try:
        return [ConditionDescriptor.coerce(item) for item in value]
    except ValueError as e:
        raise ValueError(f"{what}: {e}") from None


@dataclass
class InputDefinition:
    """Behaviour shared by every field of one input type.

    Attributes:
        default_value: Initial value when neither defaults nor record supply one
        validator: Type-level validator, run after the field's own
        debounce: Auto-save debounce in ms for this type (None = form default)
        props: Default props for fields of this type
    """

    default_value: Any = None
    validator: Any = None
    debounce: int | None = None
    props: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "InputDefinition":
        data = data or {}
        debounce = data.get("debounce")
        if debounce is False:
            debounce = 0
        return cls(
            default_value=data.get("defaultValue"),
            validator=data.get("validator"),
            debounce=debounce,
            props=dict(data.get("props") or {}),
        )


@dataclass
class FieldDefinition:
    """Configuration for one field.

    ``disabled``/``hidden`` are static overrides; when given they win over
    conditions and groups.
    """

    name: str
    type: str = DEFAULT_INPUT_TYPE
    label: str | None = None
    disabled: bool | None = None
    hidden: bool | None = None
    record_key: str | None = None
    validator: Any = None
    props: dict[str, Any] = field(default_factory=dict)
    select_props: Any = None
    conditions: list[ConditionDescriptor] = field(default_factory=list)
    subscribes_to: list[str] = field(default_factory=list)
    group: str | None = None

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any] | None) -> "FieldDefinition":
        """Create from a configuration mapping with camelCase keys."""
        data = data or {}
        what = f"Field '{name}'"
        return cls(
            name=name,
            type=data.get("type", DEFAULT_INPUT_TYPE),
            label=data.get("label", data.get("title")),
            disabled=data.get("disabled"),
            hidden=data.get("hidden"),
            record_key=data.get("recordKey"),
            validator=data.get("validator"),
            props=dict(data.get("props") or {}),
            select_props=data.get("selectProps"),
            conditions=_conditions(data.get("conditions"), what),
            subscribes_to=_string_list(data.get("subscribesTo"), f"{what} subscribesTo"),
            group=data.get("group"),
        )


@dataclass
class GroupDefinition:
    """A named group of fields sharing conditions.

    Groups nest through ``parent``: disabled is OR'd and visible AND'ed
    down the chain.
    """

    name: str
    conditions: list[ConditionDescriptor] = field(default_factory=list)
    subscribes_to: list[str] = field(default_factory=list)
    parent: str | None = None

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any] | None) -> "GroupDefinition":
        data = data or {}
        what = f"Group '{name}'"
        return cls(
            name=name,
            conditions=_conditions(data.get("conditions"), what),
            subscribes_to=_string_list(data.get("subscribesTo"), f"{what} subscribesTo"),
            parent=data.get("parent"),
        )


@dataclass
class FormDefinition:
    """A complete form.

    Attributes:
        name: Form name
        inputs: Input type name -> InputDefinition
        fields: Field name -> FieldDefinition (declaration order kept)
        groups: Group name -> GroupDefinition
        title: Static title
        select_title: Title descriptor evaluated against the form
        auto_save: Submit automatically after changes settle
        debounce: Auto-save debounce in ms (None = engine default)
        error_messages: Messages by validation error type
    """

    name: str = "form"
    inputs: dict[str, InputDefinition] = field(default_factory=dict)
    fields: dict[str, FieldDefinition] = field(default_factory=dict)
    groups: dict[str, GroupDefinition] = field(default_factory=dict)
    title: str | None = None
    select_title: Any = None
    auto_save: bool = False
    debounce: int | None = None
    error_messages: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.check()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormDefinition":
        """Create from a configuration mapping.

        Raises:
            ValueError: If the definition is malformed
        """
        if not isinstance(data, Mapping):
            raise ValueError("Form definition must be a mapping")

        fields_data = data.get("fields") or {}
        if not isinstance(fields_data, Mapping):
            raise ValueError("Form 'fields' must be a mapping of field name to config")

        return cls(
            name=data.get("form", data.get("name", "form")),
            inputs={
                type_name: InputDefinition.from_dict(input_data)
                for type_name, input_data in (data.get("inputs") or {}).items()
            },
            fields={
                name: FieldDefinition.from_dict(name, field_data)
                for name, field_data in fields_data.items()
            },
            groups={
                name: GroupDefinition.from_dict(name, group_data)
                for name, group_data in (data.get("groups") or {}).items()
            },
            title=data.get("title"),
            select_title=data.get("selectTitle"),
            auto_save=bool(data.get("autoSave", False)),
            debounce=data.get("debounce"),
            error_messages=dict(data.get("errorMessages") or {}),
        )

    def check(self) -> None:
        """Validate cross references between fields and groups.

        Raises:
            ValueError: On an unknown group or parent, or a parent cycle
        """
        for field_def in self.fields.values():
            if field_def.group is not None and field_def.group not in self.groups:
                raise ValueError(
                    f"Field '{field_def.name}' refers to unknown group '{field_def.group}'"
                )

        for group in self.groups.values():
            if group.parent is not None and group.parent not in self.groups:
                raise ValueError(
                    f"Group '{group.name}' refers to unknown parent '{group.parent}'"
                )

        for group_name in self.groups:
            self.group_chain(group_name)

    def input_for(self, field_name: str) -> InputDefinition:
        """The input definition of a field's type (empty if undefined)."""
        field_def = self.fields.get(field_name)
        type_name = field_def.type if field_def else DEFAULT_INPUT_TYPE
        return self.inputs.get(type_name) or InputDefinition()

    def group_chain(self, group_name: str | None) -> list[GroupDefinition]:
        """The group and its ancestors, outermost first.

        Raises:
            ValueError: If the parent chain loops
        """
        chain: list[GroupDefinition] = []
        seen: set[str] = set()
        current = group_name

        while current is not None:
            if current in seen:
                raise ValueError(f"Group '{group_name}' has a cyclic parent chain")
            seen.add(current)
            group = self.groups[current]
            chain.append(group)
            current = group.parent

        chain.reverse()
        return chain


def resolve_initial_values(
    definition: FormDefinition,
    record: Mapping[str, Any] | None = None,
    default_values: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Initial value of every field.

    Priority per field: explicit default value, then the record's value
    under the field's record key, then the input type's default. Explicit
    defaults for undefined fields are kept too.
    """
    record = record or {}
    default_values = default_values or {}
    result: dict[str, Any] = {}

    for name, field_def in definition.fields.items():
        record_key = field_def.record_key or name
        if name in default_values:
            result[name] = default_values[name]
        elif record_key in record:
            result[name] = record[record_key]
        else:
            result[name] = definition.input_for(name).default_value

    for name, value in default_values.items():
        result.setdefault(name, value)

    return result
