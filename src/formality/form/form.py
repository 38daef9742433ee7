"""Form adapter.

Form wires a FormDefinition to the engine: it mounts fields into the
subscription graph, evaluates field and group conditions, applies
condition set-values to dependent fields, resolves dynamic props and the
title, and drives auto-save.

Callables in definitions (``selectWhen``, ``selectSet``, ``selectProps``,
``selectTitle``) are invoked here, and only here, with the current
FormState.
"""

import dataclasses
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from formality.autosave import AutoSaveCoordinator, SaveOutcome
from formality.conditions.evaluate import (
    evaluate_conditions,
    infer_fields_from_conditions,
    trigger_matches,
)
from formality.conditions.types import UNSET, ConditionDescriptor, ConditionResult
from formality.config import EngineConfig
from formality.expressions.context import (
    FormState,
    build_field_context,
    build_form_context,
)
from formality.expressions.evaluator import evaluate_descriptor, strict_equals
from formality.expressions.infer import infer_fields_from_descriptor
from formality.form.definition import FieldDefinition, FormDefinition
from formality.form.store import FormStore, SubmitFn
from formality.subscriptions import SubscriptionGraph
from formality.validation.validate import register_builtin_validators

logger = logging.getLogger(__name__)


@dataclass
class FieldView:
    """Everything a renderer needs to draw one field."""

    name: str
    value: Any
    error: str | None
    disabled: bool
    visible: bool
    props: dict[str, Any] = field(default_factory=dict)
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class GroupState:
    """Combined state of a group and its ancestors."""

    disabled: bool = False
    visible: bool = True
    has_set_condition: bool = False
    set_value: Any = None


def _invoke_callables(value: Any, form_state: FormState) -> Any:
    """Call every callable left in an evaluated descriptor tree."""
    if callable(value):
        return value(form_state)
    if isinstance(value, list):
        return [_invoke_callables(item, form_state) for item in value]
    if isinstance(value, Mapping):
        return {key: _invoke_callables(item, form_state) for key, item in value.items()}
    return value


class Form:
    """A live form instance.

    Usage:
        form = Form(FormLoader().load_file(path), record={"name": "Acme"})
        form.change_field("signed", True)
        form.field_view("amount").disabled
    """

    def __init__(
        self,
        definition: FormDefinition,
        record: Mapping[str, Any] | None = None,
        on_submit: SubmitFn | None = None,
        config: EngineConfig | None = None,
        default_values: Mapping[str, Any] | None = None,
    ):
        register_builtin_validators()

        self.definition = definition
        self.config = config or EngineConfig.from_env()
        self.store = FormStore(definition, record, default_values, on_submit)
        self.graph = SubscriptionGraph()

        debounce_ms = (
            definition.debounce if definition.debounce is not None else self.config.debounce_ms
        )
        self.coordinator = AutoSaveCoordinator(
            self.store,
            self.graph,
            debounce=debounce_ms / 1000,
            poll_interval=self.config.poll_interval_seconds,
            validation_timeout=self.config.validation_timeout_seconds,
        )

        for name in definition.fields:
            self.mount(name)

        self._apply_initial_set_values()
        self.refresh_disabled()

    # -------------------------------------------------------------------------
    # Mounting and subscriptions
    # -------------------------------------------------------------------------

    def _field(self, name: str) -> FieldDefinition:
        try:
            return self.definition.fields[name]
        except KeyError:
            raise ValueError(f"Form '{self.definition.name}' has no field '{name}'") from None

    def mount(self, name: str) -> None:
        """Register a field and subscribe it to everything it reads."""
        self._field(name)
        self.coordinator.register_field(name)
        self.graph.set_subscriptions(name, self.subscriptions_for(name))

    def unmount(self, name: str) -> None:
        self.coordinator.unregister_field(name)

    def subscriptions_for(self, name: str) -> list[str]:
        """Fields that ``name`` depends on.

        Combines ``subscribesTo``, fields read by ``selectProps`` and the
        field's conditions, and the conditions and subscriptions of its
        group chain.
        """
        field_def = self._field(name)
        found: dict[str, None] = {}

        names = [
            *field_def.subscribes_to,
            *infer_fields_from_descriptor(field_def.select_props),
            *infer_fields_from_conditions(field_def.conditions),
        ]
        for group in self.definition.group_chain(field_def.group):
            names.extend(infer_fields_from_conditions(group.conditions))
            names.extend(group.subscribes_to)

        for target in names:
            if target != name:
                found.setdefault(target, None)
        return list(found)

    def unused_fields(self) -> list[str]:
        """Defined fields that are not mounted."""
        return self.graph.unused_fields(self.definition.fields)

    # -------------------------------------------------------------------------
    # Conditions
    # -------------------------------------------------------------------------

    def _resolve_callables(
        self, conditions: list[ConditionDescriptor], form_state: FormState
    ) -> list[ConditionDescriptor]:
        """Replace callable triggers with their outcome.

        A matching callable rule becomes an always-true rule; a failing
        one is dropped, since non-matching rules have no effect.
        """
        resolved = []
        for condition in conditions:
            if callable(condition.select_when):
                if not trigger_matches(condition, condition.select_when(form_state)):
                    continue
                condition = dataclasses.replace(
                    condition, select_when=True, is_=UNSET, truthy=None
                )
            resolved.append(condition)
        return resolved

    def _evaluate(
        self,
        conditions: list[ConditionDescriptor],
        form_state: FormState,
        props: Mapping[str, Any] | None = None,
    ) -> ConditionResult:
        result = evaluate_conditions(
            self._resolve_callables(conditions, form_state),
            form_state.values,
            field_states=form_state.field_states(),
            record=form_state.record,
            props=props,
        )
        if callable(result.set_value):
            result.set_value = result.set_value(form_state)
        return result

    def field_conditions(self, name: str) -> ConditionResult:
        """Merged result of the field's own conditions."""
        field_def = self._field(name)
        return self._evaluate(field_def.conditions, self.store.form_state(), {"name": name})

    def group_state(self, group_name: str | None) -> GroupState:
        """State of a group combined with its ancestors.

        Disabled is OR'd and visible AND'ed down the chain; the nearest
        group with a set-value wins.
        """
        state = GroupState()
        form_state = self.store.form_state()

        for group in self.definition.group_chain(group_name):
            result = self._evaluate(group.conditions, form_state)
            if result.has_disabled_condition:
                state.disabled = bool(result.disabled) or state.disabled
            if result.has_visible_condition and result.visible is not None:
                state.visible = result.visible and state.visible
            if result.has_set_condition:
                state.has_set_condition = True
                state.set_value = result.set_value

        return state

    def effective_set_value(self, name: str) -> tuple[bool, Any]:
        """The set-value that applies to a field; field conditions beat groups."""
        result = self.field_conditions(name)
        if result.has_set_condition:
            return True, result.set_value

        group = self.group_state(self._field(name).group)
        if group.has_set_condition:
            return True, group.set_value

        return False, None

    def is_disabled(self, name: str) -> bool:
        field_def = self._field(name)
        if field_def.disabled is not None:
            return bool(field_def.disabled)
        result = self.field_conditions(name)
        if result.has_disabled_condition:
            return bool(result.disabled)
        return self.group_state(field_def.group).disabled

    def is_visible(self, name: str) -> bool:
        field_def = self._field(name)
        if field_def.hidden is not None:
            return not field_def.hidden
        result = self.field_conditions(name)
        if result.has_visible_condition:
            return True if result.visible is None else bool(result.visible)
        return self.group_state(field_def.group).visible

    def refresh_disabled(self) -> None:
        """Recompute which fields are disabled (read by isDisabled matchers)."""
        self.store.disabled = {name for name in self.definition.fields if self.is_disabled(name)}

    # -------------------------------------------------------------------------
    # Changes
    # -------------------------------------------------------------------------

    def change_field(self, name: str, value: Any) -> None:
        """Set a field's value and propagate it.

        With auto-save enabled this must run inside an event loop.
        """
        self._field(name)
        if self.definition.auto_save:
            self.coordinator.change_field(name, value)
        else:
            self.store.set_value(name, value)

        self._apply_set_values(name)
        self.refresh_disabled()

    def _apply_set_value(self, name: str, validate: bool = True) -> bool:
        has_value, value = self.effective_set_value(name)
        if not has_value or value is None:
            return False
        if strict_equals(self.store.values.get(name), value):
            return False
        logger.debug("Condition sets '%s' to %r", name, value)
        self.store.set_value(name, value, touch=False, validate=validate)
        return True

    def _apply_set_values(self, changed: str) -> None:
        """Walk subscribers breadth-first, applying differing set-values."""
        visited = {changed}
        queue = deque(sorted(self.graph.subscribers_of(changed)))

        while queue:
            name = queue.popleft()
            if name in visited:
                continue
            visited.add(name)

            if name in self.definition.fields and self._apply_set_value(name):
                queue.extend(sorted(self.graph.subscribers_of(name) - visited))

    def _apply_initial_set_values(self) -> None:
        for name in self.definition.fields:
            self._apply_set_value(name, validate=False)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def resolve_props(self, name: str) -> dict[str, Any]:
        """Input props, then field props, then evaluated ``selectProps``."""
        field_def = self._field(name)
        props = {**self.definition.input_for(name).props, **field_def.props}

        if field_def.select_props is not None:
            form_state = self.store.form_state()
            context = build_field_context(form_state, name, props)
            evaluated = _invoke_callables(
                evaluate_descriptor(field_def.select_props, context), form_state
            )
            if isinstance(evaluated, Mapping):
                props.update(evaluated)
            else:
                logger.warning(
                    "selectProps of '%s' did not produce a mapping: %r", name, evaluated
                )

        return props

    def field_view(self, name: str) -> FieldView:
        field_def = self._field(name)
        props = self.resolve_props(name)
        error = self.store.get_error(name)
        return FieldView(
            name=name,
            value=self.store.values.get(name),
            error=error.message if error is not None else None,
            disabled=self.is_disabled(name),
            visible=self.is_visible(name),
            props=props,
            label=props.get("label") or field_def.label or name,
        )

    def title(self) -> str | None:
        """Evaluated ``selectTitle``, falling back to the static title."""
        if self.definition.select_title is None:
            return self.definition.title

        form_state = self.store.form_state()
        evaluated = _invoke_callables(
            evaluate_descriptor(self.definition.select_title, build_form_context(form_state)),
            form_state,
        )
        if evaluated is None:
            return self.definition.title
        return str(evaluated)

    def form_state(self) -> FormState:
        return self.store.form_state()

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def submit(self) -> bool:
        """Validate every field and submit when all pass."""
        valid = await self.store.trigger_validation(list(self.definition.fields))
        if not valid:
            logger.info("Form '%s' not submitted: validation failed", self.definition.name)
            return False
        await self.store.submit(self.store.get_values())
        return True

    async def flush(self) -> SaveOutcome | None:
        """Run a pending auto-save immediately."""
        await self.store.wait_validations()
        return await self.coordinator.flush()

    async def wait_idle(self) -> None:
        """Wait for pending validations and auto-save runs."""
        await self.store.wait_validations()
        await self.coordinator.wait_idle()
