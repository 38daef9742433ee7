"""Condition evaluation and merging.

Matching rules are merged in declaration order:
- disabled: OR across every matching rule with a ``disabled`` action
- visible: the first matching ``visible`` seeds the result, later ones AND in
- set/selectSet: last match wins

Callable triggers never match here; the form adapter resolves them with
the full form state before calling in. Callable ``selectSet`` values are
passed through unresolved for the same reason.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from formality.conditions.types import (
    UNSET,
    ConditionDescriptor,
    ConditionResult,
    FieldMatcher,
)
from formality.expressions.context import (
    FieldState,
    build_evaluation_context,
    unwrap,
)
from formality.expressions.evaluator import (
    evaluate,
    evaluate_descriptor,
    is_truthy,
    strict_equals,
)
from formality.expressions.infer import infer_fields_from_descriptor

logger = logging.getLogger(__name__)

ConditionLike = ConditionDescriptor | Mapping[str, Any]


def _value_matches(value: Any, matcher: FieldMatcher) -> bool:
    """Apply the value checks (``is``/``truthy``); all given must hold."""
    if matcher.is_ is not UNSET and not strict_equals(value, matcher.is_):
        return False
    if matcher.truthy is not None and is_truthy(value) != matcher.truthy:
        return False
    return True


def _field_matches(
    value: Any, state: FieldState | None, matcher: FieldMatcher
) -> bool:
    """Check one field against a matcher.

    A field with no state is treated as valid and not disabled.
    """
    if matcher.is_empty:
        return is_truthy(value)

    if not _value_matches(value, matcher):
        return False

    if matcher.is_valid is not None:
        valid = state is None or not state.invalid
        if valid != matcher.is_valid:
            return False

    if matcher.is_disabled is not None:
        disabled = state is not None and state.disabled
        if disabled != matcher.is_disabled:
            return False

    return True


def _matches(
    condition: ConditionDescriptor,
    field_values: Mapping[str, Any],
    field_states: Mapping[str, FieldState] | None,
    context: Mapping[str, Any],
) -> bool:
    states = field_states or {}

    if isinstance(condition.when, Mapping) and condition.when:
        return all(
            _field_matches(field_values.get(name), states.get(name), matcher)
            for name, matcher in condition.when.items()
        )

    if isinstance(condition.when, str) and condition.when:
        name = condition.when
        return _field_matches(field_values.get(name), states.get(name), condition.matcher)

    trigger = condition.select_when
    if trigger is None or callable(trigger):
        return False

    if isinstance(trigger, str):
        result = evaluate(trigger, context)
    else:
        result = evaluate_descriptor(trigger, context)

    return trigger_matches(condition, result)


def trigger_matches(condition: ConditionLike, value: Any) -> bool:
    """Apply a rule's ``is``/``truthy`` matchers to a computed trigger value.

    Without either matcher the value's truthiness decides. Used for
    expression triggers and by hosts that resolve callable triggers.
    """
    matcher = ConditionDescriptor.coerce(condition).matcher
    if matcher.is_ is UNSET and matcher.truthy is None:
        return is_truthy(value)
    return _value_matches(value, matcher)


def _resolve_set_value(select_set: Any, context: Mapping[str, Any]) -> Any:
    if isinstance(select_set, str):
        return unwrap(evaluate(select_set, context))
    if callable(select_set):
        return select_set
    return unwrap(evaluate_descriptor(select_set, context))


def _apply(
    result: ConditionResult,
    condition: ConditionDescriptor,
    context: Mapping[str, Any],
) -> None:
    if condition.disabled is not None:
        result.disabled = (result.disabled or False) or condition.disabled
        result.has_disabled_condition = True

    if condition.visible is not None:
        if result.has_visible_condition:
            result.visible = bool(result.visible) and condition.visible
        else:
            result.visible = condition.visible
        result.has_visible_condition = True

    if condition.set_value is not UNSET:
        result.set_value = condition.set_value
        result.has_set_condition = True
    elif condition.select_set is not None:
        result.set_value = _resolve_set_value(condition.select_set, context)
        result.has_set_condition = True


def condition_matches(
    condition: ConditionLike,
    field_values: Mapping[str, Any],
    record: Mapping[str, Any] | None = None,
    props: Mapping[str, Any] | None = None,
    field_states: Mapping[str, FieldState] | None = None,
) -> bool:
    """Check whether a single condition's trigger and matchers hold."""
    context = build_evaluation_context(
        field_values, record=record, props=props, field_states=field_states
    )
    return _matches(
        ConditionDescriptor.coerce(condition), field_values, field_states, context
    )


def evaluate_conditions(
    conditions: Iterable[ConditionLike],
    field_values: Mapping[str, Any],
    field_states: Mapping[str, FieldState] | None = None,
    record: Mapping[str, Any] | None = None,
    props: Mapping[str, Any] | None = None,
) -> ConditionResult:
    """Evaluate conditions in order and merge the matching ones.

    Args:
        conditions: Descriptors or their mapping form
        field_values: Current value per field name
        field_states: Optional metadata (validity, disabled) per field
        record: The record being edited
        props: Extra properties for expressions

    Returns:
        The merged ConditionResult
    """
    context = build_evaluation_context(
        field_values, record=record, props=props, field_states=field_states
    )
    result = ConditionResult()

    for raw in conditions:
        condition = ConditionDescriptor.coerce(raw)
        if not condition.has_trigger:
            logger.debug("Skipping condition without a trigger: %r", condition)
            continue
        if _matches(condition, field_values, field_states, context):
            _apply(result, condition, context)

    return result


def merge_condition_results(results: Sequence[ConditionResult]) -> ConditionResult:
    """Combine results from several sources (e.g. group then field).

    Uses the same laws as ``evaluate_conditions``; later results win the
    set value.
    """
    merged = ConditionResult()

    for result in results:
        if result.has_disabled_condition:
            merged.disabled = (merged.disabled or False) or bool(result.disabled)
            merged.has_disabled_condition = True

        if result.has_visible_condition:
            if merged.visible is None:
                merged.visible = result.visible
            else:
                # A source without a resolved visible value does not hide
                merged.visible = merged.visible and (
                    True if result.visible is None else result.visible
                )
            merged.has_visible_condition = True

        if result.has_set_condition:
            merged.set_value = result.set_value
            merged.has_set_condition = True

    return merged


def infer_fields_from_conditions(conditions: Iterable[ConditionLike]) -> list[str]:
    """Collect every field a list of conditions depends on.

    Includes ``when`` field names, fields inferred from ``selectWhen`` and
    ``selectSet``, and explicit ``subscribesTo`` entries, in first-seen
    order.
    """
    found: dict[str, None] = {}

    for raw in conditions:
        condition = ConditionDescriptor.coerce(raw)

        if isinstance(condition.when, str) and condition.when:
            found.setdefault(condition.when, None)
        elif isinstance(condition.when, Mapping):
            for name in condition.when:
                found.setdefault(name, None)

        for descriptor in (condition.select_when, condition.select_set):
            if descriptor is not None:
                for name in infer_fields_from_descriptor(descriptor):
                    found.setdefault(name, None)

        for name in condition.subscribes_to:
            found.setdefault(name, None)

    return list(found)
