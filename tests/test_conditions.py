"""Tests for condition evaluation and merging."""

import itertools

import pytest

from formality.conditions import (
    UNSET,
    ConditionDescriptor,
    ConditionResult,
    FieldMatcher,
    condition_matches,
    evaluate_conditions,
    infer_fields_from_conditions,
    merge_condition_results,
    trigger_matches,
)
from formality.expressions import FieldState


# =============================================================================
# Descriptor parsing
# =============================================================================


class TestConditionDescriptor:
    """Tests for ConditionDescriptor.from_dict."""

    def test_from_dict(self):
        condition = ConditionDescriptor.from_dict(
            {
                "when": "signed",
                "is": None,
                "isValid": True,
                "disabled": True,
                "set": 0,
                "subscribesTo": "other",
            }
        )

        assert condition.when == "signed"
        assert condition.is_ is None
        assert condition.is_valid is True
        assert condition.disabled is True
        assert condition.set_value == 0
        assert condition.subscribes_to == ("other",)
        assert condition.has_trigger
        assert condition.has_set

    def test_unset_defaults(self):
        condition = ConditionDescriptor.from_dict({"when": "a"})

        assert condition.is_ is UNSET
        assert condition.set_value is UNSET
        assert not condition.has_set
        assert repr(UNSET) == "UNSET"

    def test_mapping_when(self):
        condition = ConditionDescriptor.from_dict(
            {"when": {"a": {"isTruthy": True}, "b": 3}, "visible": False}
        )

        assert condition.when == {"a": FieldMatcher(truthy=True), "b": FieldMatcher(is_=3)}

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown condition keys: disable"):
            ConditionDescriptor.from_dict({"when": "a", "disable": True})

    def test_bad_when(self):
        with pytest.raises(ValueError, match="must be a field name or a mapping"):
            ConditionDescriptor.from_dict({"when": 3})

    def test_not_a_mapping(self):
        with pytest.raises(ValueError, match="must be a mapping"):
            ConditionDescriptor.from_dict(["when", "a"])

    def test_coerce_passes_descriptors_through(self):
        condition = ConditionDescriptor(when="a")

        assert ConditionDescriptor.coerce(condition) is condition

    def test_result_to_dict(self):
        assert ConditionResult(disabled=True, has_disabled_condition=True).to_dict() == {
            "disabled": True,
            "visible": None,
            "setValue": None,
            "hasDisabledCondition": True,
            "hasVisibleCondition": False,
            "hasSetCondition": False,
        }


# =============================================================================
# Merge laws
# =============================================================================


class TestMergeLaws:
    """disabled is OR'd, visible AND'ed, set last-match-wins."""

    @pytest.mark.parametrize("a,b", list(itertools.product([True, False], repeat=2)))
    def test_disabled_or_law(self, a, b):
        conditions = [
            {"when": "a", "truthy": True, "disabled": True},
            {"when": "b", "truthy": True, "disabled": True},
        ]

        result = evaluate_conditions(conditions, {"a": a, "b": b})

        assert bool(result.disabled) is (a or b)
        assert result.has_disabled_condition is (a or b)

    def test_disabled_false_rule_does_not_undo_true(self):
        conditions = [
            {"when": "a", "disabled": True},
            {"when": "a", "disabled": False},
        ]

        result = evaluate_conditions(conditions, {"a": 1})

        assert result.disabled is True

    def test_disabled_untouched_without_rules(self):
        result = evaluate_conditions([{"when": "a", "visible": False}], {"a": 1})

        assert result.disabled is None
        assert result.has_disabled_condition is False

    def test_visible_and_law(self):
        both_true = evaluate_conditions(
            [{"when": "a", "visible": True}, {"when": "b", "visible": True}],
            {"a": 1, "b": 1},
        )
        one_false = evaluate_conditions(
            [{"when": "a", "visible": False}, {"when": "b", "visible": True}],
            {"a": 1, "b": 1},
        )

        assert both_true.visible is True
        assert one_false.visible is False
        assert one_false.has_visible_condition

    def test_visible_seeded_by_first_match(self):
        result = evaluate_conditions(
            [{"when": "a", "visible": False}, {"when": "b", "visible": True}],
            {"a": 0, "b": 1},
        )

        assert result.visible is True

    @pytest.mark.parametrize("earlier", [None, 0, "x", [1]])
    def test_set_last_write_wins(self, earlier):
        result = evaluate_conditions(
            [{"when": "a", "set": earlier}, {"when": "b", "set": "later"}],
            {"a": True, "b": True},
        )

        assert result.set_value == "later"
        assert result.has_set_condition

    def test_select_set_expression(self):
        result = evaluate_conditions(
            [{"when": "client", "selectSet": "client.rate * 2"}],
            {"client": {"rate": 5}},
        )

        assert result.set_value == 10

    def test_select_set_descriptor(self):
        result = evaluate_conditions(
            [{"when": "a", "selectSet": {"total": "a + 1", "fixed": 3}}],
            {"a": 1},
        )

        assert result.set_value == {"total": 2, "fixed": 3}

    def test_static_set_wins_over_select_set_in_one_rule(self):
        result = evaluate_conditions(
            [{"when": "a", "set": 1, "selectSet": "missing.deep.path"}], {"a": True}
        )

        assert result.set_value == 1
        assert result.has_set_condition

    def test_set_none_is_a_value(self):
        result = evaluate_conditions([{"when": "a", "set": None}], {"a": 1})

        assert result.has_set_condition
        assert result.set_value is None

    def test_callable_select_set_passed_through(self):
        def compute(form_state):
            return 1

        result = evaluate_conditions([{"when": "a", "selectSet": compute}], {"a": 1})

        assert result.set_value is compute


# =============================================================================
# Triggers and matchers
# =============================================================================


class TestTriggers:
    """Tests for each trigger kind."""

    def test_no_trigger_never_matches(self):
        result = evaluate_conditions([{"disabled": True}], {"a": 1})

        assert result.has_disabled_condition is False

    def test_single_field_truthiness(self):
        assert condition_matches({"when": "a"}, {"a": "x"})
        assert not condition_matches({"when": "a"}, {"a": ""})
        assert not condition_matches({"when": "a"}, {})

    def test_single_field_is(self):
        assert condition_matches({"when": "status", "is": "sent"}, {"status": "sent"})
        assert not condition_matches({"when": "status", "is": "sent"}, {"status": "draft"})
        assert condition_matches({"when": "status", "is": None}, {})

    def test_single_field_falsy(self):
        assert condition_matches({"when": "a", "truthy": False}, {"a": 0})
        assert not condition_matches({"when": "a", "truthy": False}, {"a": 1})

    def test_all_matchers_must_hold(self):
        condition = {"when": "a", "is": 1, "isValid": True}
        states = {"a": FieldState(value=1, error="bad")}

        assert not condition_matches(condition, {"a": 1}, field_states=states)
        assert condition_matches(condition, {"a": 1})

    def test_missing_state_is_valid_and_enabled(self):
        assert condition_matches({"when": "a", "isValid": True}, {"a": None})
        assert condition_matches({"when": "a", "isDisabled": False}, {"a": None})
        assert not condition_matches({"when": "a", "isDisabled": True}, {"a": None})

    def test_is_disabled_reads_state(self):
        states = {"a": FieldState(disabled=True)}

        assert condition_matches({"when": "a", "isDisabled": True}, {"a": 1}, field_states=states)

    def test_mapping_requires_all_fields(self):
        condition = {"when": {"a": {"is": 1}, "b": {}}, "disabled": True}

        assert condition_matches(condition, {"a": 1, "b": True})
        assert not condition_matches(condition, {"a": 1, "b": False})
        assert not condition_matches(condition, {"a": 2, "b": True})

    def test_mapping_per_field_state(self):
        condition = {"when": {"a": {"isValid": False}}}
        states = {"a": FieldState(error="bad")}

        assert condition_matches(condition, {"a": 1}, field_states=states)
        assert not condition_matches(condition, {"a": 1})

    def test_expression_trigger(self):
        assert condition_matches({"selectWhen": "count > 5"}, {"count": 10})
        assert not condition_matches({"selectWhen": "count > 5"}, {"count": 3})

    def test_expression_trigger_with_is(self):
        condition = {"selectWhen": "a + b", "is": 3}

        assert condition_matches(condition, {"a": 1, "b": 2})
        assert not condition_matches(condition, {"a": 1, "b": 1})

    def test_expression_trigger_reads_record_and_props(self):
        assert condition_matches(
            {"selectWhen": "record.locked && props.name === 'a'"},
            {},
            record={"locked": True},
            props={"name": "a"},
        )

    def test_invalid_expression_does_not_match(self):
        assert not condition_matches({"selectWhen": "a +"}, {"a": 1})

    def test_callable_trigger_never_matches(self):
        calls = []

        def trigger(form_state):
            calls.append(form_state)
            return True

        assert not condition_matches({"selectWhen": trigger}, {"a": 1})
        assert calls == []

    def test_trigger_matches(self):
        assert trigger_matches({"selectWhen": "x"}, 1)
        assert not trigger_matches({"selectWhen": "x"}, 0)
        assert trigger_matches({"selectWhen": "x", "is": "a"}, "a")
        assert trigger_matches({"selectWhen": "x", "truthy": False}, "")


# =============================================================================
# Merging results and inference
# =============================================================================


class TestMergeConditionResults:
    """Tests for merge_condition_results."""

    def test_merge(self):
        group = ConditionResult(
            disabled=False,
            visible=True,
            set_value="group",
            has_disabled_condition=True,
            has_visible_condition=True,
            has_set_condition=True,
        )
        field = ConditionResult(
            disabled=True,
            visible=False,
            set_value="field",
            has_disabled_condition=True,
            has_visible_condition=True,
            has_set_condition=True,
        )

        merged = merge_condition_results([group, field])

        assert merged.disabled is True
        assert merged.visible is False
        assert merged.set_value == "field"

    def test_untouched_results_are_ignored(self):
        merged = merge_condition_results(
            [ConditionResult(), ConditionResult(visible=True, has_visible_condition=True)]
        )

        assert merged.visible is True
        assert merged.has_disabled_condition is False
        assert merged.disabled is None

    def test_unresolved_visible_counts_as_shown(self):
        merged = merge_condition_results(
            [
                ConditionResult(visible=True, has_visible_condition=True),
                ConditionResult(visible=None, has_visible_condition=True),
            ]
        )

        assert merged.visible is True

        merged = merge_condition_results(
            [
                ConditionResult(visible=None, has_visible_condition=True),
                ConditionResult(visible=False, has_visible_condition=True),
            ]
        )

        assert merged.visible is False

    def test_empty(self):
        assert merge_condition_results([]) == ConditionResult()


class TestInferFieldsFromConditions:
    """Tests for infer_fields_from_conditions."""

    def test_collects_every_source(self):
        def trigger(form_state):
            return True

        conditions = [
            {"when": "signed", "disabled": True},
            {"when": {"a": True, "b": {"isValid": True}}},
            {"selectWhen": "client.id > 0", "selectSet": "rate * 2"},
            {"selectWhen": trigger, "subscribesTo": ["hidden", "signed"]},
        ]

        assert infer_fields_from_conditions(conditions) == [
            "signed",
            "a",
            "b",
            "client",
            "rate",
            "hidden",
        ]
