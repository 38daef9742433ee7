"""Tests for lexical dependency inference."""

import pytest

from formality.expressions import (
    infer_fields_from_descriptor,
    infer_fields_from_expression,
)


class TestInferFieldsFromExpression:
    """Tests for infer_fields_from_expression."""

    def test_root_fields(self):
        assert infer_fields_from_expression("client.id > 0 && signed") == ["client", "signed"]

    def test_qualified_prefix_is_skipped(self):
        assert infer_fields_from_expression("record.name") == []
        assert infer_fields_from_expression("fields.a.isTouched || errors.b") == []

    def test_unqualified_prefix_name_is_a_field(self):
        assert infer_fields_from_expression("record && props") == ["record", "props"]

    def test_prefix_needs_an_adjacent_dot(self):
        assert infer_fields_from_expression("record .name") == ["record"]

    def test_keywords_are_skipped(self):
        assert infer_fields_from_expression("typeof a === undefined || b === null") == ["a", "b"]

    def test_property_names_are_skipped(self):
        assert infer_fields_from_expression("a.b.c + d . e") == ["a", "d"]

    def test_deduplicated_in_first_seen_order(self):
        assert infer_fields_from_expression("b + a + b + a") == ["b", "a"]

    def test_string_contents_are_skipped(self):
        assert infer_fields_from_expression("status === 'draft' && owner") == ["status", "owner"]

    def test_numbers_are_not_fields(self):
        assert infer_fields_from_expression("1e3 + 2.5 + x") == ["x"]

    @pytest.mark.parametrize("source", ["a +", "(a && ", "a ? b"])
    def test_works_on_invalid_expressions(self, source):
        assert infer_fields_from_expression(source)[0] == "a"


class TestInferFieldsFromDescriptor:
    """Tests for infer_fields_from_descriptor."""

    def test_nested_descriptor(self):
        descriptor = {
            "label": "name",
            "options": ["country", {"disabled": "locked && !admin"}],
            "size": 3,
        }

        assert infer_fields_from_descriptor(descriptor) == [
            "name",
            "country",
            "locked",
            "admin",
        ]

    def test_callables_contribute_nothing(self):
        assert infer_fields_from_descriptor(lambda state: state.values["a"]) == []
        assert infer_fields_from_descriptor(["a", lambda state: 1]) == ["a"]

    def test_non_strings(self):
        assert infer_fields_from_descriptor(None) == []
        assert infer_fields_from_descriptor(True) == []
