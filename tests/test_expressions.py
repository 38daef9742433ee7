"""Tests for the Formality expression language.

Tests cover:
- Lexer: Tokenization of expression strings
- Parser: AST generation and caching
- Evaluator: Operators, coercions and short-circuiting
- evaluate(): error handling and unwrapping
- evaluate_descriptor(): descriptor trees
"""

import logging
import sys

import pytest

from formality.expressions import (
    ArrayLiteral,
    BinaryOp,
    Compound,
    Conditional,
    EvaluationError,
    Evaluator,
    ExpressionCache,
    FieldState,
    FunctionCall,
    Identifier,
    IndexAccess,
    Lexer,
    LexerError,
    Literal,
    LogicalOp,
    MemberAccess,
    ParseError,
    Parser,
    TokenType,
    UnaryOp,
    build_evaluation_context,
    default_cache,
    dump,
    evaluate,
    evaluate_descriptor,
    is_truthy,
    loose_equals,
    parse,
    strict_equals,
    type_of,
)


def run(source, **values):
    """Evaluate against a context built from keyword field values."""
    return evaluate(source, build_evaluation_context(values))


# =============================================================================
# Lexer Tests
# =============================================================================


class TestLexer:
    """Tests for the expression lexer."""

    def test_tokenize_numbers(self):
        tokens = Lexer("42 3.14 .5 1e3").tokenize()

        assert [t.type for t in tokens] == [
            TokenType.NUMBER,
            TokenType.NUMBER,
            TokenType.NUMBER,
            TokenType.NUMBER,
            TokenType.EOF,
        ]
        assert tokens[0].value == 42
        assert isinstance(tokens[0].value, int)
        assert tokens[1].value == 3.14
        assert tokens[2].value == 0.5
        assert tokens[3].value == 1000.0

    def test_tokenize_strings(self):
        tokens = Lexer("\"hello\" 'world' 'it\\'s'").tokenize()

        assert tokens[0].type == TokenType.STRING
        assert tokens[0].value == "hello"
        assert tokens[1].value == "world"
        assert tokens[2].value == "it's"

    def test_tokenize_keywords(self):
        tokens = Lexer("true false null undefined typeof").tokenize()

        assert tokens[0].type == TokenType.BOOLEAN
        assert tokens[0].value is True
        assert tokens[1].value is False
        assert tokens[2].type == TokenType.NULL
        assert tokens[3].type == TokenType.UNDEFINED
        assert tokens[4].type == TokenType.TYPEOF

    def test_keywords_are_case_sensitive(self):
        tokens = Lexer("True NULL").tokenize()

        assert tokens[0].type == TokenType.IDENTIFIER
        assert tokens[1].type == TokenType.IDENTIFIER

    def test_tokenize_operators(self):
        tokens = Lexer("=== !== == != <= >= && || ?? < > ! %").tokenize()

        assert [t.type for t in tokens[:-1]] == [
            TokenType.STRICT_EQ,
            TokenType.STRICT_NEQ,
            TokenType.EQ,
            TokenType.NEQ,
            TokenType.LTE,
            TokenType.GTE,
            TokenType.AND,
            TokenType.OR,
            TokenType.NULLISH,
            TokenType.LT,
            TokenType.GT,
            TokenType.NOT,
            TokenType.MODULO,
        ]

    def test_identifiers_allow_dollar_and_underscore(self):
        tokens = Lexer("$price _count").tokenize()

        assert tokens[0].value == "$price"
        assert tokens[1].value == "_count"

    def test_tracks_line_and_column(self):
        tokens = Lexer("a\n  b").tokenize()

        assert tokens[1].line == 2
        assert tokens[1].column == 3

    def test_invalid_character(self):
        with pytest.raises(LexerError, match="Unexpected character '@'"):
            Lexer("a @ b").tokenize()

    def test_unterminated_string(self):
        with pytest.raises(LexerError):
            Lexer('"open').tokenize()


# =============================================================================
# Parser Tests
# =============================================================================


class TestParser:
    """Tests for the expression parser."""

    def test_parse_literal(self):
        assert Parser("42").parse() == Literal(42)

    def test_parse_precedence(self):
        ast = Parser("1 + 2 * 3").parse()

        assert ast == BinaryOp("+", Literal(1), BinaryOp("*", Literal(2), Literal(3)))

    def test_parse_logical_ops(self):
        ast = Parser("a || b && c").parse()

        assert ast == LogicalOp(
            "||", Identifier("a"), LogicalOp("&&", Identifier("b"), Identifier("c"))
        )

    def test_parse_nullish_below_or(self):
        ast = Parser("a ?? b || c").parse()

        assert isinstance(ast, LogicalOp)
        assert ast.operator == "??"

    def test_parse_member_and_index(self):
        ast = Parser('client.address["city"]').parse()

        assert ast == IndexAccess(
            MemberAccess(Identifier("client"), "address"), Literal("city")
        )

    def test_keyword_as_member_name(self):
        ast = Parser("options.null").parse()

        assert ast == MemberAccess(Identifier("options"), "null")

    def test_parse_conditional_is_right_associative(self):
        ast = Parser("a ? 1 : b ? 2 : 3").parse()

        assert isinstance(ast, Conditional)
        assert isinstance(ast.alternate, Conditional)

    def test_parse_unary(self):
        assert Parser("!done").parse() == UnaryOp("!", Identifier("done"))
        assert Parser("typeof x").parse() == UnaryOp("typeof", Identifier("x"))

    def test_parse_array_with_elisions(self):
        ast = Parser("[1, , 3]").parse()

        assert ast == ArrayLiteral((Literal(1), None, Literal(3)))

    def test_parse_call(self):
        ast = Parser("max(a, 1)").parse()

        assert ast == FunctionCall(Identifier("max"), (Identifier("a"), Literal(1)))

    def test_parse_compound(self):
        ast = Parser("a; b, c;").parse()

        assert ast == Compound((Identifier("a"), Identifier("b"), Identifier("c")))

    def test_empty_expression(self):
        with pytest.raises(ParseError, match="Empty expression"):
            Parser("   ").parse()

    def test_unexpected_token(self):
        with pytest.raises(ParseError):
            Parser("a b").parse()

    def test_unclosed_paren(self):
        with pytest.raises(ParseError, match="Expected '\\)'"):
            Parser("(a + b").parse()

    def test_dump(self):
        tree = dump(Parser("a > 1").parse())

        assert tree == {
            "type": "BinaryOp",
            "operator": ">",
            "left": {"type": "Identifier", "name": "a"},
            "right": {"type": "Literal", "value": 1},
        }


class TestExpressionCache:
    """Tests for parse() memoization."""

    def test_parse_caches_by_source(self):
        first = parse("a + 1")
        second = parse("a + 1")

        assert first is second
        assert "a + 1" in default_cache

    def test_private_cache(self):
        cache = ExpressionCache()
        parse("x", cache)

        assert "x" in cache
        assert "x" not in default_cache
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0

    def test_failed_parse_not_cached(self):
        cache = ExpressionCache()
        with pytest.raises(ParseError):
            parse("a +", cache)

        assert len(cache) == 0


# =============================================================================
# Evaluator Tests
# =============================================================================


class TestEvaluatorBasics:
    """Identifiers, members and literals."""

    def test_literals(self):
        assert run("42") == 42
        assert run("'text'") == "text"
        assert run("true") is True
        assert run("null") is None
        assert run("undefined") is None

    def test_field_reference(self):
        assert run("count", count=10) == 10

    def test_unknown_identifier_is_none(self):
        assert run("missing") is None

    def test_member_access_on_object_value(self):
        assert run("client.id", client={"id": 7}) == 7

    def test_member_of_none_is_none(self):
        assert run("client.address.city", client=None) is None

    def test_index_access(self):
        assert run("items[1]", items=["a", "b"]) == "b"
        assert run("items.length", items=["a", "b"]) == 2
        assert run("items[5]", items=["a"]) is None
        assert run('client["name"]', client={"name": "Acme"}) == "Acme"

    def test_computed_index(self):
        assert run("items[i + 1]", items=[10, 20, 30], i=1) == 30

    def test_string_length(self):
        assert run("name.length", name="abc") == 3

    def test_array_literal(self):
        assert run("[a, , 2]", a=1) == [1, None, 2]

    def test_compound_returns_last(self):
        assert run("1, 2; a", a="last") == "last"

    def test_field_state_metadata(self):
        ctx = build_evaluation_context(
            {"email": "x"},
            field_states={"email": FieldState(value="x", is_touched=True, error="bad")},
        )

        assert evaluate("email.isTouched", ctx) is True
        assert evaluate("email.invalid", ctx) is True
        assert evaluate("email.error", ctx) == "bad"
        assert evaluate("email.isDirty", ctx) is False
        assert evaluate("email.value", ctx) == "x"


class TestEvaluatorOperators:
    """Arithmetic, comparison and equality."""

    def test_count_scenario(self):
        assert run("count > 5", count=10) is True
        assert run("count > 5", count=3) is False

    def test_arithmetic(self):
        assert run("a + b * 2", a=1, b=3) == 7
        assert run("10 - 4") == 6
        assert run("7 / 2") == 3.5
        assert run("6 / 3") == 2
        assert isinstance(run("6 / 3"), int)
        assert run("7 % 3") == 1

    def test_modulo_sign_follows_dividend(self):
        assert run("-7 % 3") == -1
        assert run("7 % -3") == 1

    def test_string_concatenation(self):
        assert run("'Total: ' + n", n=5) == "Total: 5"
        assert run("'x' + flag", flag=True) == "xtrue"
        assert run("'x' + missing") == "xnull"
        assert run("'v' + 2.0") == "v2"

    def test_arithmetic_with_none(self):
        assert run("a + 1") is None
        assert run("a * 2") is None
        assert run("-a") is None

    def test_numeric_string_coercion(self):
        assert run("'4' * 2") == 8
        assert run("true + 1") == 2

    def test_relational(self):
        assert run("'b' > 'a'") is True
        assert run("'10' > 9") is True
        assert run("'abc' > 1") is False
        assert run("a < 1") is False

    def test_strict_equality(self):
        assert run("1 === 1.0") is True
        assert run("1 === '1'") is False
        assert run("true === 1") is False
        assert run("a === null") is True
        assert run("a === undefined") is True
        assert run("status !== 'draft'", status="sent") is True

    def test_loose_equality(self):
        assert run("1 == '1'") is True
        assert run("true == 1") is True
        assert run("null == 0") is False
        assert run("'a' != 'b'") is True

    def test_typeof(self):
        assert run("typeof a") == "undefined"
        assert run("typeof 1") == "number"
        assert run("typeof 'x'") == "string"
        assert run("typeof true") == "boolean"
        assert run("typeof items", items=[1]) == "object"

    def test_unary_not_on_wrapped_value(self):
        assert run("!signed", signed=False) is True
        assert run("!signed", signed=True) is False

    def test_conditional(self):
        assert run("signed ? 'Yes' : 'No'", signed=True) == "Yes"
        assert run("signed ? 'Yes' : 'No'", signed=0) == "No"


class TestShortCircuit:
    """Logical operators only evaluate what they need."""

    def test_and_short_circuits(self):
        assert run("a && b.x.y.z", a=False, b=None) is False

    def test_and_returns_operand(self):
        assert run("a && b", a=1, b="x") == "x"
        assert run("a && b", a=0, b="x") == 0

    def test_or_returns_operand(self):
        assert run("a || 'fallback'", a="") == "fallback"
        assert run("a || 'fallback'", a="set") == "set"

    def test_nullish(self):
        assert run("a ?? 5") == 5
        assert run("a ?? 5", a=0) == 0
        assert run("a ?? 5", a=False) is False

    def test_untaken_branch_errors_are_not_raised(self):
        assert run("a ? 1 : 1 / 0", a=True) == 1
        assert run("false && max(1)") is False

    def test_results_are_unwrapped(self):
        result = run("a || b", a=None, b=3)

        assert result == 3
        assert not isinstance(result, FieldState)


class TestEvaluationErrors:
    """evaluate() logs and returns None instead of raising."""

    def test_call_is_rejected(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert run("max(1, 2)") is None

        assert "Function calls are not allowed" in caplog.text

    def test_syntax_error_returns_none(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert run("a +") is None

        assert "Expression evaluation error" in caplog.text

    def test_lexer_error_returns_none(self):
        assert run("a # b") is None

    def test_division_by_zero(self):
        assert run("1 / 0") is None
        assert run("1 % 0") is None

    def test_non_numeric_arithmetic(self):
        assert run("'abc' * 2") is None

    def test_float_overflow_returns_none(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert run("9" * 400 + " * 1.5") is None
            assert run("9" * 400 + " / 1.5") is None

        assert "Arithmetic error" in caplog.text

    @pytest.mark.skipif(
        not hasattr(sys, "get_int_max_str_digits"), reason="no integer digit limit"
    )
    def test_number_literal_past_digit_limit(self):
        with pytest.raises(LexerError, match="Invalid number literal"):
            Lexer("9" * 5000).tokenize()

        assert run("9" * 5000) is None

    @pytest.mark.skipif(
        not hasattr(sys, "get_int_max_str_digits"), reason="no integer digit limit"
    )
    def test_concatenating_huge_integer_returns_none(self):
        assert run("n + ''", n=10**5000) is None

    def test_strict_evaluator_raises(self):
        evaluator = Evaluator(build_evaluation_context({}))

        with pytest.raises(EvaluationError):
            evaluator.evaluate(parse("f()"))

    def test_idempotent(self):
        ctx = build_evaluation_context({"count": 10, "name": "x"})

        first = evaluate("count > 5 && name + '!'", ctx)
        second = evaluate("count > 5 && name + '!'", ctx)

        assert first == second == "x!"


# =============================================================================
# Coercion helper Tests
# =============================================================================


class TestCoercionHelpers:
    """Tests for the public coercion helpers."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, False),
            (0, False),
            (0.0, False),
            ("", False),
            ([], False),
            ({}, False),
            (False, False),
            (1, True),
            ("0", True),
            ([0], True),
            (FieldState(value=""), False),
            (FieldState(value="x"), True),
        ],
    )
    def test_is_truthy(self, value, expected):
        assert is_truthy(value) is expected

    def test_strict_equals_collections(self):
        assert strict_equals([1, {"a": 2}], [1, {"a": 2}])
        assert not strict_equals([1], [True])

    def test_loose_equals_numeric_strings(self):
        assert loose_equals("2.5", 2.5)
        assert not loose_equals("abc", 0)

    def test_type_of_callable(self):
        assert type_of(lambda: None) == "function"


# =============================================================================
# Descriptor Tests
# =============================================================================


class TestEvaluateDescriptor:
    """Tests for descriptor trees."""

    def test_string_is_expression(self):
        ctx = build_evaluation_context({"a": 2})

        assert evaluate_descriptor("a * 2", ctx) == 4

    def test_nested_structure(self):
        ctx = build_evaluation_context({"a": 2, "name": "Acme"})

        result = evaluate_descriptor(
            {"label": "name", "limits": ["a", "a + 1", 10], "flag": True},
            ctx,
        )

        assert result == {"label": "Acme", "limits": [2, 3, 10], "flag": True}

    def test_callable_returned_untouched(self):
        def callback(form_state):
            return 1

        ctx = build_evaluation_context({})

        assert evaluate_descriptor(callback, ctx) is callback
        assert evaluate_descriptor({"x": callback}, ctx) == {"x": callback}

    def test_other_values_pass_through(self):
        ctx = build_evaluation_context({})

        assert evaluate_descriptor(5, ctx) == 5
        assert evaluate_descriptor(None, ctx) is None
