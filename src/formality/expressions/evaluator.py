"""Evaluator for the Formality expression language.

Walks the AST and computes the result against an evaluation context built
by ``formality.expressions.context``. FieldState shortcuts are unwrapped
before every operator is applied and before a result is returned.

The module-level ``evaluate`` never raises: lexer, parser and evaluation
errors are logged as warnings and the result is None.
"""

import logging
import math
import operator
from collections.abc import Mapping
from typing import Any

from formality.expressions.context import get_property, to_plain, unwrap
from formality.expressions.lexer import LexerError
from formality.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    BinaryOp,
    Compound,
    Conditional,
    ExpressionCache,
    FunctionCall,
    Identifier,
    IndexAccess,
    Literal,
    LogicalOp,
    MemberAccess,
    ParseError,
    UnaryOp,
    default_cache,
    parse,
)

logger = logging.getLogger(__name__)


class EvaluationError(Exception):
    """Raised when a well-formed tree cannot be evaluated."""
    pass


_RELATIONAL = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


# -----------------------------------------------------------------------------
# Coercion helpers
# -----------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_number(text: str) -> int | float | None:
    text = text.strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _to_number(value: Any) -> int | float:
    """Coerce a value for arithmetic (booleans count as 0/1)."""
    if isinstance(value, bool):
        return int(value)
    if _is_number(value):
        return value
    if isinstance(value, str):
        number = _parse_number(value)
        if number is not None:
            return number
    raise EvaluationError(f"Cannot convert {type(value).__name__} {value!r} to a number")


def _to_string(value: Any) -> str:
    """String form used by '+' concatenation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None else _to_string(item) for item in value)
    return str(value)


def is_truthy(value: Any) -> bool:
    """Truthiness of a (possibly wrapped) value."""
    value = unwrap(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return value != 0 and not math.isnan(value)
    if isinstance(value, int):
        return value != 0
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) > 0
    return True


def strict_equals(left: Any, right: Any) -> bool:
    """``===``: no cross-type coercion."""
    left, right = unwrap(left), unwrap(right)

    if left is None or right is None:
        return left is None and right is None

    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right

    if _is_number(left) and _is_number(right):
        return left == right

    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(
            strict_equals(a, b) for a, b in zip(left, right)
        )

    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return left.keys() == right.keys() and all(
            strict_equals(left[key], right[key]) for key in left
        )

    return left == right


def loose_equals(left: Any, right: Any) -> bool:
    """``==``: booleans become numbers, numeric strings match numbers."""
    left, right = unwrap(left), unwrap(right)

    if left is None or right is None:
        return left is None and right is None

    if isinstance(left, bool):
        left = int(left)
    if isinstance(right, bool):
        right = int(right)

    if _is_number(left) and isinstance(right, str):
        number = _parse_number(right)
        return number is not None and left == number
    if isinstance(left, str) and _is_number(right):
        number = _parse_number(left)
        return number is not None and number == right

    return strict_equals(left, right)


def type_of(value: Any) -> str:
    """Run-time type name, as returned by ``typeof``."""
    value = unwrap(value)
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value):
        return "function"
    return "object"


# -----------------------------------------------------------------------------
# Evaluator
# -----------------------------------------------------------------------------


class Evaluator:
    """Evaluates expression AST against a context mapping.

    Usage:
        ctx = build_evaluation_context({"count": 10})
        evaluator = Evaluator(ctx)
        result = evaluator.evaluate(parse("count > 5"))
    """

    def __init__(self, context: Mapping[str, Any]):
        self.context = context

    def evaluate(self, node: ASTNode) -> Any:
        """Evaluate an AST node and return the result (possibly wrapped)."""
        method_name = f"_eval_{type(node).__name__.lower()}"
        method = getattr(self, method_name, None)

        if method is None:
            raise EvaluationError(f"Unknown node type: {type(node).__name__}")

        return method(node)

    def _value(self, node: ASTNode) -> Any:
        """Evaluate a node and unwrap the result."""
        return unwrap(self.evaluate(node))

    # -------------------------------------------------------------------------
    # Node type evaluators
    # -------------------------------------------------------------------------

    def _eval_literal(self, node: Literal) -> Any:
        return node.value

    def _eval_identifier(self, node: Identifier) -> Any:
        """Evaluate an identifier. Unknown names are None, not an error."""
        return self.context.get(node.name)

    def _eval_memberaccess(self, node: MemberAccess) -> Any:
        """Dot access; missing properties yield None."""
        return get_property(self.evaluate(node.object), node.member)

    def _eval_indexaccess(self, node: IndexAccess) -> Any:
        """Bracket access, e.g. items[0] or record["name"]."""
        obj = self.evaluate(node.object)
        key = self._value(node.index)
        return get_property(obj, key)

    def _eval_logicalop(self, node: LogicalOp) -> Any:
        """Evaluate &&, || and ?? with short-circuiting."""
        left = self._value(node.left)

        if node.operator == "&&":
            return self._value(node.right) if is_truthy(left) else left
        if node.operator == "||":
            return left if is_truthy(left) else self._value(node.right)
        if node.operator == "??":
            return left if left is not None else self._value(node.right)

        raise EvaluationError(f"Unknown logical operator: {node.operator}")

    def _eval_binaryop(self, node: BinaryOp) -> Any:
        """Arithmetic, equality and comparison operators."""
        op = node.operator
        left = self._value(node.left)
        right = self._value(node.right)

        if op == "===":
            return strict_equals(left, right)
        if op == "!==":
            return not strict_equals(left, right)
        if op == "==":
            return loose_equals(left, right)
        if op == "!=":
            return not loose_equals(left, right)

        if op in _RELATIONAL:
            return self._compare(op, left, right)

        if op == "+":
            return self._add(left, right)
        if op == "-":
            return self._arithmetic(left, right, operator.sub)
        if op == "*":
            return self._arithmetic(left, right, operator.mul)
        if op == "/":
            return self._arithmetic(left, right, self._divide)
        if op == "%":
            return self._arithmetic(left, right, self._modulo)

        raise EvaluationError(f"Unknown operator: {op}")

    def _eval_unaryop(self, node: UnaryOp) -> Any:
        """Prefix operators: ! - + typeof."""
        operand = self._value(node.operand)

        if node.operator == "!":
            return not is_truthy(operand)

        if node.operator == "typeof":
            return type_of(operand)

        if node.operator in ("-", "+"):
            if operand is None:
                return None
            number = _to_number(operand)
            return -number if node.operator == "-" else number

        raise EvaluationError(f"Unknown unary operator: {node.operator}")

    def _eval_conditional(self, node: Conditional) -> Any:
        """Evaluate a ternary; only the selected branch runs."""
        if is_truthy(self._value(node.test)):
            return self.evaluate(node.consequent)
        return self.evaluate(node.alternate)

    def _eval_arrayliteral(self, node: ArrayLiteral) -> list[Any]:
        """Evaluate an array literal; elisions become None."""
        return [
            None if element is None else self._value(element)
            for element in node.elements
        ]

    def _eval_compound(self, node: Compound) -> Any:
        """Evaluate each expression in order and return the last."""
        result = None
        for expr in node.body:
            result = self.evaluate(expr)
        return result

    def _eval_functioncall(self, node: FunctionCall) -> Any:
        raise EvaluationError("Function calls are not allowed in expressions")

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _compare(self, op: str, left: Any, right: Any) -> bool:
        """Relational comparison; None on either side is always False."""
        if left is None or right is None:
            return False

        if isinstance(left, str) and isinstance(right, str):
            return _RELATIONAL[op](left, right)

        if isinstance(left, str) and isinstance(right, (int, float)):
            left = _parse_number(left)
            if left is None:
                return False
        elif isinstance(right, str) and isinstance(left, (int, float)):
            right = _parse_number(right)
            if right is None:
                return False

        if isinstance(left, (int, float)) and isinstance(right, (int, float)):
            return _RELATIONAL[op](left, right)

        raise EvaluationError(
            f"Cannot compare {type(left).__name__} and {type(right).__name__}"
        )

    def _add(self, left: Any, right: Any) -> Any:
        """Add two values; any string operand means concatenation."""
        if isinstance(left, str) or isinstance(right, str):
            try:
                return _to_string(left) + _to_string(right)
            except ValueError as e:
                raise EvaluationError(f"Cannot concatenate: {e}") from e

        return self._arithmetic(left, right, operator.add)

    def _arithmetic(self, left: Any, right: Any, op: Any) -> Any:
        if left is None or right is None:
            return None
        try:
            return op(_to_number(left), _to_number(right))
        except (OverflowError, ValueError) as e:
            raise EvaluationError(f"Arithmetic error: {e}") from e

    def _divide(self, left: int | float, right: int | float) -> int | float:
        if right == 0:
            raise EvaluationError("Division by zero")
        if isinstance(left, int) and isinstance(right, int) and left % right == 0:
            return left // right
        return left / right

    def _modulo(self, left: int | float, right: int | float) -> int | float:
        if right == 0:
            raise EvaluationError("Modulo by zero")
        if isinstance(left, int) and isinstance(right, int):
            remainder = abs(left) % abs(right)
            return -remainder if left < 0 else remainder
        return math.fmod(left, right)


# -----------------------------------------------------------------------------
# Public entry points
# -----------------------------------------------------------------------------


def evaluate(
    source: str,
    context: Mapping[str, Any],
    cache: ExpressionCache | None = None,
) -> Any:
    """Parse (cached) and evaluate an expression.

    Never raises: any lexer, parser or evaluation error is logged and the
    result is None.

    Args:
        source: The expression string
        context: Evaluation context, usually from build_evaluation_context
        cache: AST cache; defaults to the process-wide cache

    Returns:
        The plain (unwrapped) result value, or None on error
    """
    try:
        ast = parse(source, cache)
        result = Evaluator(context).evaluate(ast)
    except (LexerError, ParseError, EvaluationError, RecursionError) as e:
        logger.warning("Expression evaluation error for %r: %s", source, e)
        return None

    return to_plain(result)


def evaluate_descriptor(descriptor: Any, context: Mapping[str, Any]) -> Any:
    """Evaluate a descriptor tree.

    Strings are expressions, callables are returned untouched for the
    caller to invoke, lists and mappings are evaluated element-wise and
    anything else is returned as is.
    """
    if isinstance(descriptor, str):
        return evaluate(descriptor, context)
    if callable(descriptor):
        return descriptor
    if isinstance(descriptor, (list, tuple)):
        return [evaluate_descriptor(item, context) for item in descriptor]
    if isinstance(descriptor, Mapping):
        return {
            key: evaluate_descriptor(value, context)
            for key, value in descriptor.items()
        }
    return descriptor


def clear_expression_cache() -> None:
    """Drop every cached AST from the process-wide cache."""
    default_cache.clear()
