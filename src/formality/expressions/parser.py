"""Parser for the Formality expression language.

Turns the token stream into a tree of frozen dataclasses by recursive
descent, one precedence level per step.

Precedence, loosest first:
1. , ; (compound sequence, top level only)
2. ?: (conditional)
3. ??
4. ||
5. &&
6. == != === !==
7. < <= > >=
8. + -
9. * / %
10. ! - + typeof (unary)
11. . (member access) [] (index) () (call)

Parsed trees are memoized per source string in an ExpressionCache. Trees
are frozen dataclasses, so a cached tree can be shared freely.
"""

import re
from dataclasses import dataclass, fields
from typing import Any

from formality.expressions.lexer import Lexer, Token, TokenType


# -----------------------------------------------------------------------------
# AST Node Types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ASTNode:
    """Common base of all tree nodes."""


@dataclass(frozen=True)
class Literal(ASTNode):
    """A literal value (number, string, boolean, null, undefined)."""
    value: Any


@dataclass(frozen=True)
class Identifier(ASTNode):
    """A field or namespace reference."""
    name: str


@dataclass(frozen=True)
class MemberAccess(ASTNode):
    """Dot notation member access (e.g., client.id, fields.client.isTouched)."""
    object: ASTNode
    member: str


@dataclass(frozen=True)
class IndexAccess(ASTNode):
    """Bracket notation access (e.g., items[0], record["name"])."""
    object: ASTNode
    index: ASTNode


@dataclass(frozen=True)
class BinaryOp(ASTNode):
    """Binary operation (e.g., a + b, x === y)."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class LogicalOp(ASTNode):
    """Short-circuiting operation (&&, ||, ??)."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class UnaryOp(ASTNode):
    """Unary operation (e.g., !x, -y, typeof z)."""
    operator: str
    operand: ASTNode


@dataclass(frozen=True)
class Conditional(ASTNode):
    """Ternary conditional (test ? consequent : alternate)."""
    test: ASTNode
    consequent: ASTNode
    alternate: ASTNode


@dataclass(frozen=True)
class FunctionCall(ASTNode):
    """Call expression. Parsed so it can be rejected at evaluation time."""
    callee: ASTNode
    arguments: tuple[ASTNode, ...]


@dataclass(frozen=True)
class ArrayLiteral(ASTNode):
    """Array literal (e.g., [1, 2, 3]). Elided elements are None."""
    elements: tuple[ASTNode | None, ...]


@dataclass(frozen=True)
class Compound(ASTNode):
    """Sequence of expressions; evaluates to the last one."""
    body: tuple[ASTNode, ...]


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


class ParseError(Exception):
    """Raised for a token sequence that is not a valid expression."""

    def __init__(self, message: str, token: Token):
        self.token = token
        super().__init__(f"{message} at position {token.position}")


# Binary precedence levels, loosest first. Each entry is the node class to
# build and the tokens accepted at that level; all are left-associative.
_BINARY_LEVELS: tuple[tuple[type, dict[TokenType, str]], ...] = (
    (LogicalOp, {TokenType.NULLISH: "??"}),
    (LogicalOp, {TokenType.OR: "||"}),
    (LogicalOp, {TokenType.AND: "&&"}),
    (
        BinaryOp,
        {
            TokenType.STRICT_EQ: "===",
            TokenType.STRICT_NEQ: "!==",
            TokenType.EQ: "==",
            TokenType.NEQ: "!=",
        },
    ),
    (
        BinaryOp,
        {TokenType.LT: "<", TokenType.LTE: "<=", TokenType.GT: ">", TokenType.GTE: ">="},
    ),
    (BinaryOp, {TokenType.PLUS: "+", TokenType.MINUS: "-"}),
    (BinaryOp, {TokenType.MULTIPLY: "*", TokenType.DIVIDE: "/", TokenType.MODULO: "%"}),
)

_PREFIX_OPS = {
    TokenType.NOT: "!",
    TokenType.MINUS: "-",
    TokenType.PLUS: "+",
    TokenType.TYPEOF: "typeof",
}

_LITERAL_TYPES = frozenset(
    {
        TokenType.NUMBER,
        TokenType.STRING,
        TokenType.BOOLEAN,
        TokenType.NULL,
        TokenType.UNDEFINED,
    }
)

# Keywords still allowed as a property name after '.', e.g. ``options.null``
_KEYWORD_MEMBER_TYPES = frozenset(
    {TokenType.BOOLEAN, TokenType.NULL, TokenType.UNDEFINED, TokenType.TYPEOF}
)

_WORD = re.compile(r"[a-zA-Z_$][a-zA-Z0-9_$]*")


class Parser:
    """Recursive descent parser for the expression language.

    Example:
        >>> Parser('signed ? "Yes" : "No"').parse()
        Conditional(test=Identifier(name='signed'), ...)
    """

    def __init__(self, source: str):
        self.source = source
        self.tokens = Lexer(source).tokenize()
        self.index = 0

    def parse(self) -> ASTNode:
        """Parse the whole source into a single tree."""
        if self._peek().type == TokenType.EOF:
            raise ParseError("Empty expression", self._peek())

        tree = self._parse_sequence()

        leftover = self._peek()
        if leftover.type != TokenType.EOF:
            raise ParseError(f"Unexpected token '{leftover.value}'", leftover)
        return tree

    # -------------------------------------------------------------------------
    # Token cursor
    # -------------------------------------------------------------------------

    def _peek(self) -> Token:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return Token(TokenType.EOF, None, len(self.source))

    def _next(self) -> Token:
        token = self._peek()
        self.index += 1
        return token

    def _accept(self, *types: TokenType) -> Token | None:
        """Consume the current token if it is one of ``types``."""
        if self._peek().type in types:
            return self._next()
        return None

    def _expect(self, token_type: TokenType, message: str) -> Token:
        token = self._accept(token_type)
        if token is None:
            raise ParseError(message, self._peek())
        return token

    # -------------------------------------------------------------------------
    # Grammar
    # -------------------------------------------------------------------------

    def _parse_sequence(self) -> ASTNode:
        """Top-level ',' / ';' sequence; a trailing separator is allowed."""
        body = [self._parse_conditional()]
        while self._accept(TokenType.COMMA, TokenType.SEMICOLON):
            if self._peek().type == TokenType.EOF:
                break
            body.append(self._parse_conditional())
        return body[0] if len(body) == 1 else Compound(tuple(body))

    def _parse_conditional(self) -> ASTNode:
        test = self._parse_binary(0)
        if not self._accept(TokenType.QUESTION):
            return test
        consequent = self._parse_conditional()
        self._expect(TokenType.COLON, "Expected ':' in conditional expression")
        return Conditional(test, consequent, self._parse_conditional())

    def _parse_binary(self, level: int) -> ASTNode:
        if level == len(_BINARY_LEVELS):
            return self._parse_prefix()

        node_type, operators = _BINARY_LEVELS[level]
        left = self._parse_binary(level + 1)
        while self._peek().type in operators:
            op = operators[self._next().type]
            left = node_type(op, left, self._parse_binary(level + 1))
        return left

    def _parse_prefix(self) -> ASTNode:
        if self._peek().type in _PREFIX_OPS:
            op = _PREFIX_OPS[self._next().type]
            return UnaryOp(op, self._parse_prefix())
        return self._parse_postfix(self._parse_primary())

    def _parse_postfix(self, node: ASTNode) -> ASTNode:
        """Apply any chain of ``.name``, ``[index]`` and ``(args)``."""
        while True:
            if self._accept(TokenType.DOT):
                node = MemberAccess(node, self._parse_member_name())
            elif self._accept(TokenType.LBRACKET):
                index = self._parse_conditional()
                self._expect(TokenType.RBRACKET, "Expected ']' after index")
                node = IndexAccess(node, index)
            elif self._accept(TokenType.LPAREN):
                node = FunctionCall(node, self._parse_arguments())
            else:
                return node

    def _parse_member_name(self) -> str:
        token = self._peek()
        if token.type == TokenType.IDENTIFIER:
            self._next()
            return str(token.value)
        if token.type in _KEYWORD_MEMBER_TYPES:
            self._next()
            # Keyword tokens carry their value, not their spelling
            return _WORD.match(self.source, token.position).group()
        raise ParseError("Expected identifier after '.'", token)

    def _parse_primary(self) -> ASTNode:
        token = self._next()

        if token.type in _LITERAL_TYPES:
            return Literal(token.value)
        if token.type == TokenType.IDENTIFIER:
            return Identifier(str(token.value))
        if token.type == TokenType.LPAREN:
            inner = self._parse_conditional()
            self._expect(TokenType.RPAREN, "Expected ')' after expression")
            return inner
        if token.type == TokenType.LBRACKET:
            return self._parse_array_elements()
        if token.type == TokenType.EOF:
            raise ParseError("Unexpected end of expression", token)
        raise ParseError(f"Unexpected token '{token.value}'", token)

    def _parse_arguments(self) -> tuple[ASTNode, ...]:
        """Argument list after an already consumed '('."""
        args: list[ASTNode] = []
        if not self._accept(TokenType.RPAREN):
            args.append(self._parse_conditional())
            while self._accept(TokenType.COMMA):
                args.append(self._parse_conditional())
            self._expect(TokenType.RPAREN, "Expected ')' after arguments")
        return tuple(args)

    def _parse_array_elements(self) -> ArrayLiteral:
        """Elements after an already consumed '['; holes become None."""
        elements: list[ASTNode | None] = []
        while not self._accept(TokenType.RBRACKET):
            if self._accept(TokenType.COMMA):
                elements.append(None)
                continue
            elements.append(self._parse_conditional())
            if not self._accept(TokenType.COMMA) and self._peek().type != TokenType.RBRACKET:
                raise ParseError("Expected ',' or ']' in array literal", self._peek())
        return ArrayLiteral(tuple(elements))


# -----------------------------------------------------------------------------
# AST cache
# -----------------------------------------------------------------------------


class ExpressionCache:
    """Memoizes parsed trees by source text.

    Trees are immutable, so sharing one cache across all evaluations is
    safe. Only successful parses are stored.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ASTNode] = {}

    def get(self, source: str) -> ASTNode | None:
        return self._entries.get(source)

    def set(self, source: str, node: ASTNode) -> None:
        self._entries[source] = node

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, source: object) -> bool:
        return source in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# Process-wide cache used when callers do not supply their own
default_cache = ExpressionCache()


def parse(source: str, cache: ExpressionCache | None = None) -> ASTNode:
    """Parse an expression string, reusing a cached tree when available.

    Args:
        source: Expression text
        cache: Cache to consult; defaults to the process-wide cache

    Returns:
        The parsed tree

    Raises:
        LexerError: If the source contains an invalid character
        ParseError: If the source is not a valid expression
    """
    if cache is None:
        cache = default_cache

    node = cache.get(source)
    if node is None:
        node = Parser(source).parse()
        cache.set(source, node)
    return node


def dump(node: ASTNode | None) -> Any:
    """Convert a tree into plain dicts/lists, e.g. for printing."""
    if node is None:
        return None
    result: dict[str, Any] = {"type": type(node).__name__}
    for f in fields(node):
        value = getattr(node, f.name)
        if isinstance(value, ASTNode):
            result[f.name] = dump(value)
        elif isinstance(value, tuple):
            result[f.name] = [dump(item) for item in value]
        else:
            result[f.name] = value
    return result
