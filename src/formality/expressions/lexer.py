"""Tokenizer for the Formality expression language.

The whole grammar is matched by one compiled regex with a named group per
token class. Operators and punctuation share a lookup table that is tried
longest spelling first, so ``===`` never lexes as ``==`` followed by ``=``.

Example:
    >>> [t.type.name for t in Lexer("a ?? 1").tokenize()]
    ['IDENTIFIER', 'NULLISH', 'NUMBER', 'EOF']
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator


class TokenType(Enum):
    """Kinds of token produced by the lexer."""

    NUMBER = auto()
    STRING = auto()
    BOOLEAN = auto()
    NULL = auto()
    UNDEFINED = auto()
    IDENTIFIER = auto()

    STRICT_EQ = auto()
    STRICT_NEQ = auto()
    EQ = auto()
    NEQ = auto()
    LT = auto()
    LTE = auto()
    GT = auto()
    GTE = auto()

    AND = auto()
    OR = auto()
    NULLISH = auto()
    NOT = auto()
    TYPEOF = auto()

    PLUS = auto()
    MINUS = auto()
    MULTIPLY = auto()
    DIVIDE = auto()
    MODULO = auto()

    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    COMMA = auto()
    SEMICOLON = auto()
    DOT = auto()
    QUESTION = auto()
    COLON = auto()

    EOF = auto()


TokenValue = str | int | float | bool | None


@dataclass(frozen=True)
class Token:
    """One lexed token.

    ``position`` is the 0-based offset into the source; ``line`` and
    ``column`` are 1-based and only used for error messages.
    """

    type: TokenType
    value: TokenValue
    position: int
    line: int = 1
    column: int = 1

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, @{self.line}:{self.column})"


class LexerError(Exception):
    """Raised when the source contains text no token can start with."""

    def __init__(self, message: str, position: int, line: int = 1, column: int = 1):
        self.position = position
        self.line = line
        self.column = column
        super().__init__(f"{message} at line {line}, column {column}")


SYMBOLS: dict[str, TokenType] = {
    "===": TokenType.STRICT_EQ,
    "!==": TokenType.STRICT_NEQ,
    "==": TokenType.EQ,
    "!=": TokenType.NEQ,
    "<=": TokenType.LTE,
    ">=": TokenType.GTE,
    "&&": TokenType.AND,
    "||": TokenType.OR,
    "??": TokenType.NULLISH,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "!": TokenType.NOT,
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.MULTIPLY,
    "/": TokenType.DIVIDE,
    "%": TokenType.MODULO,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ",": TokenType.COMMA,
    ";": TokenType.SEMICOLON,
    ".": TokenType.DOT,
    "?": TokenType.QUESTION,
    ":": TokenType.COLON,
}

# Case-sensitive: ``True`` and ``NULL`` are ordinary identifiers.
KEYWORDS: dict[str, tuple[TokenType, TokenValue]] = {
    "true": (TokenType.BOOLEAN, True),
    "false": (TokenType.BOOLEAN, False),
    "null": (TokenType.NULL, None),
    "undefined": (TokenType.UNDEFINED, None),
    "typeof": (TokenType.TYPEOF, "typeof"),
}

ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}

_SYMBOL_PATTERN = "|".join(
    re.escape(symbol) for symbol in sorted(SYMBOLS, key=len, reverse=True)
)

# Number comes before symbol so ".5" is a number rather than a DOT.
_MASTER = re.compile(
    rf"""
    (?P<space>\s+)
    | (?P<number>(?:\d+\.\d+|\.\d+|\d+)(?:[eE][+-]?\d+)?)
    | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    | (?P<name>[A-Za-z_$][A-Za-z0-9_$]*)
    | (?P<symbol>{_SYMBOL_PATTERN})
    """,
    re.VERBOSE,
)

_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def unescape(body: str) -> str:
    """Resolve backslash escapes inside a string literal body."""
    return _ESCAPE_RE.sub(lambda m: ESCAPES.get(m.group(1), m.group(1)), body)


class Lexer:
    """Stream tokens out of an expression string.

    Iterating a lexer yields tokens up to and including EOF; ``tokenize``
    collects them into a list for the parser.
    """

    def __init__(self, source: str):
        self.source = source
        self.position = 0
        self.line = 1
        self.column = 1

    def __iter__(self) -> Iterator[Token]:
        token = self.next_token()
        while token.type != TokenType.EOF:
            yield token
            token = self.next_token()
        yield token

    def tokenize(self) -> list[Token]:
        return list(self)

    def next_token(self) -> Token:
        """Lex one token, skipping any leading whitespace."""
        while self.position < len(self.source):
            match = _MASTER.match(self.source, self.position)
            if match is None:
                raise LexerError(
                    f"Unexpected character '{self.source[self.position]}'",
                    self.position,
                    self.line,
                    self.column,
                )

            kind = match.lastgroup
            text = match.group()
            start = (self.position, self.line, self.column)
            self._consume(text)

            if kind == "space":
                continue
            try:
                token_type, value = self._classify(kind, text)
            except ValueError as e:
                # int() refuses literals past the interpreter's digit limit
                raise LexerError(f"Invalid number literal: {e}", *start) from e
            return Token(token_type, value, *start)

        return Token(TokenType.EOF, None, self.position, self.line, self.column)

    def _classify(self, kind: str | None, text: str) -> tuple[TokenType, TokenValue]:
        if kind == "number":
            return TokenType.NUMBER, int(text) if text.isdigit() else float(text)
        if kind == "string":
            return TokenType.STRING, unescape(text[1:-1])
        if kind == "name":
            return KEYWORDS.get(text, (TokenType.IDENTIFIER, text))
        return SYMBOLS[text], text

    def _consume(self, text: str) -> None:
        self.position += len(text)
        newlines = text.count("\n")
        if newlines:
            self.line += newlines
            self.column = len(text) - text.rfind("\n")
        else:
            self.column += len(text)
