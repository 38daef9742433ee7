"""Expression language for Formality forms.

This module provides:
- Lexer: Tokenizes expression strings
- Parser: Produces an immutable AST from tokens (cached per source)
- Evaluator: Evaluates an AST against a field context
- Context builders and the FieldState wrapper
- Lexical dependency inference
"""

from formality.expressions.context import (
    KEYWORDS,
    QUALIFIED_PREFIXES,
    FieldState,
    FormState,
    build_evaluation_context,
    build_field_context,
    build_form_context,
    get_property,
    to_plain,
    unwrap,
)
from formality.expressions.evaluator import (
    EvaluationError,
    Evaluator,
    clear_expression_cache,
    evaluate,
    evaluate_descriptor,
    is_truthy,
    loose_equals,
    strict_equals,
    type_of,
)
from formality.expressions.infer import (
    infer_fields_from_descriptor,
    infer_fields_from_expression,
)
from formality.expressions.lexer import Lexer, LexerError, Token, TokenType
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
    Parser,
    UnaryOp,
    default_cache,
    dump,
    parse,
)

__all__ = [
    # Context
    "KEYWORDS",
    "QUALIFIED_PREFIXES",
    "FieldState",
    "FormState",
    "build_evaluation_context",
    "build_field_context",
    "build_form_context",
    "get_property",
    "to_plain",
    "unwrap",
    # Evaluator
    "EvaluationError",
    "Evaluator",
    "clear_expression_cache",
    "evaluate",
    "evaluate_descriptor",
    "is_truthy",
    "loose_equals",
    "strict_equals",
    "type_of",
    # Inference
    "infer_fields_from_descriptor",
    "infer_fields_from_expression",
    # Lexer
    "Lexer",
    "LexerError",
    "Token",
    "TokenType",
    # Parser
    "ASTNode",
    "ArrayLiteral",
    "BinaryOp",
    "Compound",
    "Conditional",
    "ExpressionCache",
    "FunctionCall",
    "Identifier",
    "IndexAccess",
    "Literal",
    "LogicalOp",
    "MemberAccess",
    "ParseError",
    "Parser",
    "UnaryOp",
    "default_cache",
    "dump",
    "parse",
]
