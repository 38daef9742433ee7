"""Dependency inference for expressions and descriptors.

Inference is lexical rather than AST based so that it also works on
partial or invalid expressions. Callables are opaque: fields they read
must be declared explicitly through ``subscribesTo``.
"""

import re
from collections.abc import Mapping
from typing import Any

from formality.expressions.context import KEYWORDS, QUALIFIED_PREFIXES

_IDENTIFIER = re.compile(r"\b([a-zA-Z_$][a-zA-Z0-9_$]*)\b")


def _previous_char(source: str, index: int) -> str:
    """Last non-whitespace character before ``index``, or ''."""
    return source[:index].rstrip()[-1:]


def _string_spans(source: str) -> list[tuple[int, int]]:
    spans = []
    for match in re.finditer(r'"(?:[^"\\]|\\.)*"?|\'(?:[^\'\\]|\\.)*\'?', source):
        spans.append(match.span())
    return spans


def infer_fields_from_expression(source: str) -> list[str]:
    """Return the root field names an expression reads, in first-seen order.

    Skipped: keywords, property names (preceded by '.'), identifiers inside
    string literals, and qualified namespaces such as ``record`` when they
    are followed by '.'.

    Examples:
        >>> infer_fields_from_expression("client.id > 0 && signed")
        ['client', 'signed']
        >>> infer_fields_from_expression("record.name")
        []
    """
    found: dict[str, None] = {}
    strings = _string_spans(source)

    for match in _IDENTIFIER.finditer(source):
        name = match.group(1)
        start, end = match.span(1)

        if name in KEYWORDS:
            continue
        if any(lo <= start < hi for lo, hi in strings):
            continue
        if _previous_char(source, start) == ".":
            continue
        if name in QUALIFIED_PREFIXES and source[end:end + 1] == ".":
            continue

        found.setdefault(name, None)

    return list(found)


def infer_fields_from_descriptor(descriptor: Any) -> list[str]:
    """Collect inferred field names across a descriptor tree.

    Callables contribute nothing; declare their dependencies explicitly.
    """
    found: dict[str, None] = {}

    def collect(item: Any) -> None:
        if isinstance(item, str):
            for name in infer_fields_from_expression(item):
                found.setdefault(name, None)
        elif callable(item):
            return
        elif isinstance(item, (list, tuple)):
            for child in item:
                collect(child)
        elif isinstance(item, Mapping):
            for child in item.values():
                collect(child)

    collect(descriptor)
    return list(found)
