"""Expression CLI commands: eval, infer and ast."""

import json
from pathlib import Path
from typing import Any

import click
import yaml

from formality.expressions.context import build_evaluation_context
from formality.expressions.evaluator import evaluate
from formality.expressions.infer import infer_fields_from_expression
from formality.expressions.lexer import LexerError
from formality.expressions.parser import ParseError, Parser, dump


def load_values(values_path: Path | None, assignments: tuple[str, ...]) -> dict[str, Any]:
    """Field values from a YAML/JSON file plus ``name=value`` overrides.

    Override values are parsed as YAML scalars, so ``count=10`` is a number
    and ``signed=true`` a boolean.
    """
    values: dict[str, Any] = {}

    if values_path is not None:
        with open(values_path) as f:
            data = yaml.safe_load(f)
        if data is not None and not isinstance(data, dict):
            raise click.BadParameter("values file must contain a mapping", param_hint="--values")
        values.update(data or {})

    for assignment in assignments:
        name, sep, raw = assignment.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected name=value, got {assignment!r}", param_hint="--set")
        values[name.strip()] = yaml.safe_load(raw) if raw else ""

    return values


@click.group()
def expr():
    """Expression commands."""
    pass


@expr.command("eval")
@click.argument("expression")
@click.option(
    "--values",
    "values_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON file with field values.",
)
@click.option("--set", "assignments", multiple=True, help="Field value as name=value (repeatable).")
@click.option(
    "--record",
    "record_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON file exposed as 'record'.",
)
def eval_cmd(
    expression: str,
    values_path: Path | None,
    assignments: tuple[str, ...],
    record_path: Path | None,
):
    """Evaluate EXPRESSION and print the result as JSON."""
    values = load_values(values_path, assignments)
    record = load_values(record_path, ()) if record_path else None

    context = build_evaluation_context(values, record=record)
    result = evaluate(expression, context)
    click.echo(json.dumps(result, default=str))


@expr.command("infer")
@click.argument("expression")
def infer_cmd(expression: str):
    """Print the field names EXPRESSION depends on."""
    for name in infer_fields_from_expression(expression):
        click.echo(name)


@expr.command("ast")
@click.argument("expression")
def ast_cmd(expression: str):
    """Print the parsed tree of EXPRESSION."""
    try:
        tree = Parser(expression).parse()
    except (LexerError, ParseError) as e:
        click.echo(click.style(f"Syntax error: {e}", fg="red"), err=True)
        raise SystemExit(1)

    click.echo(json.dumps(dump(tree), indent=2, default=str))
