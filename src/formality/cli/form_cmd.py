"""Form CLI commands: check and graph."""

import json
from pathlib import Path

import click

from formality.cli.expr_cmd import load_values
from formality.config import EngineConfig
from formality.form.form import Form
from formality.form.loader import FormLoader


def _load_form(form_path: Path, values_path: Path | None = None) -> Form:
    try:
        definition = FormLoader().load_file(form_path)
    except ValueError as e:
        click.echo(click.style(f"Invalid form definition: {e}", fg="red"), err=True)
        raise SystemExit(1)

    values = load_values(values_path, ()) if values_path else None
    return Form(definition, default_values=values, config=EngineConfig.from_env())


@click.group()
def form():
    """Form definition commands."""
    pass


@form.command()
@click.argument("form_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--values",
    "values_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON file with field values.",
)
def check(form_path: Path, values_path: Path | None):
    """Load FORM_PATH and print every field's resolved state."""
    instance = _load_form(form_path, values_path)
    definition = instance.definition

    title = instance.title()
    click.echo(f"Form '{definition.name}'" + (f": {title}" if title else ""))

    for name in definition.fields:
        view = instance.field_view(name)
        flags = []
        if view.disabled:
            flags.append("disabled")
        if not view.visible:
            flags.append("hidden")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"  {name} = {json.dumps(view.value, default=str)}{suffix}")

        subscriptions = instance.subscriptions_for(name)
        if subscriptions:
            click.echo(f"    subscribes to: {', '.join(subscriptions)}")

    click.echo(click.style("\nForm definition is valid.", fg="green", bold=True))


@form.command()
@click.argument("form_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def graph(form_path: Path):
    """Print the target -> subscribers graph of FORM_PATH."""
    instance = _load_form(form_path)
    edges = instance.graph.to_dict()

    if not edges:
        click.echo("No subscriptions.")
        return

    for target, subscribers in edges.items():
        click.echo(f"{target} -> {', '.join(subscribers)}")
