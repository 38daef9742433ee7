"""Formality CLI entry point."""

import logging

import click

from formality.config import EngineConfig


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Logging level (default: FORMALITY_LOG_LEVEL or WARNING).",
)
def cli(log_level: str | None):
    """Formality reactive form expression engine CLI."""
    config = EngineConfig.from_env()
    if log_level:
        config.log_level = log_level.upper()
    logging.basicConfig(
        level=config.logging_level,
        format="%(levelname)s %(name)s: %(message)s",
    )


# Register subcommand groups
from formality.cli.expr_cmd import expr  # noqa: E402
from formality.cli.form_cmd import form  # noqa: E402

cli.add_command(expr)
cli.add_command(form)
