"""Entry point for running the labelsense CLI.

This module defines a top-level Click group that aggregates all subcommands
defined in the ``labelsense.interfaces.cli`` package. Executing
``python -m labelsense.interfaces.cli`` or the installed ``labelsense``
script invokes this group.
"""

import dataclasses
from pathlib import Path

import click

from labelsense.infrastructure.observability import configure_logging

from .context import CLIContext, build_cli_context
from .detect import batch, detect
from .score import score_text
from .serve import serve


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON file overriding scoring weights and keyword vocabularies.",
)
@click.option(
    "--log-level",
    default=None,
    help="Log level (DEBUG, INFO, WARNING...). Defaults to $LOG_LEVEL or INFO.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None) -> None:
    """labelsense: detect product-label images with OCR."""
    if isinstance(ctx.obj, CLIContext):
        if config_path:
            ctx.obj = dataclasses.replace(ctx.obj, config_path=Path(config_path))
    else:
        ctx.obj = build_cli_context(config_path)
    configure_logging(log_level or ctx.obj.settings.log_level)


cli.add_command(detect)
cli.add_command(batch)
cli.add_command(score_text)
cli.add_command(serve)


if __name__ == "__main__":
    cli()
