"""Run the HTTP API."""

from __future__ import annotations

import dataclasses

import click
import uvicorn

from labelsense.app.api import create_app

from .context import get_cli_context


@click.command(name="serve")
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind.")
@click.option("--port", type=int, default=None, help="Port to listen on. Defaults to $PORT or 3000.")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int | None) -> None:
    """Serve the label detection API with uvicorn.

    The group's ``--config`` file takes precedence over ``$LABELSENSE_CONFIG``.
    """
    cli_context = get_cli_context(ctx)
    # Fail here rather than inside the server's startup.
    cli_context.analysis_config()

    settings = cli_context.settings
    if cli_context.config_path is not None:
        settings = dataclasses.replace(settings, config_path=str(cli_context.config_path))
    uvicorn.run(
        create_app(settings),
        host=host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


__all__ = ["serve"]
