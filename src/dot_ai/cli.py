"""Command line entry point for the dot-ai MCP server."""

from typing import cast

import click

from dot_ai.lifecycle import LifecycleController
from dot_ai.logging import LogLevel, configure_logging


@click.command()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default="INFO",
    envvar="DOT_AI_LOG_LEVEL",
    show_default=True,
    help="Log level for diagnostics written to stderr",
)
def main(log_level: str) -> None:
    """Serve the DevOps AI Toolkit to MCP clients over stdio.

    The session directory is taken from DOT_AI_SESSION_DIR.
    """
    configure_logging(cast(LogLevel, log_level.upper()))
    controller = LifecycleController()
    controller.install_fault_handlers()
    controller.execute()
