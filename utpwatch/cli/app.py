"""Main Typer application — imports and registers all CLI commands.

Entry point: ``utpwatch`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import logging

import typer

from utpwatch.cli.commands.summary_cmd import summary_cmd
from utpwatch.cli.commands.tail_cmd import tail_cmd
from utpwatch.config import config

app = typer.Typer(
    name="utpwatch",
    help="utpwatch: live build telemetry for game-engine editor logs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="tail", help="Follow an editor log with a live build timeline.")(tail_cmd)
app.command(name="summary", help="Replay a telemetry sidecar as a timeline table.")(summary_cmd)


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )
    app()


if __name__ == "__main__":
    main()
