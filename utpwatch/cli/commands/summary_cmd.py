"""``utpwatch summary SIDECAR`` — replay a saved telemetry sidecar as a table."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console

from utpwatch.config import config
from utpwatch.models.telemetry import ActionRecord, PlayerBuildInfoRecord
from utpwatch.sinks import ConsoleSink, LogLevel
from utpwatch.telemetry.accumulator import ActionAccumulator
from utpwatch.telemetry.normalizer import TelemetryParseError, parse_record
from utpwatch.telemetry.table import format_action_table

console = Console(highlight=False)


def summary_cmd(
    sidecar: Path = typer.Argument(
        ...,
        help="A <log>-utp-json.log file written by 'utpwatch tail --sidecar'.",
    ),
    width: int = typer.Option(
        config.default_columns,
        "--width",
        "-w",
        help="Table width in columns.",
    ),
) -> None:
    """Print the final build timeline recorded in a telemetry sidecar."""
    if not sidecar.exists():
        console.print(f"[bold red]Sidecar not found:[/bold red] {sidecar}")
        raise typer.Exit(code=1)

    try:
        entries = json.loads(sidecar.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[bold red]Could not read sidecar:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if not isinstance(entries, list):
        console.print("[bold red]Sidecar must contain a JSON array.[/bold red]")
        raise typer.Exit(code=1)

    # Schema warnings were already shown when the sidecar was recorded
    sink = ConsoleSink(console, level=LogLevel.ERROR)
    accumulator = ActionAccumulator()
    for entry in entries:
        try:
            record = parse_record(entry, sink)
        except TelemetryParseError:
            continue
        if isinstance(record, ActionRecord):
            accumulator.record(record)
        elif isinstance(record, PlayerBuildInfoRecord):
            accumulator.record_player_build_info(record)

    table = format_action_table(accumulator.snapshot(), width)
    if table is None:
        console.print("[dim]No build actions recorded.[/dim]")
        return

    console.file.write(table.text)
