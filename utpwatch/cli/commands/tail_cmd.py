"""``utpwatch tail LOG_PATH`` — follow an editor log with a live build timeline.

Plain editor output is passed through, ``##utp:`` telemetry is turned into a
self-updating action table, and error telemetry is escalated to log lines
or, for files inside ``--project``, to CI source annotations.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from utpwatch.config import config
from utpwatch.sinks import ConsoleSink, LogLevel, append_workflow_summary
from utpwatch.telemetry.accumulator import ActionAccumulator
from utpwatch.telemetry.renderer import LiveTableRenderer
from utpwatch.telemetry.router import TelemetryRouter
from utpwatch.telemetry.tailer import LogTailer, sidecar_path
from utpwatch.telemetry.terminal import TerminalControl

console = Console(highlight=False)

_REDRAW_MODES: dict[str, bool | None] = {"auto": None, "always": True, "never": False}


def _resolve_level(debug: bool, utp_only: bool) -> LogLevel:
    if debug:
        return LogLevel.DEBUG
    if utp_only:
        return LogLevel.UTP
    try:
        return LogLevel(config.log_level.lower())
    except ValueError:
        return LogLevel.INFO


def tail_cmd(
    log_path: Path = typer.Argument(
        ...,
        help="Editor log file to follow. It may not exist yet.",
    ),
    project: Optional[Path] = typer.Option(
        None,
        "--project",
        "-p",
        help="Project root; errors in files under it become source annotations.",
    ),
    utp_only: bool = typer.Option(
        config.telemetry_only,
        "--utp-only",
        "-u",
        help="Only show telemetry-derived output; suppress plain editor lines.",
    ),
    sidecar: bool = typer.Option(
        config.write_sidecar,
        "--sidecar/--no-sidecar",
        help="Write all telemetry to <log>-utp-json.log when done.",
    ),
    redraw: str = typer.Option(
        "auto",
        "--redraw",
        "-r",
        help="Redraw the table in place: auto, always or never.",
    ),
    interval: float = typer.Option(
        config.poll_interval_seconds,
        "--interval",
        "-i",
        help="Polling interval in seconds.",
    ),
    idle_timeout: Optional[float] = typer.Option(
        None,
        "--idle-timeout",
        help="Stop after the log has not grown for this many seconds.",
    ),
    summary_name: Optional[str] = typer.Option(
        None,
        "--summary-name",
        help="Append a telemetry summary with this title to GITHUB_STEP_SUMMARY.",
    ),
    fail_on_errors: bool = typer.Option(
        False,
        "--fail-on-errors",
        help="Exit with code 1 if any build action reported errors.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Show debug output, including memory leak tables.",
    ),
) -> None:
    """Tail an editor log and render its build telemetry live.

    Runs until interrupted with Ctrl+C or until ``--idle-timeout`` elapses.
    """
    if redraw not in _REDRAW_MODES:
        raise typer.BadParameter(
            f"expected one of: {', '.join(_REDRAW_MODES)}", param_hint="--redraw"
        )

    level = _resolve_level(debug, utp_only)
    if debug:
        logging.getLogger("utpwatch").setLevel(logging.DEBUG)

    sink = ConsoleSink(console, level=level)
    renderer = LiveTableRenderer(TerminalControl(console), live=_REDRAW_MODES[redraw])
    accumulator = ActionAccumulator()
    router = TelemetryRouter(
        sink,
        renderer=renderer,
        accumulator=accumulator,
        project_path=str(project.resolve()) if project else None,
        telemetry_only=utp_only,
    )
    tailer = LogTailer(
        log_path,
        router,
        poll_interval=interval,
        write_sidecar=sidecar,
    )

    tailer.start()
    try:
        while tailer.is_running:
            if idle_timeout is not None and tailer.idle_seconds >= idle_timeout:
                break
            time.sleep(min(interval, 0.25))
    except KeyboardInterrupt:
        pass
    finally:
        tailer.stop()
        telemetry = tailer.join()

    snapshot = accumulator.snapshot()
    completed = len(snapshot.completed) if snapshot else 0
    error_count = snapshot.total_error_count if snapshot else 0
    sink.info(
        f"Observed {len(telemetry)} telemetry entries, "
        f"{completed} completed actions, {error_count} errors."
    )
    if sidecar:
        sink.debug(f"Telemetry written to {sidecar_path(log_path)}")

    if summary_name:
        append_workflow_summary(summary_name, telemetry)

    if fail_on_errors and error_count:
        raise typer.Exit(code=1)
