"""Logging sinks the telemetry engine writes into.

The engine never reaches for a process-wide logger.  Every component that
emits user-facing output is handed a ``LogSink``: a leveled logger with one
extra ``annotate`` call for source-located errors.

Implementations
---------------
LoggingSink
    Adapter over a stdlib ``logging.Logger``.  The default for library use
    and tests.
ConsoleSink
    Writes straight to a Rich console.  Under GitHub Actions it emits
    workflow commands (``::error file=...::``) so errors show up as
    annotations on the run.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from rich.console import Console

if TYPE_CHECKING:
    from utpwatch.models.telemetry import TelemetryRecord

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """Sink levels, lowest first.

    ``UTP`` sits between debug and info: it is the minimal mode where only
    telemetry-derived output is shown and plain editor lines are suppressed.
    """

    DEBUG = "debug"
    UTP = "utp"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LEVEL_ORDER: list[LogLevel] = [
    LogLevel.DEBUG,
    LogLevel.UTP,
    LogLevel.INFO,
    LogLevel.WARNING,
    LogLevel.ERROR,
]

_STDLIB_LEVELS: dict[LogLevel, int] = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.UTP: logging.INFO,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

_CONSOLE_STYLES: dict[LogLevel, str | None] = {
    LogLevel.DEBUG: "magenta",
    LogLevel.UTP: None,
    LogLevel.INFO: None,
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "red",
}

_ANNOTATION_LEVELS: dict[LogLevel, str] = {
    LogLevel.DEBUG: "notice",
    LogLevel.UTP: "notice",
    LogLevel.INFO: "notice",
    LogLevel.WARNING: "warning",
    LogLevel.ERROR: "error",
}

SUMMARY_BYTE_LIMIT = 1024 * 1024
SUMMARY_TYPES = frozenset({"LogEntry", "Compiler", "Action"})


@runtime_checkable
class LogSink(Protocol):
    """Leveled logging plus source annotation."""

    def debug(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def log(self, level: LogLevel, message: str) -> None: ...

    def annotate(
        self,
        level: LogLevel,
        message: str,
        file: str | None = None,
        line: int | None = None,
    ) -> None: ...


def is_github_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS") == "true"


def escape_workflow_value(value: str) -> str:
    """Escape a value for a GitHub Actions workflow command."""
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def format_annotation(
    level: LogLevel,
    message: str,
    file: str | None = None,
    line: int | None = None,
    title: str | None = None,
) -> str:
    """Build a ``::error file=...,line=...::message`` workflow command."""
    parts: list[str] = []
    if file:
        parts.append(f"file={escape_workflow_value(file)}")
    if line is not None and line > 0:
        parts.append(f"line={line}")
    if title:
        parts.append(f"title={escape_workflow_value(title)}")

    metadata = f" {','.join(parts)}" if parts else ""
    return f"::{_ANNOTATION_LEVELS[level]}{metadata}::{escape_workflow_value(message)}"


class LoggingSink:
    """``LogSink`` backed by a stdlib logger.

    Parameters
    ----------
    log:
        Target logger.  Defaults to the ``utpwatch`` logger.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logging.getLogger("utpwatch")

    def debug(self, message: str) -> None:
        self._log.debug(message)

    def info(self, message: str) -> None:
        self._log.info(message)

    def warning(self, message: str) -> None:
        self._log.warning(message)

    def error(self, message: str) -> None:
        self._log.error(message)

    def log(self, level: LogLevel, message: str) -> None:
        self._log.log(_STDLIB_LEVELS[level], message)

    def annotate(
        self,
        level: LogLevel,
        message: str,
        file: str | None = None,
        line: int | None = None,
    ) -> None:
        location = file or ""
        if file and line:
            location = f"{file}:{line}"
        self.log(level, f"{location}: {message}" if location else message)


class ConsoleSink:
    """``LogSink`` that writes to a Rich console.

    Parameters
    ----------
    console:
        Target console.  A new stdout console is created if not provided.
    level:
        Minimum level written.  Defaults to ``INFO``.
    github_actions:
        Emit workflow commands instead of colored lines.  Detected from
        ``GITHUB_ACTIONS`` when not given.
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        level: LogLevel = LogLevel.INFO,
        github_actions: bool | None = None,
    ) -> None:
        self.console = console or Console(highlight=False)
        self.level = level
        self._github = is_github_actions() if github_actions is None else github_actions

    @property
    def github_actions(self) -> bool:
        return self._github

    def should_log(self, level: LogLevel) -> bool:
        return _LEVEL_ORDER.index(level) >= _LEVEL_ORDER.index(self.level)

    def _write(self, text: str, style: str | None = None) -> None:
        try:
            self.console.print(
                text, style=style, markup=False, highlight=False, soft_wrap=True
            )
        except BrokenPipeError:
            pass

    def log(self, level: LogLevel, message: str) -> None:
        if not self.should_log(level):
            return

        if not self._github:
            self._write(message, _CONSOLE_STYLES[level])
            return

        if level == LogLevel.DEBUG:
            for line in str(message).split("\n"):
                self._write(f"::debug::{line}")
        elif level in (LogLevel.WARNING, LogLevel.ERROR):
            self._write(f"::{level.value}::{message}")
        else:
            self._write(message)

    def debug(self, message: str) -> None:
        self.log(LogLevel.DEBUG, message)

    def info(self, message: str) -> None:
        self.log(LogLevel.INFO, message)

    def warning(self, message: str) -> None:
        self.log(LogLevel.WARNING, message)

    def error(self, message: str) -> None:
        self.log(LogLevel.ERROR, message)

    def annotate(
        self,
        level: LogLevel,
        message: str,
        file: str | None = None,
        line: int | None = None,
        title: str | None = None,
    ) -> None:
        """Annotate *file*/*line* on CI, or fall back to a plain log line."""
        if self._github:
            self._write(format_annotation(level, message, file, line, title))
        else:
            self.log(level, message)


def append_workflow_summary(
    name: str,
    records: Iterable[TelemetryRecord],
    summary_path: Path | str | None = None,
) -> bool:
    """Append a collapsible telemetry summary to the GitHub step summary.

    Only ``Action``, ``Compiler`` and ``LogEntry`` payloads are listed.  The
    block is cut below one MiB with a truncation footer.

    Parameters
    ----------
    summary_path:
        Markdown file to append to.  Defaults to ``GITHUB_STEP_SUMMARY``.

    Returns
    -------
    bool
        ``True`` if a summary was written.
    """
    records = list(records)
    target = summary_path or os.environ.get("GITHUB_STEP_SUMMARY")
    if not records or not target:
        return False

    foldout = (
        f"## {name} Summary\n\n<details>\n"
        "<summary>Show Action, Compiler, and LogEntry details</summary>\n\n"
        "- List of entries as JSON:\n"
    )
    for record in records:
        if (record.header.type or "unknown") not in SUMMARY_TYPES:
            continue
        foldout += f"  - `{json.dumps(record.payload, default=str)}`\n"
    foldout += "\n</details>\n"

    if len(foldout.encode("utf-8")) > SUMMARY_BYTE_LIMIT:
        footer = "\n- ...\n\n***Summary truncated due to size limits.***\n</details>\n"
        budget = SUMMARY_BYTE_LIMIT - len(footer.encode("utf-8"))
        rebuilt = ""
        used = 0
        for line in foldout.split("\n"):
            size = len(line.encode("utf-8")) + 1
            if used + size > budget:
                break
            rebuilt += f"{line}\n"
            used += size
        foldout = rebuilt + footer

    with open(target, "a", encoding="utf-8") as handle:
        handle.write(foldout)
    logger.debug("Appended %s summary to %s", name, target)
    return True
