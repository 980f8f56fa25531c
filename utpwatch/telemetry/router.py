"""TelemetryRouter — decides where each tailed log line goes.

Routing rules
-------------
- Plain editor output is written verbatim, unless in telemetry-only mode.
- Telemetry carrying an error-grade severity and a message is escalated:
  as a source annotation when its file lies inside the project, otherwise
  as a leveled log line.
- ``Action`` telemetry feeds the accumulator and redraws the timeline.
- ``PlayerBuildInfo`` replaces the player build summary and redraws.
- Memory leak reports are logged at debug as a table.
- Anything else is echoed as its raw JSON.

Every non-table write is wrapped in ``renderer.interleave()`` so a live
table never gets tangled with log output.
"""

from __future__ import annotations

import json
import logging
import re

from utpwatch.models.telemetry import (
    ActionRecord,
    MemoryLeakRecord,
    PlayerBuildInfoRecord,
    TelemetryRecord,
)
from utpwatch.sinks import LoggingSink, LogLevel, LogSink
from utpwatch.telemetry.accumulator import ActionAccumulator
from utpwatch.telemetry.normalizer import TelemetryParseError, is_telemetry_line, parse_line
from utpwatch.telemetry.renderer import LiveTableRenderer
from utpwatch.telemetry.table import format_memory_leak_table

logger = logging.getLogger(__name__)

# Exact editor messages whose severity is downgraded; they are not actionable.
REMAPPED_EDITOR_LOGS: dict[str, LogLevel] = {
    "OpenCL device, baking cannot use GPU lightmapper.": LogLevel.INFO,
    "Failed to find a suitable OpenCL device, baking cannot use GPU lightmapper.": LogLevel.INFO,
}

# Messages that already carry a workflow annotation must not be annotated twice
ANNOTATION_MARKER_RE = re.compile(r"\n::[a-z]+::", re.IGNORECASE)


def is_loggable(record: TelemetryRecord) -> bool:
    """Whether *record* must be escalated regardless of its type."""
    return bool(record.header.message) and record.header.is_error


def _normalize_path(path: str) -> str:
    return path.replace("\\", "/")


class _InterleavedSink:
    """``LogSink`` wrapper that erases the live table around every write."""

    def __init__(self, sink: LogSink, renderer: LiveTableRenderer) -> None:
        self._sink = sink
        self._renderer = renderer

    def debug(self, message: str) -> None:
        with self._renderer.interleave():
            self._sink.debug(message)

    def info(self, message: str) -> None:
        with self._renderer.interleave():
            self._sink.info(message)

    def warning(self, message: str) -> None:
        with self._renderer.interleave():
            self._sink.warning(message)

    def error(self, message: str) -> None:
        with self._renderer.interleave():
            self._sink.error(message)

    def log(self, level: LogLevel, message: str) -> None:
        with self._renderer.interleave():
            self._sink.log(level, message)

    def annotate(
        self,
        level: LogLevel,
        message: str,
        file: str | None = None,
        line: int | None = None,
    ) -> None:
        with self._renderer.interleave():
            self._sink.annotate(level, message, file, line)


class TelemetryRouter:
    """Routes tailed lines to the accumulator, the renderer or the sink.

    Parameters
    ----------
    sink:
        Logging collaborator for escalated telemetry and warnings.
    renderer:
        Live view of the timeline.  Plain editor lines are written to its
        terminal.  A fresh renderer is created when omitted.
    accumulator:
        Timeline state.  A fresh accumulator is created when omitted.
    project_path:
        Errors in files under this root become source annotations.
    telemetry_only:
        Suppress plain (non-telemetry) editor lines.
    """

    def __init__(
        self,
        sink: LogSink | None = None,
        *,
        renderer: LiveTableRenderer | None = None,
        accumulator: ActionAccumulator | None = None,
        project_path: str | None = None,
        telemetry_only: bool = False,
    ) -> None:
        self.renderer = renderer or LiveTableRenderer()
        self.sink: LogSink = _InterleavedSink(sink or LoggingSink(), self.renderer)
        self.output = self.renderer.terminal
        self.accumulator = accumulator or ActionAccumulator()
        self.project_path = _normalize_path(project_path) if project_path else None
        self.telemetry_only = telemetry_only
        self.telemetry: list[TelemetryRecord] = []

    # ------------------------------------------------------------------
    # Lines
    # ------------------------------------------------------------------

    def route_line(self, line: str) -> TelemetryRecord | None:
        """Route one complete log line; returns the record if it was telemetry."""
        if not is_telemetry_line(line):
            if not self.telemetry_only:
                self.write_line(line)
            return None

        try:
            record = parse_line(line, self.sink)
        except TelemetryParseError as exc:
            self.sink.warning(f"Failed to parse telemetry JSON: {exc} -- raw: {exc.raw}")
            return None

        if record is None:
            return None

        self.route_record(record)
        return record

    def write_line(self, line: str) -> None:
        """Write a plain line to the output without corrupting a live table."""
        with self.renderer.interleave():
            self.output.write_line(line)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def route_record(self, record: TelemetryRecord) -> None:
        """Dispatch a parsed record and keep it in ``telemetry``."""
        self.telemetry.append(record)

        if is_loggable(record):
            self._escalate(record)
        elif isinstance(record, ActionRecord):
            if self.accumulator.record(record):
                self.renderer.render(self.accumulator.snapshot())
        elif isinstance(record, PlayerBuildInfoRecord):
            if self.accumulator.record_player_build_info(record):
                self.renderer.render(self.accumulator.snapshot())
        elif isinstance(record, MemoryLeakRecord):
            self.sink.debug(format_memory_leak_table(record))
        else:
            self.write_line(json.dumps(record.payload, default=str))

    def _escalate(self, record: TelemetryRecord) -> None:
        header = record.header
        message = header.message or ""
        if ANNOTATION_MARKER_RE.search(message):
            logger.debug("Skipping already-annotated message")
            return

        level = REMAPPED_EDITOR_LOGS.get(message, LogLevel.ERROR)
        text = f"{message}\n{header.stack_trace}" if header.stack_trace else message
        file = _normalize_path(header.file) if header.file else None

        if self.project_path and file and file.startswith(self.project_path):
            # Source annotations are always errors; the remap only affects log lines
            self.sink.annotate(LogLevel.ERROR, text, file, header.line)
        else:
            self.sink.log(level, text)
