"""Shared test fixtures for utpwatch."""

from __future__ import annotations

import io
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from utpwatch.models.telemetry import TelemetryRecord
from utpwatch.sinks import LogLevel
from utpwatch.telemetry.accumulator import ActionAccumulator
from utpwatch.telemetry.normalizer import parse_record
from utpwatch.telemetry.renderer import LiveTableRenderer
from utpwatch.telemetry.router import TelemetryRouter
from utpwatch.telemetry.terminal import TerminalControl


class RecordingSink:
    """``LogSink`` that records every call for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def debug(self, message: str) -> None:
        self.calls.append(("debug", message))

    def info(self, message: str) -> None:
        self.calls.append(("info", message))

    def warning(self, message: str) -> None:
        self.calls.append(("warning", message))

    def error(self, message: str) -> None:
        self.calls.append(("error", message))

    def log(self, level: LogLevel, message: str) -> None:
        self.calls.append((level.value, message))

    def annotate(
        self,
        level: LogLevel,
        message: str,
        file: str | None = None,
        line: int | None = None,
    ) -> None:
        self.calls.append(("annotate", level.value, message, file, line))

    def messages(self, kind: str) -> list[str]:
        """Messages logged under *kind* (``warning``, ``error``, ...)."""
        return [call[1] for call in self.calls if call[0] == kind]

    @property
    def annotations(self) -> list[tuple[Any, ...]]:
        return [call[1:] for call in self.calls if call[0] == "annotate"]


@pytest.fixture(autouse=True)
def _plain_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep CI and terminal-size variables from leaking into tests."""
    for name in ("CI", "GITHUB_ACTIONS", "BUILD_NUMBER", "TF_BUILD", "GITLAB_CI", "COLUMNS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def stream() -> io.StringIO:
    """Captured output stream."""
    return io.StringIO()


@pytest.fixture
def terminal(stream: io.StringIO) -> TerminalControl:
    """TerminalControl writing to the captured stream."""
    return TerminalControl(Console(file=stream, width=120, highlight=False))


@pytest.fixture
def renderer(terminal: TerminalControl) -> LiveTableRenderer:
    """Append-mode renderer (no cursor control) at a fixed width."""
    return LiveTableRenderer(terminal, live=False, default_columns=100, margin=0)


@pytest.fixture
def accumulator() -> ActionAccumulator:
    return ActionAccumulator()


@pytest.fixture
def router(
    sink: RecordingSink,
    renderer: LiveTableRenderer,
    accumulator: ActionAccumulator,
) -> TelemetryRouter:
    """Router wired to the recording sink and captured stream."""
    return TelemetryRouter(
        sink,
        renderer=renderer,
        accumulator=accumulator,
        project_path="/work/project",
    )


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    """Path for an editor log that tests append to."""
    return tmp_path / "Editor.log"


# ---------------------------------------------------------------------------
# Telemetry factories, shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_action() -> Callable[..., TelemetryRecord]:
    """Factory fixture: build an Action record with sensible defaults."""

    def _factory(
        phase: str = "Begin",
        description: str = "Build player",
        time: int | None = 1000,
        **overrides: Any,
    ) -> TelemetryRecord:
        entry: dict[str, Any] = {
            "type": "Action",
            "phase": phase,
            "time": time,
            "processId": 1,
            "name": "evt",
            "description": description,
        }
        entry.update(overrides)
        if entry["time"] is None:
            del entry["time"]
        return parse_record(entry, RecordingSink())

    return _factory


@pytest.fixture
def utp_line() -> Callable[..., str]:
    """Factory fixture: render a dict as a ``##utp:`` log line."""

    def _factory(**fields: Any) -> str:
        return "##utp:" + json.dumps(fields)

    return _factory
