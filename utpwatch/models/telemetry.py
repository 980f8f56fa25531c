"""Typed telemetry records parsed from ``##utp:`` log lines.

The editor emits one JSON object per telemetry line, tagged by its ``type``
field.  Each record variant below embeds the shared ``TelemetryHeader`` by
value and keeps the normalized JSON object it was built from in ``payload``,
which is what the sidecar artifact and raw echo write back out.

Parsing is best effort: scalar fields are coerced where possible and dropped
to ``None`` where not, so a malformed field never rejects a whole record.
"""

from __future__ import annotations

import json
import math
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Phase(str, Enum):
    """Lifecycle position of a telemetry event."""

    BEGIN = "Begin"
    END = "End"
    IMMEDIATE = "Immediate"


class Severity(str, Enum):
    """Severity attached to log-like telemetry."""

    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"
    EXCEPTION = "Exception"
    ASSERT = "Assert"


ERROR_SEVERITIES: frozenset[str] = frozenset(
    {Severity.ERROR.value, Severity.EXCEPTION.value, Severity.ASSERT.value}
)


def to_number(value: Any) -> float | None:
    """Coerce *value* to a finite float, or ``None`` if it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _to_int(value: Any) -> int | None:
    number = to_number(value)
    return None if number is None else int(number)


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


class TelemetryHeader(BaseModel):
    """Fields shared by every telemetry record kind.

    Attribute names are snake_case; the camelCase wire names are accepted as
    aliases so a normalized JSON object validates directly.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    type: str | None = None
    version: int | None = None
    phase: str | None = None
    time: int | None = None
    process_id: int | None = Field(default=None, alias="processId")
    severity: str | None = None
    message: str | None = None
    stack_trace: str | None = Field(default=None, alias="stackTrace")
    file: str | None = None
    line: int | None = None
    name: str | None = None
    description: str | None = None
    duration: float | None = None
    duration_microseconds: float | None = Field(
        default=None, alias="durationMicroseconds"
    )
    errors: list[Any] = []

    @field_validator("version", "time", "process_id", "line", mode="before")
    @classmethod
    def _coerce_int(cls, value: Any) -> int | None:
        return _to_int(value)

    @field_validator("duration", "duration_microseconds", mode="before")
    @classmethod
    def _coerce_float(cls, value: Any) -> float | None:
        return to_number(value)

    @field_validator(
        "type",
        "phase",
        "severity",
        "message",
        "stack_trace",
        "file",
        "name",
        "description",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        return _to_text(value)

    @field_validator("errors", mode="before")
    @classmethod
    def _coerce_errors(cls, value: Any) -> list[Any]:
        if value is None:
            return []
        if isinstance(value, list):
            return value
        return [value]

    @property
    def is_error(self) -> bool:
        """Whether the severity is one that escalates to an error."""
        return self.severity in ERROR_SEVERITIES


class ActionRecord(BaseModel):
    """A ``Begin``/``End``/``Immediate`` build action event."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["action"] = "action"
    header: TelemetryHeader
    payload: dict[str, Any] = {}


class PlayerBuildStepInfo(BaseModel):
    """One raw step of a player build info summary, as emitted."""

    model_config = ConfigDict(frozen=True)

    description: str | None = None
    duration: float | None = None
    errors: float | None = None

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, value: Any) -> str | None:
        return _to_text(value)

    @field_validator("duration", "errors", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> float | None:
        return to_number(value)


class PlayerBuildInfoRecord(BaseModel):
    """Per-step summary of a finished player build."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["player_build_info"] = "player_build_info"
    header: TelemetryHeader
    payload: dict[str, Any] = {}
    steps: list[PlayerBuildStepInfo] = []


class MemoryLeakRecord(BaseModel):
    """Leaked allocations reported when the editor shuts down."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["memory_leak"] = "memory_leak"
    header: TelemetryHeader
    payload: dict[str, Any] = {}
    allocated_memory: float | None = None
    memory_labels: list[tuple[str, float]] = []


class LogRecord(BaseModel):
    """Any other telemetry: log entries, compiler output, settings dumps."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["log"] = "log"
    header: TelemetryHeader
    payload: dict[str, Any] = {}


TelemetryRecord = Union[ActionRecord, PlayerBuildInfoRecord, MemoryLeakRecord, LogRecord]


def normalize_memory_labels(memory_labels: Any) -> list[tuple[str, float]]:
    """Flatten ``memoryLabels`` into ordered ``(label, size)`` pairs.

    Accepts a mapping or a list of single-entry mappings.  Entries whose size
    is not numeric are dropped.
    """
    if not memory_labels:
        return []

    if isinstance(memory_labels, dict):
        items = list(memory_labels.items())
    elif isinstance(memory_labels, list):
        items = []
        for label_object in memory_labels:
            if isinstance(label_object, dict):
                items.extend(label_object.items())
    else:
        return []

    entries: list[tuple[str, float]] = []
    for label, value in items:
        size = to_number(value)
        if size is not None:
            entries.append((str(label), size))
    return entries
