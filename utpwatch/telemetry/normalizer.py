"""Turn raw ``##utp:`` fragments into typed telemetry records.

Normalization reconciles legacy and canonical field names so that both alias
forms are always populated afterwards, and reports (but never rejects)
records that are missing a ``type`` or carry fields outside the known set.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from utpwatch.models.telemetry import (
    ActionRecord,
    LogRecord,
    MemoryLeakRecord,
    PlayerBuildInfoRecord,
    PlayerBuildStepInfo,
    TelemetryHeader,
    TelemetryRecord,
    normalize_memory_labels,
    to_number,
)
from utpwatch.sinks import LoggingSink, LogSink

logger = logging.getLogger(__name__)

UTP_PREFIX = "##utp:"

ALLOWED_KEYS: frozenset[str] = frozenset(
    {
        "allocatedMemory",
        "BuildSettings",
        "description",
        "duration",
        "durationMicroseconds",
        "errors",
        "file",
        "fileName",
        "iteration",
        "line",
        "lineNumber",
        "memoryLabels",
        "message",
        "name",
        "phase",
        "PlayerSettings",
        "PlayerSystemInfo",
        "processId",
        "QualitySettings",
        "ScreenSettings",
        "severity",
        "stacktrace",
        "stackTrace",
        "state",
        "steps",
        "tests",
        "time",
        "type",
        "version",
    }
)

# (canonical, legacy, accepted value type)
_ALIASES: tuple[tuple[str, str, type | tuple[type, ...]], ...] = (
    ("stackTrace", "stacktrace", str),
    ("file", "fileName", str),
    ("line", "lineNumber", (int, float)),
)

_ANSI_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")


class UtpWatchError(Exception):
    """Base class for utpwatch errors."""


class TelemetryParseError(UtpWatchError):
    """A single telemetry fragment could not be parsed.

    Attributes
    ----------
    raw:
        The offending text, for the warning message.
    """

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


def sanitize(raw: str) -> str | None:
    """Strip BOMs, NUL bytes and ANSI escapes; ``None`` if nothing is left.

    Interleaved writes from the editor occasionally leave empty or garbage
    fragments behind; callers must skip parsing when this returns ``None``.
    """
    text = raw.replace("\ufeff", "").replace("\x00", "")
    text = _ANSI_RE.sub("", text).strip()
    return text or None


def _has_value(entry: dict[str, Any], key: str, kind: type | tuple[type, ...]) -> bool:
    value = entry.get(key)
    return isinstance(value, kind) and not isinstance(value, bool)


def normalize_entry(
    entry: dict[str, Any], sink: LogSink | None = None
) -> dict[str, Any]:
    """Return a copy of *entry* with legacy and canonical aliases reconciled.

    ``stackTrace``/``stacktrace``, ``file``/``fileName`` and
    ``line``/``lineNumber`` are mirrored in whichever direction is missing.
    Running it twice yields the same object.  Warnings are emitted for a
    missing ``type`` and for keys outside ``ALLOWED_KEYS``.
    """
    sink = sink or LoggingSink(logger)
    normalized = dict(entry)

    for canonical, legacy, kind in _ALIASES:
        if canonical not in normalized and _has_value(normalized, legacy, kind):
            normalized[canonical] = normalized[legacy]
        if legacy not in normalized and _has_value(normalized, canonical, kind):
            normalized[legacy] = normalized[canonical]

    if not normalized.get("type"):
        sink.warning(
            "UTP entry missing type property; telemetry entry may be ignored."
        )

    extras = sorted(key for key in normalized if key not in ALLOWED_KEYS)
    if extras:
        sink.warning(
            f"UTP entry contains unrecognized properties: {', '.join(extras)}"
        )

    return normalized


def parse_record(entry: Any, sink: LogSink | None = None) -> TelemetryRecord:
    """Normalize a decoded JSON value and build its typed record.

    Raises
    ------
    TelemetryParseError
        If *entry* is not a JSON object.
    """
    if not isinstance(entry, dict):
        raise TelemetryParseError(
            f"telemetry payload is a {type(entry).__name__}, not an object",
            raw=json.dumps(entry, default=str),
        )

    payload = normalize_entry(entry, sink)
    header = TelemetryHeader.model_validate(payload)

    if header.type == "Action":
        return ActionRecord(header=header, payload=payload)

    if header.type == "PlayerBuildInfo":
        raw_steps = payload.get("steps")
        steps = [
            PlayerBuildStepInfo.model_validate(step)
            for step in (raw_steps if isinstance(raw_steps, list) else [])
            if isinstance(step, dict)
        ]
        return PlayerBuildInfoRecord(header=header, payload=payload, steps=steps)

    if header.type in ("MemoryLeak", "MemoryLeaks"):
        return MemoryLeakRecord(
            header=header,
            payload=payload,
            allocated_memory=to_number(payload.get("allocatedMemory")),
            memory_labels=normalize_memory_labels(payload.get("memoryLabels")),
        )

    return LogRecord(header=header, payload=payload)


def is_telemetry_line(line: str) -> bool:
    """Whether *line* carries the ``##utp:`` sentinel."""
    return line.lstrip("\ufeff \t").startswith(UTP_PREFIX)


def parse_line(line: str, sink: LogSink | None = None) -> TelemetryRecord | None:
    """Parse one ``##utp:`` line into a record.

    Returns ``None`` when the line is not telemetry or sanitizes to nothing.

    Raises
    ------
    TelemetryParseError
        If the payload is not valid JSON or not a JSON object.
    """
    if not is_telemetry_line(line):
        return None

    fragment = sanitize(line.lstrip("\ufeff \t")[len(UTP_PREFIX):])
    if fragment is None:
        return None

    try:
        decoded = json.loads(fragment)
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError, oversized integer literals, pathological nesting
        raise TelemetryParseError(str(exc), raw=fragment) from exc

    return parse_record(decoded, sink)
