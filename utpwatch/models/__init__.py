"""utpwatch data models — all Pydantic v2, all frozen (immutable)."""

from utpwatch.models.snapshots import (
    ActionSummary,
    ActionTableSnapshot,
    PlayerBuildInfoSnapshot,
    PlayerBuildStep,
    RenderedTable,
)
from utpwatch.models.telemetry import (
    ActionRecord,
    LogRecord,
    MemoryLeakRecord,
    Phase,
    PlayerBuildInfoRecord,
    PlayerBuildStepInfo,
    Severity,
    TelemetryHeader,
    TelemetryRecord,
)

__all__ = [
    # telemetry
    "Phase",
    "Severity",
    "TelemetryHeader",
    "TelemetryRecord",
    "ActionRecord",
    "LogRecord",
    "MemoryLeakRecord",
    "PlayerBuildInfoRecord",
    "PlayerBuildStepInfo",
    # snapshots
    "ActionSummary",
    "ActionTableSnapshot",
    "PlayerBuildInfoSnapshot",
    "PlayerBuildStep",
    "RenderedTable",
]
