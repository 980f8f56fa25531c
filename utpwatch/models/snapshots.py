"""Immutable views handed from the accumulator to the table formatter.

A snapshot is computed fresh on every render request and is never mutated
after it is returned.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ActionSummary(BaseModel):
    """A build action, either still pending or completed and timed."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    description: str = ""
    duration_ms: float = 0
    errors: list[str] = []

    @property
    def label(self) -> str:
        """Description if present, otherwise the action name."""
        return self.description.strip() or self.name

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class PlayerBuildStep(BaseModel):
    """A cleaned player-build step with non-negative counters."""

    model_config = ConfigDict(frozen=True)

    description: str
    duration_ms: float = 0
    error_count: int = 0


class PlayerBuildInfoSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    steps: list[PlayerBuildStep] = []
    total_duration_ms: float = 0
    total_error_count: int = 0


class ActionTableSnapshot(BaseModel):
    """Point-in-time view of the build timeline."""

    model_config = ConfigDict(frozen=True)

    completed: list[ActionSummary] = []
    pending: list[ActionSummary] = []
    total_duration_ms: float = 0
    total_error_count: int = 0
    player_build_info: PlayerBuildInfoSnapshot | None = None

    @property
    def row_count(self) -> int:
        return len(self.completed) + len(self.pending)

    @property
    def failed(self) -> list[ActionSummary]:
        """Completed actions that reported errors."""
        return [action for action in self.completed if action.has_errors]


class RenderedTable(BaseModel):
    """Formatted table text and the number of terminal lines it spans."""

    model_config = ConfigDict(frozen=True)

    text: str
    line_count: int
