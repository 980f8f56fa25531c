"""ActionAccumulator — pairs ``Begin``/``End`` action telemetry into a timeline.

All state is private.  Consumers only ever see ``ActionTableSnapshot``
instances, which are built fresh on every ``snapshot()`` call and never
mutated afterwards.
"""

from __future__ import annotations

import json
import logging
import traceback
from typing import Any

from utpwatch.models.snapshots import (
    ActionSummary,
    ActionTableSnapshot,
    PlayerBuildInfoSnapshot,
    PlayerBuildStep,
)
from utpwatch.models.telemetry import (
    ActionRecord,
    Phase,
    PlayerBuildInfoRecord,
    TelemetryHeader,
)

logger = logging.getLogger(__name__)


def action_key(header: TelemetryHeader) -> str:
    """Identity key of an action: ``processId|name|description``."""
    parts = (header.process_id, header.name, header.description)
    return "|".join("" if part is None else str(part) for part in parts)


def format_error(value: Any) -> str:
    """Render one raw error entry as display text.

    Exceptions render their traceback when they carry one, else their
    message.  Strings pass through.  Anything else is JSON-encoded.
    """
    if isinstance(value, BaseException):
        if value.__traceback__ is not None:
            text = "".join(
                traceback.format_exception(type(value), value, value.__traceback__)
            )
        else:
            text = str(value) or type(value).__name__
    elif isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, default=str)

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return "\n".join(line.rstrip() for line in text.split("\n")).rstrip()


def _duration_ms(start: TelemetryHeader | None, end: TelemetryHeader) -> float:
    if start is not None and start.time is not None and end.time is not None:
        return max(0, end.time - start.time)
    if end.duration is not None:
        return max(0, end.duration)
    if end.duration_microseconds is not None:
        return max(0, end.duration_microseconds / 1000)
    return 0


class ActionAccumulator:
    """Keyed state machine from action telemetry to completed summaries.

    Usage
    -----
    >>> acc = ActionAccumulator()
    >>> acc.record(begin_record)
    True
    >>> acc.record(end_record)
    True
    >>> acc.snapshot().completed[0].duration_ms
    722.0
    """

    def __init__(self) -> None:
        self._pending: dict[str, TelemetryHeader] = {}
        self._completed: list[ActionSummary] = []
        self._total_duration_ms: float = 0
        self._total_error_count: int = 0
        self._player_steps: list[PlayerBuildStep] = []

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(self, action: ActionRecord | TelemetryHeader) -> bool:
        """Fold one action event into the timeline.

        Returns ``True`` when the visible timeline changed.
        """
        header = action.header if isinstance(action, ActionRecord) else action

        if header.phase == Phase.BEGIN.value:
            self._pending[action_key(header)] = header
            return True

        if header.phase == Phase.END.value:
            start = self._take_pending(header)
            if start is None:
                logger.debug("End without matching Begin: %s", action_key(header))

            errors = [format_error(error) for error in header.errors]
            summary = ActionSummary(
                name=header.name or "",
                description=header.description or "",
                duration_ms=_duration_ms(start, header),
                errors=errors,
            )
            self._completed.append(summary)
            self._total_duration_ms += summary.duration_ms
            self._total_error_count += len(errors)
            return True

        return False

    def _take_pending(self, end: TelemetryHeader) -> TelemetryHeader | None:
        """Remove and return the pending Begin matching *end*, if any.

        Exact identity key first.  Failing that, the first pending entry (in
        insertion order) with the same process and name whose description
        is a prefix of, or prefixed by, the ending description.
        """
        start = self._pending.pop(action_key(end), None)
        if start is not None:
            return start

        end_description = end.description or ""
        for key, candidate in self._pending.items():
            if candidate.process_id != end.process_id or candidate.name != end.name:
                continue
            description = candidate.description or ""
            if end_description.startswith(description) or description.startswith(
                end_description
            ):
                del self._pending[key]
                return candidate
        return None

    def record_player_build_info(self, info: PlayerBuildInfoRecord) -> bool:
        """Replace the player build steps with those from *info*.

        Steps without a description are dropped and negative counters are
        clamped to zero.  Returns ``True`` if any steps remain.
        """
        steps: list[PlayerBuildStep] = []
        for step in info.steps:
            if not step.description or not step.description.strip():
                continue
            steps.append(
                PlayerBuildStep(
                    description=step.description,
                    duration_ms=max(0, step.duration or 0),
                    error_count=max(0, int(step.errors or 0)),
                )
            )
        self._player_steps = steps
        return bool(steps)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def has_errors(self) -> bool:
        return self._total_error_count > 0

    def snapshot(self) -> ActionTableSnapshot | None:
        """Build an immutable view of the current timeline.

        Returns ``None`` until at least one action or player build step has
        been recorded.
        """
        if not self._pending and not self._completed and not self._player_steps:
            return None

        pending = [
            ActionSummary(name=header.name or "", description=header.description or "")
            for header in self._pending.values()
        ]

        player_build_info = None
        if self._player_steps:
            player_build_info = PlayerBuildInfoSnapshot(
                steps=list(self._player_steps),
                total_duration_ms=sum(step.duration_ms for step in self._player_steps),
                total_error_count=sum(step.error_count for step in self._player_steps),
            )

        return ActionTableSnapshot(
            completed=list(self._completed),
            pending=pending,
            total_duration_ms=self._total_duration_ms,
            total_error_count=self._total_error_count,
            player_build_info=player_build_info,
        )
