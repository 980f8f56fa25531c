"""Pure formatting of timeline snapshots into box-drawn table text.

Nothing here touches a terminal.  ``format_action_table`` takes a snapshot
and a target width and returns the text plus its line count; the live
renderer decides where and how to write it.

Layout
------
::

    ┌────┬──────────────────┬──────────┐
    │    │ Description      │ Duration │
    ├────┼──────────────────┼──────────┤
    │ ✅ │ Build player     │    722ms │
    │ ⏳ │ Compile scripts  │        … │
    ├────┼──────────────────┼──────────┤
    │    │ Total            │    722ms │
    └────┴──────────────────┴──────────┘

The description column absorbs all slack, and all shrinkage down to a floor,
so every border and row line is exactly the requested width whenever the
table can fit.
"""

from __future__ import annotations

from collections.abc import Sequence

from utpwatch.models.snapshots import (
    ActionSummary,
    ActionTableSnapshot,
    PlayerBuildInfoSnapshot,
    RenderedTable,
)
from utpwatch.models.telemetry import MemoryLeakRecord
from utpwatch.telemetry.width import (
    display_width,
    fit_to_width,
    to_single_line,
    truncate_to_width,
    wrap_to_width,
)

STATUS_PENDING = "⏳"
STATUS_SUCCEEDED = "✅"
STATUS_FAILED = "❌"
DURATION_PLACEHOLDER = "…"

DESCRIPTION_FLOOR = 16
ERROR_DETAILS_HEADING = "Error Details"

_ERROR_BULLET = "  - "
_ERROR_CONTINUATION = "    "

_DURATION_UNITS: tuple[tuple[float, str, float], ...] = (
    (60, "m", 60),
    (60, "h", 60),
    (24, "d", 24),
)


def format_duration(duration_ms: float) -> str:
    """Human duration: ``722ms``, ``1.5s``, ``12s``, ``2.0m``, ``3.0h``...

    One decimal below ten units, none above.
    """
    duration_ms = max(0, duration_ms)
    if duration_ms < 1000:
        return f"{int(duration_ms)}ms"

    value = duration_ms / 1000
    unit = "s"
    for limit, next_unit, factor in _DURATION_UNITS:
        if value < limit:
            break
        value /= factor
        unit = next_unit

    return f"{value:.1f}{unit}" if value < 10 else f"{value:.0f}{unit}"


# ---------------------------------------------------------------------------
# Generic box table
# ---------------------------------------------------------------------------


def _table_width(widths: Sequence[int]) -> int:
    # "│ " + cell + " " per column, plus the closing "│"
    return sum(widths) + 3 * len(widths) + 1


def _border(widths: Sequence[int], left: str, joint: str, right: str) -> str:
    return left + joint.join("─" * (width + 2) for width in widths) + right


def _row(cells: Sequence[str], widths: Sequence[int], aligns: Sequence[str]) -> str:
    parts = (
        f" {fit_to_width(cell, width, align)} "
        for cell, width, align in zip(cells, widths, aligns)
    )
    return "│" + "│".join(parts) + "│"


def _fit_widths(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    flex: int,
    max_width: int,
) -> list[int]:
    """Natural column widths, with column *flex* stretched or shrunk to fit."""
    widths = [display_width(header) for header in headers]
    for row in rows:
        for index, cell in enumerate(row):
            widths[index] = max(widths[index], display_width(cell))

    total = _table_width(widths)
    if total < max_width:
        widths[flex] += max_width - total
    elif total > max_width:
        natural = widths[flex]
        floor = max(display_width(headers[flex]), DESCRIPTION_FLOOR)
        widths[flex] = min(natural, max(floor, natural - (total - max_width)))
    return widths


def _box_table(
    headers: Sequence[str],
    body: Sequence[Sequence[str]],
    totals: Sequence[str],
    aligns: Sequence[str],
    flex: int,
    max_width: int,
) -> list[str]:
    body = [[to_single_line(cell) for cell in row] for row in body]
    totals = [to_single_line(cell) for cell in totals]
    widths = _fit_widths(headers, [*body, totals], flex, max_width)
    header_aligns = ["left" if align == "left" else "center" for align in aligns]

    lines = [
        _border(widths, "┌", "┬", "┐"),
        _row(headers, widths, header_aligns),
        _border(widths, "├", "┼", "┤"),
    ]
    lines.extend(_row(row, widths, aligns) for row in body)
    lines.append(_border(widths, "├", "┼", "┤"))
    lines.append(_row(totals, widths, aligns))
    lines.append(_border(widths, "└", "┴", "┘"))
    return lines


# ---------------------------------------------------------------------------
# Build timeline
# ---------------------------------------------------------------------------


def _action_rows(snapshot: ActionTableSnapshot, with_errors: bool) -> list[list[str]]:
    rows: list[list[str]] = []
    for action in snapshot.completed:
        status = STATUS_FAILED if action.has_errors else STATUS_SUCCEEDED
        row = [status, action.label, format_duration(action.duration_ms)]
        if with_errors:
            row.append(str(len(action.errors)))
        rows.append(row)
    for action in snapshot.pending:
        row = [STATUS_PENDING, action.label, DURATION_PLACEHOLDER]
        if with_errors:
            row.append("")
        rows.append(row)
    return rows


def _timeline_table(snapshot: ActionTableSnapshot, max_width: int) -> list[str]:
    with_errors = snapshot.total_error_count > 0

    headers = ["", "Description", "Duration"]
    aligns = ["left", "left", "right"]
    totals = ["", "Total", format_duration(snapshot.total_duration_ms)]
    if with_errors:
        headers.append("Errors")
        aligns.append("right")
        totals.append(str(snapshot.total_error_count))

    return _box_table(
        headers, _action_rows(snapshot, with_errors), totals, aligns, 1, max_width
    )


def _player_build_table(info: PlayerBuildInfoSnapshot, max_width: int) -> list[str]:
    body = [
        [step.description, format_duration(step.duration_ms), str(step.error_count)]
        for step in info.steps
    ]
    totals = ["Total", format_duration(info.total_duration_ms), str(info.total_error_count)]
    return _box_table(
        ["Build Step", "Duration", "Errors"],
        body,
        totals,
        ["left", "right", "right"],
        0,
        max_width,
    )


def _error_details(failed: Sequence[ActionSummary], max_width: int) -> list[str]:
    lines = ["", ERROR_DETAILS_HEADING]
    text_width = max(1, max_width - len(_ERROR_CONTINUATION))

    for action in failed:
        lines.append(
            truncate_to_width(to_single_line(f"{STATUS_FAILED} {action.label}"), max_width)
        )
        for error in action.errors:
            for index, error_line in enumerate(error.split("\n")):
                prefix = _ERROR_BULLET if index == 0 else _ERROR_CONTINUATION
                for chunk_index, chunk in enumerate(
                    wrap_to_width(to_single_line(error_line), text_width)
                ):
                    lead = prefix if chunk_index == 0 else _ERROR_CONTINUATION
                    lines.append(f"{lead}{chunk}".rstrip())
    return lines


def format_action_table(
    snapshot: ActionTableSnapshot | None, max_width: int
) -> RenderedTable | None:
    """Format *snapshot* as table text at most *max_width* columns wide.

    Returns ``None`` when there is nothing to show.
    """
    if snapshot is None:
        return None
    if snapshot.row_count == 0 and snapshot.player_build_info is None:
        return None

    lines: list[str] = []
    if snapshot.row_count:
        lines.extend(_timeline_table(snapshot, max_width))

    if snapshot.player_build_info is not None:
        lines.extend(_player_build_table(snapshot.player_build_info, max_width))

    failed = snapshot.failed
    if snapshot.total_error_count > 0 and failed:
        lines.extend(_error_details(failed, max_width))

    return RenderedTable(text="\n".join(lines) + "\n", line_count=len(lines))


# ---------------------------------------------------------------------------
# Memory leaks
# ---------------------------------------------------------------------------


def _format_size(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def format_memory_leak_table(record: MemoryLeakRecord) -> str:
    """Label/size table of leaked allocations with a ``Total`` row."""
    rows = [(label, _format_size(size)) for label, size in record.memory_labels]
    total = _format_size(record.allocated_memory or 0)
    placeholder = "(none)"

    label_width = max(
        len("Label"),
        len("Total"),
        max((len(label) for label, _ in rows), default=len(placeholder)),
    )
    size_width = max(len("Size"), len(total), max((len(size) for _, size in rows), default=0))
    rule = "-" * (label_width + size_width + 7)

    lines = [
        "Memory Leaks Detected:",
        rule,
        f"| {'Label'.ljust(label_width)} | {'Size'.rjust(size_width)} |",
        f"|{'-' * (label_width + 2)}|{'-' * (size_width + 2)}|",
    ]
    if rows:
        lines.extend(
            f"| {label.ljust(label_width)} | {size.rjust(size_width)} |"
            for label, size in rows
        )
    else:
        lines.append(f"| {placeholder.ljust(label_width)} | {''.rjust(size_width)} |")
    lines.append(f"| {'Total'.ljust(label_width)} | {total.rjust(size_width)} |")
    lines.append(rule)
    return "\n".join(lines) + "\n"
