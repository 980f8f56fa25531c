"""Live renderer for the build timeline table.

On an interactive terminal the table is redrawn in place: the previous
render is erased by moving the cursor up over it and clearing to the end of
the screen.  Everywhere else (CI logs, pipes, files) each render is
appended as a new permanent block, since erasing would destroy history.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

from utpwatch.config import config
from utpwatch.models.snapshots import ActionTableSnapshot
from utpwatch.telemetry.table import format_action_table
from utpwatch.telemetry.terminal import TerminalControl
from utpwatch.telemetry.width import display_width

logger = logging.getLogger(__name__)


class LiveTableRenderer:
    """Stateful wrapper around ``format_action_table``.

    Parameters
    ----------
    terminal:
        Where output goes.
    live:
        Force redraw-in-place on or off.  Detected from the terminal when
        not given.
    default_columns, margin, min_width:
        Width fallbacks; default to the values in ``config``.
    """

    def __init__(
        self,
        terminal: TerminalControl | None = None,
        *,
        live: bool | None = None,
        default_columns: int | None = None,
        margin: int | None = None,
        min_width: int | None = None,
    ) -> None:
        self.terminal = terminal or TerminalControl()
        self.live = self.terminal.can_redraw() if live is None else live
        self._default_columns = default_columns or config.default_columns
        self._margin = config.table_margin if margin is None else margin
        self._min_width = min_width or config.table_min_width
        self._line_count = 0
        self._last_snapshot: ActionTableSnapshot | None = None

    @property
    def line_count(self) -> int:
        """Lines currently drawn by the last live render."""
        return self._line_count

    def screen_columns(self) -> int:
        """Terminal columns, else ``COLUMNS``, else the default."""
        columns = self.terminal.columns()
        if not columns:
            try:
                columns = int(os.environ.get("COLUMNS", ""))
            except ValueError:
                columns = None
        if not columns or columns <= 0:
            columns = self._default_columns
        return columns

    def table_width(self) -> int:
        """Width to format at: screen columns less the margin, floored."""
        return max(self._min_width, self.screen_columns() - self._margin)

    def _physical_lines(self, text: str) -> int:
        # A line wider than the screen wraps onto extra rows
        columns = self.screen_columns()
        return sum(
            max(1, -(-display_width(line) // columns))
            for line in text.split("\n")[:-1]
        )

    def _erase(self) -> None:
        if self.live and self._line_count:
            self.terminal.move_cursor_up(self._line_count)
            self.terminal.clear_to_end_of_screen()
        self._line_count = 0

    def render(self, snapshot: ActionTableSnapshot | None) -> None:
        """Draw *snapshot*, replacing the previous render when live.

        ``None`` clears whatever was drawn and resets state.
        """
        if snapshot is None:
            self._erase()
            self._last_snapshot = None
            return

        self._last_snapshot = snapshot
        table = format_action_table(snapshot, self.table_width())
        if table is None:
            self._erase()
            return

        if self.live:
            self._erase()
            self.terminal.write(table.text)
            self._line_count = self._physical_lines(table.text)
        else:
            self.terminal.write(table.text)

    def prepare_for_content(self) -> None:
        """Erase the live table before other output is interleaved."""
        self._erase()

    def restore(self) -> None:
        """Redraw the last snapshot after interleaved output (live only)."""
        if self.live and self._last_snapshot is not None and not self._line_count:
            self.render(self._last_snapshot)

    @contextmanager
    def interleave(self) -> Iterator[None]:
        """Erase the table for the duration of the block, then redraw it."""
        self.prepare_for_content()
        try:
            yield
        finally:
            self.restore()
