"""Thin terminal-control layer over a Rich console.

Escape sequences live here and nowhere else.  The table formatter and the
accumulator never see them.
"""

from __future__ import annotations

import os

from rich.console import Console

CURSOR_PREVIOUS_LINE = "\x1b[{count}F"
CLEAR_TO_END_OF_SCREEN = "\x1b[J"

_CI_VARIABLES = ("CI", "GITHUB_ACTIONS", "BUILD_NUMBER", "TF_BUILD", "GITLAB_CI")


def is_ci_environment() -> bool:
    """Whether we appear to be running under a CI service."""
    for name in _CI_VARIABLES:
        value = os.environ.get(name, "").strip().lower()
        if value and value not in ("0", "false", "no"):
            return True
    return False


class TerminalControl:
    """Raw writes and cursor control on the console's output stream.

    Parameters
    ----------
    console:
        Rich console whose file is written to.  A stdout console is created
        if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(highlight=False)

    @property
    def is_terminal(self) -> bool:
        return self.console.is_terminal

    def can_redraw(self) -> bool:
        """Redraw in place only on an interactive terminal outside CI."""
        return self.is_terminal and not is_ci_environment()

    def columns(self) -> int | None:
        """Live column count of the output stream, if it is a terminal."""
        try:
            return os.get_terminal_size(self.console.file.fileno()).columns
        except (AttributeError, OSError, ValueError):
            return None

    def write(self, text: str) -> None:
        """Write *text* verbatim and flush.

        A closed pipe means the consumer went away; that is not an error.
        """
        if not text:
            return
        stream = self.console.file
        try:
            stream.write(text)
            stream.flush()
        except BrokenPipeError:
            pass

    def write_line(self, line: str) -> None:
        self.write(f"{line}\n")

    def move_cursor_up(self, count: int) -> None:
        """Move to column 0, *count* lines up."""
        if count > 0:
            self.write(CURSOR_PREVIOUS_LINE.format(count=count))

    def clear_to_end_of_screen(self) -> None:
        self.write(CLEAR_TO_END_OF_SCREEN)
