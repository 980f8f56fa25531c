"""Terminal display-width helpers.

A string's display width is the number of terminal cells it occupies, which
differs from ``len()`` as soon as wide (CJK, emoji) glyphs, combining marks,
zero-width joiners or variation selectors are involved.

Everything here works on *clusters*: a base character plus the zero-width
code points attached to it.  Truncation and wrapping never cut inside a
cluster, so a glyph is never split in half.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterator

ELLIPSIS = "…"

_ANSI_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07]*\x07")

_ZERO_WIDTH_JOINER = 0x200D
_EMOJI_PRESENTATION = 0xFE0F
_ZERO_WIDTH_CATEGORIES = frozenset({"Mn", "Me", "Cf"})


def strip_ansi(text: str) -> str:
    """Remove ANSI CSI/OSC escape sequences from *text*."""
    return _ANSI_RE.sub("", text)


_LINE_BREAK_RE = re.compile(r"\r\n|[\r\n\t\v\f\u2028\u2029]")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def to_single_line(text: str) -> str:
    """Make *text* safe for one table cell.

    Line breaks and tabs become single spaces and every other control
    character is dropped, so the result renders on exactly one terminal
    line at exactly its ``display_width``.
    """
    return _CONTROL_RE.sub("", _LINE_BREAK_RE.sub(" ", strip_ansi(text)))


def char_width(ch: str) -> int:
    """Return the terminal width of a single code point (0, 1 or 2)."""
    cp = ord(ch)
    if cp == 0 or cp < 32 or 0x7F <= cp < 0xA0:
        return 0
    # Variation selectors (VS1-16 and the supplement)
    if 0xFE00 <= cp <= 0xFE0F or 0xE0100 <= cp <= 0xE01EF:
        return 0
    if unicodedata.category(ch) in _ZERO_WIDTH_CATEGORIES:
        return 0
    # Pictographs, emoticons, transport and supplemental symbol blocks
    if 0x1F000 <= cp <= 0x1FAFF:
        return 2
    if unicodedata.east_asian_width(ch) in ("W", "F"):
        return 2
    return 1


def iter_clusters(text: str) -> Iterator[tuple[str, int]]:
    """Yield ``(cluster, width)`` pairs for *text*.

    A cluster is a base glyph followed by any zero-width marks.  An emoji
    presentation selector (U+FE0F) widens a narrow base glyph to two cells,
    and characters joined with a ZWJ render as the single preceding glyph.
    """
    cluster = ""
    width = 0
    joined = False

    for ch in text:
        cp = ord(ch)
        if not cluster:
            cluster, width = ch, char_width(ch)
            continue

        if cp == _EMOJI_PRESENTATION:
            cluster += ch
            if width == 1:
                width = 2
            continue

        if cp == _ZERO_WIDTH_JOINER:
            cluster += ch
            joined = True
            continue

        w = char_width(ch)
        if w == 0 or joined:
            cluster += ch
            joined = False
            continue

        yield cluster, width
        cluster, width = ch, w

    if cluster:
        yield cluster, width


def display_width(text: str) -> int:
    """Return the number of terminal columns *text* occupies.

    ANSI escape sequences are ignored.

    >>> display_width("ABC")
    3
    >>> display_width("\\u2705")
    2
    """
    return sum(width for _, width in iter_clusters(strip_ansi(text)))


def truncate_to_width(text: str, width: int, ellipsis: str = ELLIPSIS) -> str:
    """Shorten *text* to at most *width* columns, ending with *ellipsis*.

    Text that already fits is returned unchanged.  A wide glyph that would
    straddle the limit is dropped entirely, so the result may be one column
    narrower than *width*.
    """
    if width <= 0:
        return ""
    if display_width(text) <= width:
        return text

    marker_width = display_width(ellipsis)
    if marker_width > width:
        return ""

    budget = width - marker_width
    kept: list[str] = []
    used = 0
    for cluster, cluster_width in iter_clusters(strip_ansi(text)):
        if used + cluster_width > budget:
            break
        kept.append(cluster)
        used += cluster_width
    return "".join(kept) + ellipsis


def pad_to_width(text: str, width: int, align: str = "left") -> str:
    """Pad *text* with spaces to exactly *width* columns.

    Text wider than *width* is returned unchanged; truncate first.
    """
    gap = width - display_width(text)
    if gap <= 0:
        return text
    if align == "right":
        return " " * gap + text
    if align == "center":
        left = gap // 2
        return " " * left + text + " " * (gap - left)
    return text + " " * gap


def fit_to_width(text: str, width: int, align: str = "left") -> str:
    """Truncate then pad *text* so it occupies exactly *width* columns."""
    return pad_to_width(truncate_to_width(text, width), width, align)


def wrap_to_width(text: str, width: int) -> list[str]:
    """Hard-wrap a single line of *text* into chunks of at most *width* columns."""
    if width <= 0:
        return [text]

    lines: list[str] = []
    current: list[str] = []
    used = 0
    for cluster, cluster_width in iter_clusters(strip_ansi(text)):
        if used + cluster_width > width and current:
            lines.append("".join(current))
            current, used = [], 0
        current.append(cluster)
        used += cluster_width
    lines.append("".join(current))
    return lines
