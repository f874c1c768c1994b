"""Utility functions for the dashboard."""

from __future__ import annotations

import os
from datetime import timedelta

from rich.cells import cell_len, get_character_cell_size
from rich.text import Text

ELLIPSIS = "..."

# CSI sequences, emitted literally (not through terminfo)
CURSOR_UP = "\x1b[{count}A"
ERASE_LINE = "\x1b[2K"


def cursor_up(count: int) -> str:
    return CURSOR_UP.format(count=count)


def _as_seconds(value: float | timedelta) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


def format_duration(value: float | timedelta) -> str:
    """Render a duration as ``850ms`` below one second and ``2.0s`` above."""
    seconds = _as_seconds(value)
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    return f"{seconds:.1f}s"


def format_file_size(size: int) -> str:
    """Convert bytes into a compact human readable string (``512B``, ``4.2M``)."""
    if -1024 < size < 1024:
        return f"{size}B"
    value = float(size)
    units = "KMGTPE"
    for unit in units:
        value /= 1024
        if abs(value) < 1024 or unit == units[-1]:
            break
    return f"{value:.1f}{unit}"


def strip_ansi(text: str) -> str:
    """Drop terminal escape sequences, keeping only the visible text."""
    if "\x1b" not in text:
        return text
    return Text.from_ansi(text).plain


def display_width(text: str) -> int:
    """Terminal cells occupied by ``text`` once styling is removed."""
    return cell_len(strip_ansi(text))


def pad_to_width(text: str, width: int) -> str:
    """Left-align ``text`` in ``width`` cells, measuring the de-styled view."""
    gap = width - display_width(text)
    if gap <= 0:
        return text
    return text + " " * gap


def _take_cells(text: str, cells: int) -> str:
    """Longest prefix of ``text`` that fits in ``cells``; never splits a character."""
    used = 0
    for position, char in enumerate(text):
        size = get_character_cell_size(char)
        if used + size > cells:
            return text[:position]
        used += size
    return text


def truncate_with_ellipsis(text: str, max_width: int) -> str:
    """Fit ``text`` into ``max_width`` cells, ending in ``...`` when cut.

    Text that already fits is returned unchanged, styling included. Cut text is
    de-styled and always occupies exactly ``max_width`` cells; a trailing space
    fills the gap left by a double-width glyph.
    """
    if max_width <= 0:
        return ""
    if display_width(text) <= max_width:
        return text
    if max_width <= len(ELLIPSIS):
        return "." * max_width
    truncated = _take_cells(strip_ansi(text), max_width - len(ELLIPSIS)) + ELLIPSIS
    return pad_to_width(truncated, max_width)


def format_to_width(message: str, width: int, interactive: bool) -> str:
    """Fit a console message to the terminal. CI output is never truncated."""
    if not interactive or display_width(message) <= width:
        return message
    if width <= len(ELLIPSIS):
        return ELLIPSIS
    return _take_cells(strip_ansi(message), width - len(ELLIPSIS)) + ELLIPSIS


def display_path(path: str) -> str:
    """Shorten ``path`` for display: relative to the working directory, else ``~``-prefixed."""
    if not path:
        return "."
    expanded = os.path.abspath(os.path.expanduser(path))
    relative = os.path.relpath(expanded)
    if not relative.startswith(".."):
        return relative if relative == "." else f"./{relative}"
    home = os.path.expanduser("~")
    if expanded == home or expanded.startswith(home + os.sep):
        return "~" + expanded[len(home):]
    return expanded
