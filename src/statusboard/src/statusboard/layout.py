"""
Responsive column layout for dashboard and summary output.

``calculate_layout`` maps a terminal width onto column widths using one of three
regimes:

* narrow (< 50 cells): minimal padding, name/status split 60/40
* standard (50-120 cells): proportional split with a status column floor
* wide (> 120 cells): generous fixed widths, effective width capped at 160
"""

from __future__ import annotations

from .models import LayoutConfig
from .utils import display_width, strip_ansi, truncate_with_ellipsis

MIN_LAYOUT_WIDTH = 50
STANDARD_LAYOUT_WIDTH = 80
WIDE_LAYOUT_WIDTH = 120
MAX_LAYOUT_WIDTH = 160

TINY_LAYOUT_WIDTH = 20
MIN_STATUS_WIDTH = 15
DEFAULT_MIN_PADDING = 2


def calculate_layout(terminal_width: int) -> LayoutConfig:
    """Compute column widths for ``terminal_width``."""
    if terminal_width < MIN_LAYOUT_WIDTH:
        return _narrow_layout(terminal_width)
    if terminal_width <= WIDE_LAYOUT_WIDTH:
        return _standard_layout(terminal_width)
    return _wide_layout(terminal_width)


def _narrow_layout(width: int) -> LayoutConfig:
    min_padding = 1
    if width < TINY_LAYOUT_WIDTH:
        # Exact fit is impossible this small; only keep every column positive.
        half = max(1, width // 2 - 1)
        return LayoutConfig(
            terminal_width=width,
            name_column_width=half,
            status_column_width=half,
            file_name_width=half,
            file_size_width=6,  # "1.2K"
            min_padding=min_padding,
        )

    name_width = (width * 6) // 10
    status_width = width - name_width - min_padding
    return LayoutConfig(
        terminal_width=width,
        name_column_width=name_width,
        status_column_width=status_width,
        file_name_width=name_width,
        file_size_width=8,
        min_padding=min_padding,
    )


def _standard_layout(width: int) -> LayoutConfig:
    min_padding = DEFAULT_MIN_PADDING
    available = width - min_padding

    name_width = (available * 65) // 100
    status_width = available - name_width
    file_name_width = (available * 75) // 100
    file_size_width = available - file_name_width

    if status_width < MIN_STATUS_WIDTH:
        status_width = MIN_STATUS_WIDTH
        name_width = width - MIN_STATUS_WIDTH - min_padding

    return LayoutConfig(
        terminal_width=width,
        name_column_width=name_width,
        status_column_width=status_width,
        file_name_width=file_name_width,
        file_size_width=file_size_width,
        min_padding=min_padding,
    )


def _wide_layout(width: int) -> LayoutConfig:
    min_padding = 3
    effective_width = min(width, MAX_LAYOUT_WIDTH)

    # Never narrower than the standard regime at its widest, so the name column
    # does not shrink as the terminal grows past the regime boundary.
    name_width = max(45, _standard_layout(WIDE_LAYOUT_WIDTH).name_column_width)
    status_width = 25
    file_name_width = 60
    file_size_width = 12

    if name_width + status_width + min_padding > effective_width:
        return _standard_layout(effective_width)

    return LayoutConfig(
        terminal_width=width,
        name_column_width=name_width,
        status_column_width=status_width,
        file_name_width=file_name_width,
        file_size_width=file_size_width,
        min_padding=min_padding,
    )


def _fit(text: str, width: int) -> str:
    if display_width(text) <= width:
        return text
    # Styled text loses its color once cut.
    return truncate_with_ellipsis(strip_ansi(text), width)


def format_aligned_text(layout: LayoutConfig, left: str, right: str) -> str:
    """Left-align ``left`` in the name column and push ``right`` to the status edge."""
    left = _fit(left, layout.name_column_width)
    right = _fit(right, layout.status_column_width)
    total = layout.name_column_width + layout.status_column_width
    padding = max(layout.min_padding, total - display_width(left) - display_width(right))
    return left + " " * padding + right


def format_file_list_item(layout: LayoutConfig, filename: str, size: str) -> str:
    """Align a file name with its right-justified size."""
    filename = _fit(filename, layout.file_name_width)
    total = layout.file_name_width + layout.file_size_width
    padding = max(layout.min_padding, total - display_width(filename) - display_width(size))
    return filename + " " * padding + size


def separator_line(layout: LayoutConfig, length: int = 0) -> str:
    """A ``─`` rule of ``length`` cells (half the terminal when unset), capped at the terminal width."""
    if length <= 0:
        length = layout.terminal_width // 2
    return "─" * min(length, layout.terminal_width)
