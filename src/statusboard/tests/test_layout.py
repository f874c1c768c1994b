import pytest

from statusboard.layout import (
    calculate_layout,
    format_aligned_text,
    format_file_list_item,
    separator_line,
)
from statusboard.models import LayoutConfig
from statusboard.utils import display_width


STANDARD = calculate_layout(80)


@pytest.mark.parametrize("width", range(1, 501))
def test_every_width_yields_positive_columns(width):
    layout = calculate_layout(width)
    assert layout.name_column_width > 0
    assert layout.status_column_width > 0
    assert layout.file_name_width > 0
    assert layout.file_size_width > 0
    assert layout.terminal_width == width


def test_name_column_never_shrinks_as_terminal_grows():
    widths = [calculate_layout(width).name_column_width for width in range(50, 501)]
    assert widths == sorted(widths)


def test_regime_boundary_keeps_name_column():
    assert calculate_layout(121).name_column_width >= calculate_layout(120).name_column_width


def test_narrow_layout():
    layout = calculate_layout(30)
    assert layout == LayoutConfig(
        terminal_width=30,
        name_column_width=18,
        status_column_width=11,
        file_name_width=18,
        file_size_width=8,
        min_padding=1,
    )
    assert layout.is_narrow


def test_standard_layout():
    assert STANDARD == LayoutConfig(
        terminal_width=80,
        name_column_width=50,
        status_column_width=28,
        file_name_width=58,
        file_size_width=20,
        min_padding=2,
    )
    assert not STANDARD.is_narrow
    assert not STANDARD.is_wide


def test_wide_layout_caps_effective_width():
    layout = calculate_layout(400)
    assert layout.is_wide
    assert layout.terminal_width == 400
    assert layout.status_column_width == 25
    assert layout.file_name_width == 60
    assert layout.file_size_width == 12
    assert layout.min_padding == 3
    assert layout.name_column_width == calculate_layout(161).name_column_width


def test_aligned_text_fills_name_and_status_columns():
    line = format_aligned_text(STANDARD, "gpt-4.1 (openai)", "timeout")
    assert line.startswith("gpt-4.1 (openai)")
    assert line.endswith("timeout")
    assert len(line) == STANDARD.name_column_width + STANDARD.status_column_width


def test_aligned_text_truncates_long_columns():
    line = format_aligned_text(STANDARD, "x" * 200, "y" * 200)
    assert display_width(line) == STANDARD.name_column_width + STANDARD.status_column_width + STANDARD.min_padding
    assert line.count("...") == 2


def test_aligned_text_measures_styled_text():
    styled = "\x1b[31mfailed\x1b[0m"
    line = format_aligned_text(STANDARD, "model", styled)
    assert display_width(line) == STANDARD.name_column_width + STANDARD.status_column_width


def test_file_list_item_right_aligns_size():
    line = format_file_list_item(STANDARD, "gpt-4.1.md", "4.2K")
    assert line.startswith("gpt-4.1.md")
    assert line.endswith("4.2K")
    assert len(line) == STANDARD.file_name_width + STANDARD.file_size_width


def test_separator_line_lengths():
    assert separator_line(STANDARD) == "─" * 40
    assert separator_line(STANDARD, 13) == "─" * 13
    assert separator_line(STANDARD, 500) == "─" * 80
