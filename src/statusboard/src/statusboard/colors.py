"""
Semantic colors, status symbols and terminal detection.

Palette:
- Blue (#3B82F6): model names, bullets
- Cyan (#06B6D4): processing, info
- Green (#22C55E): success
- Yellow (#FBBF24): warnings, rate limits
- Red (#EF4444): errors
- Gray (#9CA3AF): timings, paths, separators
- White, bold: section headers
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, TextIO

from blessed import Terminal
from loguru import logger
from rich.color import ColorSystem
from rich.console import Console
from rich.style import Style

from . import settings

__all__ = [
    "ASCII_SYMBOLS",
    "UNICODE_SYMBOLS",
    "ColorScheme",
    "SymbolProvider",
    "SymbolSet",
    "detect_interactive_environment",
    "detect_terminal_width",
    "stream_is_terminal",
    "supports_unicode",
]

_COLOR_SYSTEMS = {
    "standard": ColorSystem.STANDARD,
    "256": ColorSystem.EIGHT_BIT,
    "truecolor": ColorSystem.TRUECOLOR,
    "windows": ColorSystem.WINDOWS,
}


class ColorScheme:
    """Applies semantic styles to plain strings; every method is the identity when disabled."""

    def __init__(self, enabled: bool, *, stream: TextIO | None = None, color_system: str | None = None):
        self.enabled = enabled
        if enabled and color_system is None:
            detected = Console(file=stream, force_terminal=True).color_system
            color_system = detected or "standard"
        self._color_system = _COLOR_SYSTEMS.get(color_system or "standard", ColorSystem.STANDARD)

        self.model_name_style = Style(color="#3B82F6")
        self.success_style = Style(color="#22C55E")
        self.warning_style = Style(color="#FBBF24")
        self.error_style = Style(color="#EF4444")
        self.info_style = Style(color="#06B6D4")
        self.muted_style = Style(color="#9CA3AF")
        self.section_header_style = Style(color="#FFFFFF", bold=True)

    def _apply(self, style: Style, text: str) -> str:
        if not self.enabled or not text:
            return text
        return style.render(text, color_system=self._color_system)

    def apply_color(self, color: str, text: str) -> str:
        """Color ``text`` with an arbitrary hex or named color."""
        if not color:
            return text
        return self._apply(Style(color=color), text)

    def model_name(self, text: str) -> str:
        return self._apply(self.model_name_style, text)

    def success(self, text: str) -> str:
        return self._apply(self.success_style, text)

    def warning(self, text: str) -> str:
        return self._apply(self.warning_style, text)

    def error(self, text: str) -> str:
        return self._apply(self.error_style, text)

    def info(self, text: str) -> str:
        return self._apply(self.info_style, text)

    def muted(self, text: str) -> str:
        return self._apply(self.muted_style, text)

    # Timings, sizes, paths and rules all share the muted gray.
    duration = muted
    file_size = muted
    file_path = muted
    separator = muted

    def section_header(self, text: str) -> str:
        return self._apply(self.section_header_style, text)

    def symbol(self, text: str) -> str:
        return self._apply(self.model_name_style, text)


@dataclass(frozen=True, slots=True)
class SymbolSet:
    success: str
    error: str
    warning: str
    bullet: str
    sparkles: str
    processing: str


UNICODE_SYMBOLS = SymbolSet(success="✓", error="✗", warning="⚠", bullet="●", sparkles="✨", processing="...")
ASCII_SYMBOLS = SymbolSet(success="[OK]", error="[X]", warning="[!]", bullet="*", sparkles="**", processing="...")

_MODERN_TERMS = ("xterm-256color", "screen-256color", "tmux-256color", "alacritty", "kitty")


def supports_unicode(getenv: Callable[[str], str | None] = os.getenv) -> bool:
    """Guess Unicode support from the locale and terminal type."""
    locale = getenv("LC_ALL") or getenv("LC_CTYPE") or getenv("LANG") or ""
    if "UTF-8" in locale.upper() or "UTF8" in locale.upper():
        return True

    term = getenv("TERM") or ""
    if any(modern in term for modern in _MODERN_TERMS):
        return True

    return bool(getenv("WT_SESSION") or getenv("VSCODE_INJECTION"))


class SymbolProvider:
    """Picks Unicode glyphs for capable interactive terminals, ASCII otherwise."""

    def __init__(self, interactive: bool, getenv: Callable[[str], str | None] = os.getenv):
        if interactive and supports_unicode(getenv):
            self.symbols = UNICODE_SYMBOLS
        else:
            self.symbols = ASCII_SYMBOLS


def detect_interactive_environment(
    is_terminal: Callable[[], bool],
    getenv: Callable[[str], str | None] = os.getenv,
) -> bool:
    """True when attached to a TTY and no CI marker is set."""
    for name in settings.CI_ENV_VARS:
        value = getenv(name) or ""
        if value and (value == "true" or name == "JENKINS_URL"):
            return False
    return is_terminal()


def stream_is_terminal(stream: TextIO) -> bool:
    try:
        return bool(stream.isatty())
    except (AttributeError, ValueError, OSError):
        return False


def detect_terminal_width(stream: TextIO, default: int | None = None) -> int:
    """Width of the terminal behind ``stream``; ``default`` when it cannot be determined."""
    default = default or settings.DEFAULT_TERMINAL_WIDTH
    if not stream_is_terminal(stream):
        return default
    try:
        width = Terminal(stream=stream).width
    except Exception as e:
        logger.warning(f"Terminal width detection failed: {e}, using default width {default}")
        return default
    if not width or width <= 0:
        return default
    return width
