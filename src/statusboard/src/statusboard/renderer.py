"""Environment-aware rendering of per-job status frames."""

from __future__ import annotations

import math
import sys
import threading
from typing import Callable, TextIO

from loguru import logger
from rich.cells import cell_len
from rich.spinner import Spinner

from . import settings
from .colors import ColorScheme, SymbolProvider, detect_terminal_width
from .models import AggregateSummary, JobPhase, JobView, RenderFrame, StatusSnapshot
from .utils import (
    ERASE_LINE,
    cursor_up,
    display_width,
    format_duration,
    pad_to_width,
    truncate_with_ellipsis,
)

INDICATOR_MARGIN = "  "
# Gap between the name column and the widest status when the name width is frozen.
COLUMN_GAP = 3
# Status cells reserved when the name width is frozen: "completed (99.9s)".
MIN_STATUS_RESERVE = 17


def progress_width(terminal_width: int) -> int:
    """Cells left for the progress bar once ``Overall: [`` and ``] 100%`` are placed."""
    return max(1, terminal_width - 16)


class GridProgress:
    """Block-character progress bar. Without a color scheme it falls back to ASCII cells."""

    def __init__(self, colors: ColorScheme | None, total_cells: int):
        self.colors = colors
        self.total_cells = max(1, total_cells)

    def set_total_cells(self, total_cells: int) -> None:
        self.total_cells = max(1, total_cells)

    def render(self, percent: float) -> str:
        percent = min(max(percent, 0.0), 1.0)
        filled = min(math.floor(percent * self.total_cells), self.total_cells)
        empty = self.total_cells - filled

        if self.colors is None:
            return "=" * filled + "-" * empty

        filled_cells = self.colors.apply_color("#3B82F6", "█" * filled)
        return filled_cells + "░" * empty


class StatusRenderer:
    """Draws status frames and owns the spinner ticker.

    Interactive output repositions the cursor over the previous frame; everything
    else appends plain, escape-free blocks. ``lock`` is shared with the owner of
    the renderer so ticks, updates and renders are strictly serialized.
    """

    def __init__(
        self,
        *,
        interactive: bool,
        stream: TextIO | None = None,
        terminal_width: int | None = None,
        colors: ColorScheme | None = None,
        symbols: SymbolProvider | None = None,
        lock: threading.RLock | None = None,
        spinner_interval: float | None = None,
        spinner_name: str = "dots",
        start_ticker: bool = True,
    ) -> None:
        self.interactive = interactive
        self._stream = stream if stream is not None else sys.stdout
        self._explicit_width = terminal_width
        self.terminal_width = terminal_width or self._detect_width()
        self.colors = colors if colors is not None else ColorScheme(interactive, stream=self._stream)
        self.symbols = (symbols if symbols is not None else SymbolProvider(interactive)).symbols
        self.progress = GridProgress(self.colors if interactive else None, progress_width(self.terminal_width))

        self._lock = lock if lock is not None else threading.RLock()
        self._frame = RenderFrame()
        self._spinner_frames = list(Spinner(spinner_name).frames)
        self._spinner_index = 0
        self._spinner_interval = spinner_interval if spinner_interval is not None else settings.SPINNER_INTERVAL
        self._on_tick: Callable[[], None] | None = None
        self._ticker: threading.Thread | None = None
        self._stop_event: threading.Event | None = None

        glyphs = [self.symbols.success, self.symbols.error, self.symbols.warning, self.symbols.processing]
        glyph_width = max(cell_len(glyph) for glyph in glyphs + self._spinner_frames)
        self._indicator_width = len(INDICATOR_MARGIN) + glyph_width + 1

        if interactive and start_ticker:
            self.start()

    def _detect_width(self) -> int:
        if not self.interactive:
            return settings.DEFAULT_TERMINAL_WIDTH
        return detect_terminal_width(self._stream)

    # --- Spinner ticker ----------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._ticker is not None

    @property
    def last_line_count(self) -> int:
        return self._frame.line_count

    def set_on_tick(self, callback: Callable[[], None] | None) -> None:
        with self._lock:
            self._on_tick = callback

    def start(self) -> None:
        """Start the spinner ticker thread; no-op when it is already running."""
        with self._lock:
            if self._ticker is not None:
                return
            self._stop_event = threading.Event()
            self._ticker = threading.Thread(
                target=self._run_ticker,
                args=(self._stop_event,),
                name="statusboard-spinner",
                daemon=True,
            )
            self._ticker.start()

    def _run_ticker(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._spinner_interval):
            # stop() may hold the lock while joining this thread.
            if not self._lock.acquire(timeout=self._spinner_interval):
                continue
            try:
                if stop_event.is_set():
                    return
                self._spinner_index = (self._spinner_index + 1) % len(self._spinner_frames)
                if self._on_tick is not None:
                    self._on_tick()
            except Exception as e:
                logger.exception(f"Spinner tick failed: {type(e).__name__}: {e}")
            finally:
                self._lock.release()

    def stop(self) -> None:
        """Stop the spinner ticker. Safe to call repeatedly or before ``start``."""
        with self._lock:
            ticker, stop_event = self._ticker, self._stop_event
            self._ticker = None
            self._stop_event = None

        if ticker is None or stop_event is None:
            return

        stop_event.set()
        if ticker is threading.current_thread():
            return
        ticker.join(timeout=max(1.0, self._spinner_interval * 10))
        if ticker.is_alive():
            logger.warning("Spinner ticker did not stop within the join timeout")

    def spinner_view(self) -> str:
        with self._lock:
            if self._ticker is None:
                return "…"
            return self._spinner_frames[self._spinner_index]

    # --- Layout ------------------------------------------------------------

    def recompute_layout(self) -> None:
        """Re-detect the terminal width and unfreeze the column widths on the next render."""
        with self._lock:
            if self._explicit_width is None:
                self.terminal_width = self._detect_width()
            self._frame.reset_columns()
            self.progress.set_total_cells(progress_width(self.terminal_width))

    def _ensure_columns(self, snapshot: StatusSnapshot) -> None:
        if self._frame.name_column_width > 0 and self._frame.index_column_width > 0:
            return

        total = max(1, len(snapshot))
        self._frame.index_column_width = len(self._format_counter(total, total))

        max_name_width = max((cell_len(job.display_name) for job in snapshot), default=1)
        if not self.interactive:
            self._frame.name_column_width = max(1, max_name_width)
            return

        max_status_width = max((cell_len(self._status_phrase(job)[0]) for job in snapshot), default=0)
        # Statuses wider than the reserve are truncated per line.
        reserve_cap = max(MIN_STATUS_RESERVE, self.terminal_width // 3)
        status_reserve = min(max(max_status_width, MIN_STATUS_RESERVE), reserve_cap)
        available = (
            self.terminal_width - self._indicator_width - self._frame.index_column_width - status_reserve - COLUMN_GAP
        )
        self._frame.name_column_width = max(1, min(max_name_width, available))

    # --- Line formatting ---------------------------------------------------

    @staticmethod
    def _format_counter(index: int, total: int) -> str:
        digits = len(str(total))
        return f"[{index:0{digits}d}/{total}]"

    def _status_phrase(self, job: JobView) -> tuple[str, Callable[[str], str]]:
        """Plain status text and the style to apply once it has been fitted."""
        phase = job.phase
        if phase is JobPhase.QUEUED:
            return "queued", self.colors.duration
        if phase is JobPhase.STARTING:
            return "starting", self.colors.info
        if phase is JobPhase.PROCESSING:
            return "processing", self.colors.info
        if phase is JobPhase.RATE_LIMITED:
            return f"retry in {format_duration(job.retry_after)}", self.colors.warning
        if phase is JobPhase.COMPLETED:
            return f"completed ({format_duration(job.duration)})", self.colors.duration
        if phase is JobPhase.FAILED:
            reason = next((line.strip() for line in job.error_message.splitlines() if line.strip()), "error")
            return f"failed ({reason})", self.colors.error
        return "unknown", str

    def _format_indicator(self, job: JobView) -> str:
        phase = job.phase
        if phase is JobPhase.RATE_LIMITED:
            glyph = self.colors.warning(self.symbols.warning)
        elif phase is JobPhase.COMPLETED:
            glyph = self.colors.success(self.symbols.success)
        elif phase is JobPhase.FAILED:
            glyph = self.colors.error(self.symbols.error)
        elif self.interactive:
            glyph = self.colors.duration(self.spinner_view())
        else:
            glyph = self.symbols.processing
        return pad_to_width(f"{INDICATOR_MARGIN}{glyph} ", self._indicator_width)

    def format_job_line(self, job: JobView, total: int) -> str:
        """Render one ``indicator [i/N] name ... status`` line."""
        counter = self._format_counter(job.index, total).ljust(self._frame.index_column_width)
        name_width = self._frame.name_column_width
        name = pad_to_width(truncate_with_ellipsis(job.display_name, name_width), name_width)
        left = f"{self._format_indicator(job)}{counter} {self.colors.model_name(name)}"
        left_width = display_width(left)

        status, style = self._status_phrase(job)
        if self.interactive:
            room = max(1, self.terminal_width - left_width - 1)
            status = truncate_with_ellipsis(status, room)
        status_width = cell_len(status)

        padding = max(1, self.terminal_width - left_width - status_width)
        line = f"{left}{' ' * padding}{style(status)}"
        if self.interactive:
            # Lines must not wrap: the next redraw moves up one row per line.
            return truncate_with_ellipsis(line, self.terminal_width)
        return line

    # --- Frames ------------------------------------------------------------

    def _write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()

    def render(self, snapshot: StatusSnapshot, force_refresh: bool = False) -> int:
        """Write one frame for ``snapshot`` and return the number of lines it occupies.

        Raises:
            OSError: the output stream rejected the write (e.g. a closed pipe).
        """
        with self._lock:
            out: list[str] = []
            if self.interactive and self._frame.line_count > 0 and not force_refresh:
                out.append(cursor_up(self._frame.line_count))

            total = len(snapshot)
            self._ensure_columns(snapshot)

            lines: list[str] = []
            for job in snapshot:
                line = self.format_job_line(job, total)
                lines.append(f"{ERASE_LINE}{line}" if self.interactive else line)

            completed, percent = self._calculate_progress(snapshot)
            percent_text = f"{percent * 100:.0f}%"
            if self.interactive:
                lines.append(self.colors.separator("─" * self.terminal_width))
                self.progress.set_total_cells(progress_width(self.terminal_width))
                overall = f"Overall: [{self.progress.render(percent)}] {percent_text}"
                lines.append(ERASE_LINE + truncate_with_ellipsis(overall, self.terminal_width))
            else:
                lines.append(f"Overall: {percent_text} ({completed}/{total} completed)")
                lines.append("")

            out.append("\n".join(lines) + "\n")
            self._write("".join(out))
            self._frame.line_count = len(lines)
            return len(lines)

    @staticmethod
    def _calculate_progress(snapshot: StatusSnapshot) -> tuple[int, float]:
        if len(snapshot) == 0:
            return 0, 0.0
        completed = sum(1 for job in snapshot if job.phase.is_terminal)
        return completed, completed / len(snapshot)

    def render_periodic_update(self, snapshot: StatusSnapshot, summary: AggregateSummary) -> int:
        """CI-only block with a ``Status Update`` header; interactive output ignores it."""
        if self.interactive:
            return 0
        with self._lock:
            self._write(
                f"Status Update - {summary.finished}/{summary.total} completed "
                f"({summary.completion_rate * 100:.0f}%):\n"
            )
            return self.render(snapshot, force_refresh=True) + 1

    def detach_frame(self) -> None:
        """Leave the current frame on screen; the next render starts below it."""
        with self._lock:
            self._frame.line_count = 0

    def render_completion(self) -> None:
        """Stop the ticker and wipe the last interactive frame."""
        self.stop()
        with self._lock:
            count = self._frame.line_count
            self._frame.line_count = 0
            if not self.interactive:
                return
            if count > 0:
                self._write(f"{ERASE_LINE}\n" * count + cursor_up(count))
            self._write("\n")
