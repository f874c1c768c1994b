"""Lifecycle management for the status dashboard."""

from __future__ import annotations

import contextlib
import os
import re
import sys
import threading
from enum import Enum
from typing import Callable, Iterable, Iterator, TextIO

from loguru import logger

from . import settings
from .colors import (
    ColorScheme,
    SymbolProvider,
    detect_interactive_environment,
    detect_terminal_width,
    stream_is_terminal,
)
from .layout import calculate_layout, format_aligned_text, format_file_list_item, separator_line
from .models import AggregateSummary, FailedModel, JobPhase, LayoutConfig, OutputFile, StatusSnapshot, SummaryData
from .renderer import StatusRenderer
from .tracker import JobInput, ModelStatusTracker
from .utils import display_path, display_width, format_file_size, format_to_width

_PROCESSING_MODEL_ERROR = re.compile(r"(?i)processing model ([^\s:]+) failed:?\s*(.*)")
_MODEL_FAILED = re.compile(r"(?i)model ([^\s:]+) failed:?\s*(.*)")
_MODEL_KEY = re.compile(r"(?i)model\s*[:=]\s*([^\s:]+)\s*:?\s*(.*)")
_MODEL_NAME = re.compile(r"(?i)model\s+([^\s:]+):")

SUMMARY_LABEL_WIDTH = 10
REASON_PREFIX = "  Reason: "
THIN_SPACE = "\u2009"


def parse_error_details(message: str) -> tuple[str, str]:
    """Split an error message into ``(model_name, details)``; the name is empty when none is found."""
    message = message.strip()
    if not message:
        return "", ""

    matches = list(_MODEL_NAME.finditer(message))
    if matches:
        last = matches[-1]
        return last.group(1).strip(), message[last.end():].strip()

    for pattern in (_PROCESSING_MODEL_ERROR, _MODEL_FAILED, _MODEL_KEY):
        match = pattern.search(message)
        if match:
            return match.group(1), match.group(2).strip()

    return "", message


def summarize_error_reason(details: str) -> str:
    """Reduce a wrapped error chain to its innermost cause."""
    cleaned = details.strip()
    if not cleaned:
        return ""
    if "context deadline exceeded" in cleaned.lower():
        return "API timeout (context deadline exceeded)"

    for segment in reversed(cleaned.split(":")):
        segment = segment.strip()
        if not segment:
            continue
        segment = segment.removesuffix("...")
        return segment.removesuffix(".")
    return cleaned


class TrackingState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    FINISHED = "finished"


class DashboardCoordinator:
    """Owns one tracker/renderer pair per batch and every console write around it.

    A single re-entrant lock is held for the whole of each public method, render
    included, and is shared with the renderer so spinner ticks serialize with
    status updates.
    """

    def __init__(
        self,
        *,
        stream: TextIO | None = None,
        interactive: bool | None = None,
        quiet: bool | None = None,
        no_progress: bool | None = None,
        terminal_width: int | None = None,
        spinner_interval: float | None = None,
        periodic_every: int | None = None,
        is_terminal: Callable[[], bool] | None = None,
        getenv: Callable[[str], str | None] = os.getenv,
        start_ticker: bool = True,
    ) -> None:
        self._lock = threading.RLock()
        self._stream = stream if stream is not None else sys.stdout

        if interactive is None:
            interactive = settings.interactive_override()
        if interactive is None:
            is_terminal = is_terminal or (lambda: stream_is_terminal(self._stream))
            interactive = detect_interactive_environment(is_terminal, getenv)
        self._interactive = interactive

        self._quiet = settings.QUIET if quiet is None else quiet
        self._no_progress = settings.NO_PROGRESS if no_progress is None else no_progress
        self._explicit_width = terminal_width
        self._message_width = 0
        self._spinner_interval = spinner_interval
        self._periodic_every = max(1, periodic_every or settings.PERIODIC_EVERY)
        self._start_ticker = start_ticker

        self.colors = ColorScheme(interactive, stream=self._stream)
        self.symbols = SymbolProvider(interactive, getenv)

        self._tracker: ModelStatusTracker | None = None
        self._renderer: StatusRenderer | None = None
        self._state = TrackingState.IDLE
        self._updates_since_header = 0

    # --- Mode flags --------------------------------------------------------

    @property
    def is_interactive(self) -> bool:
        return self._interactive

    @property
    def state(self) -> TrackingState:
        with self._lock:
            return self._state

    def set_quiet(self, quiet: bool) -> None:
        with self._lock:
            self._quiet = quiet

    def set_no_progress(self, no_progress: bool) -> None:
        with self._lock:
            self._no_progress = no_progress

    def terminal_width(self) -> int:
        """Width used for console messages, clamped to ``[3, 120]`` once detected."""
        with self._lock:
            if self._message_width > 0:
                return self._message_width
            width = self._explicit_width
            if width is None:
                width = detect_terminal_width(self._stream) if self._interactive else settings.DEFAULT_TERMINAL_WIDTH
            self._message_width = min(max(width, settings.MIN_TERMINAL_WIDTH), settings.MAX_TERMINAL_WIDTH)
            return self._message_width

    def _layout(self) -> LayoutConfig:
        return calculate_layout(self.terminal_width())

    # --- Tracking lifecycle ------------------------------------------------

    def start_tracking(self, jobs: Iterable[JobInput]) -> None:
        """Begin a batch. Does nothing in quiet or no-progress mode."""
        with self._lock:
            if self._quiet or self._no_progress:
                return
            if self._state is TrackingState.TRACKING:
                self._finish_locked()

            tracker = ModelStatusTracker(jobs)
            renderer = StatusRenderer(
                interactive=self._interactive,
                stream=self._stream,
                terminal_width=self._explicit_width,
                colors=self.colors,
                symbols=self.symbols,
                lock=self._lock,
                spinner_interval=self._spinner_interval,
                start_ticker=False,
            )
            renderer.set_on_tick(self.refresh_display)

            self._tracker = tracker
            self._renderer = renderer
            self._state = TrackingState.TRACKING
            self._updates_since_header = 0
            logger.debug(f"Tracking {len(tracker)} jobs (interactive={self._interactive})")

            renderer.render(tracker.snapshot())
            if self._interactive and self._start_ticker:
                renderer.start()

    def update_status(
        self,
        key: str,
        phase: JobPhase,
        duration: float = 0.0,
        error_message: str = "",
    ) -> None:
        with self._lock:
            if self._state is not TrackingState.TRACKING:
                return
            if self._tracker.update_status(key, phase, duration, error_message):
                self._render_update_locked()

    def update_rate_limited(self, key: str, retry_after: float) -> None:
        with self._lock:
            if self._state is not TrackingState.TRACKING:
                return
            if self._tracker.update_rate_limited(key, retry_after):
                self._render_update_locked()

    def refresh_display(self) -> None:
        """Redraw the current state without recording a change."""
        with self._lock:
            if self._state is not TrackingState.TRACKING:
                return
            self._renderer.render(self._tracker.snapshot())

    def _render_update_locked(self) -> None:
        snapshot = self._tracker.snapshot()
        if self._interactive:
            self._renderer.render(snapshot)
            return

        self._updates_since_header += 1
        summary = AggregateSummary.from_snapshot(snapshot)
        if summary.finished == summary.total or self._updates_since_header >= self._periodic_every:
            self._updates_since_header = 0
            self._renderer.render_periodic_update(snapshot, summary)
        else:
            self._renderer.render(snapshot)

    def finish_tracking(self) -> None:
        """Stop the ticker and clear the interactive frame. Safe to call repeatedly."""
        with self._lock:
            if self._state is TrackingState.TRACKING:
                self._finish_locked()
            self._state = TrackingState.FINISHED

    def _finish_locked(self) -> None:
        summary = self._tracker.summary()
        self._renderer.render_completion()
        self._state = TrackingState.FINISHED
        logger.debug(
            f"Tracking finished: {summary.completed} completed, {summary.failed} failed "
            f"of {summary.total} in {self._tracker.elapsed():.1f}s"
        )

    @contextlib.contextmanager
    def tracking(self, jobs: Iterable[JobInput]) -> Iterator[DashboardCoordinator]:
        self.start_tracking(jobs)
        try:
            yield self
        finally:
            self.finish_tracking()

    def summary(self) -> AggregateSummary:
        with self._lock:
            if self._tracker is None:
                return AggregateSummary()
            return self._tracker.summary()

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            if self._tracker is None:
                return StatusSnapshot()
            return self._tracker.snapshot()

    # --- Console messages --------------------------------------------------

    def _write_lines(self, *lines: str) -> None:
        self._stream.write("".join(f"{line}\n" for line in lines))
        self._stream.flush()
        if self._state is TrackingState.TRACKING and self._interactive:
            self._renderer.detach_frame()

    def _fit_message(self, message: str) -> str:
        return format_to_width(message, self.terminal_width(), self._interactive)

    def start_processing(self, model_count: int) -> None:
        with self._lock:
            if self._quiet:
                return
            self._write_lines(self.colors.model_name(f"Processing {model_count} models..."))

    def status_message(self, message: str) -> None:
        with self._lock:
            if self._quiet:
                return
            formatted = self._fit_message(message)
            if self._interactive:
                self._write_lines(f"{self.colors.symbol(self.symbols.symbols.bullet)} {formatted}")
            else:
                self._write_lines(formatted)

    def success_message(self, message: str) -> None:
        with self._lock:
            if self._quiet:
                return
            colored = self.colors.success(self._fit_message(message))
            if self._interactive:
                self._write_lines(f"{self.colors.success(self.symbols.symbols.success)} {colored}")
            else:
                self._write_lines(f"SUCCESS: {colored}")

    def warning_message(self, message: str) -> None:
        # Warnings and errors ignore quiet mode.
        with self._lock:
            colored = self.colors.warning(self._fit_message(message))
            if self._interactive:
                self._write_lines(f"{self.colors.warning(self.symbols.symbols.warning)} {colored}")
            else:
                self._write_lines(f"WARNING: {colored}")

    def error_message(self, message: str) -> None:
        with self._lock:
            model_name, details = parse_error_details(message)
            reason = summarize_error_reason(details) or "error"
            available = max(3, self.terminal_width() - len(REASON_PREFIX))
            reason = format_to_width(reason, available, self._interactive)

            if self._interactive:
                lines = ["Error"]
                if model_name:
                    lines.append(f"  Model: {self.colors.model_name(model_name)}")
                lines.append(f"{REASON_PREFIX}{self.colors.error(reason)}")
                self._write_lines(*lines)
            elif model_name:
                self._write_lines(f"ERROR: model={model_name} reason={reason}")
            else:
                self._write_lines(f"ERROR: {reason}")

    # --- Summary sections --------------------------------------------------

    def _success_indicator(self, successful: int, total: int) -> str:
        if total <= 0:
            return ""
        successful = max(0, successful)
        failures = max(0, total - successful)
        if not self._interactive:
            return " ".join(["o"] * successful + ["x"] * failures)
        parts = [self.colors.success("●")] * successful + [self.colors.error("○")] * failures
        return THIN_SPACE.join(parts)

    @staticmethod
    def _failure_guidance(summary: SummaryData) -> str:
        if summary.failed_models <= 0:
            return ""
        if summary.successful_models == 0:
            return "All models failed - review errors above"
        noun = "model" if summary.failed_models == 1 else "models"
        return f"{summary.failed_models} {noun} failed - review errors above"

    def _label(self, label: str) -> str:
        return f"  {label:<{SUMMARY_LABEL_WIDTH}}"

    def show_summary_section(self, summary: SummaryData) -> None:
        with self._lock:
            if self._quiet:
                return
            rule = self.colors.separator(("═" if self._interactive else "=") * settings.STANDARD_SEPARATOR_WIDTH)
            symbols = self.symbols.symbols

            indicator = self._success_indicator(
                summary.successful_models,
                summary.successful_models + summary.failed_models,
            )
            lines = [
                "",
                self.colors.section_header("SUMMARY"),
                rule,
                f"{self._label('Models')} {summary.models_processed} processed   {indicator}".rstrip(),
            ]

            if summary.synthesis_status != "skipped":
                if summary.synthesis_status == "completed":
                    status = self.colors.success(f"{symbols.success} completed")
                elif summary.synthesis_status == "failed":
                    status = self.colors.error(f"{symbols.error} failed")
                else:
                    status = summary.synthesis_status
                lines.append(f"{self._label('Synthesis')} {status}")

            output = display_path(summary.output_directory) if summary.output_directory else "-"
            lines.append(f"{self._label('Output')} {self.colors.file_path(output)}")

            guidance = self._failure_guidance(summary)
            if guidance:
                marker = "▸" if self._interactive else "->"
                lines.extend(["", f"  {marker} {guidance}"])

            lines.append(rule)
            self._write_lines(*lines)

    def _section_header(self, layout: LayoutConfig, title: str) -> list[str]:
        return [
            self.colors.section_header(title),
            self.colors.separator(separator_line(layout, display_width(title))),
        ]

    def show_output_files(self, files: Iterable[OutputFile]) -> None:
        with self._lock:
            files = list(files)
            if self._quiet or not files:
                return
            layout = self._layout()
            lines = self._section_header(layout, "OUTPUT FILES")
            for output in files:
                size = self.colors.file_size(format_file_size(output.size))
                lines.append(f"  {format_file_list_item(layout, self.colors.file_path(output.name), size)}")
            self._write_lines(*lines)

    def show_failed_models(self, failed: Iterable[FailedModel]) -> None:
        with self._lock:
            failed = list(failed)
            if self._quiet or not failed:
                return
            layout = self._layout()
            lines = self._section_header(layout, "FAILED MODELS")
            for model in failed:
                name = self.colors.model_name(model.name)
                reason = self.colors.error(model.reason)
                lines.append(f"  {format_aligned_text(layout, name, reason)}")
            self._write_lines(*lines)
