"""Data models for the status dashboard."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, NamedTuple


class JobPhase(str, Enum):
    """Processing phase of a tracked job."""

    QUEUED = "queued"
    STARTING = "starting"
    PROCESSING = "processing"
    RATE_LIMITED = "rate_limited"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobPhase.COMPLETED, JobPhase.FAILED)


class JobSpec(NamedTuple):
    """A job to track: lookup key plus the label shown to the user."""

    key: str
    display_name: str


@dataclass(slots=True)
class JobState:
    """Mutable per-job state. Owned by ``ModelStatusTracker``; never handed out directly."""

    key: str
    display_name: str
    index: int
    phase: JobPhase = JobPhase.QUEUED
    duration: float = 0.0  # seconds, set on completion
    retry_after: float = 0.0  # seconds, set on rate limit
    error_message: str = ""
    last_update: float = 0.0

    def freeze(self) -> JobView:
        return JobView(
            key=self.key,
            display_name=self.display_name,
            index=self.index,
            phase=self.phase,
            duration=self.duration,
            retry_after=self.retry_after,
            error_message=self.error_message,
            last_update=self.last_update,
        )


@dataclass(frozen=True, slots=True)
class JobView:
    """Read-only copy of a ``JobState`` taken under the tracker lock."""

    key: str
    display_name: str
    index: int
    phase: JobPhase
    duration: float
    retry_after: float
    error_message: str
    last_update: float


@dataclass(frozen=True, slots=True)
class StatusSnapshot:
    """Ordered, immutable view of every tracked job."""

    jobs: tuple[JobView, ...] = ()
    taken_at: float = 0.0

    def __len__(self) -> int:
        return len(self.jobs)

    def __iter__(self) -> Iterator[JobView]:
        return iter(self.jobs)

    def __getitem__(self, position: int) -> JobView:
        return self.jobs[position]

    def by_key(self, key: str) -> JobView | None:
        for job in self.jobs:
            if job.key == key:
                return job
        return None


@dataclass(frozen=True, slots=True)
class AggregateSummary:
    """Counts per phase for a snapshot. ``processing`` includes jobs still starting."""

    total: int = 0
    completed: int = 0
    failed: int = 0
    rate_limited: int = 0
    processing: int = 0
    queued: int = 0

    @property
    def finished(self) -> int:
        return self.completed + self.failed

    @property
    def completion_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.finished / self.total

    @property
    def success_rate(self) -> float:
        if self.finished == 0:
            return 0.0
        return self.completed / self.finished

    @classmethod
    def from_snapshot(cls, snapshot: StatusSnapshot) -> AggregateSummary:
        counts = {phase: 0 for phase in JobPhase}
        for job in snapshot:
            counts[job.phase] += 1
        return cls(
            total=len(snapshot),
            completed=counts[JobPhase.COMPLETED],
            failed=counts[JobPhase.FAILED],
            rate_limited=counts[JobPhase.RATE_LIMITED],
            processing=counts[JobPhase.STARTING] + counts[JobPhase.PROCESSING],
            queued=counts[JobPhase.QUEUED],
        )


@dataclass(slots=True)
class LayoutConfig:
    """Column widths and spacing for one terminal width."""

    terminal_width: int
    name_column_width: int
    status_column_width: int
    file_name_width: int
    file_size_width: int
    min_padding: int

    @property
    def is_narrow(self) -> bool:
        return self.terminal_width < 80

    @property
    def is_wide(self) -> bool:
        return self.terminal_width > 120


@dataclass(slots=True)
class RenderFrame:
    """Renderer bookkeeping kept between frames for cursor repositioning."""

    line_count: int = 0
    name_column_width: int = 0
    index_column_width: int = 0

    def reset_columns(self) -> None:
        self.name_column_width = 0
        self.index_column_width = 0


@dataclass(slots=True)
class SummaryData:
    """Figures shown in the end-of-run summary section."""

    models_processed: int
    successful_models: int
    failed_models: int
    output_directory: str = ""
    synthesis_status: str = "skipped"


@dataclass(slots=True)
class OutputFile:
    name: str
    size: int


@dataclass(slots=True)
class FailedModel:
    name: str
    reason: str


@dataclass(slots=True)
class BatchResult:
    """Outcome of a fan-out batch, used by the CLI driver."""

    outputs: dict[str, str] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
