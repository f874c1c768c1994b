"""
Per-job status tracker for the dashboard.

The tracker holds one ``JobState`` per job for a fixed batch. Worker threads
call the update methods whenever a job changes phase; the renderer only ever
sees immutable snapshots taken under the tracker lock, so a frame can never
observe a half-written job.

``update_status`` stores whatever phase it is given. It does not reject backward
transitions such as ``COMPLETED -> PROCESSING``; callers own the retry flow.
A rate limit notice that arrives after a job finished is dropped.
"""

from __future__ import annotations

import threading
import time
from typing import Iterable, Union

from loguru import logger

from .models import AggregateSummary, JobPhase, JobSpec, JobState, JobView, StatusSnapshot

JobInput = Union[JobSpec, tuple[str, str], str]


def _as_spec(job: JobInput) -> JobSpec:
    if isinstance(job, str):
        return JobSpec(key=job, display_name=job)
    key, display_name = job
    return JobSpec(key=key, display_name=display_name)


class ModelStatusTracker:
    """Thread-safe key -> state store for a fixed set of jobs."""

    def __init__(self, jobs: Iterable[JobInput] = ()) -> None:
        self._lock = threading.Lock()
        self._started_at = time.monotonic()
        self._states: dict[str, JobState] = {}

        now = time.time()
        for position, job in enumerate(jobs):
            spec = _as_spec(job)
            if spec.key in self._states:
                raise ValueError(f"Duplicate job key: {spec.key!r}")
            self._states[spec.key] = JobState(
                key=spec.key,
                display_name=spec.display_name,
                index=position + 1,
                last_update=now,
            )
        # Dict insertion order is index order and never changes after this point.
        self._order = tuple(self._states)

    # --- Recording helpers -------------------------------------------------

    def update_status(
        self,
        key: str,
        phase: JobPhase,
        duration: float = 0.0,
        error_message: str = "",
    ) -> bool:
        """Move ``key`` to ``phase``. Unknown keys are ignored; returns whether a job changed."""
        phase = JobPhase(phase)
        with self._lock:
            state = self._states.get(key)
            if state is None:
                logger.debug(f"Ignoring status update for unknown job {key!r}")
                return False

            state.phase = phase
            if phase is JobPhase.COMPLETED:
                state.duration = duration
            elif phase is JobPhase.FAILED:
                state.error_message = error_message
                if duration:
                    state.duration = duration
            elif duration:
                state.duration = duration
            state.last_update = time.time()
            return True

    def update_rate_limited(self, key: str, retry_after: float) -> bool:
        """Mark ``key`` as waiting on a rate limit; accumulated duration is kept."""
        with self._lock:
            state = self._states.get(key)
            if state is None:
                logger.debug(f"Ignoring rate limit update for unknown job {key!r}")
                return False

            state.phase = JobPhase.RATE_LIMITED
            state.retry_after = retry_after
            state.last_update = time.time()
            return True

    # --- Aggregated views --------------------------------------------------

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            jobs = tuple(self._states[key].freeze() for key in self._order)
        return StatusSnapshot(jobs=jobs, taken_at=time.time())

    def summary(self) -> AggregateSummary:
        return AggregateSummary.from_snapshot(self.snapshot())

    def all_terminal(self) -> bool:
        """True once every job has completed or failed (vacuously true with no jobs)."""
        with self._lock:
            return all(state.phase.is_terminal for state in self._states.values())

    def get(self, key: str) -> JobView | None:
        with self._lock:
            state = self._states.get(key)
            return state.freeze() if state is not None else None

    def keys(self) -> tuple[str, ...]:
        return self._order

    def elapsed(self) -> float:
        """Seconds since the batch started."""
        return time.monotonic() - self._started_at

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, key: object) -> bool:
        return key in self._states
