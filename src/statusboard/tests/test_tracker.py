import threading

import pytest

from statusboard.models import AggregateSummary, JobPhase, JobSpec
from statusboard.tracker import ModelStatusTracker


JOBS = ["a", "b", "c"]


def test_snapshot_keeps_fixed_cardinality_and_index_order():
    tracker = ModelStatusTracker([JobSpec("k3", "three"), ("k1", "one"), "k2"])

    tracker.update_status("k1", JobPhase.COMPLETED, 1.0)
    tracker.update_status("missing", JobPhase.FAILED)

    snapshot = tracker.snapshot()
    assert len(snapshot) == 3
    assert [job.index for job in snapshot] == [1, 2, 3]
    assert [job.key for job in snapshot] == ["k3", "k1", "k2"]
    assert [job.display_name for job in snapshot] == ["three", "one", "k2"]
    assert tracker.keys() == ("k3", "k1", "k2")


def test_new_jobs_start_queued():
    tracker = ModelStatusTracker(JOBS)
    assert all(job.phase is JobPhase.QUEUED for job in tracker.snapshot())
    assert not tracker.all_terminal()


def test_duplicate_keys_are_rejected():
    with pytest.raises(ValueError):
        ModelStatusTracker(["a", "b", "a"])


def test_empty_tracker_is_vacuously_terminal():
    tracker = ModelStatusTracker([])
    assert len(tracker) == 0
    assert tracker.all_terminal()
    assert tracker.summary() == AggregateSummary()
    assert tracker.summary().completion_rate == 0.0


def test_unknown_key_is_ignored():
    tracker = ModelStatusTracker(JOBS)
    assert tracker.update_status("zzz", JobPhase.COMPLETED, 1.0) is False
    assert tracker.update_rate_limited("zzz", 2.0) is False
    assert "zzz" not in tracker
    assert tracker.get("zzz") is None


def test_phase_relevant_fields_are_recorded():
    tracker = ModelStatusTracker(JOBS)

    assert tracker.update_status("a", JobPhase.COMPLETED, 0.85)
    assert tracker.update_status("b", JobPhase.FAILED, 0.0, "timeout")
    assert tracker.update_rate_limited("c", 2.0)

    assert tracker.get("a").duration == 0.85
    assert tracker.get("b").error_message == "timeout"
    assert tracker.get("c").phase is JobPhase.RATE_LIMITED
    assert tracker.get("c").retry_after == 2.0


def test_string_phases_are_coerced():
    tracker = ModelStatusTracker(JOBS)
    tracker.update_status("a", "processing")
    assert tracker.get("a").phase is JobPhase.PROCESSING


def test_concurrent_updates_on_distinct_keys_are_not_lost():
    keys = [f"job-{i}" for i in range(64)]
    tracker = ModelStatusTracker(keys)
    barrier = threading.Barrier(len(keys))

    def worker(key):
        barrier.wait()
        tracker.update_status(key, JobPhase.COMPLETED, 0.5)

    threads = [threading.Thread(target=worker, args=(key,)) for key in keys]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    snapshot = tracker.snapshot()
    assert len(snapshot) == len(keys)
    assert all(job.phase is JobPhase.COMPLETED for job in snapshot)
    assert tracker.all_terminal()


def test_late_rate_limits_reopen_finished_jobs_like_any_update():
    tracker = ModelStatusTracker(["a", "b"])
    tracker.update_status("a", JobPhase.COMPLETED, 1.0)
    tracker.update_status("b", JobPhase.FAILED, 0.0, "boom")

    assert tracker.update_rate_limited("a", 5.0) is True
    assert tracker.update_status("b", JobPhase.RATE_LIMITED) is True

    assert not tracker.all_terminal()
    assert tracker.get("a").phase is JobPhase.RATE_LIMITED
    assert tracker.get("a").duration == 1.0
    assert tracker.get("b").phase is JobPhase.RATE_LIMITED


def test_backward_transitions_are_accepted():
    tracker = ModelStatusTracker(["a"])
    tracker.update_status("a", JobPhase.COMPLETED, 1.0)
    tracker.update_status("a", JobPhase.PROCESSING)
    assert tracker.get("a").phase is JobPhase.PROCESSING
    assert not tracker.all_terminal()


def test_rate_limit_keeps_accumulated_duration():
    tracker = ModelStatusTracker(["a"])
    tracker.update_status("a", JobPhase.PROCESSING, 1.5)
    tracker.update_rate_limited("a", 3.0)
    assert tracker.get("a").duration == 1.5


def test_summary_arithmetic():
    tracker = ModelStatusTracker([f"m{i}" for i in range(5)])
    for key in ("m0", "m1", "m2"):
        tracker.update_status(key, JobPhase.COMPLETED, 1.0)
    for key in ("m3", "m4"):
        tracker.update_status(key, JobPhase.FAILED, 0.0, "error")

    summary = tracker.summary()
    assert summary.completion_rate == 1.0
    assert summary.success_rate == 0.6
    assert summary.finished == 5


def test_summary_counts_every_phase():
    tracker = ModelStatusTracker(["a", "b", "c", "d", "e"])
    tracker.update_status("a", JobPhase.COMPLETED, 0.85)
    tracker.update_status("b", JobPhase.FAILED, 0.0, "timeout")
    tracker.update_status("c", JobPhase.STARTING)
    tracker.update_status("d", JobPhase.PROCESSING)

    summary = tracker.summary()
    assert summary == AggregateSummary(total=5, completed=1, failed=1, rate_limited=0, processing=2, queued=1)


def test_snapshot_is_isolated_from_later_updates():
    tracker = ModelStatusTracker(["a"])
    before = tracker.snapshot()
    tracker.update_status("a", JobPhase.COMPLETED, 1.0)
    assert before[0].phase is JobPhase.QUEUED
    assert before.by_key("a").phase is JobPhase.QUEUED
    assert tracker.snapshot().by_key("a").phase is JobPhase.COMPLETED


def test_elapsed_is_non_negative():
    tracker = ModelStatusTracker(JOBS)
    assert tracker.elapsed() >= 0.0
