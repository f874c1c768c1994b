"""Command line driver that runs a simulated fan-out batch through the dashboard."""

from __future__ import annotations

import argparse
import random
import re
import threading
import time
from pathlib import Path
from typing import NamedTuple

from loguru import logger

from .coordinator import DashboardCoordinator, summarize_error_reason
from .log_setup import configure_logging, correlation_scope, silence_console_logging
from .models import BatchResult, FailedModel, JobPhase, JobSpec, OutputFile, SummaryData

DEFAULT_MODELS = (
    "openai/gpt-4.1",
    "google/gemini-2.5-pro",
    "meta-llama/llama-4-maverick",
    "mistralai/mistral-large",
    "deepseek/deepseek-r1",
)

SIMULATED_ERRORS = (
    "request failed: rate limit exceeded: retries exhausted",
    "generation failed: context deadline exceeded",
    "invalid response: empty content.",
    "provider error: 503 Service Unavailable",
)


class JobPlan(NamedTuple):
    startup: float
    work: float
    rate_limit: float  # 0 means the job is never throttled
    error: str  # empty when the job succeeds


def display_label(model_id: str) -> str:
    """``provider/name`` becomes ``name (provider)``; bare names are kept as is."""
    provider, sep, name = model_id.partition("/")
    if not sep or not provider or not name:
        return model_id
    return f"{name} ({provider})"


def plan_job(rng: random.Random, fail_rate: float, rate_limit_rate: float, delay_scale: float) -> JobPlan:
    rate_limit = rng.uniform(0.5, 2.0) * delay_scale if rng.random() < rate_limit_rate else 0.0
    error = rng.choice(SIMULATED_ERRORS) if rng.random() < fail_rate else ""
    return JobPlan(
        startup=rng.uniform(0.1, 0.5) * delay_scale,
        work=rng.uniform(0.5, 3.0) * delay_scale,
        rate_limit=rate_limit,
        error=error,
    )


def _output_file_name(model_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "-", model_id).strip("-") + ".md"


def run_job(
    coordinator: DashboardCoordinator,
    job: JobSpec,
    plan: JobPlan,
    result: BatchResult,
    result_lock: threading.Lock,
    batch_id: str,
) -> None:
    with correlation_scope(batch_id):
        started = time.monotonic()
        coordinator.update_status(job.key, JobPhase.STARTING)
        time.sleep(plan.startup)
        coordinator.update_status(job.key, JobPhase.PROCESSING)

        if plan.rate_limit:
            logger.info(f"Model {job.key} rate limited, retrying in {plan.rate_limit:.1f}s")
            coordinator.update_rate_limited(job.key, plan.rate_limit)
            time.sleep(plan.rate_limit)
            coordinator.update_status(job.key, JobPhase.PROCESSING)

        time.sleep(plan.work)
        duration = time.monotonic() - started

        if plan.error:
            logger.warning(f"Model {job.key} failed after {duration:.1f}s: {plan.error}")
            coordinator.update_status(job.key, JobPhase.FAILED, duration, plan.error)
            with result_lock:
                result.errors[job.key] = plan.error
            return

        content = f"# {job.display_name}\n\nSimulated response generated in {duration:.2f}s.\n"
        coordinator.update_status(job.key, JobPhase.COMPLETED, duration)
        with result_lock:
            result.outputs[job.key] = content
        logger.debug(f"Model {job.key} completed in {duration:.2f}s")


def write_outputs(output_dir: Path, outputs: dict[str, str]) -> list[OutputFile]:
    output_dir.mkdir(parents=True, exist_ok=True)
    files = []
    for model_id, content in sorted(outputs.items()):
        path = output_dir / _output_file_name(model_id)
        path.write_text(content, encoding="utf-8")
        files.append(OutputFile(name=path.name, size=path.stat().st_size))
    return files


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="statusboard",
        description="Run a simulated multi-model batch and show its live status dashboard.",
    )
    parser.add_argument(
        "--models",
        nargs="+",
        default=list(DEFAULT_MODELS),
        help="Model ids to process, as provider/name.",
    )
    parser.add_argument("--quiet", action="store_true", help="Only show warnings and errors.")
    parser.add_argument(
        "--no-progress",
        dest="no_progress",
        action="store_true",
        help="Hide per-model status lines but keep start and summary output.",
    )
    parser.add_argument(
        "--interactive",
        dest="interactive",
        action="store_true",
        help="Force the live in-place dashboard.",
    )
    parser.add_argument(
        "--no-interactive",
        dest="interactive",
        action="store_false",
        help="Force the append-only output used in CI and pipes.",
    )
    parser.add_argument("--fail-rate", type=float, default=0.2, help="Probability that a model fails.")
    parser.add_argument(
        "--rate-limit-rate",
        type=float,
        default=0.3,
        help="Probability that a model is rate limited once.",
    )
    parser.add_argument("--delay-scale", type=float, default=1.0, help="Multiplier for simulated delays.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible runs.")
    parser.add_argument("--output-dir", type=Path, default=None, help="Write simulated outputs here.")
    parser.add_argument("--log-level", default=None, help="loguru level (default from STATUSBOARD_LOG_LEVEL).")
    parser.add_argument("--log-json", action="store_true", help="Serialize log records as JSON.")
    parser.set_defaults(interactive=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``statusboard``; returns the process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, json_logs=args.log_json or None)

    models = list(dict.fromkeys(args.models))
    jobs = [JobSpec(key=model, display_name=display_label(model)) for model in models]
    rng = random.Random(args.seed)
    plans = [plan_job(rng, args.fail_rate, args.rate_limit_rate, args.delay_scale) for _ in jobs]

    coordinator = DashboardCoordinator(
        interactive=args.interactive,
        quiet=args.quiet or None,
        no_progress=args.no_progress or None,
    )
    result = BatchResult()
    result_lock = threading.Lock()

    with correlation_scope() as batch_id, silence_console_logging(enabled=coordinator.is_interactive):
        logger.info(f"Starting batch {batch_id} with {len(jobs)} models")
        coordinator.start_processing(len(jobs))
        try:
            with coordinator.tracking(jobs):
                threads = [
                    threading.Thread(
                        target=run_job,
                        args=(coordinator, job, plan, result, result_lock, batch_id),
                        name=f"job-{job.key}",
                        daemon=True,
                    )
                    for job, plan in zip(jobs, plans)
                ]
                for thread in threads:
                    thread.start()
                for thread in threads:
                    thread.join()
        except KeyboardInterrupt:
            coordinator.warning_message("Interrupted, abandoning remaining models")
            return 130

    output_files: list[OutputFile] = []
    if args.output_dir is not None and result.outputs:
        output_files = write_outputs(args.output_dir, result.outputs)

    failed = [
        FailedModel(name=display_label(model), reason=summarize_error_reason(result.errors[model]) or "error")
        for model in models
        if model in result.errors
    ]

    coordinator.show_output_files(output_files)
    coordinator.show_failed_models(failed)
    coordinator.show_summary_section(
        SummaryData(
            models_processed=len(models),
            successful_models=len(result.outputs),
            failed_models=len(result.errors),
            output_directory=str(args.output_dir) if args.output_dir is not None else "",
        )
    )

    if failed:
        logger.info(f"Batch {batch_id} finished with {len(failed)} failures")
        return 1
    coordinator.success_message(f"All {len(models)} models completed")
    return 0
