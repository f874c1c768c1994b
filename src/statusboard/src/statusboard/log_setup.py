"""loguru configuration for the status dashboard process."""

from __future__ import annotations

import contextlib
import re
import sys
import uuid
from contextvars import ContextVar
from typing import Iterator

from loguru import logger

from . import settings

_SECRET_PATTERNS = (
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}"), "sk-***"),
    (re.compile(r"(?i)\b(api[_-]?key|key|token)=([^\s&]+)"), r"\1=***"),
    (re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._\-]+"), "Bearer ***"),
)

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | {extra[correlation_id]} - <level>{message}</level>"
)

_console_sink_id: int | None = None
_console_sink_options: dict = {}
_correlation_id: ContextVar[str | None] = ContextVar("statusboard_correlation_id", default=None)


def redact_secrets(text: str) -> str:
    """Mask values that look like API keys or bearer tokens."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _patch_record(record) -> None:
    record["message"] = redact_secrets(record["message"])
    record["extra"].setdefault("correlation_id", "-")


def configure_logging(
    level: str | None = None,
    json_logs: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Replace loguru's default handler with a stderr sink and an optional file sink."""
    global _console_sink_id, _console_sink_options

    level = (level or settings.LOG_LEVEL).upper()
    json_logs = settings.LOG_JSON if json_logs is None else json_logs
    log_file = log_file or settings.LOG_FILE

    logger.remove()
    logger.configure(patcher=_patch_record, extra={"correlation_id": "-"})

    _console_sink_options = {"level": level, "serialize": json_logs}
    if not json_logs:
        _console_sink_options["format"] = CONSOLE_FORMAT
    _console_sink_id = logger.add(sys.stderr, **_console_sink_options)

    if log_file:
        logger.add(log_file, level=level, serialize=json_logs, enqueue=True)
    logger.debug(f"Logging configured (level={level}, json={json_logs}, file={log_file})")


def current_correlation_id() -> str | None:
    return _correlation_id.get()


@contextlib.contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Bind ``correlation_id`` to every record logged inside the block.

    Without an explicit id a nested scope keeps the enclosing one, and an outermost
    scope generates a fresh UUID4. The binding does not follow work handed to new
    threads; pass the yielded id along and open a scope there.
    """
    if correlation_id is None:
        correlation_id = _correlation_id.get() or str(uuid.uuid4())

    token = _correlation_id.set(correlation_id)
    try:
        with logger.contextualize(correlation_id=correlation_id):
            yield correlation_id
    finally:
        _correlation_id.reset(token)


@contextlib.contextmanager
def silence_console_logging(enabled: bool = True) -> Iterator[None]:
    """Detach the stderr sink while a live dashboard owns the terminal."""
    global _console_sink_id

    if not enabled or _console_sink_id is None:
        yield
        return

    logger.remove(_console_sink_id)
    _console_sink_id = None
    try:
        yield
    finally:
        _console_sink_id = logger.add(sys.stderr, **_console_sink_options)
