import json

import pytest
from loguru import logger

from statusboard import log_setup
from statusboard.log_setup import (
    configure_logging,
    correlation_scope,
    current_correlation_id,
    redact_secrets,
    silence_console_logging,
)


@pytest.fixture
def captured():
    configure_logging(level="DEBUG", json_logs=False)
    messages = []
    sink_id = logger.add(messages.append, level="DEBUG", format="{extra[correlation_id]}|{message}")
    yield messages
    logger.remove(sink_id)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("using sk-abcdef1234567890", "using sk-***"),
        ("GET /v1?key=abc123&x=1", "GET /v1?key=***&x=1"),
        ("token=deadbeef expired", "token=*** expired"),
        ("Authorization: Bearer eyJhbGciOi.J9", "Authorization: Bearer ***"),
        ("nothing to hide", "nothing to hide"),
    ],
)
def test_redact_secrets(text, expected):
    assert redact_secrets(text) == expected


def test_log_records_are_redacted(captured):
    logger.info("retrying with api_key=supersecret")
    assert captured == ["-|retrying with api_key=***\n"]


def test_correlation_scope_binds_records(captured):
    with correlation_scope("batch-1") as correlation_id:
        logger.info("inside")
    logger.info("outside")

    assert correlation_id == "batch-1"
    assert captured == ["batch-1|inside\n", "-|outside\n"]


def test_nested_scopes_keep_the_outer_id():
    assert current_correlation_id() is None
    with correlation_scope() as outer:
        assert len(outer) == 36
        with correlation_scope() as inner:
            assert inner == outer
        with correlation_scope("explicit") as explicit:
            assert explicit == "explicit"
            assert current_correlation_id() == "explicit"
        assert current_correlation_id() == outer
    assert current_correlation_id() is None


def test_silence_console_logging_restores_sink():
    configure_logging(level="INFO", json_logs=False)
    assert log_setup._console_sink_id is not None

    with silence_console_logging():
        assert log_setup._console_sink_id is None
    assert log_setup._console_sink_id is not None

    with silence_console_logging(enabled=False):
        assert log_setup._console_sink_id is not None


def test_json_logs_are_serialized(capsys):
    configure_logging(level="INFO", json_logs=True)
    logger.info("hello token=abc")

    line = capsys.readouterr().err.strip().splitlines()[-1]
    record = json.loads(line)["record"]
    assert record["message"] == "hello token=***"
    assert record["level"]["name"] == "INFO"


def test_log_file_sink(tmp_path):
    log_file = tmp_path / "statusboard.log"
    configure_logging(level="INFO", json_logs=False, log_file=str(log_file))
    logger.warning("written to disk")
    logger.complete()
    logger.remove()

    assert "written to disk" in log_file.read_text()
