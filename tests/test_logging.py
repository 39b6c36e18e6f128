"""Tests for logging setup, secret masking and the JSONL file format."""

from __future__ import annotations

import json
import logging
import sys

from rich.logging import RichHandler

from reflection_weekly.config import LoggingConfig
from reflection_weekly.utils.logging import (
    JsonlFormatter,
    get_logger,
    log_event,
    mask_sensitive,
    setup_logging,
    truncate_text,
)


def test_mask_sensitive_hides_known_token_shapes():
    text = (
        "github ghp_abcdefghij1234 pat github_pat_11ABCDEFG0123456789 "
        "openai sk-proj-abcdefgh notion secret_abcdefghij12 ntn_abcdefghij12 "
        "hex 0123456789abcdef0123456789abcdef"
    )

    masked = mask_sensitive(text)

    assert "ghp_" not in masked
    assert "github_pat_" not in masked
    assert "sk-proj" not in masked
    assert "secret_" not in masked
    assert "ntn_" not in masked
    assert "0123456789abcdef0123456789abcdef" not in masked
    assert masked.count("[MASKED]") == 6


def test_mask_sensitive_leaves_plain_text():
    assert mask_sensitive("Failed to fetch Toggl data") == "Failed to fetch Toggl data"


def test_truncate_text():
    assert truncate_text("short", 10) == "short"
    assert truncate_text("abcdefghij", 4) == "abcd...(truncated)"


def test_setup_logging_console_only():
    logger = setup_logging(LoggingConfig(level="debug"))

    assert logger.name == "reflection_weekly"
    assert logger.level == logging.DEBUG
    assert logger.propagate is False
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], RichHandler)


def test_setup_logging_writes_masked_jsonl(tmp_path):
    logger = setup_logging(
        LoggingConfig(console=False, file=True, format="jsonl", filename="run.jsonl"),
        log_dir=tmp_path,
    )

    log_event(
        logger,
        "Fetched with ghp_abcdefghij1234",
        event="github_fetched",
        token="ghp_abcdefghij1234",
        count=3,
    )
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "run.jsonl").read_text(encoding="utf-8").splitlines()
    payload = json.loads(lines[-1])
    assert payload["level"] == "INFO"
    assert payload["message"] == "Fetched with [MASKED]"
    assert payload["event"] == "github_fetched"
    assert payload["token"] == "[MASKED]"
    assert payload["count"] == 3

    for handler in logger.handlers:
        handler.close()
    logger.handlers = []


def test_setup_logging_plain_file_format(tmp_path):
    logger = setup_logging(
        LoggingConfig(console=False, file=True, format="plain", filename="run.log"),
        log_dir=tmp_path,
    )

    log_event(logger, "Notion token secret_abcdefghij12 rejected", level=logging.WARNING)
    for handler in logger.handlers:
        handler.flush()

    content = (tmp_path / "run.log").read_text(encoding="utf-8")
    assert "WARNING Notion token [MASKED] rejected" in content

    for handler in logger.handlers:
        handler.close()
    logger.handlers = []


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def test_log_event_uses_level_field_and_ignores_missing_logger():
    log_event(None, "nothing happens", event="noop")

    logger = get_logger("tests")
    handler = _ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        log_event(logger, "Careful", event="warned", level=logging.WARNING)
    finally:
        logger.removeHandler(handler)

    record = handler.records[-1]
    assert record.name == "reflection_weekly.tests"
    assert record.levelno == logging.WARNING
    assert record.event == "warned"
    assert not hasattr(record, "level")


def test_jsonl_formatter_includes_exception():
    try:
        raise RuntimeError("boom with sk-abcdefgh1234")
    except RuntimeError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, exc_info=sys.exc_info())

    payload = json.loads(JsonlFormatter().format(record))

    assert payload["message"] == "failed"
    assert "RuntimeError" in payload["exception"]
    assert "sk-abcdefgh1234" not in payload["exception"]
