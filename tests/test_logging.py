"""Tests for logging utilities."""

from __future__ import annotations

import json
import logging

from triage_engine.core.config import LoggingSettings
from triage_engine.core.logging import JsonLineFormatter, configure_logging


def test_configure_logging_sets_root_level() -> None:
    """configure_logging should set the root logger level according to settings."""

    settings = LoggingSettings(level="DEBUG", structured=False)
    configure_logging(settings)
    assert logging.getLogger().level == logging.DEBUG


def test_structured_logging_emits_json_like_lines() -> None:
    configure_logging(LoggingSettings(level="INFO", structured=True))
    record = logging.LogRecord(
        "triage_engine.test", logging.INFO, __file__, 1, "hello %s", ("world",), None
    )

    lines = [handler.format(record) for handler in logging.getLogger().handlers]

    assert any(
        '"level": "INFO"' in line and '"message": "hello world"' in line
        for line in lines
    )


def test_structured_lines_escape_quotes() -> None:
    record = logging.LogRecord(
        "triage_engine.test", logging.WARNING, __file__, 1, 'said "hi"', (), None
    )

    line = json.loads(JsonLineFormatter().format(record))

    assert line["message"] == 'said "hi"'
    assert line["logger"] == "triage_engine.test"


def test_client_loggers_are_quietened() -> None:
    configure_logging(LoggingSettings(level="DEBUG"))
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("anthropic").level == logging.WARNING
