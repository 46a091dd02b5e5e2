"""Tests for the shared logging helpers."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager

import pytest

from expense_api import logging as logging_utils


@pytest.fixture(autouse=True)
def clean_root_logger() -> Iterator[None]:
    """Isolate each test from handlers and cached environment lookups."""

    logging.getLogger().handlers = []
    logging.getLogger().setLevel(logging.NOTSET)
    logging_utils.reset_logging_cache()
    yield
    logging.getLogger().handlers = []
    logging.getLogger().setLevel(logging.NOTSET)
    logging_utils.reset_logging_cache()


@contextmanager
def bare_root_logger() -> Iterator[logging.Logger]:
    """Detach every root handler (pytest's capture handlers included) for a block."""

    root = logging.getLogger()
    saved = root.handlers[:]
    root.handlers = []
    try:
        yield root
    finally:
        root.handlers = saved


def test_get_stream_logger_installs_handler_with_format(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXPENSE_LOG_FORMAT", "%(message)s")
    logger = logging_utils.get_stream_logger("expense_api.test")
    handlers = logging.getLogger().handlers
    assert handlers, "root logger needs at least one handler"
    handler = handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    assert handler.formatter._fmt == "%(message)s"
    logger.info("ping")


def test_bare_root_gets_exactly_one_stream_handler() -> None:
    with bare_root_logger() as root:
        logging_utils.get_stream_logger("a")
        assert len(root.handlers) == 1
        assert type(root.handlers[0]) is logging.StreamHandler


def test_repeated_calls_reuse_the_root_handler() -> None:
    logging_utils.get_stream_logger("a")
    installed = list(logging.getLogger().handlers)
    logging_utils.get_stream_logger("b")
    assert logging.getLogger().handlers == installed
    with bare_root_logger() as root:
        logging_utils.get_stream_logger("a")
        logging_utils.get_stream_logger("b")
        assert len(root.handlers) == 1


def test_level_comes_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXPENSE_LOG_LEVEL", "DEBUG")
    logger = logging_utils.get_stream_logger("expense_api.test")
    assert logger.isEnabledFor(logging.DEBUG)


def test_invalid_level_falls_back_to_info(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXPENSE_LOG_LEVEL", "NOPE")
    logger = logging_utils.get_stream_logger("expense_api.test")
    assert logger.isEnabledFor(logging.INFO)
    assert not logger.isEnabledFor(logging.DEBUG)


def test_json_logs_switch_formatter(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXPENSE_JSON_LOGS", "true")
    logging_utils.get_stream_logger("expense_api.test")
    assert isinstance(logging.getLogger().handlers[0].formatter, logging_utils.JsonFormatter)


def test_json_formatter_includes_request_fields() -> None:
    record = logging.LogRecord("expense_api.server", logging.INFO, __file__, 1, "GET %s", ("/expense",), None)
    record.status_code = 200
    record.duration_ms = 1.5
    payload = json.loads(logging_utils.JsonFormatter().format(record))
    assert payload["message"] == "GET /expense"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "expense_api.server"
    assert payload["status_code"] == 200
    assert payload["duration_ms"] == 1.5
    assert "path" not in payload
