"""Shared logging helpers for the expense API.

Every module asks :func:`get_stream_logger` for its logger so that the server,
the CLI and the tests print consistent messages.  The helpers honour
``EXPENSE_LOG_LEVEL``, ``EXPENSE_LOG_FORMAT`` and ``EXPENSE_JSON_LOGS`` so the
output can be tuned without touching code.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from functools import cache
from typing import Final

DEFAULT_FORMAT: Final[str] = "[%(levelname)s] %(name)s: %(message)s"
DEFAULT_LEVEL: Final[str] = "INFO"
LEVEL_ENV_FLAG: Final[str] = "EXPENSE_LOG_LEVEL"
FORMAT_ENV_FLAG: Final[str] = "EXPENSE_LOG_FORMAT"
JSON_ENV_FLAG: Final[str] = "EXPENSE_JSON_LOGS"

# Attributes copied from ``extra=`` into JSON payloads when present.
_REQUEST_FIELDS: Final[tuple[str, ...]] = ("method", "path", "status_code", "duration_ms", "expense_id")


class JsonFormatter(logging.Formatter):
    """Render records as one-line JSON payloads."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _REQUEST_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


@cache
def _determine_level() -> int:
    """Translate ``EXPENSE_LOG_LEVEL`` into a numeric level.

    Unknown names fall back to INFO so that a typo never silences warnings.
    """

    level_name = os.environ.get(LEVEL_ENV_FLAG, DEFAULT_LEVEL).upper().strip()
    level = logging.getLevelName(level_name)
    if isinstance(level, int):
        return level
    return logging.INFO


@cache
def _determine_format() -> str:
    fmt = os.environ.get(FORMAT_ENV_FLAG, DEFAULT_FORMAT).strip()
    return fmt or DEFAULT_FORMAT


@cache
def _json_enabled() -> bool:
    value = os.environ.get(JSON_ENV_FLAG)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def reset_logging_cache() -> None:
    """Forget cached environment lookups (used by the CLI and tests)."""

    _determine_level.cache_clear()
    _determine_format.cache_clear()
    _json_enabled.cache_clear()


def get_stream_logger(name: str) -> logging.Logger:
    """Return a module logger wired to a single root stream handler.

    The first call attaches a :class:`logging.StreamHandler` to the root
    logger; later calls reuse it and refresh formatter and level from the
    environment.
    """

    logger = logging.getLogger(name)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.addHandler(logging.StreamHandler())
    formatter: logging.Formatter
    if _json_enabled():
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(_determine_format())
    for handler in root_logger.handlers:
        handler.setFormatter(formatter)
    root_logger.setLevel(_determine_level())
    return logger


__all__ = ["JsonFormatter", "get_stream_logger", "reset_logging_cache"]
