from __future__ import annotations

import logging
import os
import uuid
from contextvars import ContextVar
from typing import Optional

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="-")

LOG_LEVEL_ENV = "CIRCULATOR_LOG_LEVEL"


def set_correlation_id(value: Optional[str] = None) -> str:
    """Set a correlation ID for the current context and return it."""
    cid = value or str(uuid.uuid4())
    _correlation_id.set(cid)
    return cid


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get()
        return True


def _level_from_env(default: int) -> int:
    raw = os.getenv(LOG_LEVEL_ENV)
    if not raw:
        return default
    level = logging.getLevelName(raw.upper())
    # unknown names come back as "Level X"
    return level if isinstance(level, int) else default


def get_logger(name: str = "circulator", level: Optional[int] = None) -> logging.Logger:
    """Return a logger with a correlation-id filter and a single stream handler.

    The level is set when the logger is first configured, or whenever
    ``level`` is given, so a level the host application chose later is kept.
    It defaults to WARNING so transitions stay quiet inside host
    applications; set CIRCULATOR_LOG_LEVEL=DEBUG to trace every commit.
    """
    logger = logging.getLogger(name)

    # Avoid duplicated handlers if called multiple times.
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - cid=%(correlation_id)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.addFilter(CorrelationIdFilter())
        logger.addHandler(handler)
        if level is None:
            logger.setLevel(_level_from_env(logging.WARNING))

    if level is not None:
        logger.setLevel(level)
    return logger
