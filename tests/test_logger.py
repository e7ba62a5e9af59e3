"""Tests for logger setup."""

from __future__ import annotations

import logging

from circulator.logger import (
    LOG_LEVEL_ENV,
    CorrelationIdFilter,
    get_logger,
    set_correlation_id,
)


def test_single_handler_with_filter():
    """Repeated calls do not stack handlers."""
    get_logger("circulator.test_single")
    logger = get_logger("circulator.test_single")

    assert len(logger.handlers) == 1
    assert any(isinstance(f, CorrelationIdFilter) for f in logger.handlers[0].filters)


def test_default_level_is_warning(monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    assert get_logger("circulator.test_default").level == logging.WARNING


def test_level_from_env(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV, "debug")
    assert get_logger("circulator.test_env").level == logging.DEBUG


def test_explicit_level_wins(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV, "DEBUG")
    assert get_logger("circulator.test_explicit", level=logging.ERROR).level == logging.ERROR


def test_correlation_id_is_stamped_on_records():
    cid = set_correlation_id("abc-123")
    record = logging.LogRecord("circulator", logging.INFO, __file__, 1, "msg", None, None)

    CorrelationIdFilter().filter(record)

    assert cid == "abc-123"
    assert record.correlation_id == "abc-123"


def test_generated_correlation_id():
    assert len(set_correlation_id()) == 36


def test_unknown_env_level_falls_back_to_warning(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV, "LOUD")
    assert get_logger("circulator.test_bad_env").level == logging.WARNING


def test_host_level_survives_later_calls(monkeypatch):
    """Only the first call or an explicit level= sets the level."""
    monkeypatch.setenv(LOG_LEVEL_ENV, "DEBUG")
    logger = get_logger("circulator.test_host_level")
    logger.setLevel(logging.ERROR)

    assert get_logger("circulator.test_host_level").level == logging.ERROR
    assert get_logger("circulator.test_host_level", level=logging.INFO).level == logging.INFO
