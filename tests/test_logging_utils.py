from __future__ import annotations

import io
import sys

import pytest
from loguru import logger

from clisense import logging_utils


@pytest.fixture
def log_buffer(monkeypatch):
    monkeypatch.setattr(logging_utils, "_CONFIGURED", False)
    yield io.StringIO()
    logger.remove()
    logger.add(sys.stderr)


def test_configure_logging_uses_env_level(monkeypatch, log_buffer: io.StringIO) -> None:
    monkeypatch.setenv("CLISENSE_LOG_LEVEL", "debug")
    logging_utils.configure_logging(sink=log_buffer)
    logger.debug("visible message")
    output = log_buffer.getvalue()
    assert "visible message" in output
    assert "DEBUG" in output


def test_configure_logging_runs_once(monkeypatch, log_buffer: io.StringIO) -> None:
    monkeypatch.delenv("CLISENSE_LOG_LEVEL", raising=False)
    logging_utils.configure_logging(level="error", sink=log_buffer)
    second = io.StringIO()
    logging_utils.configure_logging(level="debug", sink=second)
    logger.warning("hidden message")
    logger.error("shown message")
    output = log_buffer.getvalue()
    assert "hidden message" not in output
    assert "shown message" in output
    assert second.getvalue() == ""


def test_configure_logging_defaults_to_info(monkeypatch, log_buffer: io.StringIO) -> None:
    monkeypatch.delenv("CLISENSE_LOG_LEVEL", raising=False)
    logging_utils.configure_logging(sink=log_buffer)
    logger.debug("debug message")
    logger.info("info message")
    output = log_buffer.getvalue()
    assert "debug message" not in output
    assert "info message" in output
