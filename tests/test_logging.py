"""Tests for logging utilities."""

from __future__ import annotations

import logging

from subtrack.core.config import LoggingSettings
from subtrack.core.logging import configure_logging


def test_configure_logging_sets_root_level() -> None:
    """configure_logging should set the root logger level according to settings."""

    settings = LoggingSettings(level="DEBUG", structured=False)
    configure_logging(settings)
    assert logging.getLogger().level == logging.DEBUG


def test_structured_logging_quiets_http_client() -> None:
    configure_logging(LoggingSettings(level="INFO", structured=True))

    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING


def test_oracle_loggers_follow_their_own_level() -> None:
    configure_logging(LoggingSettings(level="WARNING", oracle_level="DEBUG"))

    assert logging.getLogger("subtrack").level == logging.WARNING
    assert logging.getLogger("subtrack.intelligence.oracle").level == logging.DEBUG
    assert logging.getLogger("subtrack.intelligence.llm").level == logging.DEBUG
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_oracle_loggers_default_to_application_level() -> None:
    configure_logging(LoggingSettings(level="INFO"))

    assert logging.getLogger("subtrack.intelligence.oracle").level == logging.INFO
