"""Logging configuration helpers."""

from __future__ import annotations

import logging
import logging.config
from typing import Any

from .config import LoggingSettings

APP_LOGGER = "subtrack"
ORACLE_LOGGERS = ("subtrack.intelligence.oracle", "subtrack.intelligence.llm")
HTTP_CLIENT_LOGGERS = ("httpx", "httpcore")


def _structured_formatter() -> dict[str, Any]:
    """Return a dictConfig fragment for key/value structured logs."""
    return {
        "format": "ts={asctime} level={levelname} logger={name} msg={message}",
        "style": "{",
    }


def _plain_formatter() -> dict[str, Any]:
    """Return a dictConfig fragment for human readable logs."""
    return {
        "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
    }


def _logger_levels(settings: LoggingSettings) -> dict[str, dict[str, Any]]:
    """Per-logger levels layered over the root configuration."""
    loggers: dict[str, dict[str, Any]] = {APP_LOGGER: {"level": settings.level}}
    oracle_level = settings.oracle_level or settings.level
    for name in ORACLE_LOGGERS:
        loggers[name] = {"level": oracle_level}
    if settings.quiet_http_client:
        for name in HTTP_CLIENT_LOGGERS:
            loggers[name] = {"level": "WARNING"}
    return loggers


def configure_logging(settings: LoggingSettings) -> None:
    """Configure application logging according to provided settings."""
    formatter = _structured_formatter() if settings.structured else _plain_formatter()

    dict_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": formatter,
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": _logger_levels(settings),
        "root": {
            "handlers": ["console"],
            "level": settings.level,
        },
    }

    logging.config.dictConfig(dict_config)


__all__ = ["APP_LOGGER", "ORACLE_LOGGERS", "configure_logging"]
