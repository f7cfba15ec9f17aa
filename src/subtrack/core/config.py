"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field


class OracleSettings(BaseModel):
    """Settings for the LLM classification oracle."""

    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of an OpenAI-compatible chat completions API",
    )
    api_key: str | None = Field(
        default=None, description="Access credential; absent means heuristic mode"
    )
    model: str = Field(default="gpt-4o-mini", description="Model identifier")
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Per-request timeout for oracle calls"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for oracle completions",
    )
    max_output_tokens: int = Field(
        default=800,
        ge=32,
        description="Maximum tokens to request from the provider",
    )
    max_retries: int = Field(
        default=2, ge=0, description="Retries after a failed transport attempt"
    )
    body_char_limit: int = Field(
        default=6000,
        ge=200,
        description="Email body characters included in the per-email prompt",
    )


class ScanSettings(BaseModel):
    """Settings controlling batch pacing and scan bounds."""

    group_size: int = Field(
        default=3, ge=1, description="Messages classified per paced group"
    )
    pause_seconds: float = Field(
        default=0.5, ge=0.0, description="Pause after each oracle classification"
    )
    group_pause_seconds: float = Field(
        default=2.0, ge=0.0, description="Pause between oracle groups"
    )
    max_messages: int | None = Field(
        default=100, description="Hard cap for messages classified per account"
    )
    prefilter_enabled: bool = Field(
        default=False,
        description="Screen subjects and senders before full classification",
    )


class StorageSettings(BaseModel):
    """Settings for local persistence."""

    db_path: Path = Field(
        default=Path("./subtrack.db"), description="SQLite database path"
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )
    oracle_level: str | None = Field(
        default=None,
        description="Level for the LLM classifier loggers; defaults to ``level``",
    )
    quiet_http_client: bool = Field(
        default=True, description="Limit httpx/httpcore request logs to warnings"
    )


class WebSettings(BaseModel):
    """Settings for the HTTP API."""

    display_currency: str = Field(
        default="USD", description="Currency used for statistics totals"
    )
    processed_code_capacity: int = Field(
        default=100,
        ge=1,
        description="Authorization codes remembered for replay protection",
    )
    max_accounts: int = Field(
        default=3, ge=1, description="Mail accounts a user may connect"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    oracle: OracleSettings = Field(default_factory=OracleSettings)
    scan: ScanSettings = Field(default_factory=ScanSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    web: WebSettings = Field(default_factory=WebSettings)


ENV_PREFIX = "SUBTRACK_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool = True
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
        _merge_into_tree(collected, path, normalized_value)

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment=include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "LoggingSettings",
    "OracleSettings",
    "ScanSettings",
    "StorageSettings",
    "WebSettings",
    "load_app_settings",
]
