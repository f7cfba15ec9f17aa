"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from subtrack.core.config import load_app_settings


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Ensure each test sees a fresh settings instance."""

    load_app_settings.cache_clear()


def test_defaults_loaded_without_env_file() -> None:
    """Default values should be returned when no overrides are present."""

    settings = load_app_settings(include_environment=False)
    assert settings.oracle.api_key is None
    assert settings.oracle.model == "gpt-4o-mini"
    assert settings.storage.db_path == Path("./subtrack.db")
    assert settings.scan.group_size == 3
    assert settings.scan.prefilter_enabled is False
    assert settings.web.processed_code_capacity == 100


def test_env_file_overrides(tmp_path: Path) -> None:
    """Values defined in an env file should override defaults."""

    env_file = tmp_path / "test.env"
    env_file.write_text(
        "SUBTRACK_ORACLE__API_KEY=sk-test\n"
        "SUBTRACK_SCAN__PREFILTER_ENABLED=true\n"
        "SUBTRACK_SCAN__MAX_MESSAGES=25\n"
        "UNRELATED_KEY=ignored\n",
        encoding="utf-8",
    )

    settings = load_app_settings(env_file=env_file, include_environment=False)
    assert settings.oracle.api_key == "sk-test"
    assert settings.scan.prefilter_enabled is True
    assert settings.scan.max_messages == 25


def test_environment_takes_precedence_over_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text("SUBTRACK_WEB__DISPLAY_CURRENCY=EUR\n", encoding="utf-8")
    monkeypatch.setenv("SUBTRACK_WEB__DISPLAY_CURRENCY", "AED")

    settings = load_app_settings(env_file=env_file)
    assert settings.web.display_currency == "AED"


def test_empty_value_falls_back_to_default(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("SUBTRACK_ORACLE__API_KEY", "")

    settings = load_app_settings()
    assert settings.oracle.api_key is None
