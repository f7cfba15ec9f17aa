"""Core utilities for configuration, logging, and shared models."""

from .config import AppSettings, ScanSettings, load_app_settings
from .logging import configure_logging

__all__ = [
    "AppSettings",
    "ScanSettings",
    "configure_logging",
    "load_app_settings",
]
