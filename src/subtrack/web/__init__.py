"""HTTP API for SubTrack."""

from .app import create_app
from .security import ProcessedCodeCache

__all__ = ["ProcessedCodeCache", "create_app"]
