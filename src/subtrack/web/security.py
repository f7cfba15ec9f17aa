"""Replay protection for OAuth authorization codes."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field

from fastapi import HTTPException, status

LOGGER = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100
CODE_PREFIX_LENGTH = 10


def code_key(user_id: str, code: str) -> str:
    """Return the cache key remembered for ``code`` submitted by ``user_id``."""
    return f"{user_id}-{code[:CODE_PREFIX_LENGTH]}"


@dataclass(slots=True)
class ProcessedCodeCache:
    """Bounded, least-recently-used record of authorization codes already used.

    The oldest entry is evicted once ``capacity`` is exceeded, so memory stays
    constant however many accounts are connected.
    """

    capacity: int = DEFAULT_CAPACITY
    _entries: OrderedDict[str, None] = field(default_factory=OrderedDict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")

    def remember(self, key: str) -> bool:
        """Record ``key``; return ``False`` when it was already present."""
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return False
            self._entries[key] = None
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                LOGGER.debug("Evicted processed code %s", evicted)
            return True

    def forget(self, key: str) -> None:
        """Drop ``key`` so the same code may be submitted again."""
        with self._lock:
            self._entries.pop(key, None)

    def claim(self, user_id: str, code: str) -> str:
        """Remember the code or raise a 400 error when it is a replay."""
        key = code_key(user_id, code)
        if not self.remember(key):
            LOGGER.warning("Rejected replayed authorization code for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Authorization code already used. Please try connecting again.",
            )
        return key

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["CODE_PREFIX_LENGTH", "DEFAULT_CAPACITY", "ProcessedCodeCache", "code_key"]
