"""Process-lifetime in-memory cache with per-entry TTL."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any


class TTLCache:
    """Simple in-memory cache with per-entry TTL.

    Each entry expires ``ttl`` seconds after it was set. Expired entries are
    evicted lazily on the next ``get`` for that key; there is no sweeper.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[str, tuple[float, Any]] = {}
        self._clock = clock

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() > expires_at:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._store[key] = (self._clock() + ttl, value)

    def invalidate(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


SHARED_CATALOG_CACHE = TTLCache()
