"""Fixed-window request limiter for the HTTP endpoints."""

from __future__ import annotations

import time
from collections.abc import Callable


class FixedWindowRateLimiter:
    """Allow at most ``limit`` hits per key in each ``window``-second window."""

    def __init__(
        self,
        limit: int,
        window: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}

    def hit(self, key: str) -> bool:
        """Record a request for *key*; False when the limit is already used up."""
        now = self._clock()
        started, count = self._windows.get(key, (now, 0))
        if now - started >= self.window:
            started, count = now, 0
        if count >= self.limit:
            return False
        self._windows[key] = (started, count + 1)
        if len(self._windows) > 10_000:
            self._prune(now)
        return True

    def retry_after(self, key: str) -> int:
        started, _ = self._windows.get(key, (self._clock(), 0))
        return max(1, int(self.window - (self._clock() - started)) + 1)

    def _prune(self, now: float) -> None:
        expired = [k for k, (s, _) in self._windows.items() if now - s >= self.window]
        for k in expired:
            del self._windows[k]

    def reset(self) -> None:
        self._windows.clear()
