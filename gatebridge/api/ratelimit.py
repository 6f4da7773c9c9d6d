"""
Per-caller sliding-window request limiter for the REST boundary.

Unrelated to Discord's own rate limits, which the outbound pipeline handles.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable


class SlidingWindowLimiter:
    """
    Allows at most ``limit`` hits per caller within any ``window`` seconds.

    Args:
        limit: Requests allowed per window
        window: Window length in seconds
        clock: Monotonic time source (replaceable in tests)
    """

    def __init__(
        self,
        limit: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1 or window <= 0:
            raise ValueError("limit must be >= 1 and window must be positive")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()

    def hit(self, key: str) -> float | None:
        """
        Record a request for key.

        Returns:
            None if the request is allowed, otherwise the seconds until the
            caller may try again (the rejected request is not recorded)
        """
        now = self._clock()
        if now - self._last_sweep >= self.window:
            self._sweep(now)
        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= now - self.window:
            hits.popleft()
        if len(hits) >= self.limit:
            return max(0.0, hits[0] + self.window - now)
        hits.append(now)
        return None

    def _sweep(self, now: float) -> None:
        # callers whose newest hit has left the window hold no state
        cutoff = now - self.window
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]
        self._last_sweep = now

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)
