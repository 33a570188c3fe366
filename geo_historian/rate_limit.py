"""
Fixed-window rate limiting for upstream lookups.

State is process-local: each server process keeps its own counters and
they reset on restart.
"""
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    Per-key fixed-window counter.

    A key may make `max_requests` calls per `window_seconds`. The window
    starts at the first call and is replaced wholesale once it expires.
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def allow(self, key: str) -> bool:
        """Record a call for `key` and report whether it is within the limit."""
        now = self._clock()
        window = self._windows.get(key)

        if window is None or now > window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return True

        if window.count >= self.max_requests:
            return False

        window.count += 1
        return True

    def sweep(self) -> int:
        """Drop expired windows. Returns the number removed."""
        now = self._clock()
        expired = [key for key, w in self._windows.items() if now > w.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)
