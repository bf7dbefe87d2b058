"""Minimum-interval rate limiting for sequential calls to external services."""
from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class RateLimiter:
    """
    Enforce a minimum interval between consecutive calls.

    `wait()` blocks until at least `min_interval_s` has passed since the last
    `mark()` (or the previous `wait()`), then marks. The first call never
    blocks. Clock and sleep are injectable so tests run without real timers.
    """

    def __init__(
        self,
        min_interval_s: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval_s = max(0.0, float(min_interval_s))
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    @classmethod
    def from_ms(cls, interval_ms: float, **kwargs) -> "RateLimiter":
        return cls(interval_ms / 1000.0, **kwargs)

    def mark(self) -> None:
        with self._lock:
            self._last = self._clock()

    def wait(self) -> float:
        """Sleep out the rest of the interval; returns the time slept."""
        with self._lock:
            slept = 0.0
            if self._last is not None:
                delta = self._clock() - self._last
                if delta < self.min_interval_s:
                    slept = self.min_interval_s - delta
                    self._sleep(slept)
            self._last = self._clock()
            return slept
