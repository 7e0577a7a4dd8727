from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from time import time


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Per-client request budget that resets a fixed interval after the first request.

    State lives in process memory only. Expired windows are swept on every call, so the
    table never holds more than the clients seen during the current window.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time,
    ) -> None:
        self._max_requests = max(1, max_requests)
        self._window_seconds = max(1, window_seconds)
        self._clock = clock
        self._lock = Lock()
        self._windows: dict[str, _Window] = {}

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def take(self, key: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            self._sweep(now)
            window = self._windows.get(key)
            if window is None:
                window = _Window(count=1, reset_at=now + self._window_seconds)
                self._windows[key] = window
                return self._decision(window, allowed=True, now=now)

            if window.count >= self._max_requests:
                return self._decision(window, allowed=False, now=now)

            window.count += 1
            return self._decision(window, allowed=True, now=now)

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._windows)

    def _sweep(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]

    def _decision(self, window: _Window, *, allowed: bool, now: float) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=allowed,
            limit=self._max_requests,
            remaining=max(self._max_requests - window.count, 0),
            reset_at=window.reset_at,
            retry_after_seconds=0 if allowed else max(1, math.ceil(window.reset_at - now)),
        )
