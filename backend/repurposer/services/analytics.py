from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass(frozen=True)
class AnalyticsSnapshot:
    total_requests: int
    successful_requests: int


class AnalyticsCounters:
    def __init__(self) -> None:
        self._lock = Lock()
        self._total = 0
        self._successful = 0

    def record(self, *, success: bool) -> None:
        with self._lock:
            self._total += 1
            if success:
                self._successful += 1

    def snapshot(self) -> AnalyticsSnapshot:
        with self._lock:
            return AnalyticsSnapshot(
                total_requests=self._total,
                successful_requests=self._successful,
            )
