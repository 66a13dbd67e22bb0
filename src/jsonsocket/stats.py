from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from typing import Any


class ThroughputProbe:
    """Received-bytes throughput over a sliding time window."""

    def __init__(self, window: float = 5.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.window = window
        self._clock = clock
        self._samples: deque[tuple[float, int]] = deque()
        self.reset()

    def reset(self) -> None:
        self.total_bytes = 0
        self.chunks = 0
        self.messages = 0
        self.started_at = self._clock()
        self._samples.clear()

    def record(self, nbytes: int) -> None:
        now = self._clock()
        self.total_bytes += nbytes
        self.chunks += 1
        self._samples.append((now, nbytes))
        self._expire(now)

    def record_message(self) -> None:
        self.messages += 1

    def _expire(self, now: float) -> None:
        horizon = now - self.window
        while self._samples and self._samples[0][0] < horizon:
            self._samples.popleft()

    def rate(self) -> float:
        """Bytes per second received during the last ``window`` seconds."""
        now = self._clock()
        self._expire(now)
        span = min(self.window, now - self.started_at)
        if span <= 0:
            return 0.0
        return sum(n for _, n in self._samples) / span

    def snapshot(self) -> dict[str, Any]:
        return {
            "total_bytes": self.total_bytes,
            "chunks": self.chunks,
            "messages": self.messages,
            "bytes_per_second": self.rate(),
            "uptime": self._clock() - self.started_at,
        }
