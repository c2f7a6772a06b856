"""Sliding-window delivery limiter (advisory gate, checked per Part)."""

from __future__ import annotations

from collections import deque
from time import monotonic
from typing import Callable, Deque, Optional


class SlidingWindowRateLimiter:
    """Allow at most ``max_per_window`` deliveries within a trailing ``window_sec``.

    ``allow()`` does not consume a slot; ``record()`` does, and is only called after a
    successful delivery. Attempts beyond the gate are skipped by the caller, never queued.
    """

    def __init__(
        self,
        max_per_window: int,
        window_sec: float = 3600.0,
        *,
        time_fn: Optional[Callable[[], float]] = None,
    ):
        if max_per_window <= 0:
            raise ValueError("max_per_window must be > 0")
        if window_sec <= 0:
            raise ValueError("window_sec must be > 0")
        self._max = max_per_window
        self._window = window_sec
        self._time = time_fn or monotonic
        self._sent: Deque[float] = deque()

    @property
    def max_per_window(self) -> int:
        return self._max

    @property
    def window_sec(self) -> float:
        return self._window

    def _evict(self) -> None:
        cutoff = self._time() - self._window
        while self._sent and self._sent[0] <= cutoff:
            self._sent.popleft()

    def allow(self) -> bool:
        self._evict()
        return len(self._sent) < self._max

    def record(self) -> None:
        self._sent.append(self._time())

    def remaining(self) -> int:
        self._evict()
        return max(0, self._max - len(self._sent))

    def __len__(self) -> int:
        self._evict()
        return len(self._sent)
