"""In-memory sliding-window rate limiting keyed by (subject, command)."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional


@dataclass(frozen=True)
class RateLimitKey:
    subject_id: str
    command_name: str


class SlidingWindowLimiter:
    """Admit at most ``max_requests`` per key in any trailing ``window_ms``.

    Timestamps are kept oldest-first and pruned lazily on each ``admit``.
    Rejected attempts are not recorded. Keys whose history has fully expired
    are dropped by ``sweep``, which the dispatcher runs on a timer.
    """

    def __init__(self, *, window_ms: int, max_requests: int) -> None:
        if window_ms <= 0:
            raise ValueError("window_ms must be > 0")
        if max_requests <= 0:
            raise ValueError("max_requests must be > 0")
        self._window_ms = int(window_ms)
        self._max_requests = int(max_requests)
        self._events: dict[RateLimitKey, Deque[int]] = {}
        self._lock = threading.Lock()

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def admit(self, key: RateLimitKey, now_ms: int) -> bool:
        with self._lock:
            q = self._events.get(key)
            if q is None:
                q = deque()
                self._events[key] = q
            self._prune(q, now_ms - self._window_ms)
            if len(q) >= self._max_requests:
                return False
            q.append(now_ms)
            return True

    def retry_after_ms(self, key: RateLimitKey, now_ms: int) -> int:
        """Milliseconds until ``key`` regains a slot (0 if one is free now)."""
        with self._lock:
            q = self._events.get(key)
            if not q:
                return 0
            self._prune(q, now_ms - self._window_ms)
            if len(q) < self._max_requests:
                return 0
            # The slot frees once the blocking entry falls below the cutoff.
            blocking = q[len(q) - self._max_requests]
            return max(blocking + self._window_ms + 1 - now_ms, 0)

    def sweep(self, now_ms: int, *, horizon_ms: Optional[int] = None) -> int:
        """Drop keys with no timestamps inside ``horizon_ms`` (default 2x window)."""
        horizon = self._window_ms * 2 if horizon_ms is None else horizon_ms
        removed = 0
        with self._lock:
            for key in list(self._events):
                q = self._events[key]
                self._prune(q, now_ms - horizon)
                if not q:
                    del self._events[key]
                    removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    @staticmethod
    def _prune(q: Deque[int], cutoff: int) -> None:
        while q and q[0] < cutoff:
            q.popleft()
