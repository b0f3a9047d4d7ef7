import time
from typing import Protocol


class Clock(Protocol):
    """Millisecond wall clock injected into the limiter and dedupe cache."""

    def now_ms(self) -> int: ...


class SystemClock:
    def now_ms(self) -> int:
        return int(time.time() * 1000)


__all__ = ["Clock", "SystemClock"]
