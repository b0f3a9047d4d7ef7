"""Per-command usage counters."""

from __future__ import annotations

import threading
from collections import Counter, defaultdict
from typing import Dict


class CommandStats:
    def __init__(self) -> None:
        self._counts: Dict[str, Counter[str]] = defaultdict(Counter)
        self._lock = threading.Lock()

    def record(self, command_name: str, status: str) -> None:
        with self._lock:
            self._counts[command_name][status] += 1

    def total(self, command_name: str) -> int:
        with self._lock:
            return sum(self._counts.get(command_name, Counter()).values())

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            return {name: dict(counts) for name, counts in self._counts.items()}
