"""Short-TTL duplicate suppression for retried inbound events."""

from __future__ import annotations

import threading


class DeduplicationCache:
    """Remembers ``(event_id, fingerprint)`` pairs for ``ttl_ms``.

    Best effort and process-local: nothing survives a restart.
    """

    def __init__(self, *, ttl_ms: int) -> None:
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be > 0")
        self._ttl_ms = int(ttl_ms)
        self._entries: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def seen(self, event_id: str, fingerprint: str, now_ms: int) -> bool:
        """Record the pair and return True, or return False if it is a repeat."""
        key = (event_id, fingerprint)
        with self._lock:
            inserted_at = self._entries.get(key)
            if inserted_at is not None and not self._expired(inserted_at, now_ms):
                return False
            self._entries[key] = now_ms
            return True

    def sweep(self, now_ms: int) -> int:
        with self._lock:
            stale = [
                key
                for key, inserted_at in self._entries.items()
                if self._expired(inserted_at, now_ms)
            ]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, inserted_at: int, now_ms: int) -> bool:
        return now_ms - inserted_at >= self._ttl_ms
