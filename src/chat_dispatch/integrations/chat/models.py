"""Normalized inbound chat event model.

Transport adapters convert platform payloads (WhatsApp, Discord, ...) into
``InboundEvent`` before handing them to the dispatcher.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional


def fingerprint_text(text: Optional[str]) -> str:
    """Stable content fingerprint used for duplicate suppression."""

    normalized = " ".join(str(text or "").split())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class InboundEvent:
    """One inbound chat message as seen by the dispatcher."""

    event_id: str
    chat_id: str
    subject_id: str
    text: Optional[str]
    fingerprint: Optional[str] = None
    timestamp_ms: Optional[int] = None

    @property
    def effective_fingerprint(self) -> str:
        if self.fingerprint:
            return self.fingerprint
        return fingerprint_text(self.text)
