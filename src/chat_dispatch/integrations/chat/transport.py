"""Outbound delivery contract used by the dispatcher.

The dispatcher only uses the transport for denial, throttle, and failure
notices; command output is the handler's business.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MessageTransport(Protocol):
    async def send_reply(self, chat_id: str, content: str) -> None:
        """Deliver ``content`` to ``chat_id``."""
