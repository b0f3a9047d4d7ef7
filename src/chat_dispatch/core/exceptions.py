"""Shared error types for chat-dispatch.

Errors carry a ``user_message`` that is safe to show in chat, plus class-level
``recoverable``/``severity`` hints so retry and logging behavior stays
consistent across components.
"""

from __future__ import annotations

from typing import Optional


class ChatDispatchError(Exception):
    """Base error for the package."""

    recoverable: bool = False
    severity: str = "error"

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message


class TransientError(ChatDispatchError):
    """Retryable failure (network, provider hiccup, timeout)."""

    recoverable = True
    severity = "warning"


class PermanentError(ChatDispatchError):
    """Non-retryable failure (validation, auth, config)."""

    recoverable = False
    severity = "error"


class ConfigError(PermanentError):
    """Raised when configuration is invalid."""


__all__ = [
    "ChatDispatchError",
    "ConfigError",
    "PermanentError",
    "TransientError",
]
