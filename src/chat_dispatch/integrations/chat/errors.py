"""Dispatch-layer error taxonomy.

Each error maps to one terminal dispatch state. Only ``user_message`` is ever
shown in chat; the exception text is for logs.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ...core.exceptions import ChatDispatchError, PermanentError, TransientError


class DispatchError(ChatDispatchError):
    """Base class for errors produced at the dispatcher boundary."""

    kind = "dispatch_error"


class UnknownCommand(DispatchError):
    """Command token did not resolve; never surfaced to the user."""

    kind = "unknown_command"


class PermissionDenied(DispatchError):
    kind = "permission_denied"


class RateLimited(DispatchError):
    kind = "rate_limited"
    recoverable = True
    severity = "warning"

    def __init__(
        self,
        message: str,
        *,
        retry_after_ms: int = 0,
        user_message: Optional[str] = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.retry_after_ms = max(int(retry_after_ms), 0)


class DuplicateEvent(DispatchError):
    """Event already seen within the dedupe window; never surfaced."""

    kind = "duplicate"


class HandlerTimeout(DispatchError, TransientError):
    kind = "timeout"
    recoverable = TransientError.recoverable
    severity = TransientError.severity

    def __init__(
        self,
        message: str,
        *,
        elapsed_ms: int,
        user_message: Optional[str] = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.elapsed_ms = elapsed_ms


class HandlerError(DispatchError, PermanentError):
    """Any exception raised by a command body; the original is ``__cause__``."""

    kind = "handler_error"
    recoverable = PermanentError.recoverable
    severity = PermanentError.severity


class DuplicateCommandError(ValueError):
    """Raised when a command name or alias is already claimed."""

    def __init__(self, token: str, *, claimed_by: str) -> None:
        super().__init__(
            f"Command token {token!r} is already registered by {claimed_by!r}"
        )
        self.token = token
        self.claimed_by = claimed_by


class AllProvidersFailedError(TransientError):
    """Every provider in a first-success chain failed."""

    def __init__(self, message: str, *, failures: Sequence[BaseException]) -> None:
        super().__init__(message)
        self.failures = tuple(failures)


__all__ = [
    "AllProvidersFailedError",
    "DispatchError",
    "DuplicateCommandError",
    "DuplicateEvent",
    "HandlerError",
    "HandlerTimeout",
    "PermissionDenied",
    "RateLimited",
    "UnknownCommand",
]
