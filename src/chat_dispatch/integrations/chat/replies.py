"""User-facing wording for dispatcher notices.

Notices never include exception text.
"""

from __future__ import annotations

import math
import random
from typing import Optional, Sequence

PERMISSION_DENIED_MESSAGE = "You do not have permission to use this command."
TIMEOUT_MESSAGE = "That took too long to finish. Please try again in a moment."
DEFAULT_FAILURE_MESSAGES: tuple[str, ...] = (
    "Something went wrong while running that command. Please try again later.",
    "Sorry, that command failed. Please try again in a bit.",
    "Oops, that did not work out. Give it another try later.",
    "The command hit a snag. Please retry shortly.",
)


def format_retry_hint(retry_after_ms: int) -> str:
    seconds = max(int(math.ceil(retry_after_ms / 1000)), 1)
    unit = "second" if seconds == 1 else "seconds"
    return f"You're sending commands too fast. Try again in {seconds} {unit}."


class ReplyCatalog:
    """Picks the text for each notice; failure wording is randomized."""

    def __init__(
        self,
        *,
        failure_messages: Sequence[str] = DEFAULT_FAILURE_MESSAGES,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not failure_messages:
            raise ValueError("failure_messages must not be empty")
        self._failure_messages = tuple(failure_messages)
        self._rng = rng or random.Random()

    def permission_denied(self) -> str:
        return PERMISSION_DENIED_MESSAGE

    def rate_limited(self, retry_after_ms: int) -> str:
        return format_retry_hint(retry_after_ms)

    def timed_out(self) -> str:
        return TIMEOUT_MESSAGE

    def handler_failed(self) -> str:
        return self._rng.choice(self._failure_messages)
