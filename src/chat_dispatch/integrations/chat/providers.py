"""Ordered provider fallback ("try each until one succeeds")."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from ...core.logging_utils import log_event
from .errors import AllProvidersFailedError
from .permissions import GroupMetadataProvider

T = TypeVar("T")


async def first_success(
    attempts: Sequence[Callable[[], Awaitable[T]]],
    *,
    logger: Optional[logging.Logger] = None,
    label: str = "provider",
) -> T:
    """Await each attempt in order and return the first result.

    Raises AllProvidersFailedError (with every failure attached) when all
    attempts raise. An empty sequence counts as all failing.
    """

    logger = logger or logging.getLogger(__name__)
    failures: list[BaseException] = []
    for index, attempt in enumerate(attempts):
        try:
            return await attempt()
        except Exception as exc:
            failures.append(exc)
            log_event(
                logger,
                logging.INFO,
                "chat.providers.attempt_failed",
                label=label,
                index=index,
                exc=exc,
            )
    raise AllProvidersFailedError(
        f"All {len(failures)} {label} attempts failed", failures=failures
    )


class FallbackGroupMetadataProvider:
    """Group metadata from the first provider that answers."""

    def __init__(
        self,
        providers: Sequence[GroupMetadataProvider],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._providers = tuple(providers)
        self._logger = logger or logging.getLogger(__name__)

    async def get_admins(self, chat_id: str) -> set[str]:
        return await first_success(
            [
                (lambda provider=provider: provider.get_admins(chat_id))
                for provider in self._providers
            ],
            logger=self._logger,
            label="group_metadata",
        )
