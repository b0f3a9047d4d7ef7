from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Coroutine, ParamSpec, TypeVar, cast

from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import TransientError

P = ParamSpec("P")
T = TypeVar("T")


def retry_transient(
    max_attempts: int = 3,
    base_wait: float = 0.2,
    max_wait: float = 5.0,
) -> Callable[[Callable[P, Coroutine[Any, Any, T]]], Callable[P, Coroutine[Any, Any, T]]]:
    """
    Decorator for retrying transient errors with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts, including the first (default: 3)
        base_wait: Base wait time in seconds before exponential backoff (default: 0.2)
        max_wait: Maximum wait time in seconds between retries (default: 5.0)

    Returns:
        A decorator that wraps async functions with retry logic.

    Raises:
        The last TransientError once attempts are exhausted; any other
        exception propagates on the first occurrence.
    """
    logger = logging.getLogger(__name__)

    def decorator(
        func: Callable[P, Coroutine[Any, Any, T]],
    ) -> Callable[P, Coroutine[Any, Any, T]]:
        @wraps(func)
        @retry(
            stop=stop_after_attempt(max(max_attempts, 1)),
            wait=wait_exponential(multiplier=base_wait, max=max_wait, exp_base=2),
            retry=retry_if_exception_type(TransientError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            after=after_log(logger, logging.DEBUG),
            reraise=True,
        )
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return cast(T, await func(*args, **kwargs))

        return wrapper

    return decorator
