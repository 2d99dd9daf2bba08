"""
Bounded retry with exponential backoff for idempotent async calls.

Only reads, deletes by key and key material fetches go through here.
Inserts and updates are never retried.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")

DEFAULT_ATTEMPTS: int = 3
DEFAULT_BASE_DELAY: float = 0.05  # seconds
DEFAULT_MAX_DELAY: float = 1.0  # seconds


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    retry_on: Tuple[Type[BaseException], ...],
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """
    Call fn until it succeeds or attempts run out.

    Args:
        fn: Zero-argument coroutine factory (called once per attempt)
        retry_on: Exception types that trigger another attempt
        attempts: Total attempts, at least 1
        base_delay: Delay before the second attempt, doubled each time
        max_delay: Upper bound on any single delay
        on_retry: Called with (attempt, error) before sleeping

    Returns:
        The first successful result

    Raises:
        The last exception once attempts are exhausted, or any exception
        not listed in retry_on immediately
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    attempt = 1
    while True:
        try:
            return await fn()
        except retry_on as e:
            if attempt >= attempts:
                raise
            if on_retry is not None:
                on_retry(attempt, e)
            await asyncio.sleep(min(base_delay * (2 ** (attempt - 1)), max_delay))
            attempt += 1
