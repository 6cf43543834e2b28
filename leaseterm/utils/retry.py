from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(
    attempt: int, base: float = 1.5, jitter: float = 0.5, max_delay: float = 10.0
) -> float:
    """Compute exponential backoff with jitter, capped at ``max_delay``."""
    delay = min(base ** attempt, max_delay)
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt)
    await asyncio.sleep(delay)


async def retry_call(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    retry_on: Tuple[Type[BaseException], ...],
    name: str = "operation",
) -> T:
    """Run ``operation`` and retry it on ``retry_on`` errors.

    Only use this for idempotent calls; the final error is re-raised.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except retry_on as exc:
            attempt += 1
            if attempt > max_retries or not getattr(exc, "retryable", True):
                raise
            logger.warning(f"Retrying {name} (attempt {attempt}/{max_retries}): {exc}")
            await schedule_retry(attempt)
