"""
Retry with Exponential Backoff

Retries transient failures of a single external call. Used around
catalog HTTP requests; LLM backends rely on fallback instead.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: tuple[type[BaseException], ...] = (
        ConnectionError,
        TimeoutError,
    )

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given 1-based attempt."""
        delay = min(
            self.base_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay,
        )
        if self.jitter:
            delay = delay * (0.5 + random.random())
        return delay


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    config: RetryConfig | None = None,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
    **kwargs,
) -> T:
    """
    Retry an async function with exponential backoff.

    Only exceptions listed in ``config.retryable_exceptions`` are retried;
    anything else propagates on the first occurrence.

    Args:
        func: Async function to retry
        *args: Positional arguments for func
        config: Retry configuration
        on_retry: Optional callback(attempt, error, delay) on each retry
        **kwargs: Keyword arguments for func

    Returns:
        Result from the first successful call

    Raises:
        Exception: The last retryable exception once attempts are exhausted

    Example:
        config = RetryConfig(
            max_attempts=3,
            retryable_exceptions=(httpx.TransportError,),
        )
        response = await retry_with_backoff(client.get, "/datasets/list", config=config)
    """
    config = config or RetryConfig()

    for attempt in range(1, config.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except config.retryable_exceptions as e:
            if attempt == config.max_attempts:
                logger.warning(f"Retry exhausted after {attempt} attempts: {e}")
                raise

            delay = config.delay_for(attempt)
            logger.info(
                f"Retry attempt {attempt}/{config.max_attempts} failed: {e}. "
                f"Retrying in {delay:.2f}s"
            )
            if on_retry:
                on_retry(attempt, e, delay)

            await asyncio.sleep(delay)

    raise RuntimeError("retry_with_backoff called with max_attempts < 1")
