"""Bounded exponential backoff retry for upstream calls."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from aggregator.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry parameters. ``max_retries`` counts retries after the first attempt."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    operation: str = "request",
) -> T:
    """Await ``fn()`` with exponential backoff retry.

    Delays start at ``initial_delay`` and multiply by ``backoff_factor`` up to
    ``max_delay``. Re-raises the last error once retries are exhausted.
    """
    delay = policy.initial_delay

    for attempt in range(policy.max_retries + 1):
        try:
            return await fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempt == policy.max_retries:
                logger.error(
                    "retries_exhausted",
                    operation=operation,
                    attempts=attempt + 1,
                    error=str(e),
                )
                raise

            logger.warning(
                "retrying_after_error",
                operation=operation,
                attempt=attempt + 1,
                max_retries=policy.max_retries,
                delay=delay,
                error=str(e),
            )
            await asyncio.sleep(delay)
            delay = min(delay * policy.backoff_factor, policy.max_delay)

    raise AssertionError("unreachable")
