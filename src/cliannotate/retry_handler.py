"""Retry logic with exponential backoff for transient oracle failures.

This module provides a decorator for retrying coroutines that may fail due to
transient errors (an oracle binary being rebuilt, a slow process start, an
overloaded machine).

Design Philosophy:
- Ruthless simplicity: a single decorator for every oracle call
- Configurable: max attempts, delays and jitter can be tuned
- Observable: clear logging of retry attempts

Usage:
    @async_retry_with_exponential_backoff(max_attempts=3)
    async def describe():
        # Oracle call that might fail transiently
        ...
"""

import asyncio
import functools
import logging
import random
from typing import Any, Callable, TypeVar

from cliannotate.errors import OracleUnavailableError

logger = logging.getLogger(__name__)

# Type variable for generic function wrapping
F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    OracleUnavailableError,
    TimeoutError,
    ConnectionError,
)


def _next_delay(delay: float, max_delay: float, jitter: bool) -> float:
    """Apply ±25% jitter to a delay and cap it at max_delay."""
    actual_delay = delay
    if jitter:
        jitter_amount = delay * 0.25
        actual_delay = delay + random.uniform(-jitter_amount, jitter_amount)
    return min(actual_delay, max_delay)


def async_retry_with_exponential_backoff(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] | None = None,
) -> Callable[[F], F]:
    """Decorator for retrying coroutines with exponential backoff.

    Sleeps with asyncio.sleep so sibling tasks keep running between attempts.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        initial_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay between retries in seconds (default: 30.0)
        jitter: Add random jitter to delays (default: True)
        retryable_exceptions: Tuple of exception types to retry
            (default: oracle/network errors)

    Returns:
        Decorated coroutine function that will retry on transient failures
    """
    if retryable_exceptions is None:
        retryable_exceptions = DEFAULT_RETRYABLE_EXCEPTIONS

    def decorator(func: F) -> F:
        name = getattr(func, "__name__", "operation")

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay

            for attempt in range(1, max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)
                    if attempt > 1:
                        logger.info(
                            f"{name} succeeded on attempt {attempt}/{max_attempts}"
                        )
                    return result

                except retryable_exceptions as e:
                    if attempt >= max_attempts:
                        logger.error(
                            f"{name} failed after {max_attempts} attempts: "
                            f"{safe_error_message(e)}"
                        )
                        raise

                    actual_delay = _next_delay(delay, max_delay, jitter)
                    logger.warning(
                        f"{name} failed on attempt {attempt}/{max_attempts}, "
                        f"retrying in {actual_delay:.2f}s: {safe_error_message(e)}"
                    )
                    await asyncio.sleep(actual_delay)
                    delay *= 2

            raise RuntimeError(f"{name} called with max_attempts={max_attempts}")

        return wrapper  # type: ignore

    return decorator


def safe_error_message(exception: BaseException, limit: int = 200) -> str:
    """Render an exception for logging, truncated to limit characters."""
    error_str = str(exception) or type(exception).__name__
    if len(error_str) > limit:
        error_str = error_str[:limit] + "..."
    return error_str


__all__ = [
    "DEFAULT_RETRYABLE_EXCEPTIONS",
    "async_retry_with_exponential_backoff",
    "safe_error_message",
]
