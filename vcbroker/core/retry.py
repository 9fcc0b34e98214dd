"""
Retry with exponential backoff for idempotent sandbox calls.

Only transport-level trouble is retried. A 4xx from a sandbox carries
meaning (pending, bad request, unknown credential) and is returned to the
caller on the first attempt.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar('T')


def should_retry_error(error: Exception) -> bool:
    """
    Determine if an error should be retried.

    Retries on:
    - Timeout errors
    - 5xx server errors
    - Network errors

    Does NOT retry on:
    - 4xx client errors
    - Anything raised by our own code
    """
    if isinstance(error, httpx.TimeoutException):
        return True

    if isinstance(error, httpx.HTTPStatusError):
        return 500 <= error.response.status_code < 600

    if isinstance(error, httpx.NetworkError):
        return True

    return False


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    **kwargs
) -> T:
    """
    Await ``func(*args, **kwargs)``, retrying retryable errors.

    Raises the last exception once ``max_attempts`` is exhausted, or the
    first non-retryable one immediately.
    """
    last_exception = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            last_exception = e

            if not should_retry_error(e):
                logger.debug(f"Error {e!r} is not retryable, stopping")
                raise

            if attempt >= max_attempts:
                logger.warning(f"Max attempts ({max_attempts}) reached, giving up")
                break

            delay = min(initial_delay * (exponential_base ** (attempt - 1)), max_delay)
            if jitter:
                delay += delay * 0.1 * random.random()

            logger.info(
                f"Attempt {attempt}/{max_attempts} failed: {e!r}. "
                f"Retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    raise last_exception
