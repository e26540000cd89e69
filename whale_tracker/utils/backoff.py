"""Exponential backoff with jitter for market data calls."""

import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from whale_tracker.logging_config import get_logger
from whale_tracker.utils.error_handling import MarketDataError

T = TypeVar('T')

logger = get_logger(__name__)


def is_retryable_error(error: Exception) -> bool:
    """Decide whether an outbound HTTP failure is worth another attempt.

    Client errors (4xx except 429) are final. Timeouts, transport errors and
    5xx responses are retried.
    """
    if isinstance(error, MarketDataError):
        return error.is_retryable
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500
    return True


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 5,
    base_delay: float = 0.5,
    max_jitter: float = 0.25,
    is_retryable: Callable[[Exception], bool] = is_retryable_error,
    operation_name: Optional[str] = None,
) -> T:
    """
    Run an operation, retrying with ``base_delay * 2**attempt + jitter``.

    Args:
        operation: Zero-argument coroutine factory
        attempts: Maximum number of attempts
        base_delay: First retry delay in seconds
        max_jitter: Upper bound of the random delay added to each wait
        is_retryable: Predicate deciding whether an error may be retried
        operation_name: Label for log lines

    Returns:
        The operation's result

    Raises:
        Exception: The last error once attempts are exhausted or a
            non-retryable error occurs
    """
    name = operation_name or getattr(operation, "__name__", "operation")
    last_error: Optional[Exception] = None

    for attempt in range(attempts):
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            if not is_retryable(e):
                logger.debug(f"{name} failed with non-retryable error: {str(e)}")
                break
            if attempt < attempts - 1:
                delay = base_delay * (2 ** attempt) + random.uniform(0, max_jitter)
                logger.warning(
                    f"{name} failed (attempt {attempt + 1}/{attempts}), "
                    f"retrying in {delay:.2f}s: {str(e)}"
                )
                await asyncio.sleep(delay)

    assert last_error is not None
    raise last_error
