"""
Reliability Utilities.

Bounded retry with linear backoff for transient upstream failures.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Raised when every attempt failed. Wraps the last error."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


async def retry_with_linear_backoff(
    func: Callable[[], Awaitable[T]],
    attempts: int = 3,
    backoff_seconds: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    operation: str = "operation",
) -> T:
    """
    Call `func` up to `attempts` times.

    Sleeps `backoff_seconds * n` after the n-th failure, so delays grow
    linearly (1s, 2s, ...). Errors outside `retry_on` propagate at once.

    Raises:
        RetryExhaustedError: when the last attempt also failed
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except retry_on as e:
            last_error = e
            logger.warning(
                "%s failed (attempt %d/%d): %s", operation, attempt, attempts, e
            )
            if attempt < attempts:
                await asyncio.sleep(backoff_seconds * attempt)

    raise RetryExhaustedError(attempts, last_error)
