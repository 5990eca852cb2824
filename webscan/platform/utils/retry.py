"""
Bounded retry with a fixed backoff for async operations.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Raised when every attempt of a retried operation failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed after {attempts} attempts: {last_error}")


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int,
    delay_seconds: float,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    on_failure: Optional[Callable[[int, BaseException], Awaitable[Any]]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run ``operation(attempt)`` until it succeeds or ``max_attempts`` is reached.

    Args:
        operation: Coroutine factory receiving the 1-based attempt number
        max_attempts: Upper bound on attempts (>= 1)
        delay_seconds: Fixed pause between attempts
        retry_on: Exception types considered recoverable; anything else propagates at once
        on_failure: Optional hook awaited after each recoverable failure
        sleep: Injected for tests

    Raises:
        RetryExhaustedError: wrapping the last recoverable error
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation(attempt)
        except retry_on as e:
            last_error = e
            logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}")
            if on_failure is not None:
                await on_failure(attempt, e)
            if attempt < max_attempts:
                await sleep(delay_seconds)

    raise RetryExhaustedError(max_attempts, last_error)
