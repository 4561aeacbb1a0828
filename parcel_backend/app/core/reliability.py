"""
Reliability Utilities.

Bounded, retried calls to external providers with exponential backoff.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Any

from parcel_backend.app.core.exceptions import ProviderError

logger = logging.getLogger(__name__)


class RetryExhaustedError(Exception):
    """Raised when every attempt of a retried call failed."""

    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")


def is_transient(exc: Exception) -> bool:
    """Timeouts and provider errors flagged transient are worth retrying."""
    if isinstance(exc, asyncio.TimeoutError):
        return True
    if isinstance(exc, ProviderError):
        return exc.transient
    return False


def backoff_delay(attempt: int, base_seconds: float) -> float:
    """Delay before the attempt following `attempt` (1-based): base * 2^(attempt-1)."""
    return base_seconds * (2 ** (attempt - 1))


async def call_with_retry(
    func: Callable[[], Awaitable[Any]],
    max_attempts: int = 3,
    timeout_seconds: float = 30.0,
    backoff_seconds: float = 1.0,
    retryable: Callable[[Exception], bool] = is_transient,
    label: str = "call",
) -> Any:
    """
    Run `func` with a per-attempt timeout, retrying transient failures.

    Non-retryable errors are raised immediately. When all attempts fail
    with retryable errors, RetryExhaustedError wraps the last one.
    """
    last_error: Exception = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await asyncio.wait_for(func(), timeout=timeout_seconds)
        except Exception as e:
            if not retryable(e):
                raise
            last_error = e
            logger.warning(
                "%s failed (attempt %d/%d): %s", label, attempt, max_attempts, str(e) or type(e).__name__
            )
            if attempt < max_attempts:
                await asyncio.sleep(backoff_delay(attempt, backoff_seconds))

    raise RetryExhaustedError(max_attempts, last_error)
