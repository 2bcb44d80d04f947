"""Fixed-schedule retry wrapper for backend HTTP calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
import openai

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Delay before the retry that follows attempt N (0-based). Never derived from input.
BACKOFF_SCHEDULE: tuple[float, ...] = (1.0, 2.0, 4.0)
MAX_ATTEMPTS = 3


def backoff_delay(attempt: int) -> float:
    """Return the delay that follows a failed attempt.

    Args:
        attempt: Zero-based index of the attempt that just failed

    Returns:
        Delay in seconds, taken from BACKOFF_SCHEDULE
    """
    index = min(max(attempt, 0), len(BACKOFF_SCHEDULE) - 1)
    return BACKOFF_SCHEDULE[index]


def is_retryable(error: BaseException) -> bool:
    """Decide whether a backend error is worth another attempt.

    Only server errors (5xx), dropped connections and timeouts qualify.
    """
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return True
    if isinstance(error, (openai.APITimeoutError, openai.APIConnectionError)):
        return True
    if isinstance(error, openai.APIStatusError):
        return error.status_code >= 500
    return isinstance(error, (ConnectionResetError, asyncio.TimeoutError))


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    description: str = "backend request",
    attempts: int = MAX_ATTEMPTS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run an async operation, retrying transient failures.

    Args:
        operation: Zero-argument coroutine factory
        description: Label used in log messages
        attempts: Maximum number of attempts (capped at MAX_ATTEMPTS)
        sleep: Sleep function, replaceable in tests

    Returns:
        The operation's result

    Raises:
        The last error once attempts are exhausted, or immediately for
        non-retryable errors.
    """
    attempts = max(1, min(attempts, MAX_ATTEMPTS))

    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or attempt >= attempts - 1:
                raise
            delay = backoff_delay(attempt)
            logger.warning(
                "%s failed (%s), retrying in %.0fs (attempt %d/%d)",
                description,
                type(e).__name__,
                delay,
                attempt + 1,
                attempts,
            )
            await sleep(delay)

    raise RuntimeError("unreachable")
