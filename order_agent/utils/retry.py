"""
Retry utility functions with exponential backoff.
Categorizes errors as transient (retryable) or permanent (non-retryable).
"""

import functools
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger()

T = TypeVar("T")


class TransientError(Exception):
    """Raised for transient/retryable errors (network issues, rate limits, 5xx)."""

    pass


class PermanentError(Exception):
    """Raised for permanent/non-retryable errors (4xx validation errors, auth failures)."""

    pass


def _status_code_of(exception: Exception) -> int | None:
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code
    # API errors raised by our own clients carry the status directly
    status_code = getattr(exception, "status_code", None)
    return status_code if isinstance(status_code, int) and status_code > 0 else None


def is_transient_error(exception: Exception) -> bool:
    """
    Determine if an exception represents a transient error that should be retried.

    Args:
        exception: The exception to check

    Returns:
        True if error is transient (retryable), False otherwise
    """
    # Network/connection errors (timeouts included) are transient
    if isinstance(exception, httpx.TransportError):
        return True

    if isinstance(exception, TimeoutError):
        return True

    if isinstance(exception, TransientError):
        return True

    if isinstance(exception, PermanentError):
        return False

    status_code = _status_code_of(exception)
    if status_code is not None:
        # 5xx and rate limiting (429) are transient, other 4xx are permanent
        return 500 <= status_code < 600 or status_code == 429

    # Default to non-retryable for unknown errors
    return False


def retry_with_backoff(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    multiplier: float = 2.0,
    max_delay: float = 60.0,
):
    """
    Decorator for retrying coroutine functions with exponential backoff.
    Only retries on transient errors. The final error is re-raised as TransientError or
    PermanentError with the original exception chained as __cause__.

    Args:
        max_attempts: Maximum number of retry attempts
        initial_delay: Initial delay in seconds
        multiplier: Multiplier for exponential backoff
        max_delay: Maximum delay in seconds

    Returns:
        Decorated function with retry logic
    """

    def retry_decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=multiplier, min=initial_delay, max=max_delay),
                retry=retry_if_exception_type(TransientError),
                reraise=True,
                before_sleep=_log_retry_attempt,
            ):
                with attempt:
                    try:
                        return await func(*args, **kwargs)
                    except Exception as e:
                        if is_transient_error(e):
                            # Wrap as TransientError to trigger retry
                            raise TransientError(f"Transient error: {str(e)}") from e
                        # Wrap as PermanentError to prevent retry
                        raise PermanentError(f"Permanent error: {str(e)}") from e

        return wrapper

    return retry_decorator


def _log_retry_attempt(retry_state: RetryCallState):
    """Log retry attempt before sleeping."""
    if retry_state.outcome is not None:
        exception = retry_state.outcome.exception()
        logger.warning(
            "Retrying after transient error",
            attempt=retry_state.attempt_number,
            exception=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )
