"""Retry utilities for handling transient failures.

Provides a decorator for retrying async operations with exponential
backoff. Providers do not retry by default; RestClient applies this
decorator only when a provider is configured with ``max_retries > 0``,
and only for errors the normalizer marks retryable.

Key Exports:
    async_retry: Decorator for adding retry logic to async functions.

Example:
    >>> from vcs_gateway.utils.retry import async_retry
    >>> from vcs_gateway.providers.errors import is_retryable_error
    >>>
    >>> @async_retry(max_attempts=3, backoff_factor=2.0, should_retry=is_retryable_error)
    ... async def fetch_repository():
    ...     return await client.get("/repos/octocat/hello-world")

Backoff Formula:
    delay = backoff_factor ** attempt_number
    For backoff_factor=2.0: 2s, 4s, 8s, 16s, ...
    ``delay_for`` may override the delay for a specific exception (for
    example to honor a server-provided Retry-After).
"""

import asyncio
import functools
from collections.abc import Callable
from typing import Any

import structlog

log = structlog.get_logger(__name__)


def async_retry(
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    should_retry: Callable[[Exception], bool] | None = None,
    delay_for: Callable[[Exception], float | None] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator for async functions with exponential backoff retry logic.

    Args:
        max_attempts: Maximum number of attempts before giving up. The
            function will be called at most max_attempts times.
        backoff_factor: Base for exponential backoff calculation. The delay
            before attempt N+1 is backoff_factor^N seconds.
        exceptions: Tuple of exception types to catch. Other exceptions
            propagate immediately.
        should_retry: Optional predicate. A caught exception for which it
            returns False is re-raised without further attempts.
        delay_for: Optional hook returning a delay (seconds) to use instead
            of the exponential one, or None to keep the default.

    Returns:
        A decorator function that wraps async functions with retry logic.

    Raises:
        The last caught exception if all retry attempts are exhausted.
    """

    def delay_before_next(attempt: int, error: Exception) -> float:
        if delay_for is not None:
            override = delay_for(error)
            if override is not None:
                return override
        return backoff_factor**attempt

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        raise
                    if attempt >= max_attempts:
                        log.error("retry_exhausted", function=func.__name__, attempts=attempt, error=str(e))
                        raise

                    delay = delay_before_next(attempt, e)
                    log.warning(
                        "retry_scheduled",
                        function=func.__name__,
                        attempt=attempt,
                        next_attempt_in=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
