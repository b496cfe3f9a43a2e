"""Retry utilities with exponential backoff for transient errors."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


def retry_with_exponential_backoff(
    func: Callable[[], Any],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    non_retryable_exceptions: Tuple[Type[Exception], ...] = (),
    sleep: Callable[[float], Any] = time.sleep,
    description: str = "operation",
) -> Any:
    """Retry a function with exponential backoff on transient errors.

    Args:
        func: Function to retry (must be callable with no arguments)
        max_retries: Maximum number of retry attempts (0 calls ``func`` once)
        initial_delay: Delay in seconds before the first retry
        max_delay: Maximum delay in seconds between retries
        retryable_exceptions: Exception types that trigger a retry
        non_retryable_exceptions: Exception types re-raised immediately even when
            they are also retryable (checked first)
        sleep: Wait function; a ``threading.Event.wait`` lets callers interrupt backoff
        description: Label used in log messages

    Returns:
        Result of calling func()

    Raises:
        Exception: The last exception raised by func() if all retries are exhausted
    """
    last_exception: Optional[Exception] = None
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return func()
        except non_retryable_exceptions:
            raise
        except retryable_exceptions as e:
            last_exception = e
            if attempt < max_retries:
                logger.warning(
                    "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
                    description,
                    attempt + 1,
                    max_retries + 1,
                    e,
                    delay,
                )
                sleep(delay)
                delay = min(delay * 2, max_delay)
            elif max_retries:
                logger.error(
                    "All %d %s attempts failed. Last error: %s", max_retries + 1, description, e
                )

    if last_exception:
        raise last_exception

    raise RuntimeError("Retry logic error: no exception but function failed")
