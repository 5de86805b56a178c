"""
Retry logic with exponential backoff for document store adapters.

The recommendation core never retries; adapters that talk to a remote
store wrap their transport calls with ``exponential_backoff`` instead.
"""

import time
import functools
from typing import Callable, Type, Tuple, Optional


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Optional callback function(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=3, base_delay=1.0)
        def run_query(url, body):
            return requests.post(url, json=body)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

                    current_delay = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt + 1, e, current_delay)

                    time.sleep(current_delay)
                    delay *= exponential_base

        return wrapper
    return decorator


def should_retry_http_status(status_code: int) -> bool:
    """
    Check if HTTP status code indicates a retryable error.

    Args:
        status_code: HTTP status code

    Returns:
        True if should retry
    """
    retryable_codes = {
        408,  # Request Timeout
        429,  # Too Many Requests
        500,  # Internal Server Error
        502,  # Bad Gateway
        503,  # Service Unavailable
        504,  # Gateway Timeout
    }

    return status_code in retryable_codes
