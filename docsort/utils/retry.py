"""Retry logic with exponential backoff for model API calls.

Applied only at the Gemini transport boundary. Classification itself is
never retried: once the model call gives up, the document gets the
fallback result.
"""

import functools
import logging
import random
import time
from typing import Any, Callable, Optional, Set, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

RETRYABLE_STATUS_CODES: Set[int] = {
    429,  # Rate limit
    500,  # Server error
    502,  # Bad gateway
    503,  # Service unavailable
    504,  # Gateway timeout
}

NON_RETRYABLE_STATUS_CODES: Set[int] = {
    400,  # Bad request
    401,  # Unauthorized
    403,  # Forbidden
    404,  # Not found
    422,  # Unprocessable entity
}

NETWORK_ERROR_MARKERS = (
    "timeout",
    "timed out",
    "connection reset",
    "connection refused",
    "connection aborted",
    "temporarily unavailable",
)

MAX_RETRIES = 2
BASE_DELAY = 1.0  # seconds
MAX_JITTER = 0.5  # seconds


def retry_with_backoff(
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    max_jitter: float = MAX_JITTER,
    sleep: Optional[Callable[[float], None]] = None,
) -> Callable[[F], F]:
    """Decorator that retries transient failures with exponential backoff.

    Retries on 429/5xx status codes and network-level errors (timeouts,
    refused or reset connections). Client errors (400, 401, 403, 404, 422)
    and anything unrecognised are raised immediately.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay in seconds, doubled on every attempt
        max_jitter: Maximum random jitter added to each delay
        sleep: Sleep function; defaults to time.sleep

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not is_retryable(e) or attempt >= max_retries:
                        if attempt >= max_retries and max_retries > 0:
                            logger.error(
                                "%s failed after %d retries: %s",
                                func.__name__, max_retries, e,
                            )
                        raise

                    delay = (base_delay * (2 ** attempt)) + (random.random() * max_jitter)
                    attempt += 1
                    logger.warning(
                        "%s attempt %d/%d failed: %s. Retrying in %.2fs...",
                        func.__name__, attempt, max_retries, e, delay,
                    )
                    (sleep or time.sleep)(delay)

        return cast(F, wrapper)

    return decorator


def is_retryable(exception: Exception) -> bool:
    """Determine if an exception should trigger a retry."""
    status_code = _extract_status_code(exception)

    if status_code is not None:
        if status_code in NON_RETRYABLE_STATUS_CODES:
            return False
        if status_code in RETRYABLE_STATUS_CODES:
            return True

    if isinstance(exception, (TimeoutError, ConnectionError)):
        return True

    message = str(exception).lower()
    return any(marker in message for marker in NETWORK_ERROR_MARKERS)


def _extract_status_code(exception: Exception) -> Optional[int]:
    """Extract an HTTP status code from an exception, if it carries one.

    google-genai's APIError exposes it as ``code``; httpx-style errors as
    ``status_code`` or ``response.status_code``.
    """
    for attr in ("status_code", "code"):
        value = getattr(exception, attr, None)
        if isinstance(value, int):
            return value

    response = getattr(exception, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status

    return None
