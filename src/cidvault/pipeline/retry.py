"""Bounded retry with exponential backoff.

upload_with_retry runs an attempt function until it succeeds or the
attempt budget is spent. It keeps no state between calls, so every
object gets an independent budget.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from cidvault.core.config import DEFAULT_MAX_ATTEMPTS, DEFAULT_RETRY_BACKOFF
from cidvault.stores.objects import TransientUploadError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_BACKOFF = 30.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0

RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (TransientUploadError,)


def upload_with_retry(
    attempt: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    retryable_exceptions: tuple[type[Exception], ...] = RETRYABLE_EXCEPTIONS,
    initial_backoff: float = DEFAULT_RETRY_BACKOFF,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Execute a function, retrying retryable failures.

    Attempts run one after the other, never concurrently. The first
    success returns immediately; non-retryable exceptions propagate at once.

    Args:
        attempt: Function to execute.
        max_attempts: Total number of attempts (first call included).
        retryable_exceptions: Tuple of exception types to retry on.
        initial_backoff: Delay before the second attempt in seconds.
        max_backoff: Upper bound for the delay.
        backoff_multiplier: Multiplier applied after each failed attempt.
        sleep: Function used to wait between attempts.

    Returns:
        Result of the first successful attempt.

    Raises:
        ValueError: If max_attempts < 1.
        The last exception if all attempts fail.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    backoff = initial_backoff
    for number in range(1, max_attempts + 1):
        try:
            return attempt()
        except retryable_exceptions as e:
            if number == max_attempts:
                logger.error(f"All {max_attempts} attempts failed: {e}")
                raise

            logger.warning(
                f"Attempt {number}/{max_attempts} failed: {e}. "
                f"Retrying in {backoff:.1f}s..."
            )
            if backoff > 0:
                sleep(backoff)
            backoff = min(backoff * backoff_multiplier, max_backoff)

    raise RuntimeError("Unexpected retry loop exit")
