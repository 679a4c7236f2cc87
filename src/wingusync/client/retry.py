"""Bounded retry combinator.

Login and upload both follow a "try, then try exactly once more" policy.
Expressing it through one combinator keeps the bound explicit and
testable in isolation.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from wingusync.client.errors import SyncError, UserCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 2
DEFAULT_BACKOFF = 0.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_MAX_BACKOFF = 60.0  # seconds


def retry(
    func: Callable[[], T],
    attempts: int = DEFAULT_ATTEMPTS,
    retryable_exceptions: tuple[type[Exception], ...] = (SyncError,),
    fatal_exceptions: tuple[type[Exception], ...] = (UserCancelled,),
    backoff: float = DEFAULT_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    description: str = "operation",
) -> T:
    """Call ``func`` up to ``attempts`` times.

    Earlier failures are logged and masked; the outcome of the last
    attempt is returned or raised as-is.

    Args:
        func: Operation to run. Must not retry internally.
        attempts: Total number of calls, at least 1.
        retryable_exceptions: Exception types that trigger another attempt.
        fatal_exceptions: Exception types raised immediately, even if they
            are also retryable.
        backoff: Sleep before the second attempt, in seconds.
        backoff_multiplier: Multiplier applied to the sleep per attempt.
        max_backoff: Upper bound for the sleep.
        description: Label used in log messages.

    Returns:
        Result of the first successful call.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    delay = backoff
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except fatal_exceptions:
            raise
        except retryable_exceptions as e:
            if attempt == attempts:
                if attempts > 1:
                    logger.error(f"{description} failed after {attempts} attempts: {e}")
                raise
            logger.warning(
                f"{description}: attempt {attempt}/{attempts} failed: {e}. Retrying"
                + (f" in {delay:.1f}s" if delay > 0 else "")
            )
            if delay > 0:
                time.sleep(delay)
                delay = min(delay * backoff_multiplier, max_backoff)

    raise RuntimeError("Unexpected retry loop exit")
