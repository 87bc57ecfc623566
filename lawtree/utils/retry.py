"""Fixed-backoff retry for single units of crawl work."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF = 5.0  # seconds


def run_with_retry(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff: float = DEFAULT_BACKOFF,
    *,
    description: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` until it succeeds or ``max_attempts`` are used up.

    Args:
        operation: Zero-argument callable performing one unit of work.
        max_attempts: Total number of attempts, including the first.
        backoff: Seconds to wait between a failed attempt and the next one.
        description: Human-readable label used in log lines.
        sleep: Sleep function, replaceable in tests.

    Returns:
        Whatever ``operation`` returns on its first successful attempt.

    Raises:
        The exception raised by the last attempt, unchanged.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except Exception as e:
            last_error = e
            logger.warning(
                "Attempt %d/%d failed for %s: %s",
                attempt, max_attempts, description or "operation", e,
            )
            if attempt < max_attempts:
                logger.info("Retrying %s in %.1fs", description or "operation", backoff)
                sleep(backoff)
    raise last_error
