"""Request pacing for sequential crawls."""

from __future__ import annotations

import time
from typing import Callable


class RateLimiter:
    """Fixed-delay pacer inserted between page loads.

    Args:
        delay: Seconds to pause after each paced operation. Zero disables pacing.
        sleep: Sleep function, replaceable in tests.
    """

    def __init__(self, delay: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.delay = delay
        self._sleep = sleep
        self.pauses = 0

    def pause(self) -> None:
        """Block for ``delay`` seconds."""
        self.pauses += 1
        if self.delay > 0:
            self._sleep(self.delay)
