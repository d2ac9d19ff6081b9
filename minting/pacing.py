"""
NFTMint - Submission Pacing

This module enforces a minimum interval between successive ledger submissions
from the same signing identity.
"""

import logging
import threading
import time
from typing import Callable, Optional


class PacingPolicy:
    """
    Minimum delay between the end of one successful submission and the start
    of the next one.

    The clock and sleep functions are injectable so callers can drive the
    policy from a simulated clock.
    """

    def __init__(self, min_interval: float = 1.0,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        if min_interval < 0:
            raise ValueError("Pacing interval cannot be negative")
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self.logger = logging.getLogger(__name__)

        self._last_success: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """
        Block until the next submission may start.

        Returns:
            Seconds slept
        """
        with self._lock:
            last = self._last_success
        if last is None or self.min_interval == 0:
            return 0.0

        remaining = last + self.min_interval - self.clock()
        if remaining <= 0:
            return 0.0

        self.logger.debug(f"Pacing: waiting {remaining:.2f}s before next submission")
        self.sleep(remaining)
        return remaining

    def mark(self) -> None:
        """Record that a submission just succeeded."""
        with self._lock:
            self._last_success = self.clock()

    def reset(self) -> None:
        with self._lock:
            self._last_success = None
