"""
Pacing for viewer page requests.

Keeps a minimum interval between successive navigations with a little
random jitter so page loads do not arrive in lockstep.
"""

from __future__ import annotations

import random
import time


class RequestPacer:
    def __init__(self, min_interval: float = 1.0, jitter_ms: int = 300):
        """
        Args:
            min_interval: seconds that must pass between two acquire() calls
            jitter_ms: random extra delay added when a wait was needed
        """
        self.min_interval = max(min_interval, 0.0)
        self.jitter_ms = jitter_ms
        self.last = None

    def acquire(self) -> float:
        """Block until the next request may go out. Returns seconds slept."""
        now = time.monotonic()
        slept = 0.0
        if self.last is not None and self.min_interval > 0:
            wait = self.min_interval - (now - self.last)
            if wait > 0:
                if self.jitter_ms > 0:
                    wait += random.uniform(0, self.jitter_ms) / 1000.0
                time.sleep(wait)
                slept = wait
        self.last = time.monotonic()
        return slept
