"""Interval gates for the single-threaded control loop"""

import time
from typing import Callable, Optional


class IntervalTimer:
    """Fires at most once per interval on a monotonic clock.

    A fresh timer is due immediately unless ``fire_immediately`` is False.
    """

    def __init__(
        self,
        interval: float,
        fire_immediately: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval = interval
        self._clock = clock
        self._last: Optional[float] = None if fire_immediately else clock()

    def due(self, now: Optional[float] = None) -> bool:
        """Return True and restart the interval if it has elapsed."""
        now = self._clock() if now is None else now
        if self._last is None or now - self._last >= self.interval:
            self._last = now
            return True
        return False

    def reset(self, now: Optional[float] = None):
        """Restart the interval without firing."""
        self._last = self._clock() if now is None else now
