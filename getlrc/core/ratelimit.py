"""
Outbound request rate limiting for getlrc.

LRCLIB is a free community service, so lookups are admitted through a
sliding-window gate: at most max_calls admissions in any window of
`period` seconds. The limiter never rejects a caller; acquire() simply
blocks until a permit is available (pure backpressure).

Algorithm:
    Keep the admission times of the last max_calls permits. A new permit
    is granted when fewer than max_calls admissions happened within the
    last `period` seconds; otherwise sleep until the oldest one ages out.

    Because the (k + max_calls)-th admission can only happen `period`
    seconds after the k-th, no window of length `period` ever contains
    more than max_calls admissions, and there is no initial burst beyond
    max_calls either.

Usage:
    limiter = RateLimiter(max_calls=10, period=1.0)

    limiter.acquire()          # may block
    client.lookup(...)
"""

import threading
import time
from collections import deque
from typing import Callable


class RateLimiter:
    """
    Thread-safe sliding-window rate limiter.

    Attributes:
        max_calls: Permits per period.
        period: Window length in seconds.
        total_acquired: Permits handed out since creation.

    Thread Safety:
        acquire() holds an internal lock while waiting, so concurrent
        callers are admitted one at a time in arrival order.
    """

    def __init__(
        self,
        max_calls: int,
        period: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ) -> None:
        """
        Initialize the limiter.

        Args:
            max_calls: Maximum admissions per window. Must be >= 1.
            period: Window length in seconds. Must be > 0.
            clock: Monotonic time source (injectable for tests).
            sleep: Blocking sleep function (injectable for tests).

        Raises:
            ValueError: If max_calls or period is not positive.
        """
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if period <= 0:
            raise ValueError("period must be positive")

        self.max_calls = max_calls
        self.period = period
        self.total_acquired = 0
        self._clock = clock
        self._sleep = sleep
        self._admitted: deque[float] = deque()
        self._lock = threading.Lock()

    @classmethod
    def per_second(cls, max_calls: int) -> "RateLimiter":
        return cls(max_calls=max_calls, period=1.0)

    def acquire(self) -> float:
        """
        Block until a permit is available and consume it.

        Returns:
            Seconds spent waiting (0.0 when admitted immediately).
        """
        waited = 0.0
        with self._lock:
            while True:
                now = self._clock()
                self._expire(now)

                if len(self._admitted) < self.max_calls:
                    self._admitted.append(now)
                    self.total_acquired += 1
                    return waited

                delay = (self._admitted[0] + self.period) - now
                self._sleep(delay)
                waited += delay

    def _expire(self, now: float) -> None:
        while self._admitted and now >= self._admitted[0] + self.period:
            self._admitted.popleft()
