"""
Request budget for the TvDB API.

A rolling window of ``max_requests`` per ``period`` seconds, shared by every
caller in the process. Callers are admitted in arrival order.
"""
import logging
import threading
import time
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self, max_requests: int, period: float, clock: Callable[[], float] = time.monotonic):
        if max_requests < 1 or period <= 0:
            raise ValueError("Rate limit needs at least one request per positive period")
        self.max_requests = max_requests
        self.period = period
        self._clock = clock
        self._cond = threading.Condition()
        self._sent = deque()
        self._next_ticket = 0
        self._now_serving = 0

    def ensure_rate(self):
        """Block until another request may be issued, then claim the slot."""
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            while ticket != self._now_serving:
                self._cond.wait()
            try:
                while True:
                    now = self._clock()
                    while self._sent and now - self._sent[0] >= self.period:
                        self._sent.popleft()
                    if len(self._sent) < self.max_requests:
                        break
                    delay = self.period - (now - self._sent[0])
                    logger.debug(f"TvDB rate limit reached, waiting {delay:.2f}s")
                    self._cond.wait(delay)
                self._sent.append(now)
            finally:
                self._now_serving += 1
                self._cond.notify_all()
