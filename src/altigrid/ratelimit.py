"""Clock abstraction and a minimum-interval request limiter."""

from __future__ import annotations

import threading
import time


class Clock:
    """Wall-clock source used for pacing and backoff."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)

    def wait(self, event: threading.Event, seconds: float) -> bool:
        """Sleep up to ``seconds``, waking early when ``event`` is set."""

        return event.wait(seconds) if seconds > 0 else event.is_set()


class RateLimiter:
    """Keep at least ``min_interval`` seconds between request starts.

    Slots are reserved under a lock, so concurrent workers queue up behind
    each other instead of bursting.
    """

    def __init__(self, min_interval: float, clock: Clock | None = None) -> None:
        if min_interval < 0:
            raise ValueError(f"min_interval must not be negative, got {min_interval}")
        self.min_interval = min_interval
        self.clock = clock or Clock()
        self._lock = threading.Lock()
        self._next_slot: float | None = None

    def wait(self) -> float:
        """Block until the next request may start; return the time waited."""

        with self._lock:
            now = self.clock.monotonic()
            start = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = start + self.min_interval
        delay = start - now
        if delay > 0:
            self.clock.sleep(delay)
        return delay
