"""Fake clock for testing.

Provides a single test double for both TimeProvider and SleeperPort:
sleeping advances the clock instead of blocking, so polls with minute-long
ceilings run instantly and deterministically.
"""

from __future__ import annotations

import threading
from collections.abc import Callable


class FakeClock:
    """Fake implementation of TimeProvider and SleeperPort.

    Example:
        >>> clock = FakeClock(start=1000.0)
        >>> clock.sleep(10)
        >>> clock.get_time_seconds()
        1010.0
        >>> clock.sleeps
        [10]
    """

    def __init__(self, start: float = 0.0) -> None:
        """Initialize the clock.

        Args:
            start: Initial Unix timestamp.
        """
        self._now = start
        self._sleeps: list[float] = []
        self._on_sleep: list[Callable[[float], None]] = []
        self._lock = threading.Lock()

    @property
    def sleeps(self) -> list[float]:
        """Return the durations passed to sleep(), in call order."""
        with self._lock:
            return list(self._sleeps)

    @property
    def total_slept(self) -> float:
        with self._lock:
            return sum(self._sleeps)

    def get_time_seconds(self) -> float:
        with self._lock:
            return self._now

    def sleep(self, seconds: float) -> None:
        """Advance the clock and run sleep hooks with the new time."""
        with self._lock:
            self._sleeps.append(seconds)
            self._now += max(seconds, 0.0)
            now = self._now
            hooks = list(self._on_sleep)
        for hook in hooks:
            hook(now)

    def advance(self, seconds: float) -> None:
        """Move the clock forward without recording a sleep."""
        with self._lock:
            self._now += seconds

    def set_time(self, timestamp: float) -> None:
        with self._lock:
            self._now = timestamp

    def on_sleep(self, hook: Callable[[float], None]) -> None:
        """Register a callback run after every sleep with the new time.

        Lets tests change collaborator state while a poll is waiting, e.g.
        a VIP moving or a learner catching up.
        """
        with self._lock:
            self._on_sleep.append(hook)
