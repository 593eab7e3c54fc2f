"""Per-key sliding-window rate limiting.

State lives on the limiter instance, which the owner (e.g. the FastAPI
application state) creates and keeps; there are no module-level counters.
Keys whose events have all left the window are dropped, at most once per
window, so the number of tracked keys follows recent activity only.
"""

import time
from collections import deque
from typing import Callable


class SlidingWindowRateLimiter:
    """Admit at most ``max_events`` per ``window_seconds`` for each key."""

    def __init__(
        self,
        max_events: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_events < 1:
            raise ValueError("max_events must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_events = max_events
        self.window_seconds = window_seconds
        self._clock = clock
        self._events: dict[str, deque[float]] = {}
        self._next_sweep = clock() + window_seconds

    def __len__(self) -> int:
        return len(self._events)

    def _sweep(self, cutoff: float) -> None:
        # Events are appended in clock order, so the newest one is last.
        stale = [key for key, events in self._events.items() if not events or events[-1] <= cutoff]
        for key in stale:
            del self._events[key]

    def allow(self, key: str) -> bool:
        """Record an event for *key* and return whether it is admitted."""
        now = self._clock()
        cutoff = now - self.window_seconds
        if now >= self._next_sweep:
            self._sweep(cutoff)
            self._next_sweep = now + self.window_seconds

        events = self._events.setdefault(key, deque())
        while events and events[0] <= cutoff:
            events.popleft()
        if len(events) >= self.max_events:
            return False
        events.append(now)
        return True

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._events.clear()
        else:
            self._events.pop(key, None)
