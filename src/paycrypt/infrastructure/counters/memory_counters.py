"""In-process keyed counter store.

Default admission backend for a single-process deployment. A threading.Lock
guards every check-and-update, so the store is safe whether sessions run as
asyncio tasks or worker threads.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from ...domain.ports.counter_port import KeyedCounterStore


class InMemoryCounterStore(KeyedCounterStore):
    """Lock-protected per-key sliding windows and slot counters.

    Example:
        counters = InMemoryCounterStore()
        if counters.hit_window("10.0.0.1", limit=100, window_seconds=60):
            ...
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Deque[float]] = {}
        self._slots: Dict[str, int] = {}
        self._last_sweep = clock()

    def hit_window(self, key: str, limit: int, window_seconds: float) -> bool:
        with self._lock:
            now = self._clock()
            cutoff = now - window_seconds
            if now - self._last_sweep >= window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now

            hits = self._windows.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= limit:
                if not hits:
                    del self._windows[key]
                return False

            hits.append(now)
            return True

    def _sweep(self, cutoff: float) -> None:
        """Forget keys whose newest event is outside the window."""
        stale = [key for key, hits in self._windows.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._windows[key]

    def acquire(self, key: str, limit: int) -> bool:
        with self._lock:
            count = self._slots.get(key, 0)
            if count >= limit:
                return False
            self._slots[key] = count + 1
            return True

    def release(self, key: str) -> None:
        with self._lock:
            count = self._slots.get(key, 0) - 1
            if count > 0:
                self._slots[key] = count
            else:
                self._slots.pop(key, None)

    def current(self, key: str) -> int:
        with self._lock:
            return self._slots.get(key, 0)

    def window_size(self, key: str) -> int:
        """Events currently recorded for key (expired events included until next hit)."""
        with self._lock:
            return len(self._windows.get(key, ()))
