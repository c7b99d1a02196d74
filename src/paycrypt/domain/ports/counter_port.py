"""Keyed Counter Port - shared admission-control counters.

The per-origin session window and the per-origin open-connection count are the
only mutable state shared between concurrent sessions. Every method is a single
atomic check-and-update.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod


class KeyedCounterStore(ABC):
    """Port interface for atomically updated per-key counters."""

    @abstractmethod
    def hit_window(self, key: str, limit: int, window_seconds: float) -> bool:
        """Record one event for key in a sliding window, if under the limit.

        Args:
            key: Counter key (e.g. origin address)
            limit: Maximum events allowed inside the window
            window_seconds: Sliding window length

        Returns:
            bool: True if the event was recorded, False if the limit was reached
        """
        pass

    @abstractmethod
    def acquire(self, key: str, limit: int) -> bool:
        """Increment the open-slot counter for key, if under the limit.

        Returns:
            bool: True if a slot was taken, False if the limit was reached
        """
        pass

    @abstractmethod
    def release(self, key: str) -> None:
        """Decrement the open-slot counter for key (never below zero)."""
        pass

    @abstractmethod
    def current(self, key: str) -> int:
        """Current open-slot count for key."""
        pass

    def ping(self) -> bool:
        """Check the backing store is reachable. Default: always reachable."""
        return True
