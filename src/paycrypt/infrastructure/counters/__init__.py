"""Keyed counter stores for admission control."""

from .memory_counters import InMemoryCounterStore
from .redis_counters import RedisCounterStore

__all__ = ["InMemoryCounterStore", "RedisCounterStore"]
