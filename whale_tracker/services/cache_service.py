"""
Cache service for the whale tracker.

This module provides a time-based cache used for token analyses. Entries keep
their creation time so callers can tell how stale a cached value is.
"""

import time
from typing import Callable, Dict, Generic, Iterator, Optional, Tuple, TypeVar

from whale_tracker.logging_config import get_logger

K = TypeVar('K')
V = TypeVar('V')

logger = get_logger(__name__)


class CacheEntry(Generic[V]):
    """Cache entry with value and creation time."""

    def __init__(self, value: V, ttl: float, created_at: float):
        """
        Initialize a cache entry.

        Args:
            value: The value to cache
            ttl: Time to live in seconds
            created_at: Clock reading when the value was stored
        """
        self.value = value
        self.ttl = ttl
        self.created_at = created_at

    def age(self, now: float) -> float:
        return now - self.created_at

    def is_expired(self, now: float) -> bool:
        """Check if the cache entry is expired."""
        return self.age(now) >= self.ttl


class TimedCache(Generic[K, V]):
    """A cache whose entries expire a fixed time after they were stored."""

    def __init__(
        self,
        default_ttl: float = 600,
        max_size: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            default_ttl: Default time to live in seconds
            max_size: Optional bound; the oldest entry is evicted beyond it
            clock: Monotonic time source
        """
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[K, CacheEntry[V]] = {}
        self.hits = 0
        self.misses = 0
        self.expirations = 0

    def get(self, key: K) -> Optional[V]:
        """
        Get a non-expired value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if absent or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if entry.is_expired(self._clock()):
            self.expirations += 1
            self.misses += 1
            del self._entries[key]
            return None

        self.hits += 1
        return entry.value

    def set(self, key: K, value: V, ttl: Optional[float] = None) -> None:
        """
        Set a value in the cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds (uses default_ttl if None)
        """
        self._entries.pop(key, None)
        if self.max_size is not None:
            while len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
        self._entries[key] = CacheEntry(value, ttl if ttl is not None else self.default_ttl, self._clock())

    def delete(self, key: K) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def items(self) -> Iterator[Tuple[K, V]]:
        """Iterate over non-expired entries."""
        now = self._clock()
        for key, entry in list(self._entries.items()):
            if not entry.is_expired(now):
                yield key, entry.value

    def __contains__(self, key: K) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, int]:
        return {
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
        }
