"""Expiring in-memory cache for resolved dependency content.

Entries are keyed by ``(document_key, transform_identity)`` and carry the
time they were stored. Staleness is decided per lookup against the caller's
``max_age`` so dependencies with different bounds can share entries.
Concurrent writers of the same key are idempotent: last write wins.
"""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from loguru import logger

from contextforge.cache.models import CacheEntry, CacheKey, CacheStats
from contextforge.interfaces import ContextCacheInterface


class ExpiringContextCache(ContextCacheInterface):
    """Bounded, maxAge-aware map of resolved dependency content."""

    def __init__(
        self,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty cache.

        Args:
            max_entries: Size bound; the oldest entries are evicted first.
            clock: Monotonic time source (injectable for tests).
        """
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._entries: OrderedDict[CacheKey, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._clock = clock
        self._max_entries = max_entries
        self._hits = 0
        self._misses = 0
        self._expirations = 0
        self._evictions = 0

    def get(self, key: CacheKey, max_age: float) -> str | None:
        """Return cached content younger than ``max_age`` seconds."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.age(now) >= max_age:
                # Stale for this caller; drop it so a fresh fetch replaces it
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return None
            self._hits += 1
            return entry.content

    def put(self, key: CacheKey, content: str) -> None:
        """Store content stamped with the current clock reading."""
        entry = CacheEntry(content=content, stored_at=self._clock())
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Evicted cached context for '{}'", evicted[0])

    def purge_expired(self, max_age: float) -> int:
        """Drop every entry older than ``max_age`` seconds.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.age(now) >= max_age]
            for key in stale:
                del self._entries[key]
            self._expirations += len(stale)
        return len(stale)

    def invalidate(self, document_key: str) -> int:
        """Drop all entries for ``document_key`` regardless of transform.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            keys = [k for k in self._entries if k[0] == document_key]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        """Clear all cached entries and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = 0
            self._expirations = self._evictions = 0
        logger.info("Context cache cleared")

    def get_cache_stats(self) -> CacheStats:
        """Return hit/miss counters and current size."""
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                expirations=self._expirations,
                evictions=self._evictions,
                size=len(self._entries),
                max_entries=self._max_entries,
            )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


__all__ = ["ExpiringContextCache"]
