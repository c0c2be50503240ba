"""Cache interface for dependency injection.

Provides an abstract base class for resolver cache implementations to enable
clean dependency injection and testing. Cache operations are synchronous:
the only suspension points during resolution are provider calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contextforge.cache.models import CacheKey, CacheStats


class ContextCacheInterface(ABC):
    """Abstract interface for resolved-context caches."""

    @abstractmethod
    def get(self, key: CacheKey, max_age: float) -> str | None:
        """Get cached content younger than ``max_age`` seconds.

        Args:
            key: ``(document_key, transform_identity)`` pair
            max_age: Staleness bound in seconds

        Returns:
            Cached content or None on miss/stale entry
        """

    @abstractmethod
    def put(self, key: CacheKey, content: str) -> None:
        """Store content stamped with the current time.

        Args:
            key: ``(document_key, transform_identity)`` pair
            content: Resolved (possibly transformed) content
        """

    @abstractmethod
    def clear(self) -> None:
        """Clear all cached entries."""

    @abstractmethod
    def get_cache_stats(self) -> CacheStats:
        """Get cache statistics.

        Returns:
            CacheStats containing hit/miss counters and size
        """
