"""Cache-specific Pydantic models for the dependency resolution cache.

Models:
    CacheKey: ``(document_key, transform_identity)`` tuple alias
    CacheEntry: Cached content with its storage timestamp
    CacheStats: Cache statistics and hit-rate metrics
"""

from pydantic import BaseModel, ConfigDict, Field

CacheKey = tuple[str, str]


class CacheEntry(BaseModel):
    """Cached dependency content."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="Resolved (possibly transformed) content")
    stored_at: float = Field(description="Clock reading when the entry was stored")

    def age(self, now: float) -> float:
        """Return the entry age in seconds at clock reading ``now``."""
        return max(0.0, now - self.stored_at)


class CacheStats(BaseModel):
    """Cache statistics and performance metrics."""

    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    expirations: int = Field(default=0, ge=0, description="Entries dropped as stale")
    evictions: int = Field(default=0, ge=0, description="Entries dropped for size")
    size: int = Field(default=0, ge=0)
    max_entries: int = Field(default=0, ge=0)

    @property
    def hit_rate(self) -> float:
        """Return hits / lookups (0.0 when nothing was looked up)."""
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


__all__ = ["CacheEntry", "CacheKey", "CacheStats"]
