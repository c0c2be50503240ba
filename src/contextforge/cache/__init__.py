"""Resolver cache: maxAge-bounded map of resolved dependency content."""

from .expiring_cache import ExpiringContextCache
from .models import CacheEntry, CacheKey, CacheStats

__all__ = ["CacheEntry", "CacheKey", "CacheStats", "ExpiringContextCache"]
