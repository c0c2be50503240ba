"""Abstract interfaces for dependency injection."""

from .cache import ContextCacheInterface

__all__ = ["ContextCacheInterface"]
