"""Dependency resolution for template injection points.

For each dependency, in declaration order:

1. Look up ``(document_key, transform_identity)`` in the cache, honouring the
   dependency's ``max_age``.
2. On a miss, fetch from the content provider. A missing required dependency
   fails the injection point; a missing optional one is skipped.
3. Apply the dependency transform. Transform failures skip the dependency
   with a warning.
4. Cache the (possibly transformed) content.

Results keep declaration order regardless of cache hits, so aggregation is
deterministic for any cache state.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from contextforge.cache.expiring_cache import ExpiringContextCache
from contextforge.config.settings import CacheConfig
from contextforge.interfaces import ContextCacheInterface

from .errors import MissingRequiredDependencyError
from .models import Dependency, InjectionPoint
from .providers import ContentProvider
from .transforms import apply_transform


@dataclass(frozen=True, slots=True)
class ResolvedContent:
    """Content resolved for a single dependency."""

    document_key: str
    content: str
    weight: float
    from_cache: bool = False


@dataclass(slots=True)
class ResolvedDependencies:
    """Resolution outcome for one injection point.

    Args:
        placeholder: Injection point placeholder.
        contents: Resolved contents in dependency declaration order.
        skipped: Optional dependencies that contributed nothing.
        warnings: Human-readable diagnostics (transform failures, skips).
    """

    placeholder: str
    contents: list[ResolvedContent] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def weights(self) -> list[float]:
        return [item.weight for item in self.contents]

    @property
    def texts(self) -> list[str]:
        return [item.content for item in self.contents]


class DependencyResolver:
    """Resolves injection point dependencies through a maxAge-bounded cache."""

    def __init__(
        self,
        cache: ContextCacheInterface | None = None,
        cfg: CacheConfig | None = None,
    ) -> None:
        self.cfg = cfg or CacheConfig()
        if cache is None:
            cache = ExpiringContextCache(max_entries=self.cfg.max_entries)
        self.cache = cache

    def _max_age(self, dependency: Dependency) -> float:
        if dependency.max_age is not None:
            return dependency.max_age
        return self.cfg.default_max_age_seconds

    async def _resolve_one(
        self,
        dependency: Dependency,
        provider: ContentProvider,
        placeholder: str,
    ) -> tuple[ResolvedContent | None, str | None]:
        key = (dependency.document_key, dependency.transform_identity)
        if self.cfg.enabled:
            cached = self.cache.get(key, self._max_age(dependency))
            if cached is not None:
                logger.debug("Context cache hit for '{}'", dependency.document_key)
                return (
                    ResolvedContent(
                        dependency.document_key, cached, dependency.weight, True
                    ),
                    None,
                )

        raw = await provider.fetch(dependency.document_key)
        if raw is None:
            if dependency.required:
                raise MissingRequiredDependencyError(
                    dependency.document_key, placeholder
                )
            logger.debug(
                "Optional dependency '{}' not found; skipping", dependency.document_key
            )
            return None, None

        content = raw
        if dependency.transform:
            try:
                content = apply_transform(
                    dependency.transform, raw, dependency.transform_args
                )
            except Exception as exc:  # any transform failure skips the dependency
                warning = (
                    f"Transform '{dependency.transform}' failed for "
                    f"'{dependency.document_key}' ({type(exc).__name__}: {exc}); "
                    "dependency skipped"
                )
                logger.warning(warning)
                return None, warning

        if self.cfg.enabled:
            self.cache.put(key, content)
        item = ResolvedContent(dependency.document_key, content, dependency.weight)
        return item, None

    async def resolve(
        self,
        point: InjectionPoint,
        variables: Mapping[str, Any],
        provider: ContentProvider,
    ) -> ResolvedDependencies:
        """Resolve every dependency of ``point``.

        Args:
            point: Injection point whose dependencies are resolved.
            variables: Render-scoped project variables (read-only snapshot).
            provider: Content provider consulted on cache misses.

        Returns:
            ResolvedDependencies in declaration order.

        Raises:
            MissingRequiredDependencyError: If a required dependency is absent.
        """
        del variables  # document keys are static
        resolved = ResolvedDependencies(placeholder=point.placeholder)
        for dependency in point.dependencies:
            item, warning = await self._resolve_one(
                dependency, provider, point.placeholder
            )
            if item is not None:
                resolved.contents.append(item)
                continue
            resolved.skipped.append(dependency.document_key)
            if warning:
                resolved.warnings.append(warning)
        return resolved


__all__ = [
    "DependencyResolver",
    "ResolvedContent",
    "ResolvedDependencies",
]
