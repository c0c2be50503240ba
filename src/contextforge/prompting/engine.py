"""Template & context resolution engine.

Control flow for one request:

1. Select the template from the store (optional caller-level fallback).
2. Check required variables against an immutable snapshot of the caller's
   variables.
3. Resolve and aggregate every injection point concurrently.
4. Render the body (variables, segments, conditional fragments).
5. Optionally hand the prompt to a generation provider and score the output.

The engine receives its configuration explicitly; no component reads global
state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from loguru import logger

from contextforge.cache.models import CacheStats
from contextforge.config.settings import EngineSettings
from contextforge.interfaces import ContextCacheInterface
from contextforge.utils.monitoring import (
    async_performance_timer,
    log_error_with_context,
)
from contextforge.utils.telemetry import configure_telemetry

from .aggregator import aggregate, truncate_text
from .errors import (
    GenerationError,
    MissingRequiredDependencyError,
    TemplateNotFoundError,
)
from .models import GenerationResult, InjectionPoint, RenderedPrompt, Template
from .providers import ContentProvider, GenerationProvider, Summarizer
from .quality import QualityReport, validate
from .renderer import render, resolve_variables
from .resolver import DependencyResolver
from .store import TemplateStore


class TemplateEngine:
    """Resolves context for templates and renders prompts."""

    def __init__(
        self,
        store: TemplateStore,
        content_provider: ContentProvider,
        *,
        summarizer: Summarizer | None = None,
        generation_provider: GenerationProvider | None = None,
        cache: ContextCacheInterface | None = None,
        cfg: EngineSettings | None = None,
    ) -> None:
        """Create an engine.

        Args:
            store: Template store.
            content_provider: Source of previously generated documents.
            summarizer: Optional capability for the ``summarize`` strategy.
            generation_provider: Default provider used by ``generate``.
            cache: Resolver cache; an expiring in-memory cache by default.
            cfg: Engine configuration; defaults to ``EngineSettings()``.
        """
        self.cfg = cfg or EngineSettings()
        self.store = store
        self.content_provider = content_provider
        self.summarizer = summarizer
        self.generation_provider = generation_provider
        self.resolver = DependencyResolver(cache=cache, cfg=self.cfg.cache)

    @classmethod
    def from_settings(
        cls,
        content_provider: ContentProvider,
        cfg: EngineSettings | None = None,
        **kwargs: Any,
    ) -> TemplateEngine:
        """Build an engine whose store loads the configured template directory.

        Also applies the telemetry section of ``cfg`` to the JSONL emitter.
        """
        cfg = cfg or EngineSettings()
        configure_telemetry(cfg.telemetry)
        store = TemplateStore(cfg.templates.directory)
        return cls(store, content_provider, cfg=cfg, **kwargs)

    def select_template(
        self, template_id: str, *, use_fallback: bool = False
    ) -> Template:
        """Return the template for ``template_id``.

        Args:
            template_id: Requested template id.
            use_fallback: Fall back to the configured generic template when
                the requested one is missing.

        Raises:
            TemplateNotFoundError: If neither template exists.
        """
        if self.cfg.templates.hot_reload:
            self.store.reload_if_changed()
        try:
            return self.store.get(template_id)
        except TemplateNotFoundError:
            fallback = self.cfg.templates.fallback_template_id
            if not use_fallback or not fallback or fallback == template_id:
                raise
            logger.warning(
                "Template '{}' not found; falling back to '{}'", template_id, fallback
            )
            return self.store.get(fallback)

    async def _build_segment(
        self, point: InjectionPoint, variables: Mapping[str, Any]
    ) -> tuple[str, list[str]]:
        try:
            resolved = await self.resolver.resolve(
                point, variables, self.content_provider
            )
        except MissingRequiredDependencyError as exc:
            if point.required:
                raise
            warning = f"Injection point '{point.placeholder}' omitted: {exc}"
            logger.warning(warning)
            return "", [warning]

        aggregation = await aggregate(
            point.strategy,
            resolved.contents,
            point.max_length,
            cfg=self.cfg.aggregation,
            summarizer=self.summarizer,
            slot_templates=point.slot_templates,
        )
        logger.debug(
            "Segment '{}': {} of {} dependencies, {} chars ({})",
            point.placeholder,
            len(resolved.contents),
            len(point.dependencies),
            len(aggregation.text),
            aggregation.strategy.value,
        )
        return aggregation.text, [*resolved.warnings, *aggregation.warnings]

    def _fit_context_budget(
        self, template: Template, segments: dict[str, str]
    ) -> list[str]:
        budget = template.max_context_chars
        total = sum(len(text) for text in segments.values())
        if budget is None or total <= budget:
            return []
        excess = total - budget
        marker = self.cfg.aggregation.truncation_marker
        for point in reversed(template.injection_points):
            if excess <= 0:
                break
            text = segments[point.placeholder]
            if not text:
                continue
            trimmed = truncate_text(text, max(len(text) - excess, 0), marker)
            excess -= len(text) - len(trimmed)
            segments[point.placeholder] = trimmed
        fitted = sum(len(text) for text in segments.values())
        warning = (
            f"Context trimmed from {total} to {fitted} chars "
            f"(budget {budget} for template '{template.id}')"
        )
        logger.warning(warning)
        return [warning]

    async def prepare(
        self,
        template_id: str,
        variables: Mapping[str, Any] | None = None,
        *,
        use_fallback: bool = False,
    ) -> RenderedPrompt:
        """Resolve context and render the prompt for ``template_id``.

        Args:
            template_id: Template to render.
            variables: Project variables supplied by the caller.
            use_fallback: Use the configured generic template when missing.

        Returns:
            RenderedPrompt with the prompt, persona, segments and warnings.

        Raises:
            TemplateNotFoundError: If the template does not exist.
            MissingVariableError: If required variables are missing.
            MissingRequiredDependencyError: If a required injection point
                cannot resolve a required dependency.
            RenderError: If the body cannot be rendered.
        """
        _, rendered = await self._prepare(template_id, variables, use_fallback)
        return rendered

    async def _prepare(
        self,
        template_id: str,
        variables: Mapping[str, Any] | None,
        use_fallback: bool,
    ) -> tuple[Template, RenderedPrompt]:
        template = self.select_template(template_id, use_fallback=use_fallback)
        snapshot = MappingProxyType(dict(variables or {}))
        resolve_variables(template, snapshot)

        async with async_performance_timer(
            "prompt.prepare",
            template_id=template.id,
            injection_points=len(template.injection_points),
        ) as metrics:
            results = await asyncio.gather(
                *(
                    self._build_segment(point, snapshot)
                    for point in template.injection_points
                ),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

            segments: dict[str, str] = {}
            warnings: list[str] = []
            for point, (text, point_warnings) in zip(
                template.injection_points, results, strict=True
            ):
                segments[point.placeholder] = text
                warnings.extend(point_warnings)
            warnings.extend(self._fit_context_budget(template, segments))

            rendered = render(template, segments, snapshot, warnings=warnings)
            metrics["prompt_chars"] = len(rendered.prompt)
            metrics["warning_count"] = len(warnings)
        return template, rendered

    def evaluate(self, content: str, template_id: str) -> QualityReport:
        """Score ``content`` against the quality criteria of ``template_id``."""
        template = self.store.get(template_id)
        return validate(content, template.quality, self.cfg.quality)

    async def generate(
        self,
        template_id: str,
        variables: Mapping[str, Any] | None = None,
        provider: GenerationProvider | None = None,
        *,
        options: Mapping[str, Any] | None = None,
        use_fallback: bool = False,
    ) -> GenerationResult:
        """Render the prompt, generate content, and score it.

        The template's ``generation`` options apply first and ``options``
        override them. Output is scored against the same template definition
        the prompt was rendered from. Generation failures are reported in the
        result (``success=False``) and never retried. Render failures raise as
        in ``prepare``.
        """
        provider = provider or self.generation_provider
        if provider is None:
            raise ValueError("No generation provider configured")

        template, rendered = await self._prepare(template_id, variables, use_fallback)
        merged = {**template.generation, **dict(options or {})}
        try:
            content = await provider.generate(
                rendered.system_persona, rendered.prompt, merged or None
            )
        except GenerationError as exc:
            log_error_with_context(
                exc, "prompt.generate", template_id=rendered.template_id
            )
            return GenerationResult(
                template_id=rendered.template_id,
                content=None,
                quality_score=0,
                warnings=[*rendered.warnings, f"Generation failed: {exc}"],
                success=False,
                error=str(exc),
                prompt=rendered,
            )

        report = validate(content, template.quality, self.cfg.quality)
        if report.warnings:
            logger.info(
                "Quality score {} for '{}' ({} issues)",
                report.score,
                rendered.template_id,
                len(report.warnings),
            )
        return GenerationResult(
            template_id=rendered.template_id,
            content=content,
            quality_score=report.score,
            warnings=[*rendered.warnings, *report.warnings],
            success=True,
            prompt=rendered,
        )

    def cache_stats(self) -> CacheStats:
        """Return resolver cache statistics."""
        return self.resolver.cache.get_cache_stats()


__all__ = ["TemplateEngine"]
