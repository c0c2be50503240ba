"""Context aggregation strategies.

Merges the resolved contents of one injection point into a single segment
bounded by the point's ``max_length``. Every strategy shares one truncation
rule: units are joined in order, whole units are dropped from the end first,
then the last retained unit is character-truncated (with a marker) when
enough room remains.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from loguru import logger

from contextforge.config.settings import AggregationConfig

from .models import AggregationStrategy
from .providers import Summarizer
from .renderer import compile_template
from .resolver import ResolvedContent

_TIERS: tuple[tuple[str, float], ...] = (
    ("Primary Context", 0.8),
    ("Supporting Context", 0.5),
    ("Additional Context", 0.0),
)


@dataclass(frozen=True, slots=True)
class Aggregation:
    """Aggregated segment plus the strategy that actually produced it."""

    text: str
    strategy: AggregationStrategy
    warnings: tuple[str, ...] = ()


def truncate_text(text: str, limit: int, marker: str = "...") -> str:
    """Cut ``text`` to at most ``limit`` characters, ending with ``marker``."""
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    if limit <= len(marker):
        return text[:limit]
    return text[: limit - len(marker)].rstrip() + marker


def fit_units(
    units: Sequence[str],
    max_length: int,
    *,
    separator: str = "\n\n---\n\n",
    marker: str = "...",
    min_fill_chars: int = 100,
) -> str:
    """Join ``units`` in order without exceeding ``max_length`` characters.

    Units that do not fit are dropped from the end. The first unit that does
    not fit is kept in truncated form when at least ``min_fill_chars``
    characters remain, or when it is the only unit kept.
    """
    out = ""
    for unit in units:
        if not unit:
            continue
        sep = separator if out else ""
        candidate = f"{out}{sep}{unit}"
        if len(candidate) <= max_length:
            out = candidate
            continue
        if not out:
            out = truncate_text(unit, max_length, marker)
        else:
            remaining = max_length - len(out) - len(sep)
            if remaining >= max(min_fill_chars, 1):
                out = f"{out}{sep}{truncate_text(unit, remaining, marker)}"
        break
    return out


def _fit(units: Sequence[str], max_length: int, cfg: AggregationConfig) -> str:
    return fit_units(
        units,
        max_length,
        separator=cfg.separator,
        marker=cfg.truncation_marker,
        min_fill_chars=cfg.min_fill_chars,
    )


def concatenate(
    items: Sequence[ResolvedContent], max_length: int, cfg: AggregationConfig
) -> str:
    """Join contents in declaration order."""
    return _fit([item.content for item in items], max_length, cfg)


def prioritize(
    items: Sequence[ResolvedContent], max_length: int, cfg: AggregationConfig
) -> str:
    """Join contents by descending weight (stable), so low weights drop first."""
    ordered = sorted(items, key=lambda item: -item.weight)
    return _fit([item.content for item in ordered], max_length, cfg)


def _tier_for(weight: float) -> str:
    for name, floor in _TIERS:
        if weight >= floor:
            return name
    return _TIERS[-1][0]


def structure(
    items: Sequence[ResolvedContent],
    max_length: int,
    cfg: AggregationConfig,
    slot_templates: Mapping[str, str] | None = None,
) -> str:
    """Render contents into named slots grouped by weight tier.

    Each content is rendered through its slot template (``{{ content }}``,
    ``{{ document_key }}``, ``{{ weight }}``) or used verbatim. Slots appear
    under "Primary", "Supporting", then "Additional Context" headings in
    declaration order; empty tiers and empty slots are omitted.
    """
    slots = slot_templates or {}
    units: list[str] = []
    for tier, _ in _TIERS:
        header_pending = True
        for item in items:
            if _tier_for(item.weight) != tier:
                continue
            snippet = slots.get(item.document_key)
            text = item.content
            if snippet:
                text = compile_template(snippet).render(
                    content=item.content,
                    document_key=item.document_key,
                    weight=item.weight,
                )
            text = text.strip()
            if not text:
                continue
            if header_pending:
                text = f"## {tier}\n\n{text}"
                header_pending = False
            units.append(text)
    return fit_units(
        units,
        max_length,
        separator="\n\n",
        marker=cfg.truncation_marker,
        min_fill_chars=cfg.min_fill_chars,
    )


async def summarize(
    items: Sequence[ResolvedContent],
    max_length: int,
    cfg: AggregationConfig,
    summarizer: Summarizer | None,
) -> Aggregation:
    """Summarize each unit within a weight-proportional share of the budget.

    Falls back to ``concatenate`` with a warning when no summarizer is
    available. A failing summarizer call degrades that unit to truncation.
    """
    joined = cfg.separator.join(item.content for item in items if item.content)
    if len(joined) <= max_length:
        return Aggregation(joined, AggregationStrategy.SUMMARIZE)
    if summarizer is None:
        warning = "Summarization unavailable; fell back to concatenate"
        logger.warning(warning)
        return Aggregation(
            concatenate(items, max_length, cfg),
            AggregationStrategy.CONCATENATE,
            (warning,),
        )

    count = len(items)
    available = max(0, max_length - len(cfg.separator) * (count - 1))
    total_weight = sum(item.weight for item in items)
    budgets = [
        int(available * (item.weight / total_weight if total_weight else 1 / count))
        for item in items
    ]

    async def _one(item: ResolvedContent, budget: int) -> tuple[str, str | None]:
        if len(item.content) <= budget:
            return item.content, None
        if budget <= 0:
            return "", None
        try:
            summary = await summarizer.summarize(item.content, budget)
        except Exception as exc:  # degrade to truncation for this unit
            warning = (
                f"Summarization failed for '{item.document_key}' "
                f"({type(exc).__name__}); truncated instead"
            )
            logger.warning(warning)
            return truncate_text(item.content, budget, cfg.truncation_marker), warning
        return truncate_text(summary.strip(), budget, cfg.truncation_marker), None

    results = await asyncio.gather(
        *(_one(item, budget) for item, budget in zip(items, budgets, strict=True))
    )
    warnings = tuple(w for _, w in results if w)
    text = _fit([text for text, _ in results], max_length, cfg)
    return Aggregation(text, AggregationStrategy.SUMMARIZE, warnings)


async def aggregate(
    strategy: AggregationStrategy | str,
    items: Sequence[ResolvedContent],
    max_length: int,
    *,
    cfg: AggregationConfig | None = None,
    summarizer: Summarizer | None = None,
    slot_templates: Mapping[str, str] | None = None,
) -> Aggregation:
    """Merge resolved contents into one segment of at most ``max_length`` chars.

    Args:
        strategy: Aggregation strategy.
        items: Resolved contents in declaration order (weights included).
        max_length: Character budget; the result never exceeds it.
        cfg: Separator, truncation marker and fill threshold.
        summarizer: Optional summarization capability.
        slot_templates: documentKey -> slot snippet for the template strategy.

    Returns:
        Aggregation with text, effective strategy and warnings.
    """
    cfg = cfg or AggregationConfig()
    strategy = AggregationStrategy(strategy)
    if max_length <= 0 or not items:
        return Aggregation("", strategy)
    if strategy is AggregationStrategy.CONCATENATE:
        return Aggregation(concatenate(items, max_length, cfg), strategy)
    if strategy is AggregationStrategy.PRIORITIZE:
        return Aggregation(prioritize(items, max_length, cfg), strategy)
    if strategy is AggregationStrategy.TEMPLATE:
        text = structure(items, max_length, cfg, slot_templates)
        return Aggregation(text, strategy)
    return await summarize(items, max_length, cfg, summarizer)


__all__ = [
    "Aggregation",
    "aggregate",
    "concatenate",
    "fit_units",
    "prioritize",
    "structure",
    "summarize",
    "truncate_text",
]
