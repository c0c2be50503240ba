"""Quality validation of generated content.

Scores content deterministically by subtracting additive penalties from 100:

- each missing required section;
- content shorter than ``min_length`` (proportional to the shortfall);
- content longer than ``max_length``;
- each forbidden phrase found (total capped);
- each missing required keyword.

The score floors at 0 and every deduction appends a warning. The functions
here are pure: identical input always yields identical output.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

from contextforge.config.settings import QualityConfig

from .models import QualityCriteria

_HEADING_PREFIX = re.compile(r"^\s*(?:#{1,6}\s*)?(?:\d+(?:\.\d+)*\.?\s+)?")
_EMPHASIS = re.compile(r"^(\*\*|__)(.*)\1$")


@dataclass(frozen=True, slots=True)
class QualityReport:
    """Score in [0, 100] plus the warnings explaining each deduction."""

    score: int
    warnings: tuple[str, ...]

    def __iter__(self) -> Iterator[int | list[str]]:
        yield self.score
        yield list(self.warnings)


def _normalize_heading(line: str) -> str:
    text = line.strip()
    if not text:
        return ""
    emphasized = _EMPHASIS.match(text)
    if emphasized:
        text = emphasized.group(2)
    elif not text.startswith("#"):
        return ""
    text = _HEADING_PREFIX.sub("", text, count=1)
    return text.strip().rstrip(":").strip().lower()


def find_headings(content: str) -> set[str]:
    """Return normalized headings (markdown ``#`` or bold lines) in ``content``."""
    headings = {_normalize_heading(line) for line in content.splitlines()}
    headings.discard("")
    return headings


def validate(
    content: str,
    criteria: QualityCriteria,
    policy: QualityConfig | None = None,
) -> QualityReport:
    """Score generated content against quality criteria.

    Args:
        content: Generated text.
        criteria: Sections, length bounds, forbidden phrases, keywords.
        policy: Penalty values; defaults to ``QualityConfig()``.

    Returns:
        QualityReport with score (0-100) and ordered warnings.
    """
    policy = policy or QualityConfig()
    score = 100
    warnings: list[str] = []

    headings = find_headings(content)
    for section in criteria.required_sections:
        if section.strip().lower() not in headings:
            score -= policy.section_penalty
            warnings.append(f"Missing required section: {section}")

    length = len(content)
    if criteria.min_length and length < criteria.min_length:
        shortfall = criteria.min_length - length
        penalty = max(1, round(policy.length_penalty * shortfall / criteria.min_length))
        score -= min(policy.length_penalty, penalty)
        warnings.append(
            f"Content too short: {length} characters (minimum {criteria.min_length})"
        )

    if criteria.max_length is not None and length > criteria.max_length:
        score -= policy.max_length_penalty
        warnings.append(
            f"Content too long: {length} characters (maximum {criteria.max_length})"
        )

    lowered = content.lower()
    phrase_penalty = 0
    for phrase in criteria.forbidden_phrases:
        if phrase and phrase.lower() in lowered:
            phrase_penalty += policy.forbidden_phrase_penalty
            warnings.append(f"Forbidden phrase present: {phrase!r}")
    score -= min(phrase_penalty, policy.forbidden_phrase_cap)

    for keyword in criteria.required_keywords:
        if keyword and keyword.lower() not in lowered:
            score -= policy.keyword_penalty
            warnings.append(f"Missing required keyword: {keyword!r}")

    return QualityReport(score=max(0, min(100, score)), warnings=tuple(warnings))


__all__ = ["QualityReport", "find_headings", "validate"]
