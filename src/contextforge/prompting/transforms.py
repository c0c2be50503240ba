"""Registry of named context transforms.

Transforms are pure ``content -> content`` functions applied to dependency
content after it is fetched. Templates reference them by name so definitions
stay plain data; the name plus arguments form the transform identity used in
resolver cache keys.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from loguru import logger

ContextTransform = Callable[..., str]

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
_REGISTRY: dict[str, ContextTransform] = {}


def register_transform(name: str, fn: ContextTransform) -> None:
    """Register a transform under ``name`` (replaces an existing entry)."""
    _REGISTRY[name] = fn
    logger.debug("Registered context transform '{}'", name)


def unregister_transform(name: str) -> None:
    """Remove a transform from the registry."""
    _REGISTRY.pop(name, None)


def has_transform(name: str) -> bool:
    """Return True when a transform is registered under ``name``."""
    return name in _REGISTRY


def list_transforms() -> list[str]:
    """Return the sorted list of registered transform names."""
    return sorted(_REGISTRY)


def apply_transform(name: str, content: str, args: dict[str, Any] | None = None) -> str:
    """Apply a registered transform.

    Raises:
        KeyError: If no transform is registered under ``name``.
    """
    fn = _REGISTRY[name]
    result = fn(content, **(args or {}))
    if not isinstance(result, str):
        raise TypeError(f"Transform '{name}' returned {type(result).__name__}")
    return result


def extract_section(content: str, heading: str) -> str:
    """Return the markdown section under ``heading`` (heading line included).

    The section ends at the next heading of the same or higher level. Returns
    an empty string when the heading is absent.
    """
    wanted = heading.strip().lower()
    lines = content.splitlines()
    start = None
    level = 0
    for idx, line in enumerate(lines):
        match = _HEADING_RE.match(line)
        if not match:
            continue
        if start is None:
            if match.group(2).strip().lower() == wanted:
                start = idx
                level = len(match.group(1))
        elif len(match.group(1)) <= level:
            return "\n".join(lines[start:idx]).strip()
    if start is None:
        return ""
    return "\n".join(lines[start:]).strip()


def first_paragraphs(content: str, count: int = 2) -> str:
    """Return the first ``count`` non-empty paragraphs."""
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", content) if p.strip()]
    return "\n\n".join(paragraphs[: max(0, int(count))])


def strip_markdown(content: str) -> str:
    """Remove common markdown decoration (headings, emphasis, links, code fences)."""
    text = re.sub(r"```.*?```", "", content, flags=re.DOTALL)
    text = re.sub(r"^#{1,6}\s*", "", text, flags=re.MULTILINE)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    text = re.sub(r"(\*\*|__|\*|`)", "", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def keep_lines_matching(content: str, pattern: str) -> str:
    """Keep only lines matching the regular expression ``pattern``."""
    regex = re.compile(pattern, flags=re.IGNORECASE)
    return "\n".join(line for line in content.splitlines() if regex.search(line))


def truncate(content: str, limit: int) -> str:
    """Cut content to at most ``limit`` characters."""
    return content[: max(0, int(limit))]


for _name, _fn in (
    ("extract_section", extract_section),
    ("first_paragraphs", first_paragraphs),
    ("strip_markdown", strip_markdown),
    ("keep_lines_matching", keep_lines_matching),
    ("truncate", truncate),
):
    register_transform(_name, _fn)


__all__ = [
    "ContextTransform",
    "apply_transform",
    "extract_section",
    "first_paragraphs",
    "has_transform",
    "keep_lines_matching",
    "list_transforms",
    "register_transform",
    "strip_markdown",
    "truncate",
    "unregister_transform",
]
