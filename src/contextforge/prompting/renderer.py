"""Prompt rendering using a strict Jinja environment.

Substitutes variables, aggregated injection segments, and conditional
fragments into a template body. Undefined placeholders raise instead of
rendering silently, so a render either produces a complete prompt or fails.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from functools import lru_cache
from typing import Any

from jinja2 import Environment, StrictUndefined
from jinja2 import Template as JinjaTemplate
from jinja2.exceptions import TemplateError

from .conditions import evaluate
from .errors import MissingVariableError, RenderError
from .models import RenderedPrompt, Template


@lru_cache(maxsize=1)
def build_environment() -> Environment:
    """Return the shared Jinja environment used for parsing and rendering."""
    # Plain-text prompts, not HTML
    return Environment(  # noqa: S701
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


@lru_cache(maxsize=256)
def compile_template(source: str) -> JinjaTemplate:
    """Compile a Jinja snippet (cached by source text)."""
    return build_environment().from_string(source)


def _render_snippet(source: str, context: Mapping[str, Any], label: str) -> str:
    if not source:
        return ""
    try:
        return compile_template(source).render(**context)
    except TemplateError as exc:
        raise RenderError(f"Failed to render {label}: {exc}") from exc


def resolve_variables(
    template: Template, variables: Mapping[str, Any]
) -> dict[str, Any]:
    """Merge defaults with caller variables and check required names.

    Raises:
        MissingVariableError: If a required variable is absent or None.
    """
    merged = {**template.defaults, **dict(variables)}
    missing = [
        name for name in template.required_variables if merged.get(name) is None
    ]
    if missing:
        raise MissingVariableError(template.id, missing)
    return merged


def render_fragments(
    template: Template, variables: Mapping[str, Any]
) -> dict[str, str]:
    """Evaluate each conditional fragment and render the selected branch."""
    out: dict[str, str] = {}
    for fragment in template.fragments:
        if evaluate(fragment.condition, variables):
            branch = fragment.content
        else:
            branch = fragment.otherwise
        out[fragment.placeholder] = _render_snippet(
            branch, variables, f"fragment '{fragment.placeholder}'"
        ).strip()
    return out


def render(
    template: Template,
    segments: Mapping[str, str],
    variables: Mapping[str, Any],
    *,
    warnings: Iterable[str] = (),
) -> RenderedPrompt:
    """Render a template into a prompt.

    Args:
        template: Template definition (validated).
        segments: Aggregated text per injection point placeholder. Points
            without an entry render as an empty string.
        variables: Render-scoped project variables.
        warnings: Diagnostics collected earlier in the pipeline.

    Returns:
        RenderedPrompt with the prompt text and the system persona.

    Raises:
        MissingVariableError: If a required variable was not supplied.
        RenderError: If the body cannot be rendered.
    """
    merged = resolve_variables(template, variables)
    fragments = render_fragments(template, merged)

    context: dict[str, Any] = {name: "" for name in template.optional_variables}
    context.update(merged)
    filled = {
        point.placeholder: segments.get(point.placeholder, "") or ""
        for point in template.injection_points
    }
    context.update(filled)
    context.update(fragments)

    prompt = _render_snippet(template.body, context, f"template '{template.id}'")
    return RenderedPrompt(
        template_id=template.id,
        system_persona=template.system_persona.strip(),
        prompt=prompt,
        segments=filled,
        warnings=list(warnings),
    )


__all__ = [
    "build_environment",
    "compile_template",
    "render",
    "render_fragments",
    "resolve_variables",
]
