"""Template validators.

Enforces the structural invariants of a template definition at load/upsert
time: every body placeholder must map to a declared variable, an injection
point, or a conditional fragment; conditions must parse; transforms must be
registered. Violations are configuration errors, never runtime content gaps.
"""

from __future__ import annotations

from collections import Counter

from jinja2 import TemplateSyntaxError
from jinja2 import meta as jinja_meta

from .conditions import parse_condition
from .errors import ConditionSyntaxError, TemplateValidationError
from .models import Template
from .renderer import build_environment, compile_template
from .transforms import has_transform

_SLOT_NAMES = {"content", "document_key", "weight"}


def check_undeclared_variables(body: str) -> set[str]:
    """Return the placeholder names referenced by a Jinja body.

    The body is compiled as well as parsed, so unknown filters and tests are
    reported here rather than at render time.

    Raises:
        jinja2.TemplateSyntaxError: If the body cannot be parsed or compiled.
    """
    compile_template(body)
    ast = build_environment().parse(body)
    return set(jinja_meta.find_undeclared_variables(ast))


def declared_variables(template: Template) -> set[str]:
    """Return the variable names a caller may supply for ``template``."""
    return (
        set(template.required_variables)
        | set(template.optional_variables)
        | set(template.defaults)
    )


def _duplicates(names: list[str]) -> list[str]:
    return sorted(name for name, count in Counter(names).items() if count > 1)


def _check_snippet(
    errors: list[str], label: str, snippet: str, allowed: set[str]
) -> set[str]:
    if not snippet:
        return set()
    try:
        used = check_undeclared_variables(snippet)
    except TemplateSyntaxError as exc:
        errors.append(f"{label}: template syntax error: {exc.message}")
        return set()
    if unknown := sorted(used - allowed):
        errors.append(f"{label}: unresolved placeholders {unknown}")
    return used


def collect_template_errors(template: Template) -> list[str]:
    """Return every structural problem found in ``template`` (empty when valid)."""
    errors: list[str] = []
    if not template.id.strip():
        errors.append("template id is required")

    variables = declared_variables(template)
    points = [p.placeholder for p in template.injection_points]
    fragments = [f.placeholder for f in template.fragments]

    for dup in _duplicates(points):
        errors.append(f"duplicate injection point placeholder '{dup}'")
    for dup in _duplicates(fragments):
        errors.append(f"duplicate fragment placeholder '{dup}'")
    for name in sorted(variables & set(points)):
        errors.append(f"'{name}' is both a variable and an injection point")
    for name in sorted(variables & set(fragments)):
        errors.append(f"'{name}' is both a variable and a fragment")
    for name in sorted(set(points) & set(fragments)):
        errors.append(f"'{name}' is both an injection point and a fragment")

    allowed = variables | set(points) | set(fragments)
    referenced: set[str] | None = None
    try:
        used = check_undeclared_variables(template.body)
    except TemplateSyntaxError as exc:
        errors.append(f"body: template syntax error: {exc.message}")
    else:
        referenced = set(used)
        if unknown := sorted(used - allowed):
            errors.append(f"body: unresolved placeholders {unknown}")

    for fragment in template.fragments:
        label = f"fragment '{fragment.placeholder}'"
        try:
            parse_condition(fragment.condition)
        except ConditionSyntaxError as exc:
            errors.append(f"{label}: {exc}")
        for branch, snippet in (
            ("content", fragment.content),
            ("otherwise", fragment.otherwise),
        ):
            used = _check_snippet(errors, f"{label} {branch}", snippet, variables)
            if referenced is not None:
                referenced |= used

    if referenced is not None:
        # required values must reach the rendered prompt
        for name in template.required_variables:
            if name not in referenced:
                errors.append(f"required variable '{name}' is never referenced")

    for point in template.injection_points:
        label = f"injection point '{point.placeholder}'"
        keys = [d.document_key for d in point.dependencies]
        for dup in _duplicates(keys):
            errors.append(f"{label}: duplicate dependency '{dup}'")
        for dep in point.dependencies:
            if dep.transform and not has_transform(dep.transform):
                errors.append(
                    f"{label}: unknown transform '{dep.transform}' "
                    f"for dependency '{dep.document_key}'"
                )
        for key, snippet in point.slot_templates.items():
            if key not in keys:
                errors.append(f"{label}: slot template for undeclared '{key}'")
            _check_snippet(errors, f"{label} slot '{key}'", snippet, _SLOT_NAMES)
    return errors


def _used_or_empty(template: Template) -> set[str]:
    try:
        return check_undeclared_variables(template.body)
    except TemplateSyntaxError:
        return set()


def validate_template(template: Template) -> None:
    """Validate a template definition.

    Raises:
        TemplateValidationError: If any structural invariant is violated.
    """
    if errors := collect_template_errors(template):
        raise TemplateValidationError(template.id, errors)


def unreferenced_injection_points(template: Template) -> list[str]:
    """Return injection points declared but never referenced by the body."""
    used = _used_or_empty(template)
    return [
        p.placeholder for p in template.injection_points if p.placeholder not in used
    ]


__all__ = [
    "check_undeclared_variables",
    "collect_template_errors",
    "declared_variables",
    "unreferenced_injection_points",
    "validate_template",
]
