"""Error taxonomy for template resolution and rendering.

Quality issues are never errors; they surface as a score plus warnings.
"""

from __future__ import annotations

from collections.abc import Iterable


class PromptEngineError(Exception):
    """Base class for all template engine errors."""


class TemplateNotFoundError(PromptEngineError, LookupError):
    """Raised when a template id is not registered in the store."""

    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template not found: {template_id}")
        self.template_id = template_id


class TemplateValidationError(PromptEngineError, ValueError):
    """Raised when a template definition violates structural invariants."""

    def __init__(self, template_id: str, errors: Iterable[str]) -> None:
        self.template_id = template_id
        self.errors = list(errors)
        detail = "; ".join(self.errors) or "invalid template"
        super().__init__(f"Invalid template '{template_id}': {detail}")


class ConditionSyntaxError(PromptEngineError, ValueError):
    """Raised when a conditional expression cannot be parsed."""

    def __init__(self, expression: str, reason: str) -> None:
        self.expression = expression
        self.reason = reason
        super().__init__(f"Malformed condition {expression!r}: {reason}")


class MissingRequiredDependencyError(PromptEngineError):
    """Raised when a required dependency cannot be resolved."""

    def __init__(self, document_key: str, placeholder: str | None = None) -> None:
        self.document_key = document_key
        self.placeholder = placeholder
        where = f" for injection point '{placeholder}'" if placeholder else ""
        super().__init__(f"Required dependency not found: {document_key}{where}")


class RenderError(PromptEngineError):
    """Raised when a template cannot be rendered into a prompt."""


class MissingVariableError(RenderError):
    """Raised when required template variables were not supplied."""

    def __init__(self, template_id: str, missing: Iterable[str]) -> None:
        self.template_id = template_id
        self.missing = sorted(missing)
        super().__init__(
            f"Missing required variables for '{template_id}': {self.missing}"
        )


class GenerationError(PromptEngineError):
    """Opaque failure reported by a generation provider."""


__all__ = [
    "ConditionSyntaxError",
    "GenerationError",
    "MissingRequiredDependencyError",
    "MissingVariableError",
    "PromptEngineError",
    "RenderError",
    "TemplateNotFoundError",
    "TemplateValidationError",
]
