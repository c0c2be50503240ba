"""Template and result models.

Defines Pydantic models for template definitions (front matter + body), the
context dependencies they declare, and the objects produced by rendering and
generation. Template models are frozen so that every render works on an
immutable snapshot.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from llama_index.core.llms import ChatMessage, MessageRole
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AggregationStrategy(str, Enum):
    """Strategies for merging dependency contents into one segment."""

    CONCATENATE = "concatenate"
    SUMMARIZE = "summarize"
    PRIORITIZE = "prioritize"
    TEMPLATE = "template"


class Dependency(BaseModel):
    """A related document whose content feeds an injection point.

    Attributes:
        document_key: Identifier of the document to fetch.
        required: Absence aborts the injection point when True; skipped otherwise.
        weight: Relative importance in [0, 1] for prioritize/summarize/template.
        transform: Optional registered transform name applied after fetching.
        transform_args: Keyword arguments passed to the transform.
        max_age: Cache staleness bound in seconds; None uses the configured default.
    """

    model_config = ConfigDict(frozen=True)

    document_key: str = Field(min_length=1)
    required: bool = Field(default=True)
    weight: float = Field(default=1.0, ge=0.0, le=1.0)
    transform: str | None = Field(default=None)
    transform_args: dict[str, Any] = Field(default_factory=dict)
    max_age: float | None = Field(default=None, ge=0)

    @property
    def transform_identity(self) -> str:
        """Stable identity of the transform, used in cache keys."""
        if not self.transform:
            return ""
        args = ",".join(
            f"{key}={self.transform_args[key]!r}" for key in sorted(self.transform_args)
        )
        return f"{self.transform}({args})"


class InjectionPoint(BaseModel):
    """A named slot in the template body filled with aggregated context."""

    model_config = ConfigDict(frozen=True)

    placeholder: str = Field(min_length=1)
    dependencies: tuple[Dependency, ...] = Field(default=())
    strategy: AggregationStrategy = Field(default=AggregationStrategy.CONCATENATE)
    max_length: int = Field(default=4000, gt=0)
    required: bool = Field(default=True)
    slot_templates: dict[str, str] = Field(
        default_factory=dict,
        description="document key -> Jinja slot snippet (template strategy)",
    )


class ConditionalFragment(BaseModel):
    """Optional body fragment included only when its condition holds."""

    model_config = ConfigDict(frozen=True)

    placeholder: str = Field(min_length=1)
    condition: str = Field(min_length=1)
    content: str = Field(default="")
    otherwise: str = Field(default="")


class QualityCriteria(BaseModel):
    """Structural and length criteria for generated content."""

    model_config = ConfigDict(frozen=True)

    min_length: int = Field(default=0, ge=0)
    max_length: int | None = Field(default=None, gt=0)
    required_sections: tuple[str, ...] = Field(default=())
    forbidden_phrases: tuple[str, ...] = Field(default=())
    required_keywords: tuple[str, ...] = Field(default=())


class Template(BaseModel):
    """Complete prompt template definition.

    Attributes:
        id: Unique identifier used to reference the template programmatically.
        name: Human-friendly template name.
        category: Grouping tag (e.g. a body of knowledge such as PMBOK).
        document_type: Document type this template generates.
        system_persona: AI role the generation provider should assume.
        body: Jinja body with ``{{ placeholder }}`` markers.
        required_variables: Variables the caller must supply.
        optional_variables: Variables rendered as empty text when absent.
        defaults: Default variable values applied when rendering.
        injection_points: Ordered context injection points.
        fragments: Ordered conditional fragments.
        quality: Criteria for validating generated content.
        generation: Default generation options (e.g. ``max_tokens``,
            ``temperature``); caller options override them.
        max_context_chars: Budget for all injected segments together; later
            injection points are trimmed first.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(default="")
    description: str = Field(default="")
    category: str = Field(default="general")
    document_type: str | None = Field(default=None)
    tags: tuple[str, ...] = Field(default=())
    version: int = Field(default=1, ge=1)
    priority: int = Field(default=0, ge=0)
    system_persona: str = Field(default="")
    body: str = Field(default="")
    required_variables: tuple[str, ...] = Field(default=())
    optional_variables: tuple[str, ...] = Field(default=())
    defaults: dict[str, Any] = Field(default_factory=dict)
    injection_points: tuple[InjectionPoint, ...] = Field(default=())
    fragments: tuple[ConditionalFragment, ...] = Field(default=())
    quality: QualityCriteria = Field(default_factory=QualityCriteria)
    generation: dict[str, Any] = Field(default_factory=dict)
    max_context_chars: int | None = Field(default=None, gt=0)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()

    def summary(self) -> TemplateSummary:
        """Return the lightweight listing view of this template."""
        return TemplateSummary(
            id=self.id,
            name=self.name or self.id.replace("-", " ").title(),
            description=self.description,
            category=self.category,
            document_type=self.document_type,
            tags=self.tags,
            version=self.version,
        )


class TemplateSummary(BaseModel):
    """Listing view of a template returned by ``TemplateStore.list``."""

    id: str
    name: str
    description: str = ""
    category: str
    document_type: str | None = None
    tags: tuple[str, ...] = ()
    version: int = 1


class RenderedPrompt(BaseModel):
    """Final prompt ready to hand to a generation provider."""

    template_id: str
    system_persona: str
    prompt: str
    segments: dict[str, str] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    def to_messages(self) -> list[ChatMessage]:
        """Return system + user chat messages for LLM chat APIs."""
        messages: list[ChatMessage] = []
        if self.system_persona:
            messages.append(
                ChatMessage(role=MessageRole.SYSTEM, content=self.system_persona)
            )
        messages.append(ChatMessage(role=MessageRole.USER, content=self.prompt))
        return messages


class GenerationResult(BaseModel):
    """Generated content plus quality diagnostics."""

    template_id: str
    content: str | None = None
    quality_score: int = Field(default=0, ge=0, le=100)
    warnings: list[str] = Field(default_factory=list)
    success: bool = False
    error: str | None = None
    prompt: RenderedPrompt | None = None


__all__ = [
    "AggregationStrategy",
    "ConditionalFragment",
    "Dependency",
    "GenerationResult",
    "InjectionPoint",
    "QualityCriteria",
    "RenderedPrompt",
    "Template",
    "TemplateSummary",
]
