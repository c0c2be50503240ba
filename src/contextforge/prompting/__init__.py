"""Prompting public API.

Template store, dependency resolution, context aggregation, rendering, and
quality validation for generating documents from related project context.
"""

from .aggregator import Aggregation, aggregate
from .engine import TemplateEngine
from .errors import (
    ConditionSyntaxError,
    GenerationError,
    MissingRequiredDependencyError,
    MissingVariableError,
    PromptEngineError,
    RenderError,
    TemplateNotFoundError,
    TemplateValidationError,
)
from .models import (
    AggregationStrategy,
    ConditionalFragment,
    Dependency,
    GenerationResult,
    InjectionPoint,
    QualityCriteria,
    RenderedPrompt,
    Template,
    TemplateSummary,
)
from .providers import (
    ContentProvider,
    DirectoryContentProvider,
    GenerationProvider,
    InMemoryContentProvider,
    LlamaIndexGenerationProvider,
    LlamaIndexSummarizer,
    Summarizer,
)
from .quality import QualityReport, validate
from .renderer import render
from .resolver import DependencyResolver, ResolvedContent, ResolvedDependencies
from .store import TemplateStore
from .transforms import register_transform

__all__ = [
    "Aggregation",
    "AggregationStrategy",
    "ConditionSyntaxError",
    "ConditionalFragment",
    "ContentProvider",
    "Dependency",
    "DependencyResolver",
    "DirectoryContentProvider",
    "GenerationError",
    "GenerationProvider",
    "GenerationResult",
    "InMemoryContentProvider",
    "InjectionPoint",
    "LlamaIndexGenerationProvider",
    "LlamaIndexSummarizer",
    "MissingRequiredDependencyError",
    "MissingVariableError",
    "PromptEngineError",
    "QualityCriteria",
    "QualityReport",
    "RenderError",
    "RenderedPrompt",
    "ResolvedContent",
    "ResolvedDependencies",
    "Summarizer",
    "Template",
    "TemplateEngine",
    "TemplateNotFoundError",
    "TemplateStore",
    "TemplateSummary",
    "TemplateValidationError",
    "aggregate",
    "register_transform",
    "render",
    "validate",
]
