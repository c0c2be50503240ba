"""ContextForge - template and context resolution for document generation.

Selects a document template, pulls in previously generated project documents
as context, and renders a prompt for a text-generation provider.
"""

__version__ = "1.0.0"

# Make key components available at package level
from .config import EngineSettings, settings
from .prompting import TemplateEngine, TemplateStore

__all__ = [
    "EngineSettings",
    "TemplateEngine",
    "TemplateStore",
    "settings",
]
