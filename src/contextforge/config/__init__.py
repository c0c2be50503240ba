"""Unified configuration interface for ContextForge.

Usage:
    # Application entry points
    from contextforge.config import settings

    # Explicit engine configuration
    from contextforge.config import EngineSettings
    engine = TemplateEngine(store, provider, cfg=EngineSettings())
"""

from .settings import EngineSettings, settings

__all__ = [
    "EngineSettings",
    "settings",
]
