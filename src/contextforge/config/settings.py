"""Unified ContextForge configuration using Pydantic Settings v2.

Provides a typed, nested configuration model with environment variable
mapping. Prefer nested fields and `CONTEXTFORGE_{SECTION}__{FIELD}` env vars.

Usage:
    from contextforge.config.settings import EngineSettings
    cfg = EngineSettings()
    print(cfg.cache.default_max_age_seconds)
"""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BUNDLED_TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "prompting" / "templates"


class TemplateConfig(BaseModel):
    """Template store location and selection policy."""

    directory: Path = Field(default=BUNDLED_TEMPLATE_DIR)
    fallback_template_id: str = Field(default="generic-document")
    hot_reload: bool = Field(default=False)


class CacheConfig(BaseModel):
    """Dependency resolution cache settings."""

    enabled: bool = Field(default=True)
    default_max_age_seconds: float = Field(default=3600.0, ge=0, le=604800)
    max_entries: int = Field(default=512, ge=1, le=100_000)


class AggregationConfig(BaseModel):
    """Context aggregation defaults."""

    separator: str = Field(default="\n\n---\n\n")
    truncation_marker: str = Field(default="...")
    # Smallest remainder worth filling with a truncated unit
    min_fill_chars: int = Field(default=100, ge=0, le=10_000)


class QualityConfig(BaseModel):
    """Penalty values for the quality validator."""

    section_penalty: int = Field(default=20, ge=0, le=100)
    length_penalty: int = Field(default=20, ge=0, le=100)
    max_length_penalty: int = Field(default=10, ge=0, le=100)
    forbidden_phrase_penalty: int = Field(default=10, ge=0, le=100)
    forbidden_phrase_cap: int = Field(default=30, ge=0, le=100)
    keyword_penalty: int = Field(default=5, ge=0, le=100)


class TelemetryConfig(BaseModel):
    """Local JSONL telemetry settings."""

    enabled: bool = Field(default=True)
    path: Path = Field(default=Path("./logs/telemetry.jsonl"))
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)


class EngineSettings(BaseSettings):
    """ContextForge configuration with Pydantic Settings V2.

    - Environment variable mapping with CONTEXTFORGE_ prefix
    - Nested configuration models per engine component
    - Passed explicitly to the engine; components never read globals
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CONTEXTFORGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Core Application
    app_name: str = Field(default="ContextForge")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_file: Path | None = Field(default=None)

    # Nested Configuration
    templates: TemplateConfig = Field(default_factory=TemplateConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    def model_post_init(self, __context) -> None:
        """Normalize the log level after environment loading."""
        self.log_level = self.log_level.upper()
        if self.debug and self.log_level == "INFO":
            self.log_level = "DEBUG"


# Settings instance for application entry points (logging, telemetry)
settings = EngineSettings()

__all__ = [
    "BUNDLED_TEMPLATE_DIR",
    "AggregationConfig",
    "CacheConfig",
    "EngineSettings",
    "QualityConfig",
    "TelemetryConfig",
    "TemplateConfig",
    "settings",
]
