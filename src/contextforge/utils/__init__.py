"""Utility helpers: logging setup, performance timing, local telemetry."""

from .monitoring import (
    async_performance_timer,
    log_error_with_context,
    log_performance,
    performance_timer,
    setup_logging,
)
from .telemetry import configure_telemetry, log_jsonl

__all__ = [
    "async_performance_timer",
    "configure_telemetry",
    "log_error_with_context",
    "log_jsonl",
    "log_performance",
    "performance_timer",
    "setup_logging",
]
