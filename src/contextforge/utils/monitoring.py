"""Logging setup and performance timing helpers.

Key features:
- Loguru sink configuration (console + optional rotating file)
- Performance timing with sync/async context managers
- Structured JSONL telemetry emission for timed operations
- Memory delta tracking via psutil
"""

import sys
import time
from collections.abc import AsyncGenerator, Generator
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any

import psutil
from loguru import logger

from contextforge.utils.telemetry import log_jsonl

_BYTES_PER_MB = 1024**2


def setup_logging(log_level: str = "INFO", log_file: str | Path | None = None) -> None:
    """Configure Loguru sinks.

    Args:
        log_level: Logging level (e.g., "DEBUG", "INFO", "WARNING", "ERROR").
        log_file: Optional log file path for file output.
    """
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stderr,
        level=log_level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
    )

    if log_file:
        logger.add(
            str(log_file),
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
            "{name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="7 days",
            compression="gz",
        )

    logger.info("Logging configured: level={}, file={}", log_level, log_file)


def log_error_with_context(
    error: Exception,
    operation: str,
    context: dict[str, Any] | None = None,
    **kwargs: Any,
) -> None:
    """Log errors with context information.

    Args:
        error: The exception that was raised
        operation: Name of the operation that failed
        context: Optional context dictionary
        **kwargs: Additional context as keyword arguments
    """
    error_context = {
        "operation": operation,
        "error_type": type(error).__name__,
        "error": str(error),
    }
    if context:
        error_context.update(context)
    if kwargs:
        error_context.update(kwargs)

    log_jsonl({"error_logged": True, **error_context})
    logger.error("Operation failed {}", error_context)


def log_performance(
    operation: str,
    duration_seconds: float,
    **metrics: Any,
) -> None:
    """Log performance metrics for an operation.

    Args:
        operation: Name of the operation
        duration_seconds: Duration in seconds
        **metrics: Additional metrics to log
    """
    perf_data = {
        "operation": operation,
        "duration_seconds": round(duration_seconds, 3),
        "duration_ms": round(duration_seconds * 1000, 1),
    }
    if metrics:
        perf_data.update(metrics)

    log_jsonl({"performance_logged": True, **perf_data})
    logger.debug("Performance metrics {}", perf_data)


def _rss_mb(process: psutil.Process | None) -> float:
    if process is None:
        return 0.0
    try:
        return process.memory_info().rss / _BYTES_PER_MB
    except (OSError, psutil.Error):
        return 0.0


def _current_process() -> psutil.Process | None:
    try:
        return psutil.Process()
    except (OSError, psutil.Error):
        return None


def _finish(
    metrics: dict[str, Any],
    *,
    operation: str,
    start_time: float,
    start_memory: float,
    process: psutil.Process | None,
    success: bool,
) -> None:
    duration = time.perf_counter() - start_time
    end_memory = _rss_mb(process) if process is not None else start_memory

    metrics["duration_seconds"] = round(duration, 3)
    metrics["memory_delta_mb"] = round(end_memory - start_memory, 2)
    metrics["success"] = success

    excluded = {"operation", "duration_seconds"}
    extra = {k: v for k, v in metrics.items() if k not in excluded}
    log_performance(operation=operation, duration_seconds=duration, **extra)


@contextmanager
def performance_timer(operation: str, **context: Any) -> Generator[dict[str, Any]]:
    """Context manager for timing operations.

    Args:
        operation: Name of the operation being timed.
        **context: Additional context to log alongside metrics.

    Yields:
        Dict[str, Any]: Mutable metrics mapping updated during the operation.
    """
    start_time = time.perf_counter()
    process = _current_process()
    start_memory = _rss_mb(process)

    metrics: dict[str, Any] = {"operation": operation}
    metrics.update(context)

    success = False
    try:
        yield metrics
        success = True
    except Exception as exc:
        metrics["error_type"] = type(exc).__name__
        raise
    finally:
        _finish(
            metrics,
            operation=operation,
            start_time=start_time,
            start_memory=start_memory,
            process=process,
            success=success,
        )


@asynccontextmanager
async def async_performance_timer(
    operation: str, **context: Any
) -> AsyncGenerator[dict[str, Any]]:
    """Async context manager for timing operations.

    Args:
        operation: Name of the async operation being timed.
        **context: Additional context to log alongside metrics.

    Yields:
        Dict[str, Any]: Mutable metrics mapping updated during the operation.
    """
    start_time = time.perf_counter()
    process = _current_process()
    start_memory = _rss_mb(process)

    metrics: dict[str, Any] = {"operation": operation}
    metrics.update(context)

    success = False
    try:
        yield metrics
        success = True
    except Exception as exc:
        metrics["error_type"] = type(exc).__name__
        raise
    finally:
        _finish(
            metrics,
            operation=operation,
            start_time=start_time,
            start_memory=start_memory,
            process=process,
            success=success,
        )


__all__ = [
    "async_performance_timer",
    "log_error_with_context",
    "log_performance",
    "performance_timer",
    "setup_logging",
]
