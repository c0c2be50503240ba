"""Lightweight JSONL telemetry emitter.

Writes events to a local JSONL file (logs/telemetry.jsonl by default) to keep
observability local-first.
"""

from __future__ import annotations

import contextlib
import json
import os
import random
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from contextforge.config.settings import TelemetryConfig, settings

_STATE: dict[str, Any] = {
    "enabled": settings.telemetry.enabled,
    "path": settings.telemetry.path,
    "sample_rate": settings.telemetry.sample_rate,
}


def configure_telemetry(cfg: TelemetryConfig) -> None:
    """Apply a telemetry configuration section.

    Args:
        cfg: Telemetry settings (enabled flag, output path, sample rate).
    """
    _STATE["enabled"] = cfg.enabled
    _STATE["path"] = Path(cfg.path)
    _STATE["sample_rate"] = cfg.sample_rate


def _ensure_dir(path: Path) -> None:
    with contextlib.suppress(OSError):
        path.parent.mkdir(parents=True, exist_ok=True)


def _disabled() -> bool:
    if os.getenv("CONTEXTFORGE_TELEMETRY_DISABLED", "false").lower() in {
        "1",
        "true",
        "yes",
    }:
        return True
    return not _STATE["enabled"]


def log_jsonl(event: dict[str, Any]) -> None:
    """Append a JSON event with ISO timestamp to the local JSONL file.

    Args:
        event: Flat key-value telemetry dictionary.
    """
    if _disabled():
        return
    rate = max(0.0, min(1.0, float(_STATE["sample_rate"])))
    if rate < 1.0 and random.random() >= rate:  # noqa: S311
        return

    rec = {
        "ts": datetime.now(UTC).isoformat(),
        **event,
    }
    path = Path(_STATE["path"])
    _ensure_dir(path)
    try:
        with path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(rec, ensure_ascii=False, default=str) + "\n")
    except OSError as exc:
        # Never fail a render because telemetry could not be written
        logger.debug("telemetry write skipped: {}", exc)


__all__ = [
    "configure_telemetry",
    "log_jsonl",
]
