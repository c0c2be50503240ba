"""Template store.

Holds validated Template definitions for the process lifetime. Templates are
loaded from a directory of ``*.prompt.md`` files on init and can be
hot-reloaded when files change. ``NotFound`` is a normal outcome; choosing a
fallback template is caller policy.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from contextforge.utils.monitoring import log_error_with_context

from .errors import TemplateNotFoundError, TemplateValidationError
from .loader import TEMPLATE_SUFFIX, load_templates, write_template
from .models import Template, TemplateSummary
from .validators import unreferenced_injection_points, validate_template


class TemplateStore:
    """Registry of validated templates keyed by id."""

    def __init__(
        self,
        directory: str | Path | None = None,
        templates: Iterable[Template] = (),
    ) -> None:
        """Create a store.

        Args:
            directory: Optional directory of ``*.prompt.md`` files loaded now.
            templates: Additional templates registered after the directory.

        Raises:
            TemplateValidationError: If any loaded template is invalid.
        """
        self.directory = Path(directory) if directory is not None else None
        self._templates: dict[str, Template] = {}
        self._lock = threading.Lock()
        self._fingerprint: dict[str, float] = {}
        self._disk_ids: set[str] = set()
        if self.directory is not None:
            self.reload()
        for template in templates:
            self.upsert(template)

    def _scan(self) -> dict[str, float]:
        if self.directory is None or not self.directory.exists():
            return {}
        return {
            path.name: path.stat().st_mtime
            for path in self.directory.glob(f"*{TEMPLATE_SUFFIX}")
        }

    def reload(self) -> int:
        """Re-read every template from the store directory.

        Loading is all-or-nothing: an invalid file leaves the current catalog
        untouched. Templates registered in memory only are kept; templates whose
        file disappeared are dropped.

        Returns:
            Number of templates loaded from disk.
        """
        if self.directory is None:
            return 0
        fingerprint = self._scan()
        loaded = load_templates(self.directory)
        for template in loaded:
            self._check(template)
        ids = {template.id for template in loaded}
        with self._lock:
            for stale in self._disk_ids - ids:
                self._templates.pop(stale, None)
            for template in loaded:
                self._templates[template.id] = template
            self._disk_ids = ids
            self._fingerprint = fingerprint
        logger.info("Loaded {} templates from {}", len(loaded), self.directory)
        return len(loaded)

    def reload_if_changed(self) -> bool:
        """Reload when a template file was added, removed, or modified.

        An invalid file is logged and the last good catalog keeps serving.
        The new fingerprint is recorded either way, so the same broken file is
        not re-parsed on every call.

        Returns:
            True when the catalog was replaced.
        """
        if self.directory is None:
            return False
        fingerprint = self._scan()
        if fingerprint == self._fingerprint:
            return False
        try:
            self.reload()
        except TemplateValidationError as exc:
            log_error_with_context(
                exc,
                "templates.hot_reload",
                directory=str(self.directory),
                template_id=exc.template_id,
            )
            with self._lock:
                self._fingerprint = fingerprint
            return False
        return True

    def _check(self, template: Template) -> None:
        validate_template(template)
        for placeholder in unreferenced_injection_points(template):
            logger.warning(
                "Template '{}' declares unused injection point '{}'",
                template.id,
                placeholder,
            )

    def get(self, template_id: str) -> Template:
        """Return the template registered under ``template_id``.

        Raises:
            TemplateNotFoundError: If no such template exists.
        """
        try:
            return self._templates[template_id]
        except KeyError as exc:
            raise TemplateNotFoundError(template_id) from exc

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    def list(self, category: str | None = None) -> list[TemplateSummary]:
        """Return template summaries, optionally filtered by category."""
        templates = sorted(self._templates.values(), key=lambda t: t.id)
        if category is not None:
            wanted = category.lower()
            templates = [t for t in templates if t.category.lower() == wanted]
        return [t.summary() for t in templates]

    def categories(self) -> list[str]:
        """Return the sorted set of template categories."""
        return sorted({t.category for t in self._templates.values()})

    def find_by_document_type(self, document_type: str) -> Template | None:
        """Return the highest-priority template for ``document_type``."""
        matches = [
            t for t in self._templates.values() if t.document_type == document_type
        ]
        if not matches:
            return None
        return max(matches, key=lambda t: (t.priority, t.version, t.id))

    def search_by_tags(self, tags: Iterable[str]) -> list[TemplateSummary]:
        """Return summaries of templates carrying any of ``tags``."""
        wanted = set(tags)
        return [
            t.summary()
            for t in sorted(self._templates.values(), key=lambda t: t.id)
            if wanted.intersection(t.tags)
        ]

    def upsert(self, template: Template, *, persist: bool = False) -> Template:
        """Validate and register ``template`` (replacing any same-id entry).

        Args:
            template: Template definition.
            persist: Also write it as ``<id>.prompt.md`` into the directory.

        Raises:
            TemplateValidationError: If the definition violates invariants.
            ValueError: If ``persist`` is requested for a store without a
                directory.
        """
        self._check(template)
        if persist:
            if self.directory is None:
                raise ValueError("Cannot persist a template: store has no directory")
            path = write_template(template, self.directory)
            logger.info("Persisted template '{}' to {}", template.id, path)
        with self._lock:
            self._templates[template.id] = template
            if persist:
                self._disk_ids.add(template.id)
                self._fingerprint = self._scan()
        return template

    def remove(self, template_id: str) -> bool:
        """Unregister a template. Returns True when something was removed."""
        with self._lock:
            return self._templates.pop(template_id, None) is not None


__all__ = ["TemplateStore"]
