"""Template loader utilities.

Scans a templates directory for ``*.prompt.md`` files, parses YAML front
matter, and returns typed Template definitions. ``dump_template`` writes the
same format back so stored templates round-trip through disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError

from .errors import TemplateValidationError
from .models import Template

TEMPLATE_SUFFIX = ".prompt.md"


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split YAML front matter from a template body.

    Args:
        text: Full file content.

    Returns:
        Tuple of (front_matter_dict, body_str). Front matter may be empty.
    """
    if text.startswith("---\n"):
        try:
            _, fm, body = text.split("---\n", 2)
        except ValueError:
            # No closing marker; treat entire file as body
            return {}, text
        data = yaml.safe_load(fm) or {}
        if not isinstance(data, dict):
            return {}, text
        return data, body.lstrip("\n")
    return {}, text


def template_id_for(path: Path) -> str:
    """Return the default template id for a file (name minus ``.prompt.md``)."""
    name = path.name
    if name.endswith(TEMPLATE_SUFFIX):
        return name[: -len(TEMPLATE_SUFFIX)]
    return path.stem


def parse_template(text: str, *, default_id: str) -> Template:
    """Build a Template from file text.

    Raises:
        TemplateValidationError: If the front matter does not describe a
            well-formed template.
    """
    try:
        fm, body = split_front_matter(text)
    except yaml.YAMLError as exc:
        raise TemplateValidationError(default_id, [f"front matter: {exc}"]) from exc
    data = {**fm, "body": body}
    data.setdefault("id", default_id)
    data["id"] = str(data["id"])
    try:
        return Template.model_validate(data)
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        raise TemplateValidationError(str(data["id"]), errors) from exc


def load_template_file(path: Path) -> Template:
    """Load one ``*.prompt.md`` file."""
    text = path.read_text(encoding="utf-8")
    return parse_template(text, default_id=template_id_for(path))


def load_templates(directory: Path) -> list[Template]:
    """Load all templates from ``directory``.

    Returns:
        Templates for each ``*.prompt.md`` file, sorted by file name.

    Raises:
        TemplateValidationError: If a file is malformed.
    """
    templates: list[Template] = []
    if not directory.exists():
        logger.warning("Template directory {} does not exist", directory)
        return templates
    for path in sorted(directory.glob(f"*{TEMPLATE_SUFFIX}")):
        templates.append(load_template_file(path))
    return templates


def dump_template(template: Template) -> str:
    """Serialize a template to ``*.prompt.md`` text (front matter + body)."""
    data = template.model_dump(mode="json", exclude={"body"}, exclude_defaults=True)
    data["id"] = template.id
    fm = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return f"---\n{fm}---\n{template.body}"


def write_template(template: Template, directory: Path) -> Path:
    """Write ``template`` into ``directory`` as ``<id>.prompt.md``."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{template.id}{TEMPLATE_SUFFIX}"
    path.write_text(dump_template(template), encoding="utf-8")
    return path


__all__ = [
    "TEMPLATE_SUFFIX",
    "dump_template",
    "load_template_file",
    "load_templates",
    "parse_template",
    "split_front_matter",
    "template_id_for",
    "write_template",
]
