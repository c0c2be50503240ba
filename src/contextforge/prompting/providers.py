"""External collaborator interfaces and adapters.

The engine consumes three collaborators:

- ``ContentProvider``: previously generated documents, keyed by document key.
- ``Summarizer``: optional capability used by the ``summarize`` strategy.
- ``GenerationProvider``: turns a rendered prompt into content.

Adapters here wrap in-memory mappings, a directory of generated markdown
documents, and any LlamaIndex ``LLM`` (``achat``).
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from llama_index.core.llms import ChatMessage, MessageRole
from loguru import logger

from .errors import GenerationError

SUMMARIZER_PERSONA = (
    "You are an expert at summarizing project documentation while preserving "
    "all critical information and context."
)


@runtime_checkable
class ContentProvider(Protocol):
    """Source of previously generated document content."""

    async def fetch(self, document_key: str) -> str | None:
        """Return the document content, or None when it does not exist."""
        ...


@runtime_checkable
class Summarizer(Protocol):
    """Capability that shortens content to roughly ``target_length`` chars."""

    async def summarize(self, content: str, target_length: int) -> str:
        """Return a summary of ``content``."""
        ...


@runtime_checkable
class GenerationProvider(Protocol):
    """Produces document content from a persona and a prompt."""

    async def generate(
        self,
        system_persona: str,
        prompt: str,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        """Return generated content.

        Raises:
            GenerationError: On any provider failure.
        """
        ...


class InMemoryContentProvider:
    """Dict-backed content provider (tests, demos, pre-loaded stores)."""

    def __init__(self, documents: Mapping[str, str] | None = None) -> None:
        self._documents: dict[str, str] = dict(documents or {})
        self.fetch_counts: Counter[str] = Counter()

    async def fetch(self, document_key: str) -> str | None:
        self.fetch_counts[document_key] += 1
        return self._documents.get(document_key)

    def add(self, document_key: str, content: str) -> None:
        self._documents[document_key] = content

    def remove(self, document_key: str) -> None:
        self._documents.pop(document_key, None)

    def keys(self) -> list[str]:
        return sorted(self._documents)


class DirectoryContentProvider:
    """Reads previously generated markdown documents from a directory.

    A document key matches either the path relative to ``root`` without its
    suffix (``planning/risk-register``) or, failing that, the file stem
    (``risk-register``). Keys that escape ``root`` never match.
    """

    def __init__(
        self,
        root: str | Path,
        suffixes: Sequence[str] = (".md", ".markdown", ".txt"),
        encoding: str = "utf-8",
    ) -> None:
        self.root = Path(root).resolve()
        self.suffixes = tuple(suffixes)
        self.encoding = encoding

    def _within_root(self, path: Path) -> bool:
        try:
            path.resolve().relative_to(self.root)
        except ValueError:
            return False
        return True

    def locate(self, document_key: str) -> Path | None:
        """Return the file backing ``document_key``, if any."""
        for suffix in self.suffixes:
            candidate = self.root / f"{document_key}{suffix}"
            if candidate.is_file() and self._within_root(candidate):
                return candidate
        if not self.root.is_dir():
            return None
        for suffix in self.suffixes:
            for candidate in sorted(self.root.rglob(f"*{suffix}")):
                if candidate.stem == document_key and candidate.is_file():
                    return candidate
        return None

    def list_keys(self) -> list[str]:
        """Return the relative keys of all documents under ``root``."""
        if not self.root.is_dir():
            return []
        keys = {
            path.relative_to(self.root).with_suffix("").as_posix()
            for suffix in self.suffixes
            for path in self.root.rglob(f"*{suffix}")
            if path.is_file()
        }
        return sorted(keys)

    def read(self, document_key: str) -> str | None:
        """Locate and read ``document_key`` synchronously."""
        path = self.locate(document_key)
        if path is None:
            return None
        try:
            return path.read_text(encoding=self.encoding)
        except OSError as exc:
            logger.warning("Could not read document '{}': {}", document_key, exc)
            return None

    async def fetch(self, document_key: str) -> str | None:
        # lookup walks the tree, so it stays off the event loop with the read
        return await asyncio.to_thread(self.read, document_key)


def _response_text(response: Any) -> str:
    message = getattr(response, "message", None)
    if message is not None:
        return str(getattr(message, "content", "") or "")
    return str(getattr(response, "text", "") or "")


class LlamaIndexSummarizer:
    """Summarization capability backed by a LlamaIndex LLM."""

    def __init__(self, llm: Any, persona: str = SUMMARIZER_PERSONA) -> None:
        self.llm = llm
        self.persona = persona

    async def summarize(self, content: str, target_length: int) -> str:
        messages = [
            ChatMessage(role=MessageRole.SYSTEM, content=self.persona),
            ChatMessage(
                role=MessageRole.USER,
                content=(
                    "Summarize the following project documentation, preserving "
                    "all critical information, key requirements, and important "
                    f"details. Target length: approximately {target_length} "
                    f"characters.\n\n{content}"
                ),
            ),
        ]
        response = await self.llm.achat(messages)
        return _response_text(response).strip()


class LlamaIndexGenerationProvider:
    """Generation provider backed by a LlamaIndex LLM chat call."""

    def __init__(self, llm: Any) -> None:
        self.llm = llm

    async def generate(
        self,
        system_persona: str,
        prompt: str,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        messages = []
        if system_persona:
            messages.append(
                ChatMessage(role=MessageRole.SYSTEM, content=system_persona)
            )
        messages.append(ChatMessage(role=MessageRole.USER, content=prompt))
        try:
            response = await self.llm.achat(messages, **dict(options or {}))
        except Exception as exc:
            raise GenerationError(f"{type(exc).__name__}: {exc}") from exc
        text = _response_text(response)
        if not text.strip():
            raise GenerationError("Generation provider returned empty content")
        return text


__all__ = [
    "ContentProvider",
    "DirectoryContentProvider",
    "GenerationProvider",
    "InMemoryContentProvider",
    "LlamaIndexGenerationProvider",
    "LlamaIndexSummarizer",
    "Summarizer",
]
