"""Top-level pytest configuration for shared fixtures.

Provides template builders, in-memory providers and a scripted LLM so the
engine can be exercised end to end without network access.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest
from llama_index.core.llms import ChatMessage, ChatResponse, MessageRole

from contextforge.config.settings import EngineSettings
from contextforge.prompting.models import (
    Dependency,
    InjectionPoint,
    QualityCriteria,
    Template,
)
from contextforge.prompting.providers import InMemoryContentProvider


class EchoLLM:
    """Minimal async chat LLM that echoes the last user message.

    ``reply`` overrides the echoed text; ``error`` makes every call raise.
    Every call is recorded in ``calls`` as ``(messages, kwargs)``.
    """

    def __init__(self, reply: str | None = None, error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[Sequence[ChatMessage], dict[str, Any]]] = []

    async def achat(self, messages: Sequence[ChatMessage], **kwargs: Any):
        self.calls.append((list(messages), kwargs))
        if self.error is not None:
            raise self.error
        text = self.reply
        if text is None:
            text = next(
                m.content for m in reversed(messages) if m.role == MessageRole.USER
            )
        return ChatResponse(
            message=ChatMessage(role=MessageRole.ASSISTANT, content=text)
        )


@pytest.fixture(autouse=True)
def _reset_telemetry_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests from writing telemetry to the working directory."""
    monkeypatch.setenv("CONTEXTFORGE_TELEMETRY_DISABLED", "1")


@pytest.fixture
def engine_settings(tmp_path) -> EngineSettings:
    """Engine settings isolated from the environment and bundled templates."""
    return EngineSettings(
        _env_file=None,  # type: ignore[call-arg]
        templates={"directory": tmp_path / "templates"},
    )


@pytest.fixture
def charter_template() -> Template:
    """Template with one required and one optional injection point."""
    return Template(
        id="charter",
        name="Charter",
        category="pmbok",
        document_type="project-charter",
        tags=("pmbok", "initiating"),
        system_persona="You are a project manager.",
        required_variables=("project_name",),
        optional_variables=("team_size",),
        body=(
            "Charter for {{ project_name }}\n\n"
            "{{ background }}\n\n"
            "{{ stakeholders }}\n\n"
            "{{ governance }}"
        ),
        injection_points=(
            InjectionPoint(
                placeholder="background",
                dependencies=(Dependency(document_key="business-case"),),
            ),
            InjectionPoint(
                placeholder="stakeholders",
                required=False,
                dependencies=(Dependency(document_key="stakeholder-register"),),
            ),
        ),
        fragments=(
            {
                "placeholder": "governance",
                "condition": "team_size > 10",
                "content": "Describe governance for {{ team_size }} people.",
            },
        ),
        quality=QualityCriteria(
            min_length=500, required_sections=("Objectives", "Risks")
        ),
    )


@pytest.fixture
def content_provider() -> InMemoryContentProvider:
    """Content provider pre-loaded with a business case."""
    return InMemoryContentProvider({"business-case": "The business case text."})


@pytest.fixture
def echo_llm() -> EchoLLM:
    """Scripted LLM echoing the prompt back."""
    return EchoLLM()
