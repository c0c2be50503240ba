"""Tests for the template engine orchestration (prepare/generate/evaluate)."""

from __future__ import annotations

import asyncio
import string

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from contextforge.cache import ExpiringContextCache
from contextforge.prompting.engine import TemplateEngine
from contextforge.prompting.errors import (
    MissingRequiredDependencyError,
    MissingVariableError,
    TemplateNotFoundError,
    TemplateValidationError,
)
from contextforge.prompting.models import (
    Dependency,
    InjectionPoint,
    QualityCriteria,
    Template,
)
from contextforge.prompting.providers import (
    InMemoryContentProvider,
    LlamaIndexGenerationProvider,
)
from contextforge.prompting.store import TemplateStore
from tests.conftest import EchoLLM


@pytest.fixture
def engine(charter_template, content_provider, engine_settings, echo_llm):
    store = TemplateStore(templates=[charter_template])
    return TemplateEngine(
        store,
        content_provider,
        generation_provider=LlamaIndexGenerationProvider(echo_llm),
        cfg=engine_settings,
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_required_variable_fails_before_resolution(
    engine, content_provider
):
    with pytest.raises(MissingVariableError) as ei:
        await engine.prepare("charter", {"team_size": 12})
    assert ei.value.missing == ["project_name"]
    assert content_provider.fetch_counts == {}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_optional_point_with_missing_dependency_renders_empty(engine):
    rendered = await engine.prepare("charter", {"project_name": "Apollo"})
    assert rendered.segments == {
        "background": "The business case text.",
        "stakeholders": "",
    }
    assert any("stakeholders" in w for w in rendered.warnings)
    assert rendered.prompt.startswith("Charter for Apollo\n\nThe business case text.")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_required_point_with_missing_dependency_aborts(
    engine, content_provider
):
    content_provider.remove("business-case")
    with pytest.raises(MissingRequiredDependencyError) as ei:
        await engine.prepare("charter", {"project_name": "Apollo"})
    assert ei.value.document_key == "business-case"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_caller_variables_are_not_mutated(engine):
    variables = {"project_name": "Apollo", "team_size": 20}
    rendered = await engine.prepare("charter", variables)
    assert variables == {"project_name": "Apollo", "team_size": 20}
    assert rendered.prompt.endswith("Describe governance for 20 people.")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_round_trip_contains_variables(engine, echo_llm):
    result = await engine.generate(
        "charter", {"project_name": "Apollo", "team_size": 20}, options={"seed": 1}
    )
    assert result.success is True
    assert result.error is None
    assert "Apollo" in result.content
    assert "20 people" in result.content
    assert result.prompt.prompt == result.content
    # echo output is short and has none of the required sections
    assert result.quality_score == engine.evaluate(result.content, "charter").score
    assert result.quality_score < 60
    assert "Missing required section: Objectives" in result.warnings
    messages, kwargs = echo_llm.calls[0]
    assert messages[0].content == "You are a project manager."
    assert kwargs == {"seed": 1}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generation_failure_is_reported_not_raised(engine):
    failing = LlamaIndexGenerationProvider(EchoLLM(error=RuntimeError("quota")))
    result = await engine.generate("charter", {"project_name": "Apollo"}, failing)
    assert result.success is False
    assert result.content is None
    assert result.quality_score == 0
    assert result.error == "RuntimeError: quota"
    assert result.warnings[-1] == "Generation failed: RuntimeError: quota"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_requires_a_provider(charter_template, content_provider):
    store = TemplateStore(templates=[charter_template])
    engine = TemplateEngine(store, content_provider)
    with pytest.raises(ValueError, match="No generation provider"):
        await engine.generate("charter", {"project_name": "Apollo"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fallback_template_is_caller_policy(engine, engine_settings):
    fallback = Template(
        id=engine_settings.templates.fallback_template_id,
        body="Generic doc for {{ project_name }}",
        required_variables=("project_name",),
    )
    engine.store.upsert(fallback)

    with pytest.raises(TemplateNotFoundError):
        await engine.prepare("unknown", {"project_name": "Apollo"})
    rendered = await engine.prepare(
        "unknown", {"project_name": "Apollo"}, use_fallback=True
    )
    assert rendered.template_id == "generic-document"
    assert rendered.prompt == "Generic doc for Apollo"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cache_is_shared_across_renders(engine, content_provider):
    await engine.prepare("charter", {"project_name": "Apollo"})
    await engine.prepare("charter", {"project_name": "Hermes"})
    assert content_provider.fetch_counts["business-case"] == 1
    assert engine.cache_stats().hits == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_renders_are_isolated(engine):
    names = [f"Project {i}" for i in range(10)]
    results = await asyncio.gather(
        *(engine.prepare("charter", {"project_name": name}) for name in names)
    )
    for name, rendered in zip(names, results, strict=True):
        assert rendered.prompt.startswith(f"Charter for {name}\n")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_first_failing_point_in_declaration_order_wins(engine_settings):
    template = Template(
        id="two-points",
        body="{{ first }} {{ second }}",
        injection_points=(
            InjectionPoint(
                placeholder="first", dependencies=(Dependency(document_key="a"),)
            ),
            InjectionPoint(
                placeholder="second", dependencies=(Dependency(document_key="b"),)
            ),
        ),
    )
    engine = TemplateEngine(
        TemplateStore(templates=[template]),
        InMemoryContentProvider(),
        cfg=engine_settings,
    )
    with pytest.raises(MissingRequiredDependencyError) as ei:
        await engine.prepare("two-points")
    assert ei.value.placeholder == "first"


@pytest.mark.unit
def test_evaluate_uses_template_criteria(engine):
    report = engine.evaluate("## Objectives\n\n## Risks\n\n" + "x" * 500, "charter")
    assert report.score == 100


@pytest.mark.unit
def test_from_settings_loads_configured_directory(engine_settings, charter_template):
    from contextforge.prompting.loader import write_template

    write_template(charter_template, engine_settings.templates.directory)
    engine = TemplateEngine.from_settings(InMemoryContentProvider(), engine_settings)
    assert "charter" in engine.store


@pytest.mark.unit
@pytest.mark.asyncio
async def test_hot_reload_picks_up_new_templates(engine_settings, charter_template):
    from contextforge.prompting.loader import write_template

    directory = engine_settings.templates.directory
    write_template(charter_template, directory)
    cfg = engine_settings.model_copy(
        update={
            "templates": engine_settings.templates.model_copy(
                update={"hot_reload": True}
            )
        }
    )
    engine = TemplateEngine.from_settings(InMemoryContentProvider(), cfg)
    write_template(
        Template(id="late", body="Late {{ x }}", required_variables=("x",)), directory
    )
    rendered = await engine.prepare("late", {"x": 1})
    assert rendered.prompt == "Late 1"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_absent_optional_dependency_gives_empty_segment(engine_settings):
    template = Template(
        id="optional-dep",
        body="Intro\n{{ extra }}",
        injection_points=(
            InjectionPoint(
                placeholder="extra",
                dependencies=(Dependency(document_key="absent", required=False),),
            ),
        ),
    )
    engine = TemplateEngine(
        TemplateStore(templates=[template]),
        InMemoryContentProvider(),
        cfg=engine_settings,
    )
    rendered = await engine.prepare("optional-dep")
    assert rendered.segments == {"extra": ""}
    assert rendered.prompt == "Intro\n"
    assert rendered.warnings == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_injected_cache_is_used_by_the_engine(
    charter_template, content_provider, engine_settings
):
    cache = ExpiringContextCache(max_entries=2)
    engine = TemplateEngine(
        TemplateStore(templates=[charter_template]),
        content_provider,
        cache=cache,
        cfg=engine_settings,
    )
    assert engine.resolver.cache is cache
    await engine.prepare("charter", {"project_name": "Apollo"})
    assert ("business-case", "") in cache


def _hot_reload_settings(engine_settings):
    return engine_settings.model_copy(
        update={
            "templates": engine_settings.templates.model_copy(
                update={"hot_reload": True}
            )
        }
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_broken_file_does_not_block_hot_reloaded_templates(engine_settings):
    from contextforge.prompting.loader import write_template

    directory = engine_settings.templates.directory
    write_template(
        Template(id="ok", body="Ok {{ x }}", required_variables=("x",)), directory
    )
    engine = TemplateEngine.from_settings(
        InMemoryContentProvider(), _hot_reload_settings(engine_settings)
    )
    (directory / "broken.prompt.md").write_text("{{ nope }}", encoding="utf-8")

    assert (await engine.prepare("ok", {"x": 1})).prompt == "Ok 1"
    assert (await engine.prepare("ok", {"x": 2})).prompt == "Ok 2"
    with pytest.raises(TemplateNotFoundError):
        await engine.prepare("broken")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_template_generation_options_apply_under_caller_options(
    charter_template, content_provider, engine_settings, echo_llm
):
    template = charter_template.model_copy(
        update={"generation": {"temperature": 0.2, "max_tokens": 2048}}
    )
    engine = TemplateEngine(
        TemplateStore(templates=[template]),
        content_provider,
        generation_provider=LlamaIndexGenerationProvider(echo_llm),
        cfg=engine_settings,
    )
    await engine.generate("charter", {"project_name": "Apollo"})
    await engine.generate(
        "charter", {"project_name": "Apollo"}, options={"temperature": 0.9}
    )
    assert echo_llm.calls[0][1] == {"temperature": 0.2, "max_tokens": 2048}
    assert echo_llm.calls[1][1] == {"temperature": 0.9, "max_tokens": 2048}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_context_budget_trims_later_points_first(engine_settings):
    template = Template(
        id="budgeted",
        body="{{ first }}|{{ second }}",
        max_context_chars=30,
        injection_points=(
            InjectionPoint(
                placeholder="first", dependencies=(Dependency(document_key="a"),)
            ),
            InjectionPoint(
                placeholder="second", dependencies=(Dependency(document_key="b"),)
            ),
        ),
    )
    engine = TemplateEngine(
        TemplateStore(templates=[template]),
        InMemoryContentProvider({"a": "A" * 20, "b": "B" * 20}),
        cfg=engine_settings,
    )
    rendered = await engine.prepare("budgeted")
    assert rendered.segments["first"] == "A" * 20
    assert rendered.segments["second"] == "B" * 7 + "..."
    assert rendered.prompt == "A" * 20 + "|" + "B" * 7 + "..."
    assert any("Context trimmed from 40 to 30" in w for w in rendered.warnings)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_context_within_budget_is_untouched(engine):
    swapped = engine.store.get("charter").model_copy(
        update={"max_context_chars": 1000}
    )
    engine.store.upsert(swapped)
    rendered = await engine.prepare("charter", {"project_name": "Apollo"})
    assert rendered.segments["background"] == "The business case text."
    assert not any("Context trimmed" in w for w in rendered.warnings)


class SwappingProvider:
    """Replaces the template with a criteria-free copy while generating."""

    def __init__(self, store: TemplateStore) -> None:
        self.store = store

    async def generate(self, system_persona, prompt, options=None):
        relaxed = self.store.get("charter").model_copy(
            update={"quality": QualityCriteria()}
        )
        self.store.upsert(relaxed)
        return prompt


@pytest.mark.unit
@pytest.mark.asyncio
async def test_output_is_scored_against_the_rendered_template(engine):
    result = await engine.generate(
        "charter", {"project_name": "Apollo"}, SwappingProvider(engine.store)
    )
    assert result.success is True
    assert "Missing required section: Objectives" in result.warnings
    assert result.quality_score < 100
    assert engine.evaluate(result.content, "charter").score == 100


@pytest.mark.unit
def test_store_rejects_required_variable_missing_from_prompt(engine):
    with pytest.raises(TemplateValidationError) as ei:
        engine.store.upsert(
            Template(
                id="sponsorless",
                body="Doc for {{ project_name }}",
                required_variables=("project_name", "sponsor"),
            )
        )
    assert "required variable 'sponsor' is never referenced" in ei.value.errors


_VAR_NAMES = st.sampled_from(
    ["project_name", "sponsor", "budget", "deadline", "owner", "region"]
)
_VALUES = st.text(
    alphabet=string.ascii_letters + string.digits + " -_.", min_size=1, max_size=24
)


@pytest.mark.unit
@settings(max_examples=40, deadline=None)
@given(data=st.data())
def test_echoed_prompt_contains_every_required_value(data):
    """Any valid template echoes the value of each required variable."""
    names = data.draw(st.lists(_VAR_NAMES, min_size=1, max_size=4, unique=True))
    values = {name: data.draw(_VALUES) for name in names}
    order = data.draw(st.permutations(names))
    body = "Document\n" + "\n".join(f"{name}: {{{{ {name} }}}}" for name in order)
    template = Template(id="generated", body=body, required_variables=tuple(names))
    engine = TemplateEngine(
        TemplateStore(templates=[template]),
        InMemoryContentProvider(),
        generation_provider=LlamaIndexGenerationProvider(EchoLLM()),
    )

    result = asyncio.run(engine.generate("generated", values))

    assert result.success is True
    for value in values.values():
        assert value in result.content
