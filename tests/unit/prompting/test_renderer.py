"""Tests for prompt rendering: variables, segments and conditional fragments."""

from __future__ import annotations

import pytest
from llama_index.core.llms import MessageRole

from contextforge.prompting.errors import MissingVariableError, RenderError
from contextforge.prompting.models import Template
from contextforge.prompting.renderer import render, render_fragments, resolve_variables


@pytest.mark.unit
def test_render_substitutes_variables_segments_and_fragments(charter_template):
    rendered = render(
        charter_template,
        {"background": "BG", "stakeholders": "SH"},
        {"project_name": "Apollo", "team_size": 15},
        warnings=["earlier warning"],
    )
    assert rendered.prompt == (
        "Charter for Apollo\n\nBG\n\nSH\n\nDescribe governance for 15 people."
    )
    assert rendered.system_persona == "You are a project manager."
    assert rendered.segments == {"background": "BG", "stakeholders": "SH"}
    assert rendered.warnings == ["earlier warning"]


@pytest.mark.unit
def test_false_or_unknown_condition_renders_empty(charter_template):
    small = render(charter_template, {}, {"project_name": "Apollo", "team_size": 3})
    unknown = render(charter_template, {}, {"project_name": "Apollo"})
    assert "governance" not in small.prompt
    assert small.prompt == unknown.prompt == "Charter for Apollo\n\n\n\n\n\n"


@pytest.mark.unit
def test_missing_required_variable(charter_template):
    with pytest.raises(MissingVariableError) as ei:
        render(charter_template, {}, {"team_size": 3})
    assert ei.value.missing == ["project_name"]
    assert ei.value.template_id == "charter"


@pytest.mark.unit
def test_none_counts_as_missing(charter_template):
    with pytest.raises(MissingVariableError):
        resolve_variables(charter_template, {"project_name": None})


@pytest.mark.unit
def test_defaults_fill_and_caller_values_override():
    tpl = Template(
        id="t",
        body="{{ who }} / {{ tone }}",
        required_variables=("who",),
        defaults={"who": "team", "tone": "formal"},
    )
    assert render(tpl, {}, {}).prompt == "team / formal"
    assert render(tpl, {}, {"tone": "casual"}).prompt == "team / casual"


@pytest.mark.unit
def test_otherwise_branch():
    tpl = Template(
        id="t",
        body="{{ note }}",
        optional_variables=("agile",),
        fragments=(
            {
                "placeholder": "note",
                "condition": "agile",
                "content": "Use sprints.",
                "otherwise": "Use phases.",
            },
        ),
    )
    fragments = render_fragments(tpl, {"agile": False})
    assert fragments == {"note": "Use phases."}
    assert render(tpl, {}, {"agile": True}).prompt == "Use sprints."


@pytest.mark.unit
def test_render_error_is_wrapped():
    tpl = Template(
        id="t", body="{{ items | bogus_filter }}", optional_variables=("items",)
    )
    with pytest.raises(RenderError, match="template 't'"):
        render(tpl, {}, {"items": [1]})


@pytest.mark.unit
def test_to_messages(charter_template):
    rendered = render(charter_template, {}, {"project_name": "Apollo"})
    messages = rendered.to_messages()
    assert [m.role for m in messages] == [MessageRole.SYSTEM, MessageRole.USER]
    assert messages[1].content == rendered.prompt

    bare = rendered.model_copy(update={"system_persona": ""})
    assert [m.role for m in bare.to_messages()] == [MessageRole.USER]
