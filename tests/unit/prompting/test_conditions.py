"""Tests for the conditional fragment expression evaluator."""

from __future__ import annotations

import pytest

from contextforge.prompting.conditions import (
    evaluate,
    parse_condition,
    referenced_variables,
)
from contextforge.prompting.errors import ConditionSyntaxError


@pytest.mark.unit
@pytest.mark.parametrize(
    ("expression", "variables", "expected"),
    [
        ("team_size > 10", {"team_size": 15}, True),
        ("team_size > 10", {"team_size": 10}, False),
        ("team_size > 10", {"team_size": "12"}, True),
        ("budget >= 1000.5", {"budget": 1000.5}, True),
        ("phase == 'planning'", {"phase": "planning"}, True),
        ('phase != "planning"', {"phase": "closing"}, True),
        ("regulated == true", {"regulated": True}, True),
        ("regulated == true", {"regulated": False}, False),
        ("regulated", {"regulated": "no"}, False),
        ("agile and team_size < 5", {"agile": True, "team_size": 3}, True),
        ("agile && team_size < 5", {"agile": True, "team_size": 9}, False),
        ("agile or remote", {"agile": False, "remote": True}, True),
        ("not agile", {"agile": False}, True),
        ("!(a || b)", {"a": False, "b": False}, True),
        ("team.size > 3", {"team": {"size": 4}}, True),
        ("AGILE == TRUE", {"AGILE": True}, True),
    ],
)
def test_evaluate(expression, variables, expected):
    assert evaluate(expression, variables) is expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "expression",
    ["team_size > 10", "not team_size", "team_size > 1 or true", "team.size > 1"],
)
def test_missing_variable_evaluates_false(expression):
    assert evaluate(expression, {}) is False


@pytest.mark.unit
def test_none_counts_as_missing():
    assert evaluate("not flag", {"flag": None}) is False


@pytest.mark.unit
def test_precedence_and_binds_tighter_than_or():
    variables = {"a": True, "b": False, "c": False}
    assert evaluate("a or b and c", variables) is True
    assert evaluate("(a or b) and c", variables) is False


@pytest.mark.unit
@pytest.mark.parametrize(
    "expression",
    ["", "   ", "team_size >", "(a and b", "a b", "a == == b", "a = 1", "a and"],
)
def test_malformed_expressions_raise(expression):
    with pytest.raises(ConditionSyntaxError):
        parse_condition(expression)


@pytest.mark.unit
def test_referenced_variables():
    node = parse_condition("(a > 1 and not b) or c == 'x'")
    assert referenced_variables(node) == {"a", "b", "c"}
