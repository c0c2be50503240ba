"""Conditional expression evaluator for optional template fragments.

Grammar (case-insensitive keywords)::

    expr    := and_expr (("or" | "||") and_expr)*
    and_expr:= unary (("and" | "&&") unary)*
    unary   := ("not" | "!") unary | atom
    atom    := "(" expr ")" | operand [cmp operand]
    cmp     := "==" | "!=" | ">" | ">=" | "<" | "<="
    operand := identifier | number | 'string' | "string" | true | false

Conditions that reference a variable missing from the project variables
evaluate to False, so optional content is excluded on ambiguous state.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from .errors import ConditionSyntaxError

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<number>-?\d+(?:\.\d+)?)
      | (?P<string>'[^']*'|"[^"]*")
      | (?P<op>==|!=|>=|<=|>|<|&&|\|\||!|\(|\))
      | (?P<ident>[A-Za-z_][A-Za-z0-9_.]*)
    )
    """,
    re.VERBOSE,
)
_COMPARATORS = {"==", "!=", ">", ">=", "<", "<="}
_FALSY_STRINGS = {"", "0", "false", "no", "off"}


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str
    text: str


@dataclass(frozen=True, slots=True)
class Literal:
    value: Any


@dataclass(frozen=True, slots=True)
class Var:
    name: str


@dataclass(frozen=True, slots=True)
class Compare:
    op: str
    left: Literal | Var
    right: Literal | Var


@dataclass(frozen=True, slots=True)
class Not:
    operand: Node


@dataclass(frozen=True, slots=True)
class BoolOp:
    op: str  # "and" | "or"
    operands: tuple[Node, ...]


Node = Literal | Var | Compare | Not | BoolOp


def _tokenize(expression: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match or match.end() == pos:
            raise ConditionSyntaxError(expression, f"unexpected input at {pos}")
        kind = match.lastgroup or ""
        value = match.group(kind)
        if kind == "ident":
            lowered = value.lower()
            if lowered in {"and", "or", "not"}:
                kind, value = "op", lowered
            elif lowered in {"true", "false"}:
                kind, value = "bool", lowered
        elif kind == "op":
            value = {"&&": "and", "||": "or", "!": "not"}.get(value, value)
        tokens.append(_Token(kind, value))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.pos = 0

    def _peek(self) -> _Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> _Token:
        tok = self._peek()
        if tok is None:
            raise ConditionSyntaxError(self.expression, "unexpected end of expression")
        self.pos += 1
        return tok

    def _accept(self, text: str) -> bool:
        tok = self._peek()
        if tok is not None and tok.kind == "op" and tok.text == text:
            self.pos += 1
            return True
        return False

    def parse(self) -> Node:
        if not self.tokens:
            raise ConditionSyntaxError(self.expression, "empty expression")
        node = self._expr()
        if self._peek() is not None:
            raise ConditionSyntaxError(
                self.expression, f"unexpected token {self._peek().text!r}"
            )
        return node

    def _expr(self) -> Node:
        operands = [self._and()]
        while self._accept("or"):
            operands.append(self._and())
        return operands[0] if len(operands) == 1 else BoolOp("or", tuple(operands))

    def _and(self) -> Node:
        operands = [self._unary()]
        while self._accept("and"):
            operands.append(self._unary())
        return operands[0] if len(operands) == 1 else BoolOp("and", tuple(operands))

    def _unary(self) -> Node:
        if self._accept("not"):
            return Not(self._unary())
        return self._atom()

    def _atom(self) -> Node:
        if self._accept("("):
            node = self._expr()
            if not self._accept(")"):
                raise ConditionSyntaxError(self.expression, "missing closing ')'")
            return node
        left = self._operand()
        tok = self._peek()
        if tok is not None and tok.kind == "op" and tok.text in _COMPARATORS:
            self.pos += 1
            return Compare(tok.text, left, self._operand())
        return left

    def _operand(self) -> Literal | Var:
        tok = self._take()
        if tok.kind == "number":
            number = float(tok.text)
            return Literal(int(number) if number.is_integer() else number)
        if tok.kind == "string":
            return Literal(tok.text[1:-1])
        if tok.kind == "bool":
            return Literal(tok.text == "true")
        if tok.kind == "ident":
            return Var(tok.text)
        raise ConditionSyntaxError(self.expression, f"unexpected token {tok.text!r}")


@lru_cache(maxsize=256)
def parse_condition(expression: str) -> Node:
    """Parse a condition into an expression tree.

    Raises:
        ConditionSyntaxError: If the expression is malformed.
    """
    return _Parser(expression).parse()


def referenced_variables(node: Node) -> set[str]:
    """Return the variable names referenced by a parsed condition."""
    if isinstance(node, Var):
        return {node.name}
    if isinstance(node, Compare):
        return referenced_variables(node.left) | referenced_variables(node.right)
    if isinstance(node, Not):
        return referenced_variables(node.operand)
    if isinstance(node, BoolOp):
        names: set[str] = set()
        for operand in node.operands:
            names |= referenced_variables(operand)
        return names
    return set()


def _lookup(variables: Mapping[str, Any], name: str) -> Any:
    if name in variables:
        return variables[name]
    # Dotted names address nested mappings: team.size
    current: Any = variables
    for part in name.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY_STRINGS
    return bool(value)


def _compare(op: str, left: Any, right: Any) -> bool:
    lnum, rnum = _as_number(left), _as_number(right)
    if lnum is not None and rnum is not None:
        a: Any = lnum
        b: Any = rnum
    elif isinstance(left, bool) or isinstance(right, bool):
        a, b = _as_bool(left), _as_bool(right)
        if op not in {"==", "!="}:
            return False
    else:
        a, b = str(left), str(right)
    if op == "==":
        return a == b
    if op == "!=":
        return a != b
    if op == ">":
        return a > b
    if op == ">=":
        return a >= b
    if op == "<":
        return a < b
    return a <= b


def _eval(node: Node, variables: Mapping[str, Any]) -> Any:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Var):
        return _lookup(variables, node.name)
    if isinstance(node, Compare):
        left = _eval(node.left, variables)
        right = _eval(node.right, variables)
        return _compare(node.op, left, right)
    if isinstance(node, Not):
        return not _as_bool(_eval(node.operand, variables))
    if node.op == "and":
        return all(_as_bool(_eval(op, variables)) for op in node.operands)
    return any(_as_bool(_eval(op, variables)) for op in node.operands)


def evaluate(expression: str, variables: Mapping[str, Any]) -> bool:
    """Evaluate a condition against project variables.

    Args:
        expression: Condition expression (see module grammar).
        variables: Render-scoped project variables.

    Returns:
        True when the condition holds. False when it does not hold or when it
        references a variable that is not supplied.

    Raises:
        ConditionSyntaxError: If the expression is malformed.
    """
    node = parse_condition(expression)
    for name in referenced_variables(node):
        if _lookup(variables, name) is None:
            return False
    return _as_bool(_eval(node, variables))


__all__ = [
    "evaluate",
    "parse_condition",
    "referenced_variables",
]
