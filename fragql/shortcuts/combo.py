"""Operator-driven sub-filter behind the ``combo`` shortcut.

A ``combo`` shortcut registers one expression three ways: as a grouped field
``<name>``, as an ``ANY_VALUE`` grouped field ``<name>Any`` and as a
sub-filter ``<name>`` comparing the expression with the bound value.

The sub-filter's bound value names the comparison::

    {"value": "acme"}                                  # name = 'acme'
    {"value": ["a", "b"]}                              # name IN ('a', 'b')
    {"from": 1, "to": 9}                               # name BETWEEN 1 AND 9
    {"value": None}                                    # name IS NULL
    {"value": "ac.me", "operator": "not regexp"}       # NOT name REGEXP 'ac\\.me'
    {"multiple": [{"value": 1, "operator": ">"}, {"value": 9, "operator": "<"}]}

Operators: ``=``, ``<>``, ``!=``, ``<``, ``<=``, ``>``, ``>=``, ``between``,
``in``, ``is null``, ``regexp``, ``like``, ``start with``, ``end with`` and
the ``not`` form of every word operator (``is not null`` for null checks).
Every entry of ``multiple`` becomes one ANDed condition.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from fragql.schema.ast import (
    BetweenExpression,
    BinaryExpression,
    Expression,
    FunctionExpression,
    InExpression,
    IsNullExpression,
    LikeExpression,
    Query,
    RegexpExpression,
    Value,
    to_expression,
)
from fragql.schema.params import QueryParams

_COMPARISONS = ("=", "<>", "!=", "<", "<=", ">", ">=")

#: ``LIKE`` pattern per operator word; ``{}`` is the bound value.
_LIKE_PATTERNS = {
    "like": "%{}%",
    "start with": "{}%",
    "end with": "%{}",
}


async def resolve_expression(expression: Any, params: QueryParams) -> Expression:
    """Evaluate a fixed expression or a ``(params) -> expression`` callable to a copy."""
    value = expression(params) if callable(expression) else expression
    if inspect.isawaitable(value):
        value = await value
    return to_expression(value).model_copy(deep=True)


def any_value(expression: Any) -> Callable[[QueryParams], Any]:
    """``ANY_VALUE(expression)`` as a group-field source."""

    async def source(params: QueryParams) -> FunctionExpression:
        return FunctionExpression(
            name="ANY_VALUE", parameters=[await resolve_expression(expression, params)]
        )

    return source


def default_operator(entry: Mapping[str, Any]) -> str:
    if entry.get("from") is not None and entry.get("to") is not None:
        return "between"
    value = entry.get("value")
    if isinstance(value, list):
        return "in"
    if value is None:
        return "is null"
    return "="


def combo_condition(expression: Expression, entry: Mapping[str, Any]) -> Expression:
    """Build the condition for one bound entry.

    Raises:
        ValueError: If the operator is not supported.
    """
    operator = entry.get("operator") or default_operator(entry)
    key = operator.lower().strip()
    left = expression.model_copy(deep=True)
    value = entry.get("value")

    if key in _COMPARISONS:
        return BinaryExpression(left=left, operator=key, right=Value(value=value))

    negated = key.startswith("not ") or " not " in key
    key = key.removeprefix("not ").replace(" not ", " ")
    if key == "between":
        return BetweenExpression(
            left=left,
            negated=negated,
            start=Value(value=entry.get("from")),
            end=Value(value=entry.get("to")),
        )
    if key == "in":
        return InExpression(left=left, negated=negated, right=Value(value=value))
    if key == "is null":
        return IsNullExpression(left=left, negated=negated)
    if key == "regexp":
        return RegexpExpression(left=left, negated=negated, right=Value(value=value))
    if key in _LIKE_PATTERNS:
        return LikeExpression(
            left=left, negated=negated, right=Value(value=_LIKE_PATTERNS[key].format(value))
        )
    raise ValueError(f"Unsupported operator '{operator}'")


def combo_subquery_arg(expression: Any) -> Callable[[Any, QueryParams], Any]:
    """Sub-filter source comparing ``expression`` with the bound value."""

    async def source(bound: Any, params: QueryParams) -> Query:
        entry = bound if isinstance(bound, Mapping) else {"value": bound}
        resolved = await resolve_expression(expression, params)
        entries = entry.get("multiple") or [entry]
        return Query(where=[combo_condition(resolved, e) for e in entries])

    return source
