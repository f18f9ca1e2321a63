"""Small expression builders for writing fragments."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fragql.schema.ast import (
    BinaryExpression,
    Expression,
    FunctionExpression,
    InExpression,
    Query,
    Value,
)


def if_expression(
    condition: Expression, when_true: Expression, when_false: Expression | None = None
) -> FunctionExpression:
    """``IF(condition, when_true, when_false)``; ``when_false`` defaults to ``NULL``."""
    return FunctionExpression(
        name="IF", parameters=[condition, when_true, when_false or Value(value=None)]
    )


def if_null_expression(value: Expression, else_value: Expression) -> FunctionExpression:
    return FunctionExpression(name="IFNULL", parameters=[value, else_value])


def equal_or_in_subquery_arg(left: Expression) -> Callable[[Any], Query]:
    """Sub-filter source matching ``left`` against the bound ``value``.

    A list value yields ``left IN (...)``, anything else ``left = value``::

        query_def.subquery("id", equal_or_in_subquery_arg(ColumnExpression(name="id")))
        # subqueries={"id": {"value": [1, 2]}}  ->  WHERE id IN (1, 2)
    """

    def source(bound: Any) -> Query:
        value = bound.get("value") if isinstance(bound, dict) else bound
        if isinstance(value, list):
            expression: Expression = InExpression(
                left=left.model_copy(deep=True), right=Value(value=value)
            )
        else:
            expression = BinaryExpression(
                left=left.model_copy(deep=True), operator="=", right=Value(value=value)
            )
        return Query(where=[expression])

    return source
