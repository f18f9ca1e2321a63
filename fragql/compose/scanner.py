"""Placeholder scanner.

``find_unknowns`` walks a query tree and returns every :class:`Unknown` it
contains, in a fixed order:

    SELECT -> FROM (join ON conditions) -> WHERE -> GROUP BY expressions
    -> HAVING -> ORDER BY

Nested sub-queries (``EXISTS``, ``IN (SELECT ...)``, scalar sub-queries) are
walked in place, so their placeholders appear where the sub-query sits.  The
position of a placeholder in this list is the index a fragment variable is
registered under.
"""

from __future__ import annotations

from typing import Any

from fragql.schema.ast import (
    AndExpressions,
    BetweenExpression,
    BinaryExpression,
    CaseExpression,
    ExistsExpression,
    FromTable,
    FunctionExpression,
    InExpression,
    IsNullExpression,
    LikeExpression,
    MathExpression,
    OrExpressions,
    ParameterExpression,
    Query,
    QueryExpression,
    RegexpExpression,
    Unknown,
)


def find_unknowns(node: Any) -> list[Unknown]:
    """Return the placeholders contained in ``node`` in scan order.

    Args:
        node: A ``Query``, ``FromTable`` or any expression node.  Other values
            (raw strings, ``None``) contribute nothing.

    Returns:
        The ``Unknown`` instances themselves (not copies), so callers can bind
        them in place.
    """
    result: list[Unknown] = []
    _scan(node, result)
    return result


def _scan(node: Any, result: list[Unknown]) -> None:
    if isinstance(node, Unknown):
        result.append(node)
    elif isinstance(node, Query):
        _scan_query(node, result)
    elif isinstance(node, FromTable):
        for join in node.join_list():
            if isinstance(join.table, FromTable):
                _scan(join.table, result)
            for condition in join.on_list():
                _scan(condition, result)
    elif isinstance(node, (AndExpressions, OrExpressions)):
        for expression in node.expressions:
            _scan(expression, result)
    elif isinstance(node, BetweenExpression):
        _scan(node.left, result)
        _scan(node.start, result)
        _scan(node.end, result)
    elif isinstance(
        node,
        (BinaryExpression, InExpression, LikeExpression, MathExpression, RegexpExpression),
    ):
        _scan(node.left, result)
        _scan(node.right, result)
    elif isinstance(node, CaseExpression):
        for case in node.cases:
            _scan(case.when, result)
            _scan(case.then, result)
        if node.else_ is not None:
            _scan(node.else_, result)
    elif isinstance(node, (ExistsExpression, QueryExpression)):
        _scan(node.query, result)
    elif isinstance(node, FunctionExpression):
        for parameter in node.parameters:
            _scan(parameter, result)
    elif isinstance(node, IsNullExpression):
        _scan(node.left, result)
    elif isinstance(node, ParameterExpression):
        _scan(node.expression, result)


def _scan_query(query: Query, result: list[Unknown]) -> None:
    for column in query.select_list():
        _scan(column.expression, result)
    for table in query.from_list():
        _scan(table, result)
    for condition in query.where_list():
        _scan(condition, result)
    group = query.group_by()
    if group is not None:
        for expression in group.expression_list():
            _scan(expression, result)
        for condition in group.having_list():
            _scan(condition, result)
    for order in query.order_list():
        _scan(order.expression, result)
