"""Post-processors run over the finished tree.

A post-processor is a callable ``(Query) -> Query``.  ``QueryDef`` runs its
post-processors in registration order after every fragment is merged; each
may mutate the tree in place.
"""

from __future__ import annotations

import re
from collections.abc import Callable
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
    LimitOffset,
    MathExpression,
    OrExpressions,
    ParameterExpression,
    Query,
    QueryExpression,
    RegexpExpression,
    Unknown,
    Value,
)

PostProcessor = Callable[[Query], Query]

_REGEX_SPECIAL = re.compile(r"[-/\\^$*+?.()|\[\]{}]")


def escape_regex(text: str) -> str:
    """Backslash-escape regular expression metacharacters in ``text``."""
    return _REGEX_SPECIAL.sub(lambda m: "\\" + m.group(0), text)


def escape_regexp(query: Query) -> Query:
    """Escape literal text on the right-hand side of every ``REGEXP``.

    String values of :class:`Value` and bound :class:`Unknown` nodes, and raw
    string patterns, are escaped when they sit in a regexp pattern position.
    Every nested sub-query (``EXISTS``, ``IN (SELECT ...)``, scalar
    sub-queries, derived tables, joins) and the LIMIT/OFFSET expressions are
    walked as well.
    """
    for column in query.select_list():
        _fix(column.expression)
    for table in query.from_list():
        _fix_table(table)
    for condition in query.where_list():
        _fix(condition)
    group = query.group
    if group is not None and not isinstance(group, str):
        for expression in group.expression_list():
            _fix(expression)
        for condition in group.having_list():
            _fix(condition)
    for order in query.order_list():
        _fix(order.expression)
    if isinstance(query.limit, LimitOffset):
        _fix(query.limit.limit)
        _fix(query.limit.offset)
    if query.union is not None:
        escape_regexp(query.union)
    return query


def _fix_table(table: FromTable) -> None:
    if isinstance(table.table, Query):
        escape_regexp(table.table)
    for join in table.join_list():
        if isinstance(join.table, FromTable):
            _fix_table(join.table)
        for condition in join.on_list():
            _fix(condition)


def _fix(node: Any, in_pattern: bool = False) -> None:
    if isinstance(node, (Value, Unknown)):
        if in_pattern and isinstance(node.value, str):
            node.value = escape_regex(node.value)
    elif isinstance(node, RegexpExpression):
        _fix(node.left)
        if isinstance(node.right, str):
            node.right = escape_regex(node.right)
        else:
            _fix(node.right, in_pattern=True)
    elif isinstance(node, BetweenExpression):
        _fix(node.left)
        _fix(node.start)
        _fix(node.end)
    elif isinstance(node, (BinaryExpression, MathExpression)):
        _fix(node.left)
        _fix(node.right)
    elif isinstance(node, CaseExpression):
        for case in node.cases:
            _fix(case.when)
            _fix(case.then)
        _fix(node.else_)
    elif isinstance(node, (ExistsExpression, QueryExpression)):
        escape_regexp(node.query)
    elif isinstance(node, FunctionExpression):
        for parameter in node.parameters:
            _fix(parameter)
    elif isinstance(node, (AndExpressions, OrExpressions)):
        for expression in node.expressions:
            _fix(expression)
    elif isinstance(node, InExpression):
        _fix(node.left)
        if isinstance(node.right, Query):
            escape_regexp(node.right)
        else:
            _fix(node.right)
    elif isinstance(node, (IsNullExpression, LikeExpression)):
        _fix(node.left)
    elif isinstance(node, ParameterExpression):
        _fix(node.expression)
