"""Tree merger: folds one partial query tree into another, clause by clause.

Per-clause rules applied by :func:`merge_query`:

=========  ================================================================
distinct   OR of both flags.
select     Concatenated, base columns first.
from       Tables matched by name (alias for derived tables); a matching
           table only receives the addition's JOIN clauses, a new table is
           appended whole.
where      Concatenated into one AND group; an existing AND group is
           extended rather than wrapped again.
group      Expressions and HAVING conditions concatenated.  HAVING stays a
           list until :func:`collapse_having` runs once at the end of a merge
           pass, so repeated merges never nest single-element AND groups.
order      Concatenated.
limit      First writer wins: the addition's limit only applies if the base
           has none.
union      The addition's union chain is attached at the tail of the base's.
=========  ================================================================

``merge_query`` mutates and returns ``base``.  Malformed trees are not
reported; the result is simply whatever the rules above produce.
"""

from __future__ import annotations

from collections.abc import Sequence

from fragql.schema.ast import (
    AndExpressions,
    ColumnExpression,
    Expression,
    FromTable,
    GroupBy,
    Query,
)


def merge_query(base: Query, addition: Query) -> Query:
    """Merge ``addition`` into ``base`` and return ``base``."""
    if addition.distinct:
        base.distinct = True

    additional_columns = addition.select_list()
    if additional_columns:
        base.select = [*base.select_list(), *additional_columns]

    if addition.from_ is not None:
        base.from_ = _merge_from(base.from_list(), addition.from_list())

    additional_conditions = addition.where_list()
    if additional_conditions:
        base.where = and_all(base.where_list(), additional_conditions)

    additional_group = addition.group_by()
    if additional_group is not None:
        base_group = base.group_by() or GroupBy()
        having = [*base_group.having_list(), *additional_group.having_list()]
        base.group = GroupBy(
            expressions=[*base_group.expression_list(), *additional_group.expression_list()],
            having=having or None,
        )

    additional_order = addition.order_list()
    if additional_order:
        base.order = [*base.order_list(), *additional_order]

    if addition.limit is not None and base.limit is None:
        base.limit = addition.limit

    if addition.union is not None:
        tail = base
        while tail.union is not None:
            tail = tail.union
        tail.union = addition.union

    return base


def _merge_from(tables: list[FromTable], additions: list[FromTable]) -> list[FromTable]:
    tables = list(tables)
    for table in additions:
        existing = None
        if table.key is not None:
            existing = next((t for t in tables if t.key == table.key), None)
        if existing is None:
            tables.append(table)
        elif table.join_list():
            existing.join_clauses = [*existing.join_list(), *table.join_list()]
    return tables


def and_all(conditions: Sequence[Expression], additions: Sequence[Expression]) -> Expression:
    """AND ``additions`` onto ``conditions``.

    A lone existing :class:`AndExpressions` group is extended in place;
    anything else is wrapped in a new group.
    """
    if len(conditions) == 1 and isinstance(conditions[0], AndExpressions):
        conditions[0].expressions.extend(additions)
        return conditions[0]
    return AndExpressions(expressions=[*conditions, *additions])


def combine_conditions(conditions: Sequence[Expression]) -> Expression | None:
    """Collapse a condition list: nothing, the single condition, or one AND group."""
    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return AndExpressions(expressions=list(conditions))


def collapse_having(query: Query) -> Query:
    """Turn a list-shaped HAVING into a single condition (or drop it)."""
    group = query.group
    if isinstance(group, GroupBy) and isinstance(group.having, list):
        group.having = combine_conditions(group.having)
    return query


def without_wildcard(query: Query) -> Query:
    """Drop unqualified ``*`` result columns from ``query`` in place."""
    columns = [
        column
        for column in query.select_list()
        if not (isinstance(column.expression, ColumnExpression) and column.expression.is_wildcard)
    ]
    query.select = columns or None
    return query
