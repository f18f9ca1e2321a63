"""Clause-level fragment resolvers.

Each class folds the fragments requested for exactly one clause into the
accumulated query.  All of them receive the same
:class:`~fragql.compose.context.ResolutionContext` and run in the order below,
once per ``QueryDef.apply`` call.

Classes
-------
FieldResolver        ``params.fields``      -> SELECT
TableResolver        ``params.tables``      -> FROM / WHERE
SubqueryResolver     ``params.subqueries``  -> any clause (placeholders bound)
ConditionResolver    ``params.conditions``  -> WHERE
GroupByResolver      ``params.group_by``    -> GROUP BY / HAVING
OrderByResolver      ``params.sorting``     -> ORDER BY
"""
from __future__ import annotations

import logging

from fragql.compose.context import ResolutionContext
from fragql.compose.merger import and_all, combine_conditions, merge_query
from fragql.errors import EmptyFragmentError
from fragql.schema.ast import (
    ColumnExpression,
    Expression,
    GroupBy,
    OrderBy,
    Query,
    ResultColumn,
)
from fragql.schema.params import FieldParam, ResultColumnShortcut, SortKey

logger = logging.getLogger(__name__)


class FieldResolver:
    """Appends one result column group per requested field.

    A registered ``field:`` fragment contributes its SELECT list (and its
    DISTINCT flag).  An unregistered name becomes a plain column unless
    ``skip_def_fields`` is set.  ``(table, column)`` pairs, column shortcuts
    and ready-made result columns are used as they are.
    """

    def __init__(self, ctx: ResolutionContext) -> None:
        self._ctx = ctx

    async def resolve(self, base: Query) -> None:
        entries = self._ctx.params.fields
        if not entries:
            return
        columns: list[ResultColumn] = []
        for entry in entries:
            columns.extend(await self._columns(entry, base))
        base.select = [*base.select_list(), *columns] or None

    async def _columns(self, entry: FieldParam, base: Query) -> list[ResultColumn]:
        if isinstance(entry, str):
            key, fragment = self._ctx.lookup("field", entry)
            if fragment is None:
                if self._ctx.options.skip_def_fields:
                    return []
                return [ResultColumn(expression=ColumnExpression(name=entry))]
            partial = await fragment.apply(self._ctx.params)
            if partial.distinct:
                base.distinct = True
            columns = partial.select_list()
            if not columns:
                logger.warning("No result columns returned from '%s'", key)
            return columns
        if isinstance(entry, tuple):
            table, column = entry
            return [ResultColumn(expression=ColumnExpression(table=table, name=column))]
        if isinstance(entry, ResultColumnShortcut):
            table, column = entry.column
            return [
                ResultColumn(
                    expression=ColumnExpression(table=table, name=column), alias=entry.alias
                )
            ]
        return [entry]


class TableResolver:
    """Merges the FROM and WHERE parts of each registered ``table:`` fragment.

    Unregistered table names are ignored.
    """

    def __init__(self, ctx: ResolutionContext) -> None:
        self._ctx = ctx

    async def resolve(self, base: Query) -> None:
        for name in self._ctx.params.tables or []:
            key, fragment = self._ctx.lookup("table", name)
            if fragment is None:
                continue
            partial = await fragment.apply(self._ctx.params)
            merge_query(base, Query(from_=partial.from_, where=partial.where))
            logger.debug("Apply %s", key)


class SubqueryResolver:
    """Applies every registered sub-filter named in ``params.subqueries``."""

    def __init__(self, ctx: ResolutionContext) -> None:
        self._ctx = ctx

    async def resolve(self, base: Query) -> None:
        for name in list(self._ctx.params.subqueries):
            fragment = self._ctx.registry.get(name)
            if fragment is None:
                continue
            merge_query(base, await fragment.apply(self._ctx.params, name=name))


class ConditionResolver:
    """ANDs ``params.conditions`` onto the accumulated WHERE clause."""

    def __init__(self, ctx: ResolutionContext) -> None:
        self._ctx = ctx

    async def resolve(self, base: Query) -> None:
        condition = self._ctx.params.conditions
        if condition is None:
            return
        conditions = base.where_list()
        base.where = and_all(conditions, [condition]) if conditions else condition


class GroupByResolver:
    """Builds GROUP BY from ``params.group_by``.

    HAVING conditions from every entry are collected and collapsed once, after
    all entries are processed.  A registered fragment yielding no GROUP BY
    expressions is logged and skipped.
    """

    def __init__(self, ctx: ResolutionContext) -> None:
        self._ctx = ctx

    async def resolve(self, base: Query) -> None:
        entries = self._ctx.params.group_by
        if not entries:
            return
        group = base.group_by() or GroupBy()
        expressions: list[Expression] = list(group.expression_list())
        having: list[Expression] = list(group.having_list())

        for entry in entries:
            if isinstance(entry, GroupBy):
                expressions.extend(entry.expression_list())
                having.extend(entry.having_list())
                continue
            key, fragment = self._ctx.lookup("groupBy", entry)
            if fragment is None:
                expressions.append(ColumnExpression(name=entry))
                continue
            partial = (await fragment.apply(self._ctx.params)).group_by()
            if partial is None or not partial.expression_list():
                logger.warning("No GROUP BY returned from '%s'", key)
                if partial is not None:
                    having.extend(partial.having_list())
                continue
            expressions.extend(partial.expression_list())
            having.extend(partial.having_list())
            logger.debug("Apply %s", key)

        base.group = GroupBy(expressions=expressions, having=combine_conditions(having))


class OrderByResolver:
    """Appends ORDER BY terms for ``params.sorting``.

    A :class:`~fragql.schema.params.SortKey` direction overrides the
    fragment's own direction only when the fragment yields a single term.

    Raises:
        EmptyFragmentError: If a registered fragment yields no ORDER BY term.
    """

    def __init__(self, ctx: ResolutionContext) -> None:
        self._ctx = ctx

    async def resolve(self, base: Query) -> None:
        entries = self._ctx.params.sorting_list()
        if not entries:
            return
        order = list(base.order_list())
        for entry in entries:
            if isinstance(entry, OrderBy):
                order.append(entry)
                continue
            if isinstance(entry, SortKey):
                name, direction = entry.key, entry.direction
            else:
                name, direction = entry, None
            key, fragment = self._ctx.lookup("orderBy", name)
            if fragment is None:
                order.append(
                    OrderBy(expression=ColumnExpression(name=name), direction=direction or "ASC")
                )
                continue
            terms = (await fragment.apply(self._ctx.params)).order_list()
            if not terms:
                raise EmptyFragmentError(key, "ORDER BY")
            if direction is not None and len(terms) == 1:
                terms[0].direction = direction
            order.extend(terms)
            logger.debug("Apply %s", key)
        base.order = order
