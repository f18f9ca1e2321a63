"""Test fixtures: a sample order-reporting fragment registry."""

from __future__ import annotations

from fragql import (
    BetweenExpression,
    BinaryExpression,
    ColumnExpression,
    FromTable,
    GroupBy,
    JoinClause,
    OrderBy,
    QueryDef,
    RegexpExpression,
    ResultColumn,
    Unknown,
)


def col(table: str | None, name: str) -> ColumnExpression:
    return ColumnExpression(table=table, name=name)


def build_orders_query_def() -> QueryDef:
    """Registry over ``orders`` with a ``customers`` join and common filters.

    Keys: ``table:customers``, ``field:id``, ``field:total``,
    ``field:customerName`` (needs ``table:customers``), sub-filters
    ``status`` (one variable, default ``"open"``), ``createdBetween``
    (``from``/``to``) and ``customerNameLike`` (regexp, needs
    ``table:customers``), ``groupBy:customer`` and ``orderBy:createdAt``.
    """
    query_def = QueryDef(
        {
            "select": [ResultColumn(expression=ColumnExpression(name="*"))],
            "from": "orders",
        }
    )
    query_def.table(
        "customers",
        {
            "from": FromTable(
                table="orders",
                join_clauses=[
                    JoinClause(
                        operator="LEFT",
                        table="customers",
                        on=BinaryExpression(
                            left=col("orders", "customerId"), right=col("customers", "id")
                        ),
                    )
                ],
            )
        },
    )
    query_def.field("id", {"select": ResultColumn(expression=col("orders", "id"))})
    query_def.field("total", {"select": ResultColumn(expression=col("orders", "total"))})
    query_def.field(
        "customerName",
        {"select": ResultColumn(expression=col("customers", "name"), alias="customerName")},
        ["table:customers"],
    )
    query_def.subquery(
        "status",
        {"where": BinaryExpression(left=col("orders", "status"), right=Unknown())},
    ).register("value", 0, default="open")
    query_def.subquery(
        "createdBetween",
        {
            "where": BetweenExpression(
                left=col("orders", "createdAt"), start=Unknown(), end=Unknown()
            )
        },
    ).register("from", 0).register("to", 1)
    query_def.subquery(
        "customerNameLike",
        {"where": RegexpExpression(left=col("customers", "name"), right=Unknown())},
        ["table:customers"],
    ).register("value", 0)
    query_def.group_by(
        "customer",
        {"group": GroupBy(expressions=[col("customers", "id")])},
        ["table:customers"],
    )
    query_def.order_by(
        "createdAt",
        {"order": OrderBy(expression=col("orders", "createdAt"), direction="DESC")},
    )
    return query_def
