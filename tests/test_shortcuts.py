"""Tests for the shortcut descriptor layer."""

from __future__ import annotations

import logging

import pytest

from fragql import (
    AndExpressions,
    BetweenExpression,
    BinaryExpression,
    ColumnExpression,
    DuplicateFragmentError,
    FromTable,
    JoinClause,
    NotRegisteredError,
    QueryDef,
    QueryParams,
    ShortcutError,
    ShortcutRegistry,
    Unknown,
)
from fragql.compose.prerequisite import Names
from fragql.shortcuts import RegisteredExpressions, UnknownsSpec


def _customers_join() -> FromTable:
    return FromTable(
        table="orders",
        join_clauses=[
            JoinClause(
                operator="LEFT",
                table="customers",
                on=BinaryExpression(
                    left=ColumnExpression(table="orders", name="customerId"),
                    right=ColumnExpression(table="customers", name="id"),
                ),
            )
        ],
    )


def _shortcuts() -> list[dict]:
    return [
        {"type": "table", "name": "customers", "from_table": _customers_join()},
        {
            "type": "field",
            "name": "customerName",
            "expression": {"classname": "ColumnExpression", "table": "customers", "name": "name"},
            "registered": True,
            "prerequisite": ["table:customers"],
        },
        {
            "type": "subquery",
            "name": "customerNameIs",
            "expression": lambda registered: BinaryExpression(
                left=registered["customerName"], right=Unknown()
            ),
            "unknowns": True,
        },
    ]


# ---------------------------------------------------------------------------
# Built-in kinds
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_shortcuts_register_fragments():
    query_def = await QueryDef({"from": "orders"}).use_shortcuts(_shortcuts())
    assert query_def.registered() == ["table:customers", "field:customerName", "customerNameIs"]

    tree = await query_def.apply({"fields": ["customerName"]})
    [column] = tree.select_list()
    assert column.alias == "customerName"
    assert column.expression == ColumnExpression(table="customers", name="name")


@pytest.mark.asyncio
async def test_reading_registered_expression_inherits_its_prerequisite():
    query_def = await QueryDef({"from": "orders"}).use_shortcuts(_shortcuts())
    assert query_def.fragment("customerNameIs").prerequisite == Names(("table:customers",))

    tree = await query_def.apply({"subqueries": {"customerNameIs": {"value": "Acme"}}})
    assert tree.from_list()[0].join_list()[0].table == "customers"
    assert tree.where.expressions[0].right.value == "Acme"


@pytest.mark.asyncio
async def test_missing_registered_expression_is_wrapped():
    shortcuts = [{"type": "subquery", "name": "y", "expression": lambda r: r["x"]}]
    with pytest.raises(ShortcutError) as exc_info:
        await QueryDef().use_shortcuts(shortcuts)
    assert str(exc_info.value) == "expression 'x' not registered. Fail to register subquery:y"
    assert isinstance(exc_info.value.__cause__, NotRegisteredError)
    assert (exc_info.value.shortcut_type, exc_info.value.name) == ("subquery", "y")


@pytest.mark.asyncio
async def test_duplicate_registration_is_wrapped():
    shortcuts = [
        {"type": "field", "name": "id", "expression": ColumnExpression(name="id")},
        {"type": "field", "name": "id", "expression": ColumnExpression(name="id")},
    ]
    with pytest.raises(ShortcutError) as exc_info:
        await QueryDef().use_shortcuts(shortcuts)
    assert isinstance(exc_info.value.__cause__, DuplicateFragmentError)


@pytest.mark.asyncio
async def test_unknown_type_and_missing_source_are_skipped(caplog):
    shortcuts = [
        {"type": "metric", "name": "m"},
        {"type": "field", "name": "f"},
        {"type": "orderBy", "name": "o"},
    ]
    with caplog.at_level(logging.WARNING, logger="fragql.shortcuts.registry"):
        query_def = await QueryDef().use_shortcuts(shortcuts)
    assert query_def.registered() == []
    assert "Invalid metric:m" in caplog.text
    assert "Invalid field:f" in caplog.text
    assert "Invalid orderBy:o" in caplog.text


@pytest.mark.asyncio
async def test_from_to_unknowns():
    shortcuts = [
        {
            "type": "subquery",
            "name": "createdBetween",
            "expression": BetweenExpression(
                left=ColumnExpression(name="createdAt"), start=Unknown(), end=Unknown()
            ),
            "unknowns": {"from_to": True},
        }
    ]
    query_def = await QueryDef().use_shortcuts(shortcuts)
    assert query_def.fragment("createdBetween").default == {"from": None, "to": None}

    tree = await query_def.apply({"subqueries": {"createdBetween": {"from": 1, "to": 9}}})
    between = tree.where.expressions[0]
    assert (between.start.value, between.end.value) == (1, 9)


@pytest.mark.asyncio
async def test_counted_and_named_unknowns():
    two_conditions = AndExpressions(
        expressions=[
            BinaryExpression(left=ColumnExpression(name="a"), right=Unknown()),
            BinaryExpression(left=ColumnExpression(name="b"), right=Unknown()),
        ]
    )
    shortcuts = [
        {
            "type": "subquery",
            "name": "counted",
            "expression": two_conditions,
            "unknowns": UnknownsSpec(no_of_unknowns=2),
        },
        {
            "type": "subquery",
            "name": "named",
            "expression": two_conditions,
            "unknowns": [("a", 0), ("b", 1)],
        },
    ]
    query_def = await QueryDef().use_shortcuts(shortcuts)
    assert query_def.fragment("counted").default == {"value": None}
    assert query_def.fragment("named").default == {"a": None, "b": None}

    partial = await query_def.fragment("named").apply(
        QueryParams(subqueries={"named": {"a": 1, "b": 2}}), name="named"
    )
    inner = partial.where_list()[0]
    assert [e.right.value for e in inner.expressions] == [1, 2]


@pytest.mark.asyncio
async def test_order_by_direction_and_async_expression():
    async def total(registered):
        return ColumnExpression(table="orders", name="total")

    shortcuts = [
        {"type": "orderBy", "name": "total", "expression": total, "direction": "DESC"},
        {"type": "groupBy", "name": "status", "expression": ColumnExpression(name="status")},
    ]
    query_def = await QueryDef().use_shortcuts(shortcuts)
    tree = await query_def.apply({"sorting": "total", "group_by": ["status"]})
    [order] = tree.order_list()
    assert (order.expression.name, order.direction) == ("total", "DESC")
    assert tree.group.expression_list() == [ColumnExpression(name="status")]


@pytest.mark.asyncio
async def test_query_arg_receives_registered_lookup():
    seen = []

    def query_arg(registered):
        seen.append("id" in registered)
        return {"from": "archive"}

    shortcuts = [
        {"type": "field", "name": "id", "expression": ColumnExpression(name="id"), "registered": True},
        {"type": "table", "name": "archive", "query_arg": query_arg},
    ]
    query_def = await QueryDef({"from": "orders"}).use_shortcuts(shortcuts)
    assert seen == [True]
    tree = await query_def.apply({"tables": ["archive"]})
    assert [t.table for t in tree.from_list()] == ["orders", "archive"]


# ---------------------------------------------------------------------------
# Custom kinds
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_with_handler_returns_new_registry():
    calls = []

    def metric(query_def, descriptor, context):
        calls.append(context.options)
        query_def.field(descriptor["name"], {"select": {"expression": ColumnExpression(name="m")}})

    base = ShortcutRegistry()
    extended = base.with_handler("metric", metric)
    assert "metric" not in base.types
    assert "metric" in extended.types

    query_def = QueryDef(shortcut_registry=extended)
    await query_def.use_shortcuts([{"type": "metric", "name": "m"}], {"flag": 1})
    assert "field:m" in query_def
    assert calls == [{"flag": 1}]


@pytest.mark.asyncio
async def test_built_in_kinds_cannot_be_replaced(caplog):
    def field(query_def, descriptor, context):
        raise AssertionError("must not run")

    with caplog.at_level(logging.WARNING, logger="fragql.shortcuts.registry"):
        registry = ShortcutRegistry({"field": field})
    assert "Shortcut 'field' cannot be overwritten" in caplog.text

    query_def = QueryDef(shortcut_registry=registry)
    await query_def.use_shortcuts(
        [{"type": "field", "name": "id", "expression": ColumnExpression(name="id")}]
    )
    assert "field:id" in query_def


def test_registered_expressions_lookup():
    registered = RegisteredExpressions()
    registered.add("id", ColumnExpression(name="id"), Names(("table:orders",)))

    copy = registered["id"]
    copy.name = "changed"
    assert registered.find("id") == ColumnExpression(name="id")
    assert registered.take_reads() == ["id"]
    assert registered.take_reads() == []
    assert registered.prerequisite_of("id") == Names(("table:orders",))

    with pytest.raises(NotRegisteredError):
        registered.lookup("missing")
