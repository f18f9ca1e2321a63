"""Unit tests for Fragment variable binding and copying."""

from __future__ import annotations

import pytest

from fragql.compose.fragment import Fragment
from fragql.compose.prerequisite import Names
from fragql.schema.ast import (
    BetweenExpression,
    BinaryExpression,
    ColumnExpression,
    LikeExpression,
    Query,
    ResultColumn,
    Unknown,
)
from fragql.schema.params import QueryParams


def _placeholder_query(count: int = 1) -> Query:
    return Query(
        where=[
            BinaryExpression(left=ColumnExpression(name=f"c{i}"), right=Unknown())
            for i in range(count)
        ]
    )


def _bound(query: Query) -> list:
    return [condition.right.value for condition in query.where_list()]


def _params(**subqueries) -> QueryParams:
    return QueryParams(subqueries=subqueries)


# ---------------------------------------------------------------------------
# default
# ---------------------------------------------------------------------------


def test_default_is_true_without_variables():
    assert Fragment(Query()).default is True


def test_default_collects_variable_defaults():
    fragment = Fragment(_placeholder_query(2))
    fragment.register("a", 0, default=1).register("b", 1, default=2)
    assert fragment.default == {"a": 1, "b": 2}


def test_default_of_variable_without_default_is_none():
    fragment = Fragment(_placeholder_query()).register("a", 0)
    assert fragment.default == {"a": None}


def test_register_same_index_overwrites():
    fragment = Fragment(_placeholder_query())
    fragment.register("a", 0, default=1).register("b", 0, default=2)
    assert fragment.default == {"b": 2}


# ---------------------------------------------------------------------------
# Named application (placeholder binding)
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_bound_value_sets_placeholder():
    fragment = Fragment(_placeholder_query()).register("a", 0, default=1)
    result = await fragment.apply(_params(x={"a": 5}), name="x")
    assert _bound(result) == [5]


@pytest.mark.asyncio
async def test_missing_variable_falls_back_to_default():
    fragment = Fragment(_placeholder_query(2))
    fragment.register("a", 0, default=1).register("b", 1, default=2)
    result = await fragment.apply(_params(x={"a": 5}), name="x")
    assert _bound(result) == [5, 2]


@pytest.mark.asyncio
async def test_true_binds_defaults():
    fragment = Fragment(_placeholder_query()).register("a", 0, default="open")
    result = await fragment.apply(_params(x=True), name="x")
    assert _bound(result) == ["open"]


@pytest.mark.asyncio
async def test_scalar_value_is_treated_as_value_key():
    fragment = Fragment(_placeholder_query()).register("value", 0)
    result = await fragment.apply(_params(x=7), name="x")
    assert _bound(result) == [7]


@pytest.mark.asyncio
async def test_format_renders_whole_effective_value():
    source = Query(
        where=LikeExpression(left=ColumnExpression(name="name"), right=Unknown())
    )
    fragment = Fragment(source).register("value", 0, format="%{{ value.value }}%")
    result = await fragment.apply(_params(x={"value": "acme"}), name="x")
    assert result.where_list()[0].right.value == "%acme%"


@pytest.mark.asyncio
async def test_extra_placeholders_stay_unbound():
    fragment = Fragment(_placeholder_query(2)).register("a", 0)
    result = await fragment.apply(_params(x={"a": 1}), name="x")
    assert _bound(result) == [1, None]


@pytest.mark.asyncio
async def test_from_to_binding_in_scan_order():
    source = Query(
        where=BetweenExpression(
            left=ColumnExpression(name="createdAt"), start=Unknown(), end=Unknown()
        )
    )
    fragment = Fragment(source).register("from", 0).register("to", 1)
    result = await fragment.apply(
        _params(x={"from": "2020-01-01", "to": "2020-12-31"}), name="x"
    )
    between = result.where_list()[0]
    assert (between.start.value, between.end.value) == ("2020-01-01", "2020-12-31")


@pytest.mark.asyncio
async def test_two_argument_source_receives_value_and_params():
    seen = []

    def source(value, params):
        seen.append((value, params.limit))
        return {"where": BinaryExpression(left=ColumnExpression(name="a"), right=Unknown())}

    fragment = Fragment(source).register("value", 0)
    await fragment.apply(QueryParams(subqueries={"x": {"value": 1}}, limit=3), name="x")
    assert seen == [({"value": 1}, 3)]


@pytest.mark.asyncio
async def test_one_argument_source_receives_value_only():
    def source(value):
        operator = "=" if value is True else "<>"
        return Query(
            where=BinaryExpression(
                left=ColumnExpression(name="status"), operator=operator, right=Unknown()
            )
        )

    fragment = Fragment(source)
    result = await fragment.apply(_params(active=False), name="active")
    assert result.where_list()[0].operator == "<>"


@pytest.mark.asyncio
async def test_async_source_is_awaited():
    async def source(value, params):
        return {"where": BinaryExpression(left=ColumnExpression(name="a"), right=Unknown())}

    fragment = Fragment(source).register("value", 0)
    result = await fragment.apply(_params(x={"value": "v"}), name="x")
    assert _bound(result) == ["v"]


@pytest.mark.asyncio
async def test_registered_source_is_never_mutated():
    source = _placeholder_query()
    fragment = Fragment(source).register("a", 0)
    first = await fragment.apply(_params(x={"a": 1}), name="x")
    second = await fragment.apply(_params(x={"a": 2}), name="x")
    assert _bound(first) == [1]
    assert _bound(second) == [2]
    assert source.where_list()[0].right.value is None


# ---------------------------------------------------------------------------
# Unnamed application
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unnamed_apply_calls_source_with_params_and_strips_wildcard():
    def source(params):
        return {
            "select": [
                ResultColumn(expression=ColumnExpression(name="*")),
                ResultColumn(expression=ColumnExpression(name=f"n{params.limit}")),
            ]
        }

    result = await Fragment(source).apply(QueryParams(limit=2))
    assert [c.expression.name for c in result.select_list()] == ["n2"]


@pytest.mark.asyncio
async def test_dict_source_is_validated_once():
    fragment = Fragment({"from": "orders"})
    result = await fragment.apply(QueryParams())
    assert result.from_ == "orders"


# ---------------------------------------------------------------------------
# clone
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_clone_keeps_variables_and_copies_source():
    source = _placeholder_query()
    original = Fragment(source, ["table:orders"]).register("a", 0, default=1)
    copy = original.clone()

    original.register("b", 0, default=2)
    assert copy.default == {"a": 1}
    assert copy.prerequisite == Names(("table:orders",))

    source.where_list()[0].left.name = "changed"
    result = await copy.apply(_params(x=True), name="x")
    assert result.where_list()[0].left.name == "c0"


@pytest.mark.asyncio
async def test_clone_shares_function_source():
    calls = []

    def source(params):
        calls.append(params)
        return Query()

    copy = Fragment(source).clone()
    await copy.apply(QueryParams())
    assert len(calls) == 1
