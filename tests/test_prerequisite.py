"""Unit tests for prerequisite variants and their merge."""

from __future__ import annotations

import logging

import pytest

from fragql.compose.prerequisite import (
    NONE,
    Dynamic,
    Names,
    NoPrerequisite,
    Patch,
    merge_prerequisites,
    names_to_patch,
    patch_names,
    resolve_prerequisite,
    split_key,
    to_prerequisite,
)
from fragql.schema.params import QueryParams, SortKey


def test_to_prerequisite_shapes():
    assert to_prerequisite(None) is NONE
    assert to_prerequisite([]) is NONE
    assert to_prerequisite("table:orders") == Names(("table:orders",))
    assert to_prerequisite(["a", "field:b"]) == Names(("a", "field:b"))
    patch = to_prerequisite({"tables": ["orders"]})
    assert isinstance(patch, Patch)
    assert patch.params.tables == ["orders"]
    assert isinstance(to_prerequisite(lambda params: []), Dynamic)


def test_to_prerequisite_rejects_other_values():
    with pytest.raises(TypeError):
        to_prerequisite(42)


@pytest.mark.parametrize(
    "key,expected",
    [
        ("field:id", ("field", "id")),
        ("table:orders", ("table", "orders")),
        ("groupBy:customer", ("groupBy", "customer")),
        ("orderBy:createdAt", ("orderBy", "createdAt")),
        ("status", ("subquery", "status")),
    ],
)
def test_split_key(key, expected):
    assert split_key(key) == expected


def test_names_to_patch_requests_each_kind():
    patch = names_to_patch(
        Names(("field:id", "table:orders", "groupBy:customer", "orderBy:createdAt", "status"))
    )
    params = patch.params
    assert params.fields == ["id"]
    assert params.tables == ["orders"]
    assert params.group_by == ["customer"]
    assert params.sorting == ["createdAt"]
    assert params.subqueries == {"status": True}


def test_patch_names_lists_registry_keys():
    patch = Patch(
        QueryParams(
            fields=["id", ("orders", "total")],
            tables=["orders"],
            subqueries={"status": True},
            sorting=[SortKey(key="createdAt", direction="DESC")],
        )
    )
    assert patch_names(patch) == ["field:id", "table:orders", "status", "orderBy:createdAt"]


def test_merge_no_prerequisite_is_identity():
    names = Names(("a",))
    assert merge_prerequisites(NONE, names) is names
    assert merge_prerequisites(names, NoPrerequisite()) is names


def test_merge_names_concatenates_without_duplicates():
    merged = merge_prerequisites(Names(("a", "b")), Names(("b", "c")))
    assert merged == Names(("a", "b", "c"))


def test_merge_names_with_patch_desugars():
    merged = merge_prerequisites(
        Names(("table:orders",)), Patch(QueryParams(subqueries={"status": {"value": "x"}}))
    )
    assert isinstance(merged, Patch)
    assert merged.params.tables == ["orders"]
    assert merged.params.subqueries == {"status": {"value": "x"}}


@pytest.mark.asyncio
async def test_merge_with_dynamic_stays_dynamic():
    async def dynamic(params):
        return ["table:customers"] if params.limit else []

    merged = merge_prerequisites(Names(("table:orders",)), Dynamic(dynamic))
    assert isinstance(merged, Dynamic)
    resolved = await resolve_prerequisite(merged, QueryParams(limit=1))
    assert resolved == Names(("table:orders", "table:customers"))
    assert await resolve_prerequisite(merged, QueryParams()) == Names(("table:orders",))


@pytest.mark.asyncio
async def test_resolve_dynamic_sync_and_patch_results():
    names = await resolve_prerequisite(Dynamic(lambda params: "status"), QueryParams())
    assert names == Names(("status",))
    patch = await resolve_prerequisite(
        Dynamic(lambda params: {"distinct": True}), QueryParams()
    )
    assert isinstance(patch, Patch) and patch.params.distinct is True


@pytest.mark.asyncio
async def test_unparsable_dynamic_result_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="fragql.compose.prerequisite"):
        result = await resolve_prerequisite(Dynamic(lambda params: 42), QueryParams())
    assert result is NONE
    assert "unparsable prerequisite" in caplog.text
