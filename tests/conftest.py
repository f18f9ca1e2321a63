"""Shared pytest fixtures for fragQL tests."""
from __future__ import annotations

import pytest

from fragql import QueryDef
from tests.fixtures import build_orders_query_def


@pytest.fixture()
def orders() -> QueryDef:
    """A fresh sample registry per test; tests may register onto it."""
    return build_orders_query_def()


@pytest.fixture()
def empty() -> QueryDef:
    """A registry over ``SELECT * FROM orders`` with no fragments."""
    return QueryDef({"from": "orders"})
