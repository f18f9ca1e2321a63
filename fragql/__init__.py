"""fragQL: declarative query composition from reusable fragments.

Register fragments once, request them by name.

Public API
----------
``QueryDef``
    The fragment registry.  Register ``field`` / ``table`` / ``group_by`` /
    ``order_by`` fragments and ``subquery`` sub-filters, then ``apply`` a
    parameter object to get one composed query tree.

``compose``
    One-shot helper: ``await compose(query_def, params)``.

Re-exported types
-----------------
``Query`` and the expression nodes, ``QueryParams``, ``SortKey``,
``ApplyOptions``, ``Fragment``, ``ShortcutRegistry`` and all error classes.

Extensibility
-------------
New shortcut kinds are added on a registry value, never globally::

    from fragql import QueryDef, ShortcutRegistry

    async def metric(query_def, descriptor, context):
        query_def.field(descriptor["name"], ...)

    registry = ShortcutRegistry().with_handler("metric", metric)
    query_def = QueryDef(base, shortcut_registry=registry)
"""

from __future__ import annotations

from typing import Any

from fragql.compose.fragment import Fragment, Variable
from fragql.compose.helpers import equal_or_in_subquery_arg, if_expression, if_null_expression
from fragql.compose.post_processors import escape_regexp
from fragql.config import ApplyOptions
from fragql.errors import (
    DuplicateFragmentError,
    EmptyFragmentError,
    FragQLError,
    InvalidNameError,
    NotRegisteredError,
    PrerequisiteNotFoundError,
    RecursiveDependencyError,
    RegistrationError,
    ResolutionError,
    ShortcutError,
)
from fragql.querydef import QueryDef
from fragql.schema.ast import (
    AndExpressions,
    BetweenExpression,
    BinaryExpression,
    Case,
    CaseExpression,
    ColumnExpression,
    ExistsExpression,
    Expression,
    FromTable,
    FunctionExpression,
    GroupBy,
    InExpression,
    IsNullExpression,
    JoinClause,
    LikeExpression,
    LimitOffset,
    MathExpression,
    OrderBy,
    OrExpressions,
    ParameterExpression,
    Query,
    QueryExpression,
    RegexpExpression,
    ResultColumn,
    Unknown,
    Value,
)
from fragql.schema.params import QueryParams, ResultColumnShortcut, SortKey
from fragql.shortcuts.registry import ShortcutRegistry

__all__ = [
    # Core
    "QueryDef",
    "compose",
    "Fragment",
    "Variable",
    "ApplyOptions",
    "ShortcutRegistry",
    # Parameters
    "QueryParams",
    "ResultColumnShortcut",
    "SortKey",
    # Query tree
    "Query",
    "Expression",
    "ResultColumn",
    "FromTable",
    "JoinClause",
    "GroupBy",
    "OrderBy",
    "LimitOffset",
    "ColumnExpression",
    "Value",
    "Unknown",
    "BinaryExpression",
    "MathExpression",
    "BetweenExpression",
    "InExpression",
    "LikeExpression",
    "RegexpExpression",
    "IsNullExpression",
    "Case",
    "CaseExpression",
    "FunctionExpression",
    "AndExpressions",
    "OrExpressions",
    "ParameterExpression",
    "ExistsExpression",
    "QueryExpression",
    # Helpers
    "escape_regexp",
    "equal_or_in_subquery_arg",
    "if_expression",
    "if_null_expression",
    # Errors
    "FragQLError",
    "RegistrationError",
    "InvalidNameError",
    "DuplicateFragmentError",
    "ResolutionError",
    "RecursiveDependencyError",
    "PrerequisiteNotFoundError",
    "EmptyFragmentError",
    "ShortcutError",
    "NotRegisteredError",
]


async def compose(
    query_def: QueryDef,
    params: QueryParams | dict[str, Any] | None = None,
    options: ApplyOptions | dict[str, Any] | None = None,
) -> Query:
    """Apply ``params`` to ``query_def`` and return the composed tree.

    This is the one-shot entry point::

        tree = await fragql.compose(
            query_def,
            {"fields": ["id", "total"], "subqueries": {"minTotal": {"value": 100}}},
        )

    Args:
        query_def: The fragment registry.
        params: Fragments to apply and values to bind.
        options: ``ApplyOptions`` or a dict of its fields.

    Returns:
        The composed :class:`~fragql.schema.ast.Query`.

    Raises:
        ResolutionError: (or subclass) if the fragments cannot be resolved.
    """
    return await query_def.apply(params, options)
