"""Shortcut descriptors.

A shortcut is a declarative description of one fragment registration.  The
built-in kinds form a closed tagged union on ``type``::

    shortcuts = [
        {"type": "table", "name": "orders", "from_table": "orders"},
        {
            "type": "field",
            "name": "total",
            "expression": {"classname": "ColumnExpression", "table": "orders", "name": "total"},
            "registered": True,
            "prerequisite": ["table:orders"],
        },
        {
            "type": "subquery",
            "name": "minTotal",
            "expression": lambda registered: BinaryExpression(
                left=registered["total"], operator=">=", right=Unknown()
            ),
            "unknowns": True,
        },
        {"type": "combo", "name": "status", "expression": ColumnExpression(name="status")},
    ]

Expression-valued fields may be callables receiving the
:class:`~fragql.shortcuts.registry.RegisteredExpressions` lookup (sync or
async).  ``query_arg`` / ``subquery_arg`` callables receive the same lookup
and return a fragment source.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Tag, TypeAdapter

from fragql.schema.ast import Direction, Expression, FromTable

_DESCRIPTOR = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

#: An expression, or a callable computing one from the registered expressions.
ExpressionArg = Union[Expression, Callable[..., Any]]


class UnknownsSpec(BaseModel):
    """Placeholder layout of a sub-filter shortcut.

    Attributes:
        no_of_unknowns: Number of placeholders to bind.
        from_to: Bind placeholders pairwise to ``from`` / ``to`` instead of
            each to ``value``.
    """

    model_config = _DESCRIPTOR

    no_of_unknowns: int | None = None
    from_to: bool = False


class BaseShortcut(BaseModel):
    """Fields shared by every descriptor."""

    model_config = _DESCRIPTOR

    name: str
    prerequisite: Any = None


class FieldShortcut(BaseShortcut):
    type: Literal["field"] = "field"
    expression: ExpressionArg | None = None
    query_arg: Callable[..., Any] | None = None
    # Expose ``expression`` to later shortcuts under ``name``.
    registered: bool = False


class TableShortcut(BaseShortcut):
    type: Literal["table"] = "table"
    from_table: FromTable | str | list[FromTable] | Callable[..., Any] | None = None
    query_arg: Callable[..., Any] | None = None


class SubqueryShortcut(BaseShortcut):
    type: Literal["subquery"] = "subquery"
    expression: ExpressionArg | None = None
    subquery_arg: Callable[..., Any] | None = None
    unknowns: bool | UnknownsSpec | list[tuple[str, int]] | None = None


class GroupByShortcut(BaseShortcut):
    type: Literal["groupBy"] = "groupBy"
    expression: ExpressionArg | None = None
    query_arg: Callable[..., Any] | None = None


class OrderByShortcut(BaseShortcut):
    type: Literal["orderBy"] = "orderBy"
    expression: ExpressionArg | None = None
    query_arg: Callable[..., Any] | None = None
    direction: Direction = "ASC"


class ComboShortcut(BaseShortcut):
    """One expression as grouped field, ``ANY_VALUE`` field and operator sub-filter.

    ``expression`` is resolved once with the registered-expression lookup;
    ``expr_arg`` instead returns a ``(params) -> expression`` callable.
    """

    type: Literal["combo"] = "combo"
    expression: ExpressionArg | None = None
    expr_arg: Callable[..., Any] | None = None
    registered: bool = False


def _shortcut_discriminator(v: Any) -> str | None:
    if isinstance(v, dict):
        return v.get("type")
    return getattr(v, "type", None)


Shortcut = Annotated[
    Annotated[FieldShortcut, Tag("field")]
    | Annotated[TableShortcut, Tag("table")]
    | Annotated[SubqueryShortcut, Tag("subquery")]
    | Annotated[GroupByShortcut, Tag("groupBy")]
    | Annotated[OrderByShortcut, Tag("orderBy")]
    | Annotated[ComboShortcut, Tag("combo")],
    Discriminator(_shortcut_discriminator),
]

#: Built-in descriptor kinds.
BUILT_IN_TYPES: tuple[str, ...] = ("field", "table", "subquery", "groupBy", "orderBy", "combo")

SHORTCUT_ADAPTER: TypeAdapter[Shortcut] = TypeAdapter(Shortcut)


def to_shortcut(v: Any) -> Shortcut:
    """Validate a raw descriptor dict of a built-in kind, or return a model as-is."""
    if isinstance(v, BaseModel):
        return v  # type: ignore[return-value]
    return SHORTCUT_ADAPTER.validate_python(v)
