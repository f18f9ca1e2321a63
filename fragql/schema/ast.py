"""Pydantic models for the fragQL query tree.

Fragments produce partial ``Query`` trees and ``QueryDef.apply`` returns a
complete one.  The tree is plain data: it is never rendered to SQL text by
this package.

Every expression node carries a ``classname`` tag.  ``Expression`` is a
Pydantic v2 discriminated union keyed on that tag, so a tree can be written
either with Python objects or as raw dicts::

    from fragql.schema.ast import BinaryExpression, ColumnExpression, Value

    expr = BinaryExpression(
        left=ColumnExpression(name="status"), operator="=", right=Value(value="active")
    )
    same = to_expression(
        {
            "classname": "BinaryExpression",
            "left": {"classname": "ColumnExpression", "name": "status"},
            "operator": "=",
            "right": {"classname": "Value", "value": "active"},
        }
    )

Multi-valued clauses (``select``, ``from_``, ``where``, ``order`` and the
``GroupBy`` lists) accept either one value or a list.  The ``*_list`` helpers
on :class:`Query` normalise them; the merger and the resolvers only ever work
on the normalised form.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter

_NODE = ConfigDict(extra="forbid", populate_by_name=True)

#: Comparison operators accepted by :class:`BinaryExpression`.
BinaryOperator = Literal["=", "<>", "!=", "<", "<=", ">", ">="]

#: Arithmetic operators accepted by :class:`MathExpression`.
MathOperator = Literal["+", "-", "*", "/", "%", "DIV", "MOD"]

JoinOperator = Literal["INNER", "LEFT", "RIGHT", "FULL", "CROSS"]

Direction = Literal["ASC", "DESC"]


# ---------------------------------------------------------------------------
# Terminal expressions
# ---------------------------------------------------------------------------


class ColumnExpression(BaseModel):
    """A column reference, optionally table-qualified."""

    model_config = _NODE

    classname: Literal["ColumnExpression"] = "ColumnExpression"
    table: str | None = None
    name: str

    @property
    def is_wildcard(self) -> bool:
        """True for an unqualified ``*``."""
        return self.name == "*" and not self.table


class Value(BaseModel):
    """A literal value."""

    model_config = _NODE

    classname: Literal["Value"] = "Value"
    value: Any = None


class Unknown(BaseModel):
    """A placeholder whose ``value`` is filled in when its fragment is applied.

    Once bound it is treated exactly like a :class:`Value`.
    """

    model_config = _NODE

    classname: Literal["Unknown"] = "Unknown"
    value: Any = None


# ---------------------------------------------------------------------------
# Composite expressions
# ---------------------------------------------------------------------------


class BinaryExpression(BaseModel):
    model_config = _NODE

    classname: Literal["BinaryExpression"] = "BinaryExpression"
    left: Expression
    operator: BinaryOperator = "="
    right: Expression


class MathExpression(BaseModel):
    model_config = _NODE

    classname: Literal["MathExpression"] = "MathExpression"
    left: Expression
    operator: MathOperator
    right: Expression


class BetweenExpression(BaseModel):
    model_config = _NODE

    classname: Literal["BetweenExpression"] = "BetweenExpression"
    left: Expression
    negated: bool = False
    start: Expression
    end: Expression


class InExpression(BaseModel):
    """``left [NOT] IN right``; ``right`` may be a sub-query."""

    model_config = _NODE

    classname: Literal["InExpression"] = "InExpression"
    left: Expression
    negated: bool = False
    right: Expression | Query


class LikeExpression(BaseModel):
    model_config = _NODE

    classname: Literal["LikeExpression"] = "LikeExpression"
    left: Expression
    negated: bool = False
    right: Expression


class RegexpExpression(BaseModel):
    """``left [NOT] REGEXP right``; a plain ``str`` right side is a raw pattern."""

    model_config = _NODE

    classname: Literal["RegexpExpression"] = "RegexpExpression"
    left: Expression
    negated: bool = False
    right: Expression | str


class IsNullExpression(BaseModel):
    model_config = _NODE

    classname: Literal["IsNullExpression"] = "IsNullExpression"
    left: Expression
    negated: bool = False


class Case(BaseModel):
    """A single ``WHEN <when> THEN <then>`` branch."""

    model_config = _NODE

    when: Expression
    then: Expression


class CaseExpression(BaseModel):
    model_config = _NODE

    classname: Literal["CaseExpression"] = "CaseExpression"
    cases: list[Case]
    # "else" is a Python keyword; stored as ``else_``, alias ``"else"``.
    else_: Expression | None = Field(None, alias="else")


class FunctionExpression(BaseModel):
    model_config = _NODE

    classname: Literal["FunctionExpression"] = "FunctionExpression"
    name: str
    parameters: list[Expression] = Field(default_factory=list)


class AndExpressions(BaseModel):
    model_config = _NODE

    classname: Literal["AndExpressions"] = "AndExpressions"
    expressions: list[Expression] = Field(default_factory=list)


class OrExpressions(BaseModel):
    model_config = _NODE

    classname: Literal["OrExpressions"] = "OrExpressions"
    expressions: list[Expression] = Field(default_factory=list)


class ParameterExpression(BaseModel):
    """An expression wrapped with a raw prefix/suffix, e.g. ``DISTINCT x``."""

    model_config = _NODE

    classname: Literal["ParameterExpression"] = "ParameterExpression"
    prefix: str | None = None
    expression: Expression
    suffix: str | None = None


class ExistsExpression(BaseModel):
    model_config = _NODE

    classname: Literal["ExistsExpression"] = "ExistsExpression"
    negated: bool = False
    query: Query


class QueryExpression(BaseModel):
    """A scalar sub-query used as an expression."""

    model_config = _NODE

    classname: Literal["QueryExpression"] = "QueryExpression"
    query: Query


# ---------------------------------------------------------------------------
# Discriminated union
# ---------------------------------------------------------------------------


def _expression_discriminator(v: Any) -> str | None:
    """Return the tag for the Pydantic discriminated union."""
    if isinstance(v, dict):
        return v.get("classname")
    return getattr(v, "classname", None)


Expression = Annotated[
    Annotated[ColumnExpression, Tag("ColumnExpression")]
    | Annotated[Value, Tag("Value")]
    | Annotated[Unknown, Tag("Unknown")]
    | Annotated[BinaryExpression, Tag("BinaryExpression")]
    | Annotated[MathExpression, Tag("MathExpression")]
    | Annotated[BetweenExpression, Tag("BetweenExpression")]
    | Annotated[InExpression, Tag("InExpression")]
    | Annotated[LikeExpression, Tag("LikeExpression")]
    | Annotated[RegexpExpression, Tag("RegexpExpression")]
    | Annotated[IsNullExpression, Tag("IsNullExpression")]
    | Annotated[CaseExpression, Tag("CaseExpression")]
    | Annotated[FunctionExpression, Tag("FunctionExpression")]
    | Annotated[AndExpressions, Tag("AndExpressions")]
    | Annotated[OrExpressions, Tag("OrExpressions")]
    | Annotated[ParameterExpression, Tag("ParameterExpression")]
    | Annotated[ExistsExpression, Tag("ExistsExpression")]
    | Annotated[QueryExpression, Tag("QueryExpression")],
    Discriminator(_expression_discriminator),
]


# ---------------------------------------------------------------------------
# Clauses
# ---------------------------------------------------------------------------


class ResultColumn(BaseModel):
    """A single item of the SELECT list."""

    model_config = _NODE

    expression: Expression
    alias: str | None = None


class JoinClause(BaseModel):
    """``<operator> JOIN <table> ON <on>``."""

    model_config = _NODE

    operator: JoinOperator = "INNER"
    table: FromTable | str
    on: list[Expression] | Expression | None = None

    def on_list(self) -> list[Expression]:
        if self.on is None:
            return []
        return self.on if isinstance(self.on, list) else [self.on]


class FromTable(BaseModel):
    """A table (or derived table) in FROM together with its joins."""

    model_config = _NODE

    table: str | Query
    alias: str | None = None
    join_clauses: list[JoinClause] | JoinClause = Field(default_factory=list)

    @property
    def key(self) -> str | None:
        """Identity used when merging FROM lists: table name, or alias for a sub-query."""
        return self.table if isinstance(self.table, str) else self.alias

    def join_list(self) -> list[JoinClause]:
        if isinstance(self.join_clauses, JoinClause):
            return [self.join_clauses]
        return self.join_clauses


class GroupBy(BaseModel):
    model_config = _NODE

    expressions: list[Expression] | Expression = Field(default_factory=list)
    having: list[Expression] | Expression | None = None

    def expression_list(self) -> list[Expression]:
        if isinstance(self.expressions, list):
            return self.expressions
        return [self.expressions]

    def having_list(self) -> list[Expression]:
        if self.having is None:
            return []
        return self.having if isinstance(self.having, list) else [self.having]


class OrderBy(BaseModel):
    model_config = _NODE

    expression: Expression
    direction: Direction = "ASC"


class LimitOffset(BaseModel):
    model_config = _NODE

    limit: int | Expression
    offset: int | Expression | None = None


class Query(BaseModel):
    """A (partial) query tree.

    Attributes:
        distinct: Emit ``SELECT DISTINCT``.
        select: Result columns, one or a list.
        from_: Tables, one or a list (alias ``"from"``).  A bare string is a
            table name.
        where: Conditions, one or a list (a list is an implicit AND).
        group: GROUP BY clause; a bare string groups by that column.
        order: ORDER BY terms, one or a list; a bare string orders by that
            column ascending.
        limit: LIMIT/OFFSET; a bare int is a LIMIT.
        union: Next query of a UNION chain.
    """

    model_config = _NODE

    distinct: bool = False
    select: list[ResultColumn] | ResultColumn | None = None
    from_: list[FromTable] | FromTable | str | None = Field(None, alias="from")
    where: list[Expression] | Expression | None = None
    group: GroupBy | str | None = None
    order: list[OrderBy] | OrderBy | str | None = None
    limit: LimitOffset | int | None = None
    union: Query | None = None

    # ------------------------------------------------------------------
    # Clause normalisation
    # ------------------------------------------------------------------

    def select_list(self) -> list[ResultColumn]:
        if self.select is None:
            return []
        return self.select if isinstance(self.select, list) else [self.select]

    def from_list(self) -> list[FromTable]:
        if self.from_ is None:
            return []
        if isinstance(self.from_, str):
            return [FromTable(table=self.from_)]
        return self.from_ if isinstance(self.from_, list) else [self.from_]

    def where_list(self) -> list[Expression]:
        if self.where is None:
            return []
        return self.where if isinstance(self.where, list) else [self.where]

    def group_by(self) -> GroupBy | None:
        if self.group is None:
            return None
        if isinstance(self.group, str):
            return GroupBy(expressions=[ColumnExpression(name=self.group)])
        return GroupBy(
            expressions=list(self.group.expression_list()),
            having=list(self.group.having_list()),
        )

    def order_list(self) -> list[OrderBy]:
        if self.order is None:
            return []
        if isinstance(self.order, str):
            return [OrderBy(expression=ColumnExpression(name=self.order))]
        return self.order if isinstance(self.order, list) else [self.order]

    def limit_offset(self) -> LimitOffset | None:
        if isinstance(self.limit, int):
            return LimitOffset(limit=self.limit)
        return self.limit


# Resolve forward references created by the recursive expression types.
for _model in (
    BinaryExpression,
    MathExpression,
    BetweenExpression,
    InExpression,
    LikeExpression,
    RegexpExpression,
    IsNullExpression,
    Case,
    CaseExpression,
    FunctionExpression,
    AndExpressions,
    OrExpressions,
    ParameterExpression,
    ExistsExpression,
    QueryExpression,
    ResultColumn,
    JoinClause,
    FromTable,
    GroupBy,
    OrderBy,
    LimitOffset,
    Query,
):
    _model.model_rebuild()

# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

#: Parse a raw dict into a typed Expression at any call site.
EXPRESSION_ADAPTER: TypeAdapter[Expression] = TypeAdapter(Expression)


def to_expression(v: Any) -> Expression:
    """Convert a raw expression dict to a typed ``Expression``, or return as-is."""
    if isinstance(v, BaseModel):
        return v  # type: ignore[return-value]
    return EXPRESSION_ADAPTER.validate_python(v)


def as_query(arg: Query | dict[str, Any] | None) -> Query:
    """Coerce a fragment result (``Query``, raw dict, or ``None``) into a ``Query``."""
    if arg is None:
        return Query()
    if isinstance(arg, Query):
        return arg
    return Query.model_validate(arg)
