"""The run-time parameter object passed to ``QueryDef.apply``.

``QueryParams`` names which registered fragments to apply and carries the
values bound into sub-filter placeholders::

    params = QueryParams(
        fields=["id", "name"],
        subqueries={"createdBetween": {"from": "2020-01-01", "to": "2020-12-31"}},
        sorting=[SortKey(key="createdAt", direction="DESC")],
        limit=20,
    )

A plain dict of the same shape is accepted anywhere a ``QueryParams`` is.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fragql.schema.ast import (
    Direction,
    Expression,
    GroupBy,
    LimitOffset,
    OrderBy,
    ResultColumn,
)

_FORBID = ConfigDict(extra="forbid")


class ResultColumnShortcut(BaseModel):
    """``{"column": [table, column], "alias": ...}`` field shortcut."""

    model_config = _FORBID

    column: tuple[str, str]
    alias: str | None = None


class SortKey(BaseModel):
    """A sort request by fragment (or column) name with an explicit direction.

    Attributes:
        key: ``orderBy`` fragment name, or a plain column name.
        direction: Overrides the fragment's own direction when the fragment
            yields exactly one ORDER BY term.
    """

    model_config = _FORBID

    key: str
    direction: Direction | None = None


FieldParam = str | tuple[str, str] | ResultColumnShortcut | ResultColumn
GroupByParam = str | GroupBy
SortParam = str | SortKey | OrderBy


class QueryParams(BaseModel):
    """Parameters for a single ``QueryDef.apply`` call.

    Attributes:
        distinct: Force ``SELECT DISTINCT``.
        fields: Field fragment names, ``(table, column)`` pairs,
            :class:`ResultColumnShortcut` or ready-made ``ResultColumn`` values.
        tables: Table fragment names.
        subqueries: Sub-filter fragment name -> bound value (``True``,
            ``{"value": ...}``, ``{"from": ..., "to": ...}`` or any mapping).
        conditions: Extra WHERE condition ANDed onto the result.
        group_by: Group-by fragment names, plain column names, or ``GroupBy``.
        sorting: Order-by fragment names, :class:`SortKey` or ``OrderBy``;
            a single entry or a list.
        limit: Caller limit; always wins over fragment-contributed limits.
        constants: Opaque values for fragment functions.
    """

    model_config = _FORBID

    distinct: bool = False
    fields: list[FieldParam] | None = None
    tables: list[str] | None = None
    subqueries: dict[str, Any] = Field(default_factory=dict)
    conditions: Expression | None = None
    group_by: list[GroupByParam] | None = None
    sorting: list[SortParam] | SortParam | None = None
    limit: int | LimitOffset | None = None
    constants: Any = None

    # ------------------------------------------------------------------
    # Normalisation
    # ------------------------------------------------------------------

    @classmethod
    def coerce(cls, params: QueryParams | dict[str, Any] | None) -> QueryParams:
        """Return a private deep copy of ``params`` as a ``QueryParams``."""
        if params is None:
            return cls()
        if isinstance(params, QueryParams):
            return params.model_copy(deep=True)
        return cls.model_validate(params).model_copy(deep=True)

    def sorting_list(self) -> list[SortParam]:
        if self.sorting is None:
            return []
        return self.sorting if isinstance(self.sorting, list) else [self.sorting]

    # ------------------------------------------------------------------
    # Patch merge
    # ------------------------------------------------------------------

    def update_from(self, patch: QueryParams) -> None:
        """Deep-merge ``patch`` into these params in place.

        Lists are concatenated (string entries already present are skipped),
        ``subqueries`` are merged recursively, ``distinct`` is ORed and any
        other clause is overwritten only when the patch sets it explicitly.
        """
        explicit = patch.model_fields_set
        self.distinct = self.distinct or patch.distinct
        if patch.fields:
            self.fields = _concat(self.fields, patch.fields)
        if patch.tables:
            self.tables = _concat(self.tables, patch.tables)
        if patch.group_by:
            self.group_by = _concat(self.group_by, patch.group_by)
        if patch.sorting is not None:
            self.sorting = _concat(self.sorting_list(), patch.sorting_list())
        if patch.subqueries:
            self.subqueries = deep_merge(self.subqueries, patch.subqueries)
        for name in ("conditions", "limit", "constants"):
            if name in explicit:
                setattr(self, name, getattr(patch, name))

    def masked_dump(self) -> dict[str, Any]:
        """Dump for logging, hiding ``conditions`` and ``constants``."""
        data = self.model_dump(exclude={"conditions", "constants"})
        data["conditions"] = data["constants"] = "<masked>"
        return data


def _concat(left: list | None, right: list) -> list:
    result = list(left or [])
    for item in right:
        if isinstance(item, str) and item in result:
            continue
        result.append(item)
    return result


def deep_merge(left: dict[str, Any], right: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``right`` onto ``left``; ``right`` wins on conflicts."""
    result = dict(left)
    for key, value in right.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result
