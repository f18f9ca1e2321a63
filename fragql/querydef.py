"""Fragment registry and the ``apply`` pipeline.

``QueryDef`` is the top-level orchestrator.  It owns the fragment registry,
computes the prerequisite closure of a parameter object, then drives the
clause resolvers that fold every needed fragment into one query tree.

Resolver hierarchy
------------------
QueryDef
  ├── DependencyResolver  (compose/dependencies.py)
  ├── FieldResolver       (compose/clause_resolvers.py)
  ├── TableResolver       (compose/clause_resolvers.py)
  ├── SubqueryResolver    (compose/clause_resolvers.py)
  ├── ConditionResolver   (compose/clause_resolvers.py)
  ├── GroupByResolver     (compose/clause_resolvers.py)
  └── OrderByResolver     (compose/clause_resolvers.py)

Registry keys
-------------
``field:<name>``, ``table:<name>``, ``groupBy:<name>`` and ``orderBy:<name>``
for the clause kinds; the bare ``<name>`` for sub-filters.

Example::

    query_def = QueryDef({"from": "orders"})
    query_def.field("id", {"select": ResultColumn(expression=ColumnExpression(name="id"))})
    query_def.subquery(
        "status",
        {"where": BinaryExpression(left=ColumnExpression(name="status"), right=Unknown())},
    ).register("value", 0, default="open")

    tree = await query_def.apply({"fields": ["id"], "subqueries": {"status": True}})
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from fragql.compose.clause_resolvers import (
    ConditionResolver,
    FieldResolver,
    GroupByResolver,
    OrderByResolver,
    SubqueryResolver,
    TableResolver,
)
from fragql.compose.context import ResolutionContext
from fragql.compose.dependencies import DependencyResolver
from fragql.compose.fragment import Fragment, FragmentSource
from fragql.compose.merger import collapse_having, without_wildcard
from fragql.compose.post_processors import PostProcessor, escape_regexp
from fragql.compose.prerequisite import to_prerequisite
from fragql.config import ApplyOptions
from fragql.errors import DuplicateFragmentError, InvalidNameError
from fragql.schema.ast import (
    ColumnExpression,
    GroupBy,
    LimitOffset,
    Query,
    ResultColumn,
    as_query,
    to_expression,
)
from fragql.schema.params import QueryParams
from fragql.shortcuts.registry import ShortcutRegistry

logger = logging.getLogger(__name__)

#: Clause resolvers in application order.
_CLAUSE_RESOLVERS = (
    FieldResolver,
    TableResolver,
    SubqueryResolver,
    ConditionResolver,
    GroupByResolver,
    OrderByResolver,
)


class QueryDef:
    """A registry of query fragments over a base query template.

    Args:
        base: The base template: a ``Query``, a dict, or a callable
            ``(params) -> Query | dict`` (sync or async).  ``None`` is an
            empty query.
        post_processors: Run over the finished tree in order.  Defaults to
            ``[escape_regexp]``.
        shortcut_registry: Handlers used by :meth:`use_shortcuts`.
    """

    def __init__(
        self,
        base: Query | dict[str, Any] | Callable[..., Any] | None = None,
        *,
        post_processors: Iterable[PostProcessor] | None = None,
        shortcut_registry: ShortcutRegistry | None = None,
    ) -> None:
        self._base = base if callable(base) else as_query(base).model_copy(deep=True)
        self._fragments: dict[str, Fragment] = {}
        self._post_processors: list[PostProcessor] = (
            list(post_processors) if post_processors is not None else [escape_regexp]
        )
        self._shortcuts = shortcut_registry or ShortcutRegistry()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def registered(self) -> list[str]:
        """Registry keys in registration order."""
        return list(self._fragments)

    def __contains__(self, key: object) -> bool:
        return key in self._fragments

    def fragment(self, key: str) -> Fragment:
        """Return the fragment registered under ``key``.

        Raises:
            KeyError: If nothing is registered under ``key``.
        """
        return self._fragments[key]

    @property
    def fragments(self) -> Mapping[str, Fragment]:
        return dict(self._fragments)

    def field(
        self, name: str, arg: FragmentSource, prerequisite: Any = None, *, overwrite: bool = False
    ) -> QueryDef:
        """Register a ``field:`` fragment; its SELECT list is used."""
        self._register("field", name, arg, prerequisite, overwrite)
        return self

    def table(
        self, name: str, arg: FragmentSource, prerequisite: Any = None, *, overwrite: bool = False
    ) -> QueryDef:
        """Register a ``table:`` fragment; its FROM and WHERE clauses are used."""
        self._register("table", name, arg, prerequisite, overwrite)
        return self

    def group_by(
        self, name: str, arg: FragmentSource, prerequisite: Any = None, *, overwrite: bool = False
    ) -> QueryDef:
        """Register a ``groupBy:`` fragment; its GROUP BY clause is used."""
        self._register("groupBy", name, arg, prerequisite, overwrite)
        return self

    def order_by(
        self, name: str, arg: FragmentSource, prerequisite: Any = None, *, overwrite: bool = False
    ) -> QueryDef:
        """Register an ``orderBy:`` fragment; its ORDER BY terms are used."""
        self._register("orderBy", name, arg, prerequisite, overwrite)
        return self

    def subquery(
        self, name: str, arg: FragmentSource, prerequisite: Any = None, *, overwrite: bool = False
    ) -> Fragment:
        """Register a sub-filter and return it for variable registration.

        The whole partial tree is merged when ``name`` appears in
        ``params.subqueries``.  A sub-filter named ``default`` is applied on
        every call unless ``ApplyOptions.with_default`` is off.
        """
        return self._register("subquery", name, arg, prerequisite, overwrite)

    def group_field(
        self,
        name: str,
        expression: Any,
        prefix: str = "group_",
        prerequisite: Any = None,
        *,
        overwrite: bool = False,
    ) -> QueryDef:
        """Register a matching ``field:`` and ``groupBy:`` pair for one expression.

        When ``name`` is requested both as a field and as a group-by, the
        column is aliased ``<prefix><name>`` and the query is grouped by that
        alias; otherwise the field is aliased ``name`` and grouped by the
        expression itself.

        Args:
            name: Field and group-by name.
            expression: An expression, or ``(params) -> expression``.
            prefix: Alias prefix used when grouping by the field.
            prerequisite: Shared by both fragments.
            overwrite: Replace existing registrations.
        """
        alias = f"{prefix}{name}"

        def grouped(params: QueryParams) -> bool:
            return name in (params.fields or []) and name in (params.group_by or [])

        async def resolve(params: QueryParams) -> Any:
            value = expression(params) if callable(expression) else expression
            if inspect.isawaitable(value):
                value = await value
            return to_expression(value).model_copy(deep=True)

        async def field_source(params: QueryParams) -> Query:
            column = ResultColumn(
                expression=await resolve(params), alias=alias if grouped(params) else name
            )
            return Query(select=[column])

        async def group_source(params: QueryParams) -> Query:
            if grouped(params):
                return Query(group=GroupBy(expressions=[ColumnExpression(name=alias)]))
            return Query(group=GroupBy(expressions=[await resolve(params)]))

        prerequisite = to_prerequisite(prerequisite)
        self._register("field", name, field_source, prerequisite, overwrite)
        self._register("groupBy", name, group_source, prerequisite, overwrite)
        return self

    def add_post_processor(self, processor: PostProcessor) -> QueryDef:
        self._post_processors.append(processor)
        return self

    def _register(
        self,
        kind: str,
        name: str,
        arg: FragmentSource,
        prerequisite: Any,
        overwrite: bool,
    ) -> Fragment:
        if not isinstance(name, str) or not name or ":" in name:
            raise InvalidNameError(name)
        key = name if kind == "subquery" else f"{kind}:{name}"
        if key in self._fragments:
            if not overwrite:
                raise DuplicateFragmentError(key)
            logger.warning("Overwrite fragment '%s'", key)
        fragment = Fragment(arg, prerequisite)
        self._fragments[key] = fragment
        logger.debug("Register %s", key)
        return fragment

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    async def apply(
        self,
        params: QueryParams | dict[str, Any] | None = None,
        options: ApplyOptions | dict[str, Any] | None = None,
    ) -> Query:
        """Build the query tree for ``params``.

        Args:
            params: Which fragments to apply and the values to bind.  Never
                mutated.
            options: :class:`~fragql.config.ApplyOptions` or a dict of its
                fields.

        Returns:
            A new :class:`~fragql.schema.ast.Query`.

        Raises:
            RecursiveDependencyError: If a prerequisite chain is cyclic.
            PrerequisiteNotFoundError: If a prerequisite names an
                unregistered fragment.
            EmptyFragmentError: If a registered order-by fragment yields no
                ORDER BY term.
        """
        options = ApplyOptions.coerce(options)
        params = QueryParams.coerce(params)
        self._log_params("before", params)

        dependencies = DependencyResolver(self._fragments, params)
        dependencies.merge_into_params(await dependencies.resolve())
        if options.with_default and "default" in self._fragments:
            params.subqueries["default"] = True
        self._log_params("after", params)

        base = await self._resolve_base(params)
        ctx = ResolutionContext(registry=self._fragments, params=params, options=options)
        for resolver_cls in _CLAUSE_RESOLVERS:
            await resolver_cls(ctx).resolve(base)

        if params.limit is not None:
            limit = params.limit
            base.limit = LimitOffset(limit=limit) if isinstance(limit, int) else limit
        if params.distinct:
            base.distinct = True
        collapse_having(base)

        for processor in self._post_processors:
            base = processor(base)
        return base

    def apply_sync(
        self,
        params: QueryParams | dict[str, Any] | None = None,
        options: ApplyOptions | dict[str, Any] | None = None,
    ) -> Query:
        """Run :meth:`apply` to completion on a new event loop."""
        return asyncio.run(self.apply(params, options))

    async def _resolve_base(self, params: QueryParams) -> Query:
        if callable(self._base):
            produced = self._base(params.model_copy(deep=True))
            if inspect.isawaitable(produced):
                produced = await produced
            base = as_query(produced)
        else:
            base = self._base
        return without_wildcard(base.model_copy(deep=True))

    @staticmethod
    def _log_params(stage: str, params: QueryParams) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("params %s: %s", stage, params.masked_dump())

    # ------------------------------------------------------------------
    # Shortcuts & copying
    # ------------------------------------------------------------------

    async def use_shortcuts(
        self, shortcuts: Iterable[Any], options: Mapping[str, Any] | None = None
    ) -> QueryDef:
        """Register fragments from declarative shortcut descriptors.

        See :mod:`fragql.shortcuts` for the descriptor kinds.

        Raises:
            ShortcutError: If a descriptor fails to translate.
        """
        await self._shortcuts.apply(self, shortcuts, options)
        return self

    def clone(self) -> QueryDef:
        """Copy the registry; fixed trees are deep-copied, functions shared."""
        base = self._base if callable(self._base) else self._base.model_copy(deep=True)
        copy = QueryDef(
            base,
            post_processors=self._post_processors,
            shortcut_registry=self._shortcuts,
        )
        for key, fragment in self._fragments.items():
            copy._fragments[key] = fragment.clone()
        return copy
