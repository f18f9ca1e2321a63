"""Shortcut handler registry.

``ShortcutRegistry`` maps a descriptor ``type`` to the handler translating
it into ``QueryDef`` registration calls.  A registry is an ordinary value
owned by whoever builds the ``QueryDef``; extending it returns a new
registry and never touches shared state::

    async def summary(query_def, descriptor, context):
        query_def.field(descriptor["name"], ...)

    registry = ShortcutRegistry().with_handler("summary", summary)
    query_def = QueryDef(base, shortcut_registry=registry)

Built-in kinds (``field``, ``table``, ``subquery``, ``groupBy``, ``orderBy``
and ``combo``) cannot be replaced.

Registered expressions
----------------------
A ``field`` shortcut with ``registered=True`` publishes its expression in
:class:`RegisteredExpressions`.  Later shortcuts read it through the lookup
passed to their callables; reading one adds that expression's prerequisite
to the reading shortcut's prerequisite.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from fragql.compose.prerequisite import (
    NONE,
    Prerequisite,
    merge_prerequisites,
    to_prerequisite,
)
from fragql.errors import NotRegisteredError, ShortcutError
from fragql.schema.ast import (
    Expression,
    GroupBy,
    OrderBy,
    Query,
    ResultColumn,
    to_expression,
)
from fragql.shortcuts.combo import any_value, combo_subquery_arg
from fragql.shortcuts.models import (
    BUILT_IN_TYPES,
    ComboShortcut,
    FieldShortcut,
    GroupByShortcut,
    OrderByShortcut,
    SubqueryShortcut,
    TableShortcut,
    UnknownsSpec,
    to_shortcut,
)

if TYPE_CHECKING:
    from fragql.querydef import QueryDef

logger = logging.getLogger(__name__)

#: ``(query_def, descriptor, context)``, sync or async.
ShortcutHandler = Callable[..., Any]


# ---------------------------------------------------------------------------
# Registered expressions
# ---------------------------------------------------------------------------


class RegisteredExpressions:
    """Expressions published by earlier shortcuts, in processing order."""

    def __init__(self) -> None:
        self._expressions: dict[str, Expression] = {}
        self._prerequisites: dict[str, Prerequisite] = {}
        self._reads: list[str] = []

    def add(self, name: str, expression: Expression, prerequisite: Prerequisite = NONE) -> None:
        self._expressions[name] = expression
        self._prerequisites[name] = prerequisite

    def find(self, name: str) -> Expression | None:
        """Return a copy of ``name``'s expression, or ``None``; records nothing."""
        expression = self._expressions.get(name)
        return None if expression is None else expression.model_copy(deep=True)

    def lookup(self, name: str) -> Expression:
        """Return a copy of ``name``'s expression and record the read.

        Raises:
            NotRegisteredError: If no shortcut registered ``name`` so far.
        """
        expression = self.find(name)
        if expression is None:
            raise NotRegisteredError(name)
        self._reads.append(name)
        return expression

    __getitem__ = lookup

    def __contains__(self, name: object) -> bool:
        return name in self._expressions

    def take_reads(self) -> list[str]:
        """Return the names read since the last call, and forget them."""
        reads, self._reads = self._reads, []
        return reads

    def prerequisite_of(self, name: str) -> Prerequisite:
        return self._prerequisites.get(name, NONE)


@dataclass
class ShortcutContext:
    """State shared by the handlers of one ``use_shortcuts`` call.

    Attributes:
        registered: Expressions published so far.
        options: Caller options, passed through untouched to handlers.
    """

    registered: RegisteredExpressions = field(default_factory=RegisteredExpressions)
    options: dict[str, Any] = field(default_factory=dict)

    def prerequisite(self, descriptor: Any) -> Prerequisite:
        """The descriptor's own prerequisite plus those of the expressions it read."""
        own = descriptor.get("prerequisite") if isinstance(descriptor, dict) else descriptor.prerequisite
        prerequisite = to_prerequisite(own)
        for name in self.registered.take_reads():
            prerequisite = merge_prerequisites(prerequisite, self.registered.prerequisite_of(name))
        return prerequisite


async def evaluate(arg: Any, context: ShortcutContext) -> Any:
    """Call ``arg`` with the registered-expression lookup if it is callable."""
    if not callable(arg):
        return arg
    result = arg(context.registered)
    if inspect.isawaitable(result):
        result = await result
    return result


# ---------------------------------------------------------------------------
# Built-in handlers
# ---------------------------------------------------------------------------


async def _field(query_def: QueryDef, shortcut: FieldShortcut, context: ShortcutContext) -> None:
    if shortcut.expression is not None:
        expression = to_expression(await evaluate(shortcut.expression, context))
        source: Any = Query(select=[ResultColumn(expression=expression, alias=shortcut.name)])
        prerequisite = context.prerequisite(shortcut)
        if shortcut.registered:
            context.registered.add(shortcut.name, expression, prerequisite)
    elif shortcut.query_arg is not None:
        source = await evaluate(shortcut.query_arg, context)
        prerequisite = context.prerequisite(shortcut)
    else:
        logger.warning("Invalid field:%s", shortcut.name)
        return
    query_def.field(shortcut.name, source, prerequisite)


async def _table(query_def: QueryDef, shortcut: TableShortcut, context: ShortcutContext) -> None:
    if shortcut.from_table is not None:
        source: Any = Query(from_=await evaluate(shortcut.from_table, context))
    elif shortcut.query_arg is not None:
        source = await evaluate(shortcut.query_arg, context)
    else:
        logger.warning("Invalid table:%s", shortcut.name)
        return
    query_def.table(shortcut.name, source, context.prerequisite(shortcut))


async def _subquery(
    query_def: QueryDef, shortcut: SubqueryShortcut, context: ShortcutContext
) -> None:
    if shortcut.expression is not None:
        source: Any = Query(where=[to_expression(await evaluate(shortcut.expression, context))])
    elif shortcut.subquery_arg is not None:
        source = await evaluate(shortcut.subquery_arg, context)
    else:
        logger.warning("Invalid subquery:%s", shortcut.name)
        return
    fragment = query_def.subquery(shortcut.name, source, context.prerequisite(shortcut))

    unknowns = shortcut.unknowns
    if isinstance(unknowns, list):
        for name, index in unknowns:
            fragment.register(name, index)
    elif isinstance(unknowns, UnknownsSpec) and unknowns.from_to:
        for i in range(0, unknowns.no_of_unknowns or 2, 2):
            fragment.register("from", i)
            fragment.register("to", i + 1)
    elif unknowns:
        count = unknowns.no_of_unknowns if isinstance(unknowns, UnknownsSpec) else None
        for i in range(count or 1):
            fragment.register("value", i)


async def _group_by(
    query_def: QueryDef, shortcut: GroupByShortcut, context: ShortcutContext
) -> None:
    if shortcut.expression is not None:
        expression = to_expression(await evaluate(shortcut.expression, context))
        source: Any = Query(group=GroupBy(expressions=[expression]))
    elif shortcut.query_arg is not None:
        source = await evaluate(shortcut.query_arg, context)
    else:
        logger.warning("Invalid groupBy:%s", shortcut.name)
        return
    query_def.group_by(shortcut.name, source, context.prerequisite(shortcut))


async def _order_by(
    query_def: QueryDef, shortcut: OrderByShortcut, context: ShortcutContext
) -> None:
    if shortcut.expression is not None:
        expression = to_expression(await evaluate(shortcut.expression, context))
        source: Any = Query(order=[OrderBy(expression=expression, direction=shortcut.direction)])
    elif shortcut.query_arg is not None:
        source = await evaluate(shortcut.query_arg, context)
    else:
        logger.warning("Invalid orderBy:%s", shortcut.name)
        return
    query_def.order_by(shortcut.name, source, context.prerequisite(shortcut))


async def _combo(query_def: QueryDef, shortcut: ComboShortcut, context: ShortcutContext) -> None:
    if shortcut.expression is not None:
        expression: Any = await evaluate(shortcut.expression, context)
    elif shortcut.expr_arg is not None:
        expression = await evaluate(shortcut.expr_arg, context)
    else:
        raise ValueError(f"combo '{shortcut.name}' has no expression")
    if not callable(expression):
        expression = to_expression(expression)
    prerequisite = context.prerequisite(shortcut)
    if shortcut.registered and not callable(expression):
        context.registered.add(shortcut.name, expression, prerequisite)

    query_def.group_field(shortcut.name, expression, prerequisite=prerequisite)
    query_def.group_field(f"{shortcut.name}Any", any_value(expression), prerequisite=prerequisite)
    query_def.subquery(shortcut.name, combo_subquery_arg(expression), prerequisite)


_BUILT_IN_HANDLERS: dict[str, ShortcutHandler] = {
    "field": _field,
    "table": _table,
    "subquery": _subquery,
    "groupBy": _group_by,
    "orderBy": _order_by,
    "combo": _combo,
}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ShortcutRegistry:
    """Maps descriptor types to handlers.

    Args:
        handlers: Extra handlers keyed by descriptor type.  Built-in kinds
            are always present and cannot be replaced.
    """

    def __init__(self, handlers: Mapping[str, ShortcutHandler] | None = None) -> None:
        self._handlers: dict[str, ShortcutHandler] = dict(_BUILT_IN_HANDLERS)
        for shortcut_type, handler in (handlers or {}).items():
            if shortcut_type in BUILT_IN_TYPES:
                logger.warning("Shortcut '%s' cannot be overwritten", shortcut_type)
                continue
            self._handlers[shortcut_type] = handler

    @property
    def types(self) -> list[str]:
        return list(self._handlers)

    def with_handler(self, shortcut_type: str, handler: ShortcutHandler) -> ShortcutRegistry:
        """Return a new registry that also handles ``shortcut_type``.

        Args:
            shortcut_type: Descriptor ``type`` value.
            handler: ``(query_def, descriptor, context)``, sync or async.
                Custom descriptors are passed as the raw dict.

        Returns:
            A new :class:`ShortcutRegistry`; ``self`` is unchanged.
        """
        custom = {k: v for k, v in self._handlers.items() if k not in BUILT_IN_TYPES}
        custom[shortcut_type] = handler
        return ShortcutRegistry(custom)

    async def apply(
        self,
        query_def: QueryDef,
        shortcuts: Iterable[Any],
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Translate ``shortcuts`` into registrations on ``query_def``, in order.

        Descriptors of an unknown type are logged and skipped.

        Raises:
            ShortcutError: If a descriptor fails to translate.  The original
                exception is chained.
        """
        context = ShortcutContext(options=dict(options or {}))
        for raw in shortcuts:
            shortcut_type, name = _describe(raw)
            handler = self._handlers.get(shortcut_type)
            if handler is None:
                logger.warning("Invalid %s:%s", shortcut_type, name)
                continue
            context.registered.take_reads()
            try:
                descriptor = to_shortcut(raw) if shortcut_type in BUILT_IN_TYPES else raw
                result = handler(query_def, descriptor, context)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                raise ShortcutError(str(exc), shortcut_type, name) from exc
            logger.debug("Apply shortcut %s:%s", shortcut_type, name)


def _describe(raw: Any) -> tuple[Any, Any]:
    if isinstance(raw, BaseModel):
        return getattr(raw, "type", None), getattr(raw, "name", None)
    return raw.get("type"), raw.get("name")
