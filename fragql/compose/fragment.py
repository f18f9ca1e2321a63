"""A single registered fragment.

A :class:`Fragment` wraps a *source* (a fixed partial ``Query`` or a function
producing one) together with its prerequisite and, for sub-filters, the
variables bound into the placeholders of the produced tree.

Sub-filter example::

    fragment = Fragment(
        lambda value, params: {
            "where": BetweenExpression(
                left=ColumnExpression(name="createdAt"), start=Unknown(), end=Unknown()
            )
        }
    )
    fragment.register("from", 0).register("to", 1)

    # params.subqueries["createdBetween"] == {"from": "2020-01-01", "to": "2020-12-31"}
    tree = await fragment.apply(params, name="createdBetween")

Placeholder ``i`` (in :func:`~fragql.compose.scanner.find_unknowns` order)
receives the value of the variable registered at index ``i``.  Placeholders
with no variable are left unbound.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Union

from jinja2 import Environment

from fragql.compose.merger import without_wildcard
from fragql.compose.prerequisite import (
    Patch,
    Prerequisite,
    StaticPrerequisite,
    resolve_prerequisite,
    to_prerequisite,
)
from fragql.compose.scanner import find_unknowns
from fragql.schema.ast import Query, as_query
from fragql.schema.params import QueryParams

logger = logging.getLogger(__name__)

_TEMPLATES = Environment(autoescape=False)

#: A fixed partial tree, or a function producing one (sync or async).
FragmentSource = Union[Query, dict[str, Any], Callable[..., Any]]


@dataclass
class Variable:
    """A named value bound into one placeholder position.

    Attributes:
        name: Key looked up in the effective bound value.
        default: Value used when the caller does not supply ``name``.
        format: Optional Jinja2 template rendered with the whole effective
            value as ``value`` (e.g. ``"%{{ value.value }}%"``).
    """

    name: str
    default: Any = None
    format: str | None = None

    def resolve(self, value: Any) -> Any:
        if self.format is not None:
            return _TEMPLATES.from_string(self.format).render(value=value)
        if isinstance(value, dict):
            return value.get(self.name)
        return value


class Fragment:
    """A named unit producing a partial query tree from parameters.

    Args:
        source: Fixed partial ``Query`` (or dict), or a callable.  Field,
            table, group-by and order-by fragments are called as
            ``source(params)``; sub-filters as ``source(value, params)``, or
            ``source(value)`` when the callable takes a single argument.
        prerequisite: Anything :func:`~fragql.compose.prerequisite.to_prerequisite`
            accepts.
    """

    def __init__(self, source: FragmentSource, prerequisite: Any = None) -> None:
        if isinstance(source, (dict, Query)):
            source = as_query(source).model_copy(deep=True)
        self._source = source
        self._prerequisite: Prerequisite = to_prerequisite(prerequisite)
        self._variables: dict[int, Variable] = {}
        self._takes_params = callable(source) and _takes_second_argument(source)

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    @property
    def prerequisite(self) -> Prerequisite:
        return self._prerequisite

    @property
    def variables(self) -> list[tuple[int, Variable]]:
        return sorted(self._variables.items())

    @property
    def has_variables(self) -> bool:
        return bool(self._variables)

    @property
    def default(self) -> Any:
        """``True`` without variables, else ``{name: default}`` for each variable."""
        if not self._variables:
            return True
        return {variable.name: variable.default for _, variable in self.variables}

    def register(
        self,
        name: str,
        index: int,
        *,
        default: Any = None,
        format: str | None = None,
    ) -> Fragment:
        """Bind placeholder ``index`` to variable ``name``; re-registering an index replaces it."""
        self._variables[index] = Variable(name=name, default=default, format=format)
        return self

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    async def get_prerequisite(self, params: QueryParams) -> StaticPrerequisite:
        return await resolve_prerequisite(self._prerequisite, params)

    async def apply(self, params: QueryParams, name: str | None = None) -> Query:
        """Produce this fragment's partial tree.

        Args:
            params: The working parameters of the current ``apply`` call.
            name: Sub-filter name.  When given, ``params.subqueries[name]`` is
                passed to the source and bound into the tree's placeholders.

        Returns:
            A fresh tree; the registered source is never mutated.
        """
        if name is None:
            if callable(self._source):
                return await self._realize(self._source(params))
            return await self._realize(self._source)

        raw = params.subqueries.get(name)
        if callable(self._source):
            produced = self._source(raw, params) if self._takes_params else self._source(raw)
        else:
            produced = self._source
        result = await self._realize(produced)

        value = self._effective_value(raw)
        applied: list[tuple[str, Any]] = []
        for i, unknown in enumerate(find_unknowns(result)):
            variable = self._variables.get(i)
            if variable is not None:
                unknown.value = variable.resolve(value)
            applied.append((variable.name if variable else "(not-registered)", unknown.value))
        if not applied and isinstance(value, dict):
            applied = list(value.items())

        logger.debug(
            "Apply subquery '%s' with (%s)",
            name,
            ", ".join(f"{k}={v!r}" for k, v in applied),
        )
        return result

    def _effective_value(self, raw: Any) -> Any:
        default = self.default
        if raw is True or raw is None:
            return default
        if isinstance(raw, dict):
            return {**default, **raw} if isinstance(default, dict) else dict(raw)
        if isinstance(default, dict):
            return {**default, "value": raw}
        return raw

    @staticmethod
    async def _realize(produced: Any) -> Query:
        if inspect.isawaitable(produced):
            produced = await produced
        return without_wildcard(as_query(produced).model_copy(deep=True))

    # ------------------------------------------------------------------
    # Copying
    # ------------------------------------------------------------------

    def clone(self) -> Fragment:
        """Deep copy; function sources and dynamic prerequisites keep their identity."""
        source = self._source
        if isinstance(source, Query):
            source = source.model_copy(deep=True)
        prerequisite = self._prerequisite
        if isinstance(prerequisite, Patch):
            prerequisite = Patch(prerequisite.params.model_copy(deep=True))
        copy = Fragment(source, prerequisite)
        for index, variable in self.variables:
            copy.register(variable.name, index, default=variable.default, format=variable.format)
        return copy


def _takes_second_argument(func: Callable[..., Any]) -> bool:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True
    positional = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return True
        if parameter.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            positional += 1
    return positional >= 2
