"""Fragment prerequisites.

A prerequisite says what else must be in place before a fragment is applied.
It is one of four variants:

``NoPrerequisite``
    Nothing required.
``Names``
    Registry keys (``"table:orders"``, ``"field:id"``, or a bare sub-filter
    name) that are resolved recursively.
``Patch``
    A :class:`~fragql.schema.params.QueryParams` patch merged into the working
    parameters, e.g. to force a sub-filter value.
``Dynamic``
    A callable ``(params) -> names | patch`` (sync or async) evaluated at
    apply time.

:func:`to_prerequisite` accepts the loose forms callers pass at registration
time (``None``, a list of keys, a params dict, a callable) and returns the
matching variant.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Union

from fragql.schema.params import QueryParams, SortKey

logger = logging.getLogger(__name__)

#: Key prefixes of the non-sub-filter fragment kinds.
KINDS: tuple[str, ...] = ("field", "table", "groupBy", "orderBy")


@dataclass(frozen=True)
class NoPrerequisite:
    pass


@dataclass(frozen=True)
class Names:
    names: tuple[str, ...]


@dataclass(frozen=True)
class Patch:
    params: QueryParams


@dataclass(frozen=True)
class Dynamic:
    func: Callable[[QueryParams], Any]


Prerequisite = Union[NoPrerequisite, Names, Patch, Dynamic]

#: A prerequisite after any ``Dynamic`` callable has been evaluated.
StaticPrerequisite = Union[NoPrerequisite, Names, Patch]

NONE = NoPrerequisite()


def to_prerequisite(value: Any) -> Prerequisite:
    """Coerce a registration-time prerequisite argument into a variant.

    Raises:
        TypeError: If ``value`` has none of the accepted shapes.
    """
    if value is None:
        return NONE
    if isinstance(value, (NoPrerequisite, Names, Patch, Dynamic)):
        return value
    if isinstance(value, str):
        return Names((value,))
    if isinstance(value, (list, tuple)):
        return Names(tuple(value)) if value else NONE
    if isinstance(value, QueryParams):
        return Patch(value)
    if isinstance(value, dict):
        return Patch(QueryParams.model_validate(value))
    if callable(value):
        return Dynamic(value)
    raise TypeError(f"Unsupported prerequisite: {value!r}")


def split_key(key: str) -> tuple[str, str]:
    """Split a registry key into ``(kind, name)``; bare names are ``"subquery"``."""
    kind, sep, name = key.partition(":")
    if sep and kind in KINDS:
        return kind, name
    return "subquery", key


def names_to_patch(names: Names) -> Patch:
    """Desugar a name list into the params patch that requests those fragments."""
    patch = QueryParams()
    for key in names.names:
        kind, name = split_key(key)
        if kind == "field":
            patch.fields = [*(patch.fields or []), name]
        elif kind == "table":
            patch.tables = [*(patch.tables or []), name]
        elif kind == "groupBy":
            patch.group_by = [*(patch.group_by or []), name]
        elif kind == "orderBy":
            patch.sorting = [*patch.sorting_list(), name]
        else:
            patch.subqueries[name] = True
    return Patch(patch)


def merge_prerequisites(left: Prerequisite, right: Prerequisite) -> Prerequisite:
    """Combine two prerequisites into one.

    ``NoPrerequisite`` is the identity.  Two name lists concatenate, two
    patches deep-merge, a name list meeting a patch is desugared first, and
    any combination involving ``Dynamic`` stays dynamic.
    """
    if isinstance(left, NoPrerequisite):
        return right
    if isinstance(right, NoPrerequisite):
        return left
    if isinstance(left, Dynamic) or isinstance(right, Dynamic):
        return Dynamic(_merged_callable(left, right))
    if isinstance(left, Names) and isinstance(right, Names):
        return Names(left.names + tuple(n for n in right.names if n not in left.names))
    if isinstance(left, Names):
        left = names_to_patch(left)
    if isinstance(right, Names):
        right = names_to_patch(right)
    merged = left.params.model_copy(deep=True)
    merged.update_from(right.params)
    return Patch(merged)


def _merged_callable(left: Prerequisite, right: Prerequisite) -> Callable[[QueryParams], Any]:
    async def merged(params: QueryParams) -> StaticPrerequisite:
        return merge_prerequisites(
            await resolve_prerequisite(left, params),
            await resolve_prerequisite(right, params),
        )

    return merged


async def resolve_prerequisite(prerequisite: Prerequisite, params: QueryParams) -> StaticPrerequisite:
    """Evaluate a ``Dynamic`` prerequisite against ``params``; others pass through."""
    while isinstance(prerequisite, Dynamic):
        result = prerequisite.func(params)
        if inspect.isawaitable(result):
            result = await result
        try:
            prerequisite = to_prerequisite(result)
        except TypeError:
            logger.warning("Ignoring unparsable prerequisite result %r", result)
            return NONE
    return prerequisite


def patch_names(patch: Patch) -> list[str]:
    """Registry keys a patch requests, in params order."""
    params = patch.params
    keys = [f"field:{f}" for f in params.fields or [] if isinstance(f, str)]
    keys += [f"table:{t}" for t in params.tables or []]
    keys += list(params.subqueries)
    keys += [f"groupBy:{g}" for g in params.group_by or [] if isinstance(g, str)]
    for sort in params.sorting_list():
        if isinstance(sort, str):
            keys.append(f"orderBy:{sort}")
        elif isinstance(sort, SortKey):
            keys.append(f"orderBy:{sort.key}")
    return keys
