"""Dependency closure over the fragment registry.

:class:`DependencyResolver` expands the fragments a ``QueryParams`` asks for
into every fragment they transitively require, then writes that closure back
into the params so each needed fragment is requested exactly once.

Algorithm
---------
1. Every named entry of ``fields``, ``tables``, ``subqueries`` (keys),
   ``group_by`` and ``sorting`` is looked up in the registry.  Unregistered
   top-level names are skipped; each clause has its own fallback for them.
2. A registered key is visited with the current recursion path.  Its depend
   count grows by ``len(path)`` on every visit.  Its prerequisite is
   resolved and each required key is visited with ``path + [key]``:

   * ``Names``: every name must be registered, otherwise
     :class:`~fragql.errors.PrerequisiteNotFoundError`.
   * ``Patch``: merged into the params in place; the registered fragments
     it requests are then visited like names.

   A key already on the path raises
   :class:`~fragql.errors.RecursiveDependencyError`.
3. Keys are stably sorted by descending depend count, so deeper
   prerequisites are applied before the fragments that need them.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from fragql.compose.fragment import Fragment
from fragql.compose.prerequisite import Names, Patch, StaticPrerequisite, patch_names, split_key
from fragql.errors import PrerequisiteNotFoundError, RecursiveDependencyError
from fragql.schema.ast import OrderBy
from fragql.schema.params import QueryParams, SortKey

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Computes the prerequisite closure for one ``apply`` call.

    Args:
        registry: Registry key -> fragment.  Only read.
        params: The working (already copied) params.  Patch prerequisites
            are merged into it in place.
    """

    def __init__(self, registry: Mapping[str, Fragment], params: QueryParams) -> None:
        self._registry = registry
        self._params = params
        self._order: list[str] = []
        self._counts: dict[str, int] = {}
        self._patched: set[str] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def depend_counts(self) -> dict[str, int]:
        return dict(self._counts)

    async def resolve(self) -> list[str]:
        """Visit every requested key and return the closure, deepest first.

        Raises:
            RecursiveDependencyError: If a prerequisite chain is cyclic.
            PrerequisiteNotFoundError: If a prerequisite names an
                unregistered fragment.
        """
        for key in requested_keys(self._params):
            await self._visit(key, [])
        return sorted(self._order, key=lambda k: -self._counts[k])

    def merge_into_params(self, keys: list[str]) -> None:
        """Write the sorted closure ``keys`` back into the params.

        Field and table closures come first, followed by the caller's
        remaining entries.  Missing sub-filters are added with their
        fragment's default value.  Group-by and sort closures are appended
        after the caller's entries.
        """
        params = self._params
        classified: dict[str, list[str]] = {
            "field": [],
            "table": [],
            "subquery": [],
            "groupBy": [],
            "orderBy": [],
        }
        for key in keys:
            kind, name = split_key(key)
            classified[kind].append(name)

        params.fields = _prepend(classified["field"], params.fields)
        params.tables = _prepend(classified["table"], params.tables)
        for name in classified["subquery"]:
            if name not in params.subqueries:
                params.subqueries[name] = self._registry[name].default
        params.group_by = _append(params.group_by, classified["groupBy"])

        sorting = params.sorting_list()
        present = {_sort_name(entry) for entry in sorting}
        params.sorting = [
            *sorting,
            *(name for name in dict.fromkeys(classified["orderBy"]) if name not in present),
        ]

    # ------------------------------------------------------------------
    # Closure
    # ------------------------------------------------------------------

    async def _visit(self, key: str, path: list[str]) -> None:
        fragment = self._registry.get(key)
        if fragment is None:
            if path:
                raise PrerequisiteNotFoundError(key, path)
            return

        if key not in self._counts:
            self._order.append(key)
            self._counts[key] = 0
        self._counts[key] += len(path)

        path = [*path, key]
        required = self._required_keys(key, await fragment.get_prerequisite(self._params))
        if required:
            logger.debug("Apply prerequisites of %s = [%s]", key, ", ".join(required))
        for name in required:
            if name in path:
                raise RecursiveDependencyError([*path, name])
            await self._visit(name, path)

    def _required_keys(self, key: str, prerequisite: StaticPrerequisite) -> list[str]:
        if isinstance(prerequisite, Names):
            return list(prerequisite.names)
        if isinstance(prerequisite, Patch):
            # Each key's patch is merged once, as a private copy.
            if key not in self._patched:
                self._patched.add(key)
                self._params.update_from(prerequisite.params.model_copy(deep=True))
            # Unregistered names in a patch are plain columns, not prerequisites.
            return [k for k in patch_names(prerequisite) if k in self._registry]
        return []


def requested_keys(params: QueryParams) -> list[str]:
    """Registry keys named directly by ``params``, in clause order."""
    keys = [f"field:{f}" for f in params.fields or [] if isinstance(f, str)]
    keys += [f"table:{t}" for t in params.tables or []]
    keys += list(params.subqueries)
    keys += [f"groupBy:{g}" for g in params.group_by or [] if isinstance(g, str)]
    for sort in params.sorting_list():
        if not isinstance(sort, OrderBy):
            keys.append(f"orderBy:{_sort_name(sort)}")
    return keys


def _sort_name(entry: str | SortKey | OrderBy) -> str | None:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, SortKey):
        return entry.key
    return None


def _prepend(closure: list[str], entries: list | None) -> list:
    result: list = list(dict.fromkeys(closure))
    for entry in entries or []:
        if isinstance(entry, str) and entry in result:
            continue
        result.append(entry)
    return result


def _append(entries: list | None, closure: list[str]) -> list:
    result: list = list(entries or [])
    for name in closure:
        if name not in result:
            result.append(name)
    return result
