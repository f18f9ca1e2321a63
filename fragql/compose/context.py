"""Resolution context value object.

Packages the ``(registry, params, options)`` data clump shared by
``QueryDef.apply`` and every clause resolver into a single object.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from fragql.compose.fragment import Fragment
from fragql.config import ApplyOptions
from fragql.schema.params import QueryParams


@dataclass(frozen=True)
class ResolutionContext:
    """Immutable context for a single ``apply`` call.

    Attributes:
        registry: Registry key -> fragment.  Never written during ``apply``.
        params: Working params, closure already merged in.
        options: Options of this call.
    """

    registry: Mapping[str, Fragment]
    params: QueryParams
    options: ApplyOptions

    def lookup(self, kind: str, name: str) -> tuple[str, Fragment | None]:
        """Return ``("<kind>:<name>", fragment-or-None)``."""
        key = f"{kind}:{name}"
        return key, self.registry.get(key)
