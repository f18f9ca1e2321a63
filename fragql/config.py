"""Run-time options for ``QueryDef.apply``."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any


@dataclass
class ApplyOptions:
    """Options controlling a single ``apply`` call.

    Attributes:
        with_default: Activate the sub-filter registered under the literal
            name ``default`` on every call.
        skip_def_fields: Drop unregistered field names instead of turning
            them into plain column references.
    """

    with_default: bool = True
    skip_def_fields: bool = False

    @classmethod
    def coerce(cls, options: ApplyOptions | dict[str, Any] | None) -> ApplyOptions:
        """Accept ``None``, an ``ApplyOptions`` or a dict of its fields.

        Raises:
            TypeError: If the dict carries an unknown option.
        """
        if options is None:
            return cls()
        if isinstance(options, ApplyOptions):
            return options
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise TypeError(f"Unknown apply option(s): {', '.join(sorted(unknown))}")
        return cls(**options)
