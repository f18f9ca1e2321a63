"""fragQL shortcut layer: declarative descriptors translated into registrations."""
from fragql.shortcuts.models import (
    ComboShortcut,
    FieldShortcut,
    GroupByShortcut,
    OrderByShortcut,
    Shortcut,
    SubqueryShortcut,
    TableShortcut,
    UnknownsSpec,
)
from fragql.shortcuts.registry import (
    RegisteredExpressions,
    ShortcutContext,
    ShortcutRegistry,
)

__all__ = [
    "ComboShortcut",
    "FieldShortcut",
    "GroupByShortcut",
    "OrderByShortcut",
    "Shortcut",
    "SubqueryShortcut",
    "TableShortcut",
    "UnknownsSpec",
    "RegisteredExpressions",
    "ShortcutContext",
    "ShortcutRegistry",
]
