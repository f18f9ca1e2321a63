"""Custom exception hierarchy for fragQL.

All public errors inherit from FragQLError so callers can catch the base
class for any fragQL-specific failure.

Registration-time problems raise :class:`RegistrationError` subclasses,
``QueryDef.apply`` failures raise :class:`ResolutionError` subclasses.  An
``apply`` call never returns a partial tree: the first error aborts it.
"""
from __future__ import annotations

from collections.abc import Sequence


class FragQLError(Exception):
    """Base exception for all fragQL errors."""


# ---------------------------------------------------------------------------
# Configuration errors (registration time)
# ---------------------------------------------------------------------------


class RegistrationError(FragQLError):
    """Raised when a fragment cannot be registered.

    Args:
        message: Human-readable description.
        key: The registry key involved, when known.
    """

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class InvalidNameError(RegistrationError):
    """Raised for an empty fragment name or one containing the ``:`` delimiter."""

    def __init__(self, name: object) -> None:
        super().__init__(f"Invalid name '{name}'")
        self.name = name


class DuplicateFragmentError(RegistrationError):
    """Raised when a key is registered twice without ``overwrite=True``."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Fragment '{key}' already registered", key=key)


# ---------------------------------------------------------------------------
# Resolution errors (apply time)
# ---------------------------------------------------------------------------


class ResolutionError(FragQLError):
    """Raised when ``QueryDef.apply`` cannot resolve the requested fragments.

    Args:
        message: Human-readable description.
        key: The registry key being resolved when the error occurred.
    """

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class RecursiveDependencyError(ResolutionError):
    """Raised when a prerequisite chain loops back onto itself.

    Args:
        path: The recursion path, ending with the key that closes the cycle.
    """

    def __init__(self, path: Sequence[str]) -> None:
        self.path = list(path)
        super().__init__(
            "Recursive dependency: " + " -> ".join(self.path), key=self.path[-1]
        )


class PrerequisiteNotFoundError(ResolutionError):
    """Raised when a prerequisite chain names an unregistered fragment.

    Unregistered names requested directly by the caller are tolerated (each
    clause has its own fallback); only names reached through a prerequisite
    are fatal.
    """

    def __init__(self, key: str, path: Sequence[str]) -> None:
        self.path = list(path)
        super().__init__(
            f"Prerequisite '{key}' not found (required by {' -> '.join(self.path)})",
            key=key,
        )


class EmptyFragmentError(ResolutionError):
    """Raised when a registered fragment yields nothing for its clause."""

    def __init__(self, key: str, clause: str) -> None:
        super().__init__(f"No {clause} returned from '{key}'", key=key)
        self.clause = clause


# ---------------------------------------------------------------------------
# Shortcut layer
# ---------------------------------------------------------------------------


class ShortcutError(FragQLError):
    """Raised when a shortcut descriptor fails to translate into a fragment.

    The original exception is chained as ``__cause__``.

    Args:
        message: Message of the underlying failure.
        shortcut_type: The descriptor ``type``.
        name: The descriptor ``name``.
    """

    def __init__(self, message: str, shortcut_type: str, name: str) -> None:
        super().__init__(f"{message}. Fail to register {shortcut_type}:{name}")
        self.shortcut_type = shortcut_type
        self.name = name


class NotRegisteredError(FragQLError):
    """Raised when reading a shortcut-registered expression that does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"expression '{name}' not registered")
        self.name = name
