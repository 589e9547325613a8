"""
Storage error taxonomy.

Adapters raise these; the facade lets them propagate unchanged so a failed
remote write never looks like a successful local no-op. Each error carries a
short snake_case code in its message.
"""

from __future__ import annotations


class StorageError(RuntimeError):
    """Base class for data-access failures."""


class ConfigurationError(StorageError):
    """The active backend is not (fully) configured."""


class BackendUnavailable(StorageError):
    """Remote backend could not be reached or failed server-side."""


class UnsupportedOperation(StorageError):
    """Operation is not offered by the active backend (e.g. remote reset)."""


__all__ = [
    "StorageError",
    "ConfigurationError",
    "BackendUnavailable",
    "UnsupportedOperation",
]
