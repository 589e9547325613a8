"""
Startup configuration for the data-access layer.

Intent:
    Provide a single place to read the environment variables that select the
    backend (`local` | `remote`) and its connection parameters.

Behavior:
    - `MANABEE_BACKEND` selects the backend (default: local).
    - `MANABEE_LOCAL_STORE_PATH` points the local store at a JSON file; empty
      keeps it in memory.
    - `remote` requires `SUPABASE_URL` and `SUPABASE_SERVICE_ROLE_KEY`. Their
      absence raises ConfigurationError here, not inside an unrelated call.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping, Optional

from manabee.storage.errors import ConfigurationError


BACKEND_LOCAL = "local"
BACKEND_REMOTE = "remote"
BACKENDS = frozenset({BACKEND_LOCAL, BACKEND_REMOTE})

_REMOTE_REQUIRED = ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")


@dataclass(frozen=True)
class StorageConfig:
    backend: str = BACKEND_LOCAL
    local_store_path: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    @property
    def remote_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def require_remote(self) -> None:
        missing = [
            name
            for name, value in zip(_REMOTE_REQUIRED, (self.supabase_url, self.supabase_key))
            if not value
        ]
        if missing:
            raise ConfigurationError(f"remote_backend_not_configured: missing {', '.join(missing)}")


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def load_storage_config(env: Optional[Mapping[str, str]] = None, *, dotenv: bool = False) -> StorageConfig:
    """
    Parse and validate storage configuration.

    Parameters:
        env: Mapping to read instead of `os.environ` (tests).
        dotenv: When True, load a `.env` file into the process environment
            first, searched from the working directory (python-dotenv;
            existing variables win).
    """
    if dotenv:
        from dotenv import find_dotenv, load_dotenv

        load_dotenv(find_dotenv(usecwd=True), override=False)
    source = os.environ if env is None else env
    backend = (source.get("MANABEE_BACKEND") or BACKEND_LOCAL).strip().lower()
    if backend not in BACKENDS:
        raise ConfigurationError(f"invalid_backend: MANABEE_BACKEND must be 'local' or 'remote', got {backend!r}")
    config = StorageConfig(
        backend=backend,
        local_store_path=_clean(source.get("MANABEE_LOCAL_STORE_PATH")),
        supabase_url=_clean(source.get("SUPABASE_URL")),
        supabase_key=_clean(source.get("SUPABASE_SERVICE_ROLE_KEY")),
    )
    if backend == BACKEND_REMOTE:
        config.require_remote()
    return config


__all__ = [
    "BACKEND_LOCAL",
    "BACKEND_REMOTE",
    "BACKENDS",
    "StorageConfig",
    "load_storage_config",
]
