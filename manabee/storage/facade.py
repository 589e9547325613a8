"""
Storage facade: the single entry point for data access.

Why:
    Callers (session service, UI consumers) must not know whether the local
    or the remote backend is active. The adapter is resolved once, at
    startup, from StorageConfig and every call is dispatched to it unchanged.

Behavior:
    - Pure dispatch: no merging, no caching, no sync between backends.
    - Whole-aggregate last-write-wins; partial updates are the caller's job.
      `save_schools` replaces the collection on every backend; schools
      missing from the list are removed.
    - Adapter errors (ConfigurationError, BackendUnavailable,
      UnsupportedOperation) propagate to the caller.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Union

from manabee.identity_access.domain import IdentityRecord
from manabee.storage.config import BACKEND_LOCAL, BACKEND_REMOTE, StorageConfig, load_storage_config
from manabee.storage.errors import ConfigurationError
from manabee.storage.local_adapter import LocalBackendAdapter
from manabee.storage.local_store import LocalStore
from manabee.storage.ports import AuditRecord, BackendAdapterProtocol, Document, LoginOutcome
from manabee.storage.remote_supabase import SupabaseBackendAdapter

_log = logging.getLogger("manabee.storage")


class Storage:
    """Dispatch layer over exactly one backend adapter."""

    def __init__(self, adapter: BackendAdapterProtocol) -> None:
        self._adapter = adapter

    async def generate_id(self) -> str:
        return await self._adapter.generate_id()

    # Users
    async def load_users(self) -> List[IdentityRecord]:
        return await self._adapter.load_users()

    async def save_users(self, users: List[IdentityRecord]) -> None:
        await self._adapter.save_users(users)

    async def login(self, email: str, password: Optional[str] = None) -> LoginOutcome:
        return await self._adapter.login(email, password)

    async def change_password(self, user_id: str, new_password: str) -> bool:
        return await self._adapter.change_password(user_id, new_password)

    async def register_user(
        self, *, name: str, email: str, role: str, password: Optional[str] = None
    ) -> LoginOutcome:
        return await self._adapter.register_user(name=name, email=email, role=role, password=password)

    # Schools
    async def load_schools(self, student_id: Optional[str] = None) -> List[Document]:
        return await self._adapter.load_schools(student_id)

    async def save_schools(self, schools: List[Document]) -> None:
        await self._adapter.save_schools(schools)

    async def delete_school(self, school_id: str) -> bool:
        return await self._adapter.delete_school(school_id)

    # Lesson
    async def load_lesson(self) -> Document:
        return await self._adapter.load_lesson()

    async def save_lesson(self, lesson: Document) -> None:
        await self._adapter.save_lesson(lesson)

    # Questions
    async def load_questions(self, student_id: Optional[str] = None) -> List[Document]:
        return await self._adapter.load_questions(student_id)

    async def save_question(self, question: Document) -> None:
        await self._adapter.save_question(question)

    # Logs
    async def load_logs(self) -> List[AuditRecord]:
        return await self._adapter.load_logs()

    async def add_log(self, actor: IdentityRecord, action: str, summary: str) -> AuditRecord:
        return await self._adapter.add_log(actor, action, summary)

    # Backup
    async def export_data(self) -> str:
        return await self._adapter.export_data()

    async def import_data(self, snapshot: Union[str, Document]) -> bool:
        return await self._adapter.import_data(snapshot)

    async def reset_data(self) -> None:
        await self._adapter.reset_data()


def build_storage(
    config: Optional[StorageConfig] = None,
    *,
    local_store: Optional[LocalStore] = None,
    remote_client: Any = None,
) -> Storage:
    """Resolve the active adapter once and wrap it in a Storage facade.

    Parameters:
        config: Startup configuration; read from the environment when omitted.
        local_store: Store instance to own for the local backend. Defaults to
            a LocalStore at `config.local_store_path` (in-memory when unset).
        remote_client: Pre-built supabase client for the remote backend.

    Raises:
        ConfigurationError: unknown backend, or remote without connection
            parameters (and no injected client).
    """
    cfg = config or load_storage_config()
    if cfg.backend == BACKEND_LOCAL:
        store = local_store if local_store is not None else LocalStore(cfg.local_store_path)
        _log.info("Storage backend wired: local (%s)", "file" if store.path else "memory")
        return Storage(LocalBackendAdapter(store))
    if cfg.backend == BACKEND_REMOTE:
        if remote_client is None:
            cfg.require_remote()
        adapter = SupabaseBackendAdapter(remote_client, url=cfg.supabase_url, key=cfg.supabase_key)
        _log.info("Storage backend wired: remote")
        return Storage(adapter)
    raise ConfigurationError(f"invalid_backend: {cfg.backend!r}")


__all__ = ["Storage", "build_storage"]
