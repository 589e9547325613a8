"""Audit log writer on top of the storage facade."""
from __future__ import annotations

from typing import List, Optional

from manabee.identity_access.domain import IdentityRecord
from manabee.storage.facade import Storage
from manabee.storage.ports import AuditRecord


class AuditLogWriter:
    """Append immutable action records.

    `record` returns nothing: callers must not branch on it. It still awaits
    the backend, so the local adapter has persisted the entry when the call
    returns. Storage errors propagate.
    """

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    async def record(self, actor: IdentityRecord, action: str, summary: str) -> None:
        await self._storage.add_log(actor, action, summary)

    async def recent(self, limit: Optional[int] = None) -> List[AuditRecord]:
        """Newest-first records; `limit` trims the result client-side."""
        logs = await self._storage.load_logs()
        return logs if limit is None else logs[:limit]


__all__ = ["AuditLogWriter"]
