"""
Local key/value store: the physical medium of the local adapter.

Why: The local backend needs a single, explicitly owned store instead of
module-level state. This store keeps JSON values under string keys and, when
given a path, persists the whole map to one JSON file on every write (atomic
replace), so a write is durable before the call returns.

Without a path the store lives in memory only (tests, ephemeral sessions).
"""
from __future__ import annotations

import copy
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

_log = logging.getLogger("manabee.storage.local")


def _atomic_tmp_path(path: Path) -> Path:
    return path.with_suffix(path.suffix + f".{uuid.uuid4().hex}.tmp")


def atomic_write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = _atomic_tmp_path(path)
    try:
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False)
            fh.flush()
            os.fsync(fh.fileno())
        tmp.replace(path)
    finally:
        tmp.unlink(missing_ok=True)


class LocalStore:
    """JSON-valued key/value store with optional file persistence.

    Values are stored as their JSON text so `get_raw` can report exactly what
    is persisted; `get` decodes a fresh copy on every call.
    """

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        self._path = Path(path) if path else None
        self._data: Dict[str, str] = {}
        if self._path is not None:
            self._data = self._read_file(self._path)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @staticmethod
    def _read_file(path: Path) -> Dict[str, str]:
        if not path.exists():
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _log.warning("Local store unreadable, starting empty: %s", exc.__class__.__name__)
            return {}
        if not isinstance(raw, dict):
            _log.warning("Local store has unexpected shape, starting empty")
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        if self._path is not None:
            atomic_write_json(self._path, self._data)

    def keys(self) -> List[str]:
        return list(self._data)

    def get_raw(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for `key`.

        Raises:
            ValueError: the stored text is not valid JSON.
        """
        raw = self._data.get(key)
        if raw is None:
            return copy.deepcopy(default)
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)
        self._flush()

    def set_raw(self, key: str, raw: str) -> None:
        self._data[key] = raw
        self._flush()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def clear(self) -> None:
        self._data.clear()
        if self._path is not None and self._path.exists():
            self._path.unlink()


__all__ = ["LocalStore", "atomic_write_json"]
