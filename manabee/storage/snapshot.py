"""
Backup snapshot format.

A snapshot is a JSON object with `version`, `exportedAt` and one key per
collection: `schools`, `logs`, `lesson`, `questions`, `users`. Import is
partial-merge-by-presence, so every collection key is optional.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import Any, Dict, Mapping, Optional, Union

SNAPSHOT_VERSION = 2

# Collection key -> expected JSON type.
COLLECTION_TYPES: Dict[str, type] = {
    "schools": list,
    "logs": list,
    "lesson": dict,
    "questions": list,
    "users": list,
}
COLLECTION_KEYS = tuple(COLLECTION_TYPES)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def build_snapshot(collections: Mapping[str, Any], *, mode: Optional[str] = None) -> str:
    """Serialize collections into a versioned, timestamped snapshot."""
    payload: Dict[str, Any] = {"version": SNAPSHOT_VERSION}
    if mode:
        payload["mode"] = mode
    payload["exportedAt"] = utc_now_iso()
    for key in COLLECTION_KEYS:
        if key in collections:
            payload[key] = collections[key]
    return json.dumps(payload, ensure_ascii=False, indent=2)


def parse_snapshot(snapshot: Union[str, bytes, Mapping[str, Any]]) -> Dict[str, Any]:
    """Return the collections present in `snapshot`.

    Raises:
        ValueError: invalid JSON, not an object, unsupported version, or a
            collection with the wrong JSON type. Nothing is partially
            returned, so callers can validate before writing anything.
    """
    if isinstance(snapshot, (str, bytes)):
        try:
            data = json.loads(snapshot)
        except ValueError as exc:
            raise ValueError("invalid_snapshot_json") from exc
    else:
        data = snapshot
    if not isinstance(data, Mapping):
        raise ValueError("invalid_snapshot_shape")
    version = data.get("version")
    if version is not None:
        if isinstance(version, bool) or not isinstance(version, int) or version > SNAPSHOT_VERSION:
            raise ValueError("unsupported_snapshot_version")
    collections: Dict[str, Any] = {}
    for key, expected in COLLECTION_TYPES.items():
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, expected):
            raise ValueError(f"invalid_snapshot_collection:{key}")
        collections[key] = value
    return collections


__all__ = [
    "COLLECTION_KEYS",
    "SNAPSHOT_VERSION",
    "build_snapshot",
    "parse_snapshot",
    "utc_now_iso",
]
