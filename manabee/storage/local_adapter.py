"""
Local backend adapter (single device, synchronous medium).

Implements BackendAdapterProtocol on top of an injected LocalStore. All
operations finish synchronously but are exposed as coroutines so callers stay
backend-agnostic.

Behavior:
    - Users are seeded from DEMO_USERS only when the users key is absent.
    - Audit log is newest-first and capped at LOCAL_LOG_LIMIT records.
    - Unreadable collections fall back to their defaults.
    - Backup: export/import/reset of every collection.
"""
from __future__ import annotations

import hmac
import logging
import secrets
import string
from typing import Any, Callable, Dict, List, Optional, Union

from manabee.identity_access.domain import (
    DEMO_USERS,
    IdentityRecord,
    MIN_PASSWORD_LENGTH,
    Role,
    mask_email,
    normalize_email,
    parse_role,
)
from manabee.storage.local_store import LocalStore
from manabee.storage.ports import (
    AuditRecord,
    AuthError,
    Document,
    LoginOutcome,
    actor_fields,
    empty_lesson,
)
from manabee.storage.snapshot import build_snapshot, parse_snapshot, utc_now_iso

_log = logging.getLogger("manabee.storage.local")

KEY_USERS = "manabee_users_v2"
KEY_SCHOOLS = "manabee_schools_v2"
KEY_LESSON = "manabee_lessons_v2"
KEY_QUESTIONS = "manabee_questions_v1"
KEY_LOGS = "manabee_logs_v2"

# Snapshot collection -> store key.
SNAPSHOT_KEYS = {
    "schools": KEY_SCHOOLS,
    "logs": KEY_LOGS,
    "lesson": KEY_LESSON,
    "questions": KEY_QUESTIONS,
    "users": KEY_USERS,
}

LOCAL_LOG_LIMIT = 100

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_LENGTH = 7


class LocalBackendAdapter:
    """Backend adapter persisting to a LocalStore."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    # --- Helpers -----------------------------------------------------------------

    def _read(self, key: str, default: Callable[[], Any], expected: type) -> Any:
        try:
            value = self._store.get(key)
        except ValueError:
            _log.warning("Stored %s is not valid JSON; using default", key)
            return default()
        if value is None or not isinstance(value, expected):
            return default()
        return value

    def _read_users(self) -> List[IdentityRecord]:
        if self._store.get_raw(KEY_USERS) is None:
            self._store.set(KEY_USERS, DEMO_USERS)
            _log.info("Seeded %d demo users", len(DEMO_USERS))
        rows = self._read(KEY_USERS, list, list)
        users: List[IdentityRecord] = []
        for row in rows:
            try:
                users.append(IdentityRecord.from_dict(row))
            except ValueError:
                _log.warning("Skipping malformed user record")
        return users

    def _write_users(self, users: List[IdentityRecord]) -> None:
        self._store.set(KEY_USERS, [u.to_dict(include_password=True) for u in users])

    def _find_by_email(self, email: str) -> Optional[IdentityRecord]:
        wanted = normalize_email(email)
        for user in self._read_users():
            if user.email == wanted:
                return user
        return None

    def _new_id(self) -> str:
        return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))

    # --- Identity ----------------------------------------------------------------

    async def generate_id(self) -> str:
        return self._new_id()

    async def load_users(self) -> List[IdentityRecord]:
        return self._read_users()

    async def save_users(self, users: List[IdentityRecord]) -> None:
        self._write_users(list(users))

    async def login(self, email: str, password: Optional[str] = None) -> LoginOutcome:
        user = self._find_by_email(email)
        if user is None:
            return LoginOutcome.fail(AuthError.UNKNOWN_USER)
        if user.role is Role.STUDENT:
            return LoginOutcome.ok(user)
        if not password:
            return LoginOutcome.fail(AuthError.PASSWORD_REQUIRED)
        if user.password is None or not hmac.compare_digest(
            user.password.encode("utf-8"), password.encode("utf-8")
        ):
            _log.info("Rejected password for %s", mask_email(user.email))
            return LoginOutcome.fail(AuthError.INVALID_CREDENTIALS)
        return LoginOutcome.ok(user)

    async def change_password(self, user_id: str, new_password: str) -> bool:
        users = self._read_users()
        for idx, user in enumerate(users):
            if user.id != user_id:
                continue
            if user.role is Role.STUDENT:
                return False
            user.password = new_password
            user.is_initial_password = False
            user.updated_at = utc_now_iso()
            users[idx] = user
            self._write_users(users)
            return True
        return False

    async def register_user(
        self, *, name: str, email: str, role: str, password: Optional[str] = None
    ) -> LoginOutcome:
        try:
            parsed_role = parse_role(role)
        except ValueError:
            return LoginOutcome.fail(AuthError.INVALID_ROLE)
        if parsed_role is not Role.STUDENT:
            if not password:
                return LoginOutcome.fail(AuthError.PASSWORD_REQUIRED)
            if len(password) < MIN_PASSWORD_LENGTH:
                return LoginOutcome.fail(AuthError.PASSWORD_TOO_SHORT)
        users = self._read_users()
        wanted = normalize_email(email)
        if any(u.email == wanted for u in users):
            return LoginOutcome.fail(AuthError.EMAIL_TAKEN)
        now = utc_now_iso()
        record = IdentityRecord(
            id=self._new_id(),
            name=(name or "").strip() or wanted.split("@", 1)[0],
            role=parsed_role,
            email=wanted,
            password=password if parsed_role is not Role.STUDENT else None,
            created_at=now,
            updated_at=now,
        )
        users.append(record)
        self._write_users(users)
        return LoginOutcome.ok(record)

    # --- Domain aggregates -------------------------------------------------------

    async def load_schools(self, student_id: Optional[str] = None) -> List[Document]:
        schools = self._read(KEY_SCHOOLS, list, list)
        if student_id is not None:
            schools = [s for s in schools if isinstance(s, dict) and s.get("studentId") == student_id]
        return schools

    async def save_schools(self, schools: List[Document]) -> None:
        self._store.set(KEY_SCHOOLS, list(schools))

    async def delete_school(self, school_id: str) -> bool:
        schools = self._read(KEY_SCHOOLS, list, list)
        kept = [s for s in schools if not (isinstance(s, dict) and s.get("id") == school_id)]
        if len(kept) == len(schools):
            return False
        self._store.set(KEY_SCHOOLS, kept)
        return True

    async def load_lesson(self) -> Document:
        return self._read(KEY_LESSON, empty_lesson, dict)

    async def save_lesson(self, lesson: Document) -> None:
        self._store.set(KEY_LESSON, dict(lesson))

    async def load_questions(self, student_id: Optional[str] = None) -> List[Document]:
        questions = self._read(KEY_QUESTIONS, list, list)
        if student_id is not None:
            questions = [q for q in questions if isinstance(q, dict) and q.get("studentId") == student_id]
        return questions

    async def save_question(self, question: Document) -> None:
        questions = self._read(KEY_QUESTIONS, list, list)
        qid = question.get("id")
        for idx, existing in enumerate(questions):
            if isinstance(existing, dict) and existing.get("id") == qid:
                questions[idx] = dict(question)
                break
        else:
            questions.insert(0, dict(question))
        self._store.set(KEY_QUESTIONS, questions)

    # --- Audit log ---------------------------------------------------------------

    async def load_logs(self) -> List[AuditRecord]:
        rows = self._read(KEY_LOGS, list, list)
        return [AuditRecord.from_dict(r) for r in rows if isinstance(r, dict)]

    async def add_log(self, actor: IdentityRecord, action: str, summary: str) -> AuditRecord:
        actor_id, actor_name, actor_role = actor_fields(actor)
        record = AuditRecord(
            id=self._new_id(),
            timestamp=utc_now_iso(),
            actor_id=actor_id,
            actor_name=actor_name,
            actor_role=actor_role,
            action=action,
            summary=summary,
        )
        rows = self._read(KEY_LOGS, list, list)
        self._store.set(KEY_LOGS, ([record.to_dict()] + rows)[:LOCAL_LOG_LIMIT])
        return record

    # --- Backup ------------------------------------------------------------------

    async def export_data(self) -> str:
        return build_snapshot(
            {
                "schools": await self.load_schools(),
                "logs": self._read(KEY_LOGS, list, list),
                "lesson": await self.load_lesson(),
                "questions": await self.load_questions(),
                "users": [u.to_dict(include_password=True) for u in self._read_users()],
            }
        )

    async def import_data(self, snapshot: Union[str, Document]) -> bool:
        try:
            collections = parse_snapshot(snapshot)
            if "users" in collections:
                # Validate before anything is written; drops student passwords.
                collections["users"] = [
                    IdentityRecord.from_dict(row).to_dict(include_password=True) for row in collections["users"]
                ]
        except ValueError as exc:
            _log.warning("Snapshot import rejected: %s", exc)
            return False
        for name, value in collections.items():
            self._store.set(SNAPSHOT_KEYS[name], value)
        _log.info("Snapshot imported: %s", ", ".join(sorted(collections)) or "nothing")
        return True

    async def reset_data(self) -> None:
        self._store.clear()
        _log.warning("Local data reset")


__all__ = [
    "LOCAL_LOG_LIMIT",
    "LocalBackendAdapter",
    "SNAPSHOT_KEYS",
]
