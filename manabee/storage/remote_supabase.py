"""
Supabase-backed remote adapter.

This adapter implements BackendAdapterProtocol using the async supabase-py
client. It is duck-typed on the client so tests can inject a fake: the client
is expected to expose

- table(name) -> query builder with select/eq/in_/order/limit/upsert/insert/
  update/delete and an awaitable execute() returning an object with `.data`
- auth.sign_in_with_password({...}), auth.sign_out()
- auth.admin.create_user({...}), auth.admin.update_user_by_id(uid, {...}),
  auth.admin.delete_user(uid)

Tables:
    profiles     id, name, role, email, is_initial_password, relationship
                 columns and `extra` (jsonb). Passwords live in Supabase Auth.
    schools      id, student_id, doc (jsonb), updated_at
    lessons      id, student_id, doc (jsonb), updated_at
    questions    id, student_id, doc (jsonb), created_at, updated_at
    audit_logs   id, at, user_id, user_name, user_role, action, summary

Security:
    The client must be initialized with the Service Role key (password changes
    go through the admin API). Do not log credentials or tokens.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union
import uuid

import httpx

from manabee.identity_access.domain import (
    IdentityRecord,
    MIN_PASSWORD_LENGTH,
    Role,
    mask_email,
    normalize_email,
    parse_role,
)
from manabee.storage.errors import BackendUnavailable, ConfigurationError, UnsupportedOperation
from manabee.storage.ports import (
    AuditRecord,
    AuthError,
    Document,
    LoginOutcome,
    actor_fields,
    empty_lesson,
)
from manabee.storage.snapshot import build_snapshot, utc_now_iso

_log = logging.getLogger("manabee.storage.remote")

T_PROFILES = "profiles"
T_SCHOOLS = "schools"
T_LESSONS = "lessons"
T_QUESTIONS = "questions"
T_AUDIT = "audit_logs"


_RATE_LIMIT_CODES = frozenset({"over_request_rate_limit", "over_email_send_rate_limit"})


def _is_credential_rejection(exc: Exception) -> bool:
    """True when Supabase Auth rejected the credentials (not a service failure).

    Rate limiting (429) is a service condition, not a wrong password.
    """
    if isinstance(exc, httpx.HTTPError):
        return False
    code = str(getattr(exc, "code", "") or "")
    if code in _RATE_LIMIT_CODES or getattr(exc, "status", None) == 429:
        return False
    if code in {"invalid_credentials", "invalid_grant", "user_not_found"}:
        return True
    status = getattr(exc, "status", None)
    return isinstance(status, int) and 400 <= status < 500


def _unavailable(exc: Exception, op: str) -> BackendUnavailable:
    _log.warning("Remote %s failed: %s", op, exc.__class__.__name__)
    return BackendUnavailable(f"remote_{op}_failed: {exc.__class__.__name__}")


def _profile_to_record(row: Dict[str, Any]) -> IdentityRecord:
    data: Dict[str, Any] = dict(row.get("extra") or {})
    data.update(
        {
            "id": row.get("id"),
            "name": row.get("name"),
            "role": row.get("role"),
            "email": row.get("email"),
            "isInitialPassword": bool(row.get("is_initial_password")),
            "linkedStudentIds": row.get("linked_student_ids"),
            "tutorId": row.get("tutor_id"),
            "guardianIds": row.get("guardian_ids"),
            "createdAt": row.get("created_at"),
            "updatedAt": row.get("updated_at"),
        }
    )
    return IdentityRecord.from_dict(data)


def _record_to_profile(user: IdentityRecord) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "role": user.role.value,
        "email": normalize_email(user.email),
        "is_initial_password": user.role is not Role.STUDENT and bool(user.is_initial_password),
        "linked_student_ids": user.linked_student_ids,
        "tutor_id": user.tutor_id,
        "guardian_ids": user.guardian_ids,
        "created_at": user.created_at,
        "updated_at": user.updated_at or utc_now_iso(),
        "extra": dict(user.extra),
    }


def _doc_row(doc: Document, **columns: Any) -> Dict[str, Any]:
    doc_id = str(doc.get("id") or "").strip()
    if not doc_id:
        raise ValueError("document_id_required")
    row = {"id": doc_id, "student_id": doc.get("studentId"), "doc": dict(doc), "updated_at": utc_now_iso()}
    row.update(columns)
    return row


def _row_doc(row: Dict[str, Any]) -> Document:
    doc = dict(row.get("doc") or {})
    doc.setdefault("id", row.get("id"))
    return doc


class SupabaseBackendAdapter:
    """Backend adapter using a Supabase project (PostgREST tables + Auth).

    Parameters
    ----------
    client:
        Pre-built async supabase client (or a fake in tests).
    url, key:
        Used to build the client lazily via `supabase.acreate_client` when no
        client is given. Missing both client and url/key makes every
        operation raise ConfigurationError.
    """

    def __init__(self, client: Any = None, *, url: Optional[str] = None, key: Optional[str] = None) -> None:
        self._client_obj = client
        self._url = url
        self._key = key

    # --- Helpers -----------------------------------------------------------------

    async def _client(self) -> Any:
        if self._client_obj is not None:
            return self._client_obj
        if not (self._url and self._key):
            raise ConfigurationError("remote_backend_not_configured")
        from supabase import acreate_client

        try:
            self._client_obj = await acreate_client(self._url, self._key)
        except Exception as exc:
            raise ConfigurationError(f"remote_client_init_failed: {exc.__class__.__name__}") from exc
        _log.info("Supabase client created")
        return self._client_obj

    async def _table(self, name: str) -> Any:
        client = await self._client()
        return client.table(name)

    @staticmethod
    async def _execute(query: Any, op: str) -> List[Dict[str, Any]]:
        try:
            res = await query.execute()
        except Exception as exc:
            raise _unavailable(exc, op) from exc
        data = getattr(res, "data", None)
        if data is None:
            return []
        return data if isinstance(data, list) else [data]

    async def _profile_by(self, column: str, value: str) -> Optional[IdentityRecord]:
        table = await self._table(T_PROFILES)
        rows = await self._execute(table.select("*").eq(column, value).limit(1), "profile_lookup")
        return _profile_to_record(rows[0]) if rows else None

    async def _verify_password(self, email: str, password: str) -> bool:
        client = await self._client()
        try:
            await client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            if _is_credential_rejection(exc):
                return False
            raise _unavailable(exc, "sign_in") from exc
        # Restore the service-role authorization on the shared client.
        try:
            await client.auth.sign_out()
        except Exception as exc:
            raise _unavailable(exc, "sign_out") from exc
        return True

    # --- Identity ----------------------------------------------------------------

    async def generate_id(self) -> str:
        await self._client()
        return str(uuid.uuid4())

    async def load_users(self) -> List[IdentityRecord]:
        table = await self._table(T_PROFILES)
        rows = await self._execute(table.select("*"), "load_users")
        users: List[IdentityRecord] = []
        for row in rows:
            try:
                users.append(_profile_to_record(row))
            except ValueError:
                _log.warning("Skipping malformed profile row")
        return users

    async def save_users(self, users: List[IdentityRecord]) -> None:
        rows = [_record_to_profile(u) for u in users]
        if not rows:
            return
        if any(u.password for u in users):
            _log.debug("Ignoring password fields on save_users; passwords live in Supabase Auth")
        table = await self._table(T_PROFILES)
        await self._execute(table.upsert(rows), "save_users")

    async def login(self, email: str, password: Optional[str] = None) -> LoginOutcome:
        wanted = normalize_email(email)
        user = await self._profile_by("email", wanted)
        if user is None:
            return LoginOutcome.fail(AuthError.UNKNOWN_USER)
        if user.role is Role.STUDENT:
            return LoginOutcome.ok(user)
        if not password:
            return LoginOutcome.fail(AuthError.PASSWORD_REQUIRED)
        if not await self._verify_password(wanted, password):
            _log.info("Rejected password for %s", mask_email(wanted))
            return LoginOutcome.fail(AuthError.INVALID_CREDENTIALS)
        return LoginOutcome.ok(user)

    async def change_password(self, user_id: str, new_password: str) -> bool:
        user = await self._profile_by("id", user_id)
        if user is None or user.role is Role.STUDENT:
            return False
        client = await self._client()
        try:
            await client.auth.admin.update_user_by_id(user_id, {"password": new_password})
        except Exception as exc:
            if _is_credential_rejection(exc):
                _log.info("Password change rejected for user %s", user_id[-6:])
                return False
            raise _unavailable(exc, "change_password") from exc
        table = await self._table(T_PROFILES)
        await self._execute(
            table.update({"is_initial_password": False, "updated_at": utc_now_iso()}).eq("id", user_id),
            "change_password",
        )
        return True

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
        wanted = normalize_email(email)
        if await self._profile_by("email", wanted) is not None:
            return LoginOutcome.fail(AuthError.EMAIL_TAKEN)
        user_id = str(uuid.uuid4())
        if parsed_role is not Role.STUDENT:
            client = await self._client()
            try:
                res = await client.auth.admin.create_user(
                    {"email": wanted, "password": password, "email_confirm": True}
                )
            except Exception as exc:
                if _is_credential_rejection(exc):
                    return LoginOutcome.fail(AuthError.EMAIL_TAKEN)
                raise _unavailable(exc, "register") from exc
            auth_user = getattr(res, "user", None)
            user_id = str(getattr(auth_user, "id", "") or user_id)
        now = utc_now_iso()
        record = IdentityRecord(
            id=user_id,
            name=(name or "").strip() or wanted.split("@", 1)[0],
            role=parsed_role,
            email=wanted,
            created_at=now,
            updated_at=now,
        )
        table = await self._table(T_PROFILES)
        try:
            await self._execute(table.insert(_record_to_profile(record)), "register")
        except BackendUnavailable:
            if parsed_role is not Role.STUDENT:
                await self._drop_auth_user(user_id)
            raise
        return LoginOutcome.ok(record)

    async def _drop_auth_user(self, user_id: str) -> None:
        """Remove an Auth user whose profile could not be written.

        Without a profile the account cannot log in, and the leftover Auth
        user would make every retry fail with email_exists.
        """
        client = await self._client()
        try:
            await client.auth.admin.delete_user(user_id)
        except Exception as exc:
            _log.error("Orphaned auth user %s after failed register: %s", user_id[-6:], exc.__class__.__name__)
            return
        _log.info("Rolled back auth user %s after failed register", user_id[-6:])

    # --- Domain aggregates -------------------------------------------------------

    async def load_schools(self, student_id: Optional[str] = None) -> List[Document]:
        table = await self._table(T_SCHOOLS)
        query = table.select("*")
        if student_id is not None:
            query = query.eq("student_id", student_id)
        return [_row_doc(r) for r in await self._execute(query, "load_schools")]

    async def save_schools(self, schools: List[Document]) -> None:
        """Replace the whole collection: rows missing from `schools` are deleted."""
        rows = [_doc_row(s) for s in schools]
        keep = {r["id"] for r in rows}
        table = await self._table(T_SCHOOLS)
        existing = await self._execute(table.select("id"), "save_schools")
        stale = [r["id"] for r in existing if r.get("id") not in keep]
        if stale:
            table = await self._table(T_SCHOOLS)
            await self._execute(table.delete().in_("id", stale), "save_schools")
        if rows:
            table = await self._table(T_SCHOOLS)
            await self._execute(table.upsert(rows), "save_schools")

    async def delete_school(self, school_id: str) -> bool:
        table = await self._table(T_SCHOOLS)
        rows = await self._execute(table.delete().eq("id", school_id), "delete_school")
        return bool(rows)

    async def load_lesson(self) -> Document:
        table = await self._table(T_LESSONS)
        rows = await self._execute(
            table.select("*").order("updated_at", desc=True).limit(1), "load_lesson"
        )
        return _row_doc(rows[0]) if rows else empty_lesson()

    async def save_lesson(self, lesson: Document) -> None:
        table = await self._table(T_LESSONS)
        await self._execute(table.upsert(_doc_row(lesson)), "save_lesson")

    async def load_questions(self, student_id: Optional[str] = None) -> List[Document]:
        table = await self._table(T_QUESTIONS)
        query = table.select("*")
        if student_id is not None:
            query = query.eq("student_id", student_id)
        rows = await self._execute(query.order("created_at", desc=True), "load_questions")
        return [_row_doc(r) for r in rows]

    async def save_question(self, question: Document) -> None:
        table = await self._table(T_QUESTIONS)
        row = _doc_row(question, created_at=question.get("createdAt") or utc_now_iso())
        await self._execute(table.upsert(row), "save_question")

    # --- Audit log ---------------------------------------------------------------

    async def load_logs(self) -> List[AuditRecord]:
        table = await self._table(T_AUDIT)
        rows = await self._execute(table.select("*").order("at", desc=True), "load_logs")
        return [AuditRecord.from_dict(r) for r in rows]

    async def add_log(self, actor: IdentityRecord, action: str, summary: str) -> AuditRecord:
        actor_id, actor_name, actor_role = actor_fields(actor)
        record = AuditRecord(
            id=str(uuid.uuid4()),
            timestamp=utc_now_iso(),
            actor_id=actor_id,
            actor_name=actor_name,
            actor_role=actor_role,
            action=action,
            summary=summary,
        )
        row = {
            "id": record.id,
            "at": record.timestamp,
            "user_id": record.actor_id,
            "user_name": record.actor_name,
            "user_role": record.actor_role,
            "action": record.action,
            "summary": record.summary,
        }
        table = await self._table(T_AUDIT)
        await self._execute(table.insert(row), "add_log")
        return record

    # --- Backup ------------------------------------------------------------------

    async def export_data(self) -> str:
        return build_snapshot(
            {
                "schools": await self.load_schools(),
                "logs": [r.to_dict() for r in await self.load_logs()],
                "lesson": await self.load_lesson(),
                "questions": await self.load_questions(),
                "users": [u.to_dict() for u in await self.load_users()],
            },
            mode="remote",
        )

    async def import_data(self, snapshot: Union[str, Document]) -> bool:
        raise UnsupportedOperation("import_not_supported_by_remote_backend")

    async def reset_data(self) -> None:
        raise UnsupportedOperation("reset_not_supported_by_remote_backend")


__all__ = ["SupabaseBackendAdapter"]
