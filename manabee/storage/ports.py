"""
Ports for the data-access layer: result types, the backend protocol and
login error codes.

Intent:
    Provide the framework-agnostic contract that both backend adapters
    (local, remote) satisfy, so the facade and the session service never
    depend on a concrete medium.

Design:
    - Result dataclasses: LoginOutcome, AuditRecord
    - Protocol: BackendAdapterProtocol (every operation is async, also for
      the synchronous local store)
    - AuthError: login failure codes returned as values
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Union

from manabee.identity_access.domain import IdentityRecord, parse_role


Document = Dict[str, Any]


class AuthError(str, enum.Enum):
    UNKNOWN_USER = "unknown_user"
    PASSWORD_REQUIRED = "password_required"
    INVALID_CREDENTIALS = "invalid_credentials"
    PASSWORD_TOO_SHORT = "password_too_short"
    PASSWORD_CHANGE_FAILED = "password_change_failed"
    EMAIL_TAKEN = "email_taken"
    INVALID_ROLE = "invalid_role"
    CONFIGURATION_ERROR = "configuration_error"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    SUPERSEDED = "superseded"
    INVALID_STEP = "invalid_step"


# ----------------------------- Result types ---------------------------------


@dataclass
class LoginOutcome:
    """Adapter-level login result.

    `user` is always password-stripped.
    """

    success: bool
    user: Optional[IdentityRecord] = None
    error: Optional[AuthError] = None

    @classmethod
    def ok(cls, user: IdentityRecord) -> "LoginOutcome":
        return cls(success=True, user=user.sanitized())

    @classmethod
    def fail(cls, error: AuthError) -> "LoginOutcome":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class AuditRecord:
    """Append-only action record.

    Serialized with the keys existing backups use (`at`, `userId`, ...);
    parsing also accepts the long spelling (`timestamp`, `actorId`, ...).
    """

    id: str
    timestamp: str
    actor_id: str
    actor_name: str
    actor_role: str
    action: str
    summary: str

    def to_dict(self) -> Document:
        return {
            "id": self.id,
            "at": self.timestamp,
            "userId": self.actor_id,
            "userName": self.actor_name,
            "userRole": self.actor_role,
            "action": self.action,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Document) -> "AuditRecord":
        def pick(*keys: str) -> str:
            for k in keys:
                if data.get(k) is not None:
                    return str(data[k])
            return ""

        return cls(
            id=pick("id"),
            timestamp=pick("at", "timestamp"),
            actor_id=pick("userId", "actorId", "user_id"),
            actor_name=pick("userName", "actorName", "user_name"),
            actor_role=pick("userRole", "actorRole", "user_role"),
            action=pick("action"),
            summary=pick("summary"),
        )


def empty_lesson() -> Document:
    """Default lesson document returned when none is stored."""
    return {
        "id": "",
        "studentId": "",
        "scheduledAt": "",
        "durationMinutes": 0,
        "status": "scheduled",
        "hourlyRate": 0,
        "transcript": "",
        "aiHomework": {"items": []},
        "aiQuiz": {"questions": []},
        "tags": [],
    }


def actor_fields(actor: IdentityRecord) -> tuple[str, str, str]:
    return actor.id, actor.name, parse_role(actor.role).value


# ----------------------------- Protocol -------------------------------------


class BackendAdapterProtocol(Protocol):
    """Storage contract satisfied by the local and the remote adapter."""

    async def generate_id(self) -> str: ...

    async def load_users(self) -> List[IdentityRecord]: ...

    async def save_users(self, users: List[IdentityRecord]) -> None: ...

    async def login(self, email: str, password: Optional[str] = None) -> LoginOutcome: ...

    async def change_password(self, user_id: str, new_password: str) -> bool: ...

    async def register_user(
        self, *, name: str, email: str, role: str, password: Optional[str] = None
    ) -> LoginOutcome: ...

    async def load_schools(self, student_id: Optional[str] = None) -> List[Document]: ...

    async def save_schools(self, schools: List[Document]) -> None: ...

    async def delete_school(self, school_id: str) -> bool: ...

    async def load_lesson(self) -> Document: ...

    async def save_lesson(self, lesson: Document) -> None: ...

    async def load_questions(self, student_id: Optional[str] = None) -> List[Document]: ...

    async def save_question(self, question: Document) -> None: ...

    async def load_logs(self) -> List[AuditRecord]: ...

    async def add_log(self, actor: IdentityRecord, action: str, summary: str) -> AuditRecord: ...

    async def export_data(self) -> str: ...

    async def import_data(self, snapshot: Union[str, Document]) -> bool: ...

    async def reset_data(self) -> None: ...


__all__ = [
    "AuditRecord",
    "AuthError",
    "BackendAdapterProtocol",
    "Document",
    "LoginOutcome",
    "actor_fields",
    "empty_lesson",
]
