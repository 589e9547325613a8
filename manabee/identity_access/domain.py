"""
Identity domain: roles, credential states and the Identity Record.

Why:
- Centralize allowed roles to avoid drift between the adapters and the
  session layer.
- Keep the persisted shape (camelCase keys) identical across the local store,
  backups and the remote profile mapping.

Invariant:
    A Student never carries a password. Every other role must carry one once
    its credential state is confirmed.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


class Role(str, enum.Enum):
    STUDENT = "STUDENT"
    GUARDIAN = "GUARDIAN"
    TUTOR = "TUTOR"
    ADMIN = "ADMIN"


# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset(r.value for r in Role)

MIN_PASSWORD_LENGTH = 4


class CredentialState(str, enum.Enum):
    NO_PASSWORD_REQUIRED = "no_password_required"
    INITIAL = "initial"
    CONFIRMED = "confirmed"


def parse_role(value: object) -> Role:
    """Return the Role for `value` or raise ValueError("invalid_role")."""
    if isinstance(value, Role):
        return value
    raw = str(value or "").strip().upper()
    if raw not in ALLOWED_ROLES:
        raise ValueError("invalid_role")
    return Role(raw)


def normalize_email(email: object) -> str:
    return str(email or "").strip().lower()


def mask_email(email: str) -> str:
    """Mask an email for logs (keep first character and domain)."""
    if "@" not in email:
        return "***"
    local, domain = email.split("@", 1)
    prefix = local[:1] if local else ""
    return f"{prefix}***@{domain}"


# Persisted key -> attribute name for optional profile fields.
_OPTIONAL_FIELDS = {
    "linkedStudentIds": "linked_student_ids",
    "tutorId": "tutor_id",
    "guardianIds": "guardian_ids",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
_KNOWN_KEYS = {"id", "name", "role", "email", "password", "isInitialPassword", *_OPTIONAL_FIELDS}


@dataclass
class IdentityRecord:
    """Stored representation of a user.

    Parameters:
        id: Opaque, stable primary key; never reused.
        email: Login handle, unique within the active backend.
        password: Only present on records read straight from the local
            store. Callers receive `sanitized()` copies.
        extra: Unknown persisted keys, kept so a save does not drop them.
    """

    id: str
    name: str
    role: Role
    email: str
    password: Optional[str] = None
    is_initial_password: bool = False
    linked_student_ids: Optional[List[str]] = None
    tutor_id: Optional[str] = None
    guardian_ids: Optional[List[str]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def credential_state(self) -> CredentialState:
        if self.role is Role.STUDENT:
            return CredentialState.NO_PASSWORD_REQUIRED
        if self.is_initial_password:
            return CredentialState.INITIAL
        return CredentialState.CONFIRMED

    def sanitized(self) -> "IdentityRecord":
        """Return a copy without password material."""
        return replace(self, password=None, extra=dict(self.extra))

    def to_dict(self, *, include_password: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data.update({"id": self.id, "name": self.name, "role": self.role.value, "email": self.email})
        if self.role is not Role.STUDENT:
            data["isInitialPassword"] = bool(self.is_initial_password)
            if include_password and self.password is not None:
                data["password"] = self.password
        for key, attr in _OPTIONAL_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdentityRecord":
        if not isinstance(data, dict):
            raise ValueError("invalid_identity_record")
        record_id = str(data.get("id") or "").strip()
        if not record_id:
            raise ValueError("invalid_identity_record")
        role = parse_role(data.get("role"))
        password = data.get("password")
        is_initial = bool(data.get("isInitialPassword", False))
        if role is Role.STUDENT:
            password = None
            is_initial = False
        kwargs = {attr: data.get(key) for key, attr in _OPTIONAL_FIELDS.items()}
        return cls(
            id=record_id,
            name=str(data.get("name") or ""),
            role=role,
            email=normalize_email(data.get("email")),
            password=str(password) if password not in (None, "") else None,
            is_initial_password=is_initial,
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
            **kwargs,
        )


def _demo(record_id: str, name: str, role: Role, email: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": record_id, "name": name, "role": role.value, "email": email}
    if role is not Role.STUDENT:
        data.update({"password": "123", "isInitialPassword": True})
    return data


# Local development seed. Every non-student must change "123" on first login.
DEMO_USERS: List[Dict[str, Any]] = [
    _demo("t1", "講師", Role.TUTOR, "tutor@manabee.com"),
    _demo("s1", "生徒", Role.STUDENT, "student@manabee.com"),
    _demo("g1", "保護者", Role.GUARDIAN, "parent@manabee.com"),
    _demo("admin1", "管理者", Role.ADMIN, "admin@manabee.com"),
]


__all__ = [
    "ALLOWED_ROLES",
    "CredentialState",
    "DEMO_USERS",
    "IdentityRecord",
    "MIN_PASSWORD_LENGTH",
    "Role",
    "mask_email",
    "normalize_email",
    "parse_role",
]
