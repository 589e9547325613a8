"""
Auth service: login, password change and registration on top of the storage
facade, with one outcome type for every backend.

Why:
    The UI renders failures directly, so nothing here raises across that
    boundary. Storage exceptions are logged and turned into
    CONFIGURATION_ERROR / BACKEND_UNAVAILABLE values that stay
    distinguishable from credential failures.
"""

from __future__ import annotations

from dataclasses import dataclass
import enum
import logging
from typing import Awaitable, Optional, Tuple, TypeVar

from manabee.identity_access.domain import CredentialState, IdentityRecord, MIN_PASSWORD_LENGTH, mask_email
from manabee.storage.errors import ConfigurationError, StorageError
from manabee.storage.facade import Storage
from manabee.storage.ports import AuthError, LoginOutcome

logger = logging.getLogger("manabee.identity_access")

T = TypeVar("T")


class LoginStep(str, enum.Enum):
    AWAITING_EMAIL = "awaiting_email"
    AWAITING_PASSWORD = "awaiting_password"
    AWAITING_NEW_PASSWORD = "awaiting_new_password"
    AUTHENTICATED = "authenticated"


@dataclass
class AuthResult:
    """Outcome of a session operation.

    Parameters:
        success: The submission was accepted (it may still need a next step).
        step: Step the caller should show next; None when not applicable.
        user: Password-stripped identity, when known.
        error: Failure code; None on success.
        requires_password_change: Credentials were correct but the initial
            password must be replaced before normal use.
    """

    success: bool
    step: Optional[LoginStep] = None
    user: Optional[IdentityRecord] = None
    error: Optional[AuthError] = None
    requires_password_change: bool = False

    @property
    def authenticated(self) -> bool:
        return self.success and self.step is LoginStep.AUTHENTICATED

    @classmethod
    def fail(cls, error: AuthError, step: Optional[LoginStep] = None) -> "AuthResult":
        return cls(success=False, step=step, error=error)


class AuthService:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    async def _guarded(self, op: str, call: Awaitable[T]) -> Tuple[Optional[T], Optional[AuthError]]:
        try:
            return await call, None
        except ConfigurationError as exc:
            logger.error("%s failed: backend not configured (%s)", op, exc)
            return None, AuthError.CONFIGURATION_ERROR
        except StorageError as exc:
            logger.warning("%s failed: %s", op, exc.__class__.__name__)
            return None, AuthError.BACKEND_UNAVAILABLE

    async def login(self, email: str, password: Optional[str] = None) -> AuthResult:
        """Check credentials once; does not keep any session state."""
        outcome, err = await self._guarded("login", self._storage.login(email, password))
        if err is not None:
            return AuthResult.fail(err)
        return _from_outcome(outcome)

    async def change_password(self, user_id: str, new_password: str) -> AuthResult:
        """Replace the password and confirm the credential state.

        On success the caller must log in again with the new password.
        """
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            return AuthResult.fail(AuthError.PASSWORD_TOO_SHORT)
        changed, err = await self._guarded(
            "change_password", self._storage.change_password(user_id, new_password)
        )
        if err is not None:
            return AuthResult.fail(err)
        if not changed:
            return AuthResult.fail(AuthError.PASSWORD_CHANGE_FAILED)
        logger.info("Password changed for user %s", user_id[-6:])
        return AuthResult(success=True, step=LoginStep.AWAITING_PASSWORD)

    async def register(
        self, *, name: str, email: str, role: str, password: Optional[str] = None
    ) -> AuthResult:
        outcome, err = await self._guarded(
            "register",
            self._storage.register_user(name=name, email=email, role=role, password=password),
        )
        if err is not None:
            return AuthResult.fail(err)
        if outcome.success:
            logger.info("Registered %s", mask_email(outcome.user.email))
        return _from_outcome(outcome)

    def start_login(self) -> "LoginFlow":
        from manabee.identity_access.login_flow import LoginFlow

        return LoginFlow(self)


def _from_outcome(outcome: LoginOutcome) -> AuthResult:
    if not outcome.success or outcome.user is None:
        return AuthResult.fail(outcome.error or AuthError.INVALID_CREDENTIALS)
    user = outcome.user
    if user.credential_state is CredentialState.INITIAL:
        return AuthResult(
            success=True,
            step=LoginStep.AWAITING_NEW_PASSWORD,
            user=user,
            requires_password_change=True,
        )
    return AuthResult(success=True, step=LoginStep.AUTHENTICATED, user=user)


__all__ = ["AuthResult", "AuthService", "LoginStep"]
