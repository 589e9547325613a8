"""
Login state machine.

    AWAITING_EMAIL -> AWAITING_PASSWORD -> [AWAITING_NEW_PASSWORD] -> AUTHENTICATED

- Students authenticate by email alone (AWAITING_EMAIL -> AUTHENTICATED).
- An initial password leads to AWAITING_NEW_PASSWORD; a successful change
  returns to AWAITING_PASSWORD so the user proves the new password once.
- `change_email` returns to AWAITING_EMAIL from any step.

A flow is created per login attempt (AuthService.start_login). Failures keep
the current step and the entered email; password input is never retained.

Every submission takes a ticket. When a newer submission or `change_email`
happens while a call is awaiting the backend, the older result is discarded
with SUPERSEDED and does not move the state machine.
"""

from __future__ import annotations

from typing import Optional

from manabee.identity_access.auth_service import AuthResult, AuthService, LoginStep
from manabee.identity_access.domain import IdentityRecord, MIN_PASSWORD_LENGTH, normalize_email
from manabee.storage.ports import AuthError


class LoginFlow:
    def __init__(self, auth: AuthService) -> None:
        self._auth = auth
        self._ticket = 0
        self.step = LoginStep.AWAITING_EMAIL
        self.email = ""
        self.user: Optional[IdentityRecord] = None

    # --- Helpers -----------------------------------------------------------------

    def _take_ticket(self) -> int:
        self._ticket += 1
        return self._ticket

    def _result(self, success: bool, error: Optional[AuthError] = None, **extra) -> AuthResult:
        return AuthResult(success=success, step=self.step, user=self.user, error=error, **extra)

    def _wrong_step(self) -> AuthResult:
        return AuthResult(success=False, step=self.step, error=AuthError.INVALID_STEP)

    def _superseded(self) -> AuthResult:
        return AuthResult(success=False, step=self.step, error=AuthError.SUPERSEDED)

    # --- Transitions -------------------------------------------------------------

    async def submit_email(self, email: str) -> AuthResult:
        if self.step is not LoginStep.AWAITING_EMAIL:
            return self._wrong_step()
        ticket = self._take_ticket()
        self.email = normalize_email(email)
        if not self.email:
            return self._result(False, AuthError.UNKNOWN_USER)
        probe = await self._auth.login(self.email)
        if ticket != self._ticket:
            return self._superseded()
        if probe.authenticated:
            self.user = probe.user
            self.step = LoginStep.AUTHENTICATED
            return self._result(True)
        if probe.error is AuthError.PASSWORD_REQUIRED:
            self.step = LoginStep.AWAITING_PASSWORD
            return self._result(True)
        return self._result(False, probe.error)

    async def submit_password(self, password: str) -> AuthResult:
        if self.step is not LoginStep.AWAITING_PASSWORD:
            return self._wrong_step()
        ticket = self._take_ticket()
        if not password:
            return self._result(False, AuthError.PASSWORD_REQUIRED)
        res = await self._auth.login(self.email, password)
        if ticket != self._ticket:
            return self._superseded()
        if not res.success:
            return self._result(False, res.error)
        self.user = res.user
        if res.requires_password_change:
            self.step = LoginStep.AWAITING_NEW_PASSWORD
            return self._result(True, requires_password_change=True)
        self.step = LoginStep.AUTHENTICATED
        return self._result(True)

    async def submit_new_password(self, new_password: str) -> AuthResult:
        if self.step is not LoginStep.AWAITING_NEW_PASSWORD or self.user is None:
            return self._wrong_step()
        ticket = self._take_ticket()
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            return self._result(False, AuthError.PASSWORD_TOO_SHORT, requires_password_change=True)
        res = await self._auth.change_password(self.user.id, new_password)
        if ticket != self._ticket:
            return self._superseded()
        if not res.success:
            return self._result(False, res.error, requires_password_change=True)
        # Re-enter the password step; the user must log in with the new one.
        self.user = None
        self.step = LoginStep.AWAITING_PASSWORD
        return self._result(True)

    def change_email(self) -> AuthResult:
        """Navigate back to the email step; the entered email is kept for prefill."""
        self._take_ticket()
        self.user = None
        self.step = LoginStep.AWAITING_EMAIL
        return self._result(True)


__all__ = ["LoginFlow"]
