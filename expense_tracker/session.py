from __future__ import annotations

import logging
from typing import Optional

from .backend import AuthService, AuthSession
from .errors import AccountCreationError, AuthenticationError, BackendError
from .models import User
from .state import AppState
from .vault import SessionVault

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"

# Identity Toolkit reasons meaning "wrong email/password", not "service broken"
CREDENTIAL_REASONS = {
    "EMAIL_NOT_FOUND",
    "INVALID_PASSWORD",
    "INVALID_LOGIN_CREDENTIALS",
    "INVALID_EMAIL",
    "MISSING_PASSWORD",
    "USER_DISABLED",
}
DEAD_TOKEN_REASONS = {"TOKEN_EXPIRED", "INVALID_REFRESH_TOKEN", "USER_DISABLED", "USER_NOT_FOUND"}


def _reason_code(reason: str) -> str:
    # "WEAK_PASSWORD : Password should be at least 6 characters" -> "WEAK_PASSWORD"
    return reason.split(":", 1)[0].strip()


def _sign_up_message(reason: str) -> str:
    code = _reason_code(reason)
    if code == "EMAIL_EXISTS":
        return "An account with this email already exists."
    if code == "INVALID_EMAIL":
        return "Invalid email address."
    if code == "WEAK_PASSWORD":
        return reason.split(":", 1)[-1].strip() or "Password is too weak."
    return f"Sign up failed: {reason}"


class SessionManager:
    def __init__(self, auth: AuthService, state: AppState, vault: Optional[SessionVault] = None):
        self.auth = auth
        self.state = state
        self.vault = vault

    # -------------------- restore --------------------
    def restore_session(self) -> Optional[User]:
        """Publishes the current account into state; None (and an empty session) when there is none."""
        try:
            user = self._lookup_account()
        except BackendError as e:
            logger.info("No active session: %s", e.reason)
            if self.vault and _reason_code(e.reason) in DEAD_TOKEN_REASONS:
                self.vault.clear()
            user = None

        if user is None:
            self.state.clear_session()
        else:
            self.state.user = user
        return user

    def _lookup_account(self) -> Optional[User]:
        if self.state.id_token:
            try:
                return self.auth.get_account(self.state.id_token)
            except BackendError as e:
                logger.debug("ID token rejected (%s), trying refresh token", e.reason)

        token = self.state.refresh_token or (self.vault.load() if self.vault else None)
        if not token:
            return None
        session = self.auth.refresh(token)
        self._publish_tokens(session)
        return self.auth.get_account(session.id_token)

    def _publish_tokens(self, session: AuthSession) -> None:
        self.state.id_token = session.id_token
        self.state.refresh_token = session.refresh_token

    # -------------------- login / register --------------------
    def login(self, email: str, password: str, remember: bool = True) -> User:
        try:
            session = self.auth.sign_in(email.strip(), password)
        except BackendError as e:
            logger.warning("Login rejected for %s: %s", email, e.reason)
            if _reason_code(e.reason) in CREDENTIAL_REASONS:
                raise AuthenticationError(INVALID_CREDENTIALS) from e
            raise AuthenticationError(f"Login failed: {e.reason}") from e

        self._publish_tokens(session)
        if remember and self.vault:
            self.vault.save(session.user_id, session.refresh_token)

        user = self.restore_session()
        if user is None:
            raise AuthenticationError("Login failed: session could not be restored")
        logger.info("User %s logged in", user.id)
        return user

    def register(self, email: str, password: str, name: str, remember: bool = True) -> User:
        try:
            self.auth.sign_up(email.strip(), password, name.strip())
        except BackendError as e:
            logger.warning("Sign up rejected for %s: %s", email, e.reason)
            raise AccountCreationError(_sign_up_message(e.reason)) from e
        logger.info("Account created for %s", email)
        return self.login(email, password, remember=remember)

    # -------------------- logout --------------------
    def logout(self) -> None:
        """Local state is always cleared; remote failures are only logged."""
        if self.state.user is not None:
            try:
                self.auth.delete_session(self.state.user.id)
            except BackendError as e:
                logger.error("Logout error: %s", e)
        if self.vault:
            self.vault.clear()
        self.state.clear_session()
