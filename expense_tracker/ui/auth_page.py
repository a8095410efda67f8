from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import MutableMapping, Optional

import streamlit as st

from ..errors import AccountCreationError, AuthenticationError
from ..models import User
from ..session import SessionManager

logger = logging.getLogger(__name__)

LOGIN = "login"
REGISTER = "register"
FORM_KEY = "auth_form"


@dataclass
class AuthForm:
    """Login/register toggle, idle/submitting phase and the last error."""

    mode: str = LOGIN
    submitting: bool = False
    error: Optional[str] = None

    def toggle(self) -> None:
        self.mode = REGISTER if self.mode == LOGIN else LOGIN
        self.error = None

    def _validate(self, email: str, password: str, name: str) -> Optional[str]:
        if not email.strip() or not password:
            return "Email and password are required."
        if self.mode == REGISTER and not name.strip():
            return "Name is required."
        return None

    def submit(self, sessions: SessionManager, email: str, password: str, name: str = "",
               remember: bool = True) -> Optional[User]:
        if self.submitting:
            return None
        self.error = self._validate(email, password, name)
        if self.error:
            return None

        self.submitting = True
        try:
            if self.mode == LOGIN:
                return sessions.login(email, password, remember=remember)
            return sessions.register(email, password, name, remember=remember)
        except (AuthenticationError, AccountCreationError) as e:
            logger.info("%s failed for %s: %s", self.mode, email.strip(), e)
            self.error = str(e)
            return None
        finally:
            self.submitting = False


def get_auth_form(session_state: MutableMapping) -> AuthForm:
    if FORM_KEY not in session_state:
        session_state[FORM_KEY] = AuthForm()
    return session_state[FORM_KEY]


# -------------------- UI: Auth --------------------
def render_auth_page(sessions: SessionManager, form: AuthForm) -> None:
    registering = form.mode == REGISTER
    st.header("Create Account" if registering else "Login")

    with st.form(f"auth_{form.mode}"):
        name = st.text_input("Name", key="auth_name") if registering else ""
        email = st.text_input("Email", key="auth_email")
        password = st.text_input("Password", type="password", key="auth_password")
        remember = st.checkbox("Remember Me (encrypted)", value=False, key="auth_remember")
        submitted = st.form_submit_button(
            "Create Account" if registering else "Login",
            type="primary",
            disabled=form.submitting,
        )

    if submitted:
        with st.spinner("Signing in..."):
            user = form.submit(sessions, email, password, name, remember)
        if user is not None:
            st.success(f"Welcome, {user.display_name}.")
            st.rerun()

    if form.error:
        st.error(form.error)

    prompt = "Already have an account? Login" if registering else "Need an account? Sign Up"
    if st.button(prompt, key="auth_toggle"):
        form.toggle()
        st.rerun()
