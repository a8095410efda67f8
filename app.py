#!/usr/bin/env python3
"""
Streamlit Expense Tracker: Firebase Auth (Email/Password) + Realtime Database
=============================================================================

Features
--------
• Login / Register with Firebase Email/Password Authentication
• "Remember Me": per-browser refresh token, encrypted with SESSION_SECRET + a random browser id
• Expenses stored as documents under /<database>/<collection>/ with owner-only permissions
• Dashboard: totals for all time, this month and this week; add / edit / delete
• Spending by category (bar & pie charts) and CSV export

Setup
-----
1) Firebase Console:
   - Enable Authentication → Sign-in method → Email/Password
   - Enable Realtime Database and add ".indexOn": ["userId"] on the expenses collection
     (see database.rules.json)
   - Project Settings → Service Accounts → Generate new private key
   - Project Settings → General → copy Web API Key

2) Streamlit Secrets (.streamlit/secrets.toml) or environment variables:
   FIREBASE_WEB_API_KEY="your_web_api_key"
   FIREBASE_DATABASE_URL="https://<your-db>.firebasedatabase.app/"
   FIREBASE_PROJECT_ID="<your-project>"
   EXPENSES_DATABASE_ID="expense-tracker"      # optional
   EXPENSES_COLLECTION_ID="expenses"           # optional
   SESSION_SECRET="a-long-random-passphrase"   # optional, enables Remember Me
   firebase_service_account_json = \"\"\"{...}\"\"\" # or firebase_key.json beside this script

Run
---
pip install -e .
streamlit run app.py
"""
from __future__ import annotations

import logging
from typing import Optional

import streamlit as st
from streamlit.errors import StreamlitAPIException

from expense_tracker.backend import AuthService, DocumentStore, init_firebase_admin
from expense_tracker.config import APP_TITLE, Settings, configure_logging
from expense_tracker.errors import ConfigurationError
from expense_tracker.expenses import ExpenseCollection
from expense_tracker.session import SessionManager
from expense_tracker.state import get_app_state
from expense_tracker.ui import (
    DashboardController,
    get_auth_form,
    get_dashboard_ui,
    render_auth_page,
    render_dashboard,
)
from expense_tracker.vault import SessionVault, ensure_browser_id

logger = logging.getLogger("expense_tracker.app")


def _secrets() -> Optional[dict]:
    try:
        return dict(st.secrets)
    except (FileNotFoundError, StreamlitAPIException):
        return None


@st.cache_resource(show_spinner=False)
def load_settings() -> Settings:
    settings = Settings.from_sources(secrets=_secrets())
    configure_logging(settings.log_level)
    init_firebase_admin(settings)
    return settings


@st.cache_resource(show_spinner=False)
def document_store() -> DocumentStore:
    return DocumentStore()


def main():
    st.set_page_config(page_title=APP_TITLE, page_icon="💸", layout="wide")
    st.title(APP_TITLE)

    try:
        settings = load_settings()
    except (ConfigurationError, ValueError) as e:
        logger.error("Firebase init failed: %s", e)
        st.error(f"Firebase init failed: {e}")
        st.stop()

    state = get_app_state(st.session_state)
    vault = SessionVault(settings.session_secret, ensure_browser_id(st.query_params))
    sessions = SessionManager(AuthService(settings.web_api_key), state, vault)

    if not state.authenticated:
        sessions.restore_session()
    if not state.authenticated:
        render_auth_page(sessions, get_auth_form(st.session_state))
        st.stop()

    collection = ExpenseCollection(document_store(), state, settings.database_id, settings.collection_id)
    render_dashboard(sessions, DashboardController(collection, get_dashboard_ui(st.session_state)))

    st.caption(f"Your data: /{settings.database_id}/{settings.collection_id}/ (private per account)")


if __name__ == "__main__":
    main()
