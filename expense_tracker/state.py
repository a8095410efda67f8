from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, MutableMapping, Optional

from .errors import FetchError
from .models import Expense, User

STATE_KEY = "app_state"


@dataclass
class AppState:
    """Per-tab application state shared by the session layer, the expense layer and the UI."""

    user: Optional[User] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expenses: List[Expense] = field(default_factory=list)
    loaded_for: Optional[str] = None
    error: Optional[FetchError] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    def clear_session(self) -> None:
        self.user = None
        self.id_token = None
        self.refresh_token = None
        self.expenses = []
        self.loaded_for = None
        self.error = None


def get_app_state(session_state: MutableMapping) -> AppState:
    """Fetch (or create) the AppState living in st.session_state."""
    if STATE_KEY not in session_state:
        session_state[STATE_KEY] = AppState()
    return session_state[STATE_KEY]
