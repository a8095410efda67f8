from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import ConfigurationError

APP_TITLE = "Expense Tracker"
CURRENCY = "$"
KEY_FILE = Path("firebase_key.json")
DEFAULT_DATABASE_ID = "expense-tracker"
DEFAULT_COLLECTION_ID = "expenses"

REQUIRED_KEYS = ("FIREBASE_DATABASE_URL", "FIREBASE_PROJECT_ID", "FIREBASE_WEB_API_KEY")


def _lookup(name: str, environ: Mapping[str, str], secrets: Optional[Mapping[str, Any]]) -> Optional[str]:
    value = environ.get(name)
    if not value and secrets is not None:
        value = secrets.get(name)
    return value or None


def _service_account(secrets: Optional[Mapping[str, Any]], key_file: Path) -> Optional[dict]:
    if secrets is not None and secrets.get("firebase_service_account_json"):
        raw = secrets["firebase_service_account_json"]
        return json.loads(raw) if isinstance(raw, str) else dict(raw)
    if key_file.exists():
        with key_file.open("r", encoding="utf-8") as f:
            return json.load(f)
    return None


@dataclass(frozen=True)
class Settings:
    database_url: str
    project_id: str
    web_api_key: str
    database_id: str = DEFAULT_DATABASE_ID
    collection_id: str = DEFAULT_COLLECTION_ID
    session_secret: Optional[str] = None
    service_account: Optional[dict] = None
    log_level: str = "INFO"

    @classmethod
    def from_sources(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        secrets: Optional[Mapping[str, Any]] = None,
        key_file: Path = KEY_FILE,
    ) -> "Settings":
        """Environment variables win over Streamlit secrets."""
        environ = os.environ if environ is None else environ
        missing = [k for k in REQUIRED_KEYS if not _lookup(k, environ, secrets)]
        if missing:
            raise ConfigurationError(
                f"{', '.join(missing)} not set. Add to environment or st.secrets."
            )
        return cls(
            database_url=_lookup("FIREBASE_DATABASE_URL", environ, secrets),
            project_id=_lookup("FIREBASE_PROJECT_ID", environ, secrets),
            web_api_key=_lookup("FIREBASE_WEB_API_KEY", environ, secrets),
            database_id=_lookup("EXPENSES_DATABASE_ID", environ, secrets) or DEFAULT_DATABASE_ID,
            collection_id=_lookup("EXPENSES_COLLECTION_ID", environ, secrets) or DEFAULT_COLLECTION_ID,
            session_secret=_lookup("SESSION_SECRET", environ, secrets),
            service_account=_service_account(secrets, key_file),
            log_level=(_lookup("LOG_LEVEL", environ, secrets) or "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
