"""
"Remember Me" storage: one file per browser holding the refresh token of that
browser's last login. The file name and the Fernet key are both derived from a
random browser id, so a visitor without that id can neither find nor decrypt
another browser's session. Only the token is kept; the account itself is
always re-read from Firebase.
"""
from __future__ import annotations

import base64
import hashlib
import json
import logging
import uuid
from pathlib import Path
from typing import MutableMapping, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

SESSION_DIR = Path(".sessions")
KDF_SALT = b"streamlit-expense-tracker-salt-v1"  # static salt; the secret is what must stay private
KDF_ITERATIONS = 390_000
BROWSER_PARAM = "sid"


def _derive_key(passphrase: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
        backend=default_backend(),
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


def encrypt_session(data: dict, passphrase: str) -> bytes:
    f = Fernet(_derive_key(passphrase))
    return f.encrypt(json.dumps(data).encode("utf-8"))


def decrypt_session(token: bytes, passphrase: str) -> Optional[dict]:
    try:
        payload = Fernet(_derive_key(passphrase)).decrypt(token)
        return json.loads(payload.decode("utf-8"))
    except (InvalidToken, ValueError):
        return None


def ensure_browser_id(params: MutableMapping) -> str:
    """Random id kept in the page URL (st.query_params); survives reloads of that tab only."""
    browser_id = params.get(BROWSER_PARAM)
    if not browser_id:
        browser_id = uuid.uuid4().hex
        params[BROWSER_PARAM] = browser_id
    return browser_id


class SessionVault:
    """Remember-me file for one browser, identified by `browser_id`."""

    def __init__(self, secret: Optional[str], browser_id: Optional[str], directory: Path = SESSION_DIR):
        self.secret = secret
        self.browser_id = browser_id
        self.path = None
        if browser_id:
            digest = hashlib.sha256(browser_id.encode("utf-8")).hexdigest()
            self.path = directory / f"{digest}.enc"

    @property
    def enabled(self) -> bool:
        return bool(self.secret and self.browser_id)

    @property
    def _passphrase(self) -> str:
        return f"{self.secret}:{self.browser_id}"

    def save(self, uid: str, refresh_token: str) -> bool:
        if not self.enabled:
            logger.warning("SESSION_SECRET or browser id missing, Remember Me is disabled")
            return False
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(encrypt_session({"uid": uid, "refresh_token": refresh_token}, self._passphrase))
        return True

    def load(self) -> Optional[str]:
        """Returns this browser's saved refresh token, or None if absent or unreadable."""
        if not self.enabled or not self.path.exists():
            return None
        payload = decrypt_session(self.path.read_bytes(), self._passphrase)
        if payload and payload.get("refresh_token"):
            return payload["refresh_token"]
        logger.info("Ignoring unreadable session file %s", self.path)
        return None

    def clear(self) -> None:
        if self.path is None:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
