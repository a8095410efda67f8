"""
Thin wrappers around the two Firebase services the tracker talks to.

* ``AuthService``: Identity Toolkit REST API (email/password accounts) called
  with ``requests``, plus refresh-token revocation through the Admin SDK.
* ``DocumentStore``: Realtime Database through ``firebase_admin.db``. Documents
  live at ``/<database>/<collection>/<document_id>``.

Both raise ``BackendError`` (or ``PermissionDeniedError``) and nothing else.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

import firebase_admin
import requests
from firebase_admin import auth as admin_auth
from firebase_admin import credentials, db
from firebase_admin.exceptions import FirebaseError

from .config import Settings
from .errors import BackendError, ConfigurationError, PermissionDeniedError
from .models import User

logger = logging.getLogger(__name__)

IDENTITY_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"
HTTP_TIMEOUT = 20

PERMISSIONS_FIELD = "_permissions"


# -------------------- Firebase Init (Admin) --------------------
def init_firebase_admin(settings: Settings):
    if len(firebase_admin._apps) > 0:
        return firebase_admin.get_app()
    if not settings.service_account:
        raise ConfigurationError(
            "Service account JSON missing. Put firebase_key.json beside app.py or in st.secrets."
        )
    cred = credentials.Certificate(settings.service_account)
    return firebase_admin.initialize_app(
        cred, {"databaseURL": settings.database_url, "projectId": settings.project_id}
    )


# -------------------- Auth (REST) --------------------
@dataclass
class AuthSession:
    user_id: str
    email: str
    id_token: str
    refresh_token: str
    name: str = ""


def _error_reason(r: requests.Response, fallback: str) -> str:
    try:
        return r.json().get("error", {}).get("message", fallback)
    except ValueError:
        return fallback


class AuthService:
    def __init__(self, api_key: str, timeout: int = HTTP_TIMEOUT):
        self.api_key = api_key
        self.timeout = timeout

    def _post(self, url: str, fallback: str, **kwargs) -> dict:
        try:
            r = requests.post(url, params={"key": self.api_key}, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise BackendError(f"{fallback}: {e}", reason="NETWORK_ERROR") from e
        if r.status_code != 200:
            reason = _error_reason(r, fallback)
            raise BackendError(f"{fallback}: {reason}", reason=reason)
        return r.json()

    def sign_up(self, email: str, password: str, name: str = "") -> AuthSession:
        payload = {"email": email, "password": password, "returnSecureToken": True}
        if name:
            payload["displayName"] = name
        data = self._post(f"{IDENTITY_URL}/accounts:signUp", "Sign up failed", json=payload)
        return AuthSession(
            user_id=data["localId"],
            email=data.get("email", email),
            id_token=data["idToken"],
            refresh_token=data["refreshToken"],
            name=data.get("displayName") or name,
        )

    def sign_in(self, email: str, password: str) -> AuthSession:
        payload = {"email": email, "password": password, "returnSecureToken": True}
        data = self._post(f"{IDENTITY_URL}/accounts:signInWithPassword", "Login failed", json=payload)
        return AuthSession(
            user_id=data["localId"],
            email=data.get("email", email),
            id_token=data["idToken"],
            refresh_token=data["refreshToken"],
            name=data.get("displayName") or "",
        )

    def refresh(self, refresh_token: str) -> AuthSession:
        """Exchange a refresh token for a fresh ID token. Email/name are filled by get_account."""
        data = self._post(
            SECURE_TOKEN_URL,
            "Session refresh failed",
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
        )
        return AuthSession(
            user_id=data["user_id"],
            email="",
            id_token=data["id_token"],
            refresh_token=data["refresh_token"],
        )

    def get_account(self, id_token: str) -> User:
        data = self._post(f"{IDENTITY_URL}/accounts:lookup", "Session lookup failed", json={"idToken": id_token})
        users = data.get("users") or []
        if not users:
            raise BackendError("Session lookup failed: no account", reason="USER_NOT_FOUND")
        u = users[0]
        return User(id=u["localId"], email=u.get("email", ""), name=u.get("displayName", ""))

    def delete_session(self, user_id: str) -> None:
        """Firebase has no per-session delete; revoking refresh tokens ends the session remotely."""
        try:
            admin_auth.revoke_refresh_tokens(user_id)
        except (FirebaseError, ValueError) as e:
            raise BackendError(f"Logout failed: {e}") from e


# -------------------- Query / Permission helpers --------------------
class ID:
    @staticmethod
    def unique() -> None:
        """Let the store generate the key (push id)."""
        return None


@dataclass(frozen=True)
class Query:
    method: str
    attribute: str
    value: Any = None

    @classmethod
    def equal(cls, attribute: str, value: Any) -> "Query":
        return cls("equal", attribute, value)

    @classmethod
    def order_desc(cls, attribute: str) -> "Query":
        return cls("orderDesc", attribute)


class Role:
    @staticmethod
    def user(user_id: str) -> str:
        return f"user:{user_id}"

    @staticmethod
    def any() -> str:
        return "any"


class Permission:
    @staticmethod
    def read(role: str) -> str:
        return f'read("{role}")'

    @staticmethod
    def update(role: str) -> str:
        return f'update("{role}")'

    @staticmethod
    def delete(role: str) -> str:
        return f'delete("{role}")'


def owner_permissions(user_id: str) -> List[str]:
    role = Role.user(user_id)
    return [Permission.read(role), Permission.update(role), Permission.delete(role)]


def is_allowed(doc: dict, action: str, user_id: str) -> bool:
    """Documents without recorded permissions fall back to their userId field."""
    perms = doc.get(PERMISSIONS_FIELD)
    if not perms:
        return doc.get("userId") == user_id
    return f'{action}("{Role.user(user_id)}")' in perms or f'{action}("{Role.any()}")' in perms


def _as_document(key: str, value: dict) -> dict:
    doc = {k: v for k, v in value.items() if k != PERMISSIONS_FIELD}
    doc["$id"] = key
    doc["$permissions"] = list(value.get(PERMISSIONS_FIELD) or [])
    return doc


def _sort_key(attribute: str):
    # missing values sort first, as RTDB orders nulls first
    return lambda d: (d.get(attribute) is not None, d.get(attribute) or "")


# -------------------- Documents (Realtime Database) --------------------
class DocumentStore:
    def __init__(self, reference=None):
        self._reference = reference or db.reference

    def _collection(self, database: str, collection: str):
        return self._reference(f"/{database}/{collection}")

    def list_documents(
        self,
        database: str,
        collection: str,
        queries: Sequence[Query] = (),
        user_id: Optional[str] = None,
    ) -> List[dict]:
        ref = self._collection(database, collection)
        filters = [q for q in queries if q.method == "equal"]
        orders = [q for q in queries if q.method == "orderDesc"]
        try:
            if filters:
                first = filters[0]
                raw = ref.order_by_child(first.attribute).equal_to(first.value).get()
            else:
                raw = ref.get()
        except (FirebaseError, ValueError) as e:
            raise BackendError(f"Listing {collection} failed: {e}") from e

        raw = raw or {}
        if isinstance(raw, list):
            # RTDB returns arrays for integer-like keys
            raw = {str(i): v for i, v in enumerate(raw) if v is not None}
        rows = [(key, value) for key, value in raw.items() if isinstance(value, dict)]
        for f in filters[1:]:
            rows = [(k, v) for k, v in rows if v.get(f.attribute) == f.value]
        if user_id is not None:
            rows = [(k, v) for k, v in rows if is_allowed(v, "read", user_id)]

        docs = [_as_document(k, v) for k, v in rows]
        for order in reversed(orders):
            docs.sort(key=_sort_key(order.attribute), reverse=True)
        return docs

    def create_document(
        self,
        database: str,
        collection: str,
        document_id: Optional[str],
        data: dict,
        permissions: Optional[Iterable[str]] = None,
    ) -> dict:
        value = dict(data)
        if permissions:
            value[PERMISSIONS_FIELD] = list(permissions)
        ref = self._collection(database, collection)
        try:
            if document_id is None:
                key = ref.push(value).key
            else:
                ref.child(document_id).set(value)
                key = document_id
        except (FirebaseError, ValueError) as e:
            raise BackendError(f"Creating document in {collection} failed: {e}") from e
        return _as_document(key, value)

    def _existing(self, database: str, collection: str, document_id: str, action: str,
                  user_id: Optional[str]):
        child = self._collection(database, collection).child(document_id)
        current = child.get()
        if not isinstance(current, dict):
            raise BackendError(f"Document {document_id} not found", reason="DOCUMENT_NOT_FOUND")
        if user_id is not None and not is_allowed(current, action, user_id):
            raise PermissionDeniedError(
                f"User {user_id} may not {action} document {document_id}", reason="PERMISSION_DENIED"
            )
        return child, current

    def update_document(
        self,
        database: str,
        collection: str,
        document_id: str,
        data: dict,
        user_id: Optional[str] = None,
    ) -> dict:
        try:
            child, current = self._existing(database, collection, document_id, "update", user_id)
            child.update(data)
        except (FirebaseError, ValueError) as e:
            raise BackendError(f"Updating document {document_id} failed: {e}") from e
        merged = dict(current)
        merged.update(data)
        return _as_document(document_id, merged)

    def delete_document(
        self,
        database: str,
        collection: str,
        document_id: str,
        user_id: Optional[str] = None,
    ) -> None:
        try:
            child, _ = self._existing(database, collection, document_id, "delete", user_id)
            child.delete()
        except (FirebaseError, ValueError) as e:
            raise BackendError(f"Deleting document {document_id} failed: {e}") from e
