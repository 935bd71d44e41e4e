"""
Admin authentication

`AuthService` checks credentials against the `admins` collection, issues JWTs
and broadcasts the current principal to every registered listener.
`AuthSession` is the admin UI's view of that: it only ever learns about
sign-in or sign-out through its subscription, never from the return value of
the call that asked for it.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import jwt
from passlib.context import CryptContext

from database import DocumentStore
from errors import INVALID_CREDENTIAL, AuthError, normalize_error
from schemas import COLL_ADMINS

logger = logging.getLogger(__name__)

# Security settings
JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_change_me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_MIN = int(os.getenv("JWT_EXPIRE_MIN", str(60 * 24)))
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

INITIALIZING = "initializing"
UNAUTHENTICATED = "unauthenticated"
AUTHENTICATED = "authenticated"


@dataclass
class Principal:
    uid: str
    email: str
    display_name: str = "Admin"
    token: Optional[str] = None


Listener = Callable[[Optional[Principal]], None]


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(principal: Principal, secret: str = JWT_SECRET, minutes: int = JWT_EXPIRE_MIN) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": principal.uid,
        "email": principal.email,
        "name": principal.display_name,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=minutes)).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


class AuthService:
    def __init__(self, store: DocumentStore, secret: str = JWT_SECRET, expire_minutes: int = JWT_EXPIRE_MIN):
        self.store = store
        self.secret = secret
        self.expire_minutes = expire_minutes
        self.current_user: Optional[Principal] = None
        self._listeners: List[Listener] = []

    def _set_user(self, user: Optional[Principal]):
        self.current_user = user
        for listener in list(self._listeners):
            listener(user)

    def on_session_change(self, callback: Listener) -> Callable[[], None]:
        """Register a listener; it is called right away with the current principal."""
        self._listeners.append(callback)
        callback(self.current_user)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def sign_in(self, email: str, password: str) -> Principal:
        email = email.strip().lower()
        docs = self.store.get_by_field(COLL_ADMINS, "email", email)
        doc = docs[0] if docs else None
        if not doc or not doc.get("password_hash") or not pwd_context.verify(password, doc["password_hash"]):
            logger.error("Error signing in %s: invalid credentials", email)
            raise AuthError(INVALID_CREDENTIAL, "Invalid credentials")
        principal = Principal(uid=doc["id"], email=doc["email"], display_name=doc.get("display_name", "Admin"))
        principal.token = create_access_token(principal, self.secret, self.expire_minutes)
        logger.info("Admin %s signed in", email)
        self._set_user(principal)
        return principal

    def sign_out(self):
        if self.current_user is not None:
            logger.info("Admin %s signed out", self.current_user.email)
        self._set_user(None)

    def restore(self, token: str) -> Principal:
        """Resume a session from a previously issued token."""
        try:
            data = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise AuthError("session-expired", "Session expired")
        except jwt.InvalidTokenError:
            raise AuthError("invalid-token", "Invalid token")
        principal = Principal(uid=data["sub"], email=data.get("email", ""), display_name=data.get("name", "Admin"), token=token)
        self._set_user(principal)
        return principal

    def ensure_admin(self, email: str, password: str, display_name: str = "Admin") -> Optional[str]:
        """Seed the admin principal if it does not exist yet."""
        email = email.strip().lower()
        if self.store.get_by_field(COLL_ADMINS, "email", email):
            return None
        return self.store.create(COLL_ADMINS, {
            "email": email,
            "password_hash": hash_password(password),
            "display_name": display_name,
        })


class AuthSession:
    """Session state for the admin UI: initializing, unauthenticated or authenticated."""

    def __init__(self, service: AuthService):
        self.service = service
        self.user: Optional[Principal] = None
        self.error: Optional[str] = None
        self._resolved = False
        self._pending = False
        self._unsubscribe: Optional[Callable[[], None]] = None

    def start(self):
        if self._unsubscribe is None:
            self._unsubscribe = self.service.on_session_change(self._on_session_change)
        return self

    def close(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc):
        self.close()

    def _on_session_change(self, user: Optional[Principal]):
        self.user = user
        self._resolved = True

    @property
    def loading(self) -> bool:
        return self._pending or not self._resolved

    @property
    def status(self) -> str:
        if not self._resolved:
            return INITIALIZING
        return AUTHENTICATED if self.user is not None else UNAUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.status == AUTHENTICATED

    def sign_in(self, email: str, password: str) -> bool:
        self.error = None
        self._pending = True
        try:
            self.service.sign_in(email, password)
            return True
        except Exception as e:
            self.error = normalize_error(e)
            return False
        finally:
            self._pending = False

    def sign_out(self):
        self.error = None
        try:
            self.service.sign_out()
        except Exception as e:
            self.error = normalize_error(e)

    def clear_error(self):
        self.error = None
