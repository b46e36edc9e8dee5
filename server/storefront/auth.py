# Admin authorization: bcrypt sign-in issues hour-long session tokens; admin
# routes require "Authorization: Bearer <token>". Static bearer compared in
# constant time to prevent timing attacks.


from __future__ import annotations

import secrets
import threading
import uuid

import bcrypt
import structlog
from cachetools import TTLCache  # type: ignore[import-untyped]
from fastapi import Request
from fastapi.security import HTTPBasicCredentials

from storefront.db.store import Store
from storefront.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    InvalidTokenFormatError,
)

logger = structlog.get_logger(__name__)


class SessionStore:
    """Issued admin session tokens, expiring `ttl_seconds` after sign-in."""

    def __init__(self, ttl_seconds: float = 3600, maxsize: int = 1024) -> None:
        self._sessions: TTLCache[str, str] = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        self._lock = threading.Lock()

    def issue(self, username: str) -> str:
        token = str(uuid.uuid4())
        with self._lock:
            self._sessions[token] = username
        return token

    def username_for(self, token: str) -> str | None:
        with self._lock:
            return self._sessions.get(token)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def sign_in(store: Store, sessions: SessionStore, credentials: HTTPBasicCredentials | None) -> str:
    """Check Basic credentials against the stored bcrypt hash; return a new token."""
    if credentials is None:
        raise InvalidCredentialsError()

    expected = store.get_admin_password_hash(credentials.username)
    if not expected or not bcrypt.checkpw(credentials.password.encode(), expected.encode()):
        logger.warning("signin_failed", username=credentials.username)
        raise InvalidCredentialsError()

    token = sessions.issue(credentials.username)
    logger.info("signin_succeeded", username=credentials.username)
    return token


def bearer_token(authorization: str) -> str:
    """Extract <token> from "Bearer <token>". Anything else is a format error."""
    parts = authorization.split("Bearer")
    if len(parts) != 2 or parts[0].strip():
        raise InvalidTokenFormatError()
    token = parts[1].strip()
    if not token:
        raise InvalidTokenFormatError()
    return token


async def require_admin(request: Request) -> str:
    """Dependency gating admin routes. Returns the admin username."""
    admin: str | None = getattr(request.state, "admin", None)
    if admin is not None:
        return admin

    token = bearer_token(request.headers.get("authorization", ""))

    sessions: SessionStore = request.app.state.sessions
    username = sessions.username_for(token)
    if username is not None:
        request.state.admin = username
        return username

    static_bearer = request.app.state.settings.admin_bearer.get_secret_value()
    if static_bearer and secrets.compare_digest(token, static_bearer):
        request.state.admin = "bearer"
        return "bearer"

    logger.warning(
        "auth_rejected",
        path=request.url.path,
        method=request.method,
        reason="invalid_or_expired_token",
    )
    raise InvalidTokenError()
