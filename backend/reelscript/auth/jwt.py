"""Create and verify our own JWTs using python-jose."""

from __future__ import annotations

import threading
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from reelscript.core.config import Settings


class TokenDenylist:
    """Token ids revoked by sign-out, kept until their own expiry."""

    def __init__(self) -> None:
        self._revoked: dict[str, int] = {}
        self._lock = threading.Lock()

    def revoke(self, jti: str, exp: int) -> None:
        with self._lock:
            self._revoked[jti] = exp
            self._prune()

    def is_revoked(self, jti: str) -> bool:
        with self._lock:
            self._prune()
            return jti in self._revoked

    def _prune(self) -> None:
        now = int(time.time())
        for key in [k for k, exp in self._revoked.items() if exp < now]:
            del self._revoked[key]


def create_access_token(sub: str, settings: Settings, email: str | None = None) -> str:
    """Create a signed JWT for the given user (sub)."""
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": sub,
        "jti": uuid.uuid4().hex,
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp()),
    }
    if email is not None:
        payload["email"] = email
    return jwt.encode(
        payload,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


def verify_token(
    token: str,
    settings: Settings,
    denylist: TokenDenylist | None = None,
) -> dict[str, Any]:
    """Verify our JWT and return payload. Raises ValueError if invalid or signed out."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise ValueError("Invalid or expired token") from e
    sub = payload.get("sub")
    if not sub:
        raise ValueError("Token missing sub")
    jti = payload.get("jti")
    if denylist is not None and jti and denylist.is_revoked(str(jti)):
        raise ValueError("Token has been signed out")
    return payload
