"""FastAPI dependency for current user from our own JWT."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException

from reelscript.api.deps import ServicesDep
from reelscript.auth.jwt import verify_token


def bearer_token(
    authorization: Annotated[str | None, Header(alias="Authorization")] = None,
) -> str:
    """Extract the raw token from "Authorization: Bearer <token>" or raise 401."""
    if not authorization or not isinstance(authorization, str):
        raise HTTPException(
            status_code=401,
            detail="Missing or invalid Authorization header",
        )
    raw = authorization.strip()
    if not raw.lower().startswith("bearer "):
        raise HTTPException(
            status_code=401,
            detail="Missing or invalid Authorization header",
        )
    token = raw[7:].strip()
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Missing or invalid Authorization header",
        )
    return token


BearerToken = Annotated[str, Depends(bearer_token)]


def get_current_user_jwt(token: BearerToken, services: ServicesDep) -> dict[str, Any]:
    """Verify our JWT and return its payload (sub, email, jti, exp); 401 otherwise."""
    try:
        payload = verify_token(token, services.settings, services.tokens)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    if services.users.get_by_id(payload["sub"]) is None:
        raise HTTPException(status_code=401, detail="User not found")
    return payload


CurrentUserJWT = Annotated[dict[str, Any], Depends(get_current_user_jwt)]


def get_current_user_id(user: CurrentUserJWT) -> str:
    return str(user["sub"])


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
