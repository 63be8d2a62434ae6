"""Auth endpoints: register, login, logout, me, session."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, HTTPException

from reelscript.api.deps import ServicesDep
from reelscript.auth.deps import CurrentUserJWT
from reelscript.auth.jwt import create_access_token
from reelscript.auth.password import hash_password, verify_password
from reelscript.auth.schemas import (
    LogoutResponse,
    SessionResponse,
    Token,
    UserCreate,
    UserLogin,
    UserResponse,
)
from reelscript.auth.store import UserExists

logger = logging.getLogger("reelscript.auth")

router = APIRouter(tags=["auth"])


@router.post("/register", response_model=Token)
def register(body: UserCreate, services: ServicesDep) -> Token:
    """Create user and return access token."""
    user_id = str(uuid.uuid4())
    try:
        services.users.create(user_id, body.email, hash_password(body.password))
    except UserExists as e:
        raise HTTPException(status_code=400, detail="Email already registered") from e
    logger.info("user registered: %s", user_id)
    token = create_access_token(sub=user_id, settings=services.settings, email=body.email)
    return Token(access_token=token, user_id=user_id)


@router.post("/login", response_model=Token)
def login(body: UserLogin, services: ServicesDep) -> Token:
    """Authenticate and return access token."""
    user = services.users.get_by_email(body.email)
    if not user or not verify_password(body.password, user["hashed_password"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    token = create_access_token(sub=user["id"], settings=services.settings, email=user.get("email"))
    return Token(access_token=token, user_id=user["id"])


@router.post("/logout", response_model=LogoutResponse)
def logout(user: CurrentUserJWT, services: ServicesDep) -> LogoutResponse:
    """Revoke the presented token until it would have expired anyway."""
    jti = user.get("jti")
    if jti:
        services.tokens.revoke(str(jti), int(user.get("exp", 0)))
    logger.info("user signed out: %s", user.get("sub"))
    return LogoutResponse()


@router.get("/me", response_model=UserResponse)
def me(user: CurrentUserJWT, services: ServicesDep) -> UserResponse:
    """Return current user from JWT (for frontend validation)."""
    sub = user["sub"]
    u = services.users.get_by_id(sub) or {}
    return UserResponse(
        id=sub,
        email=u.get("email") or user.get("email") or "",
        created_at=u.get("created_at"),
    )


@router.get("/session", response_model=SessionResponse)
def session(user: CurrentUserJWT) -> SessionResponse:
    return SessionResponse(
        user_id=user["sub"],
        email=user.get("email"),
        issued_at=user.get("iat"),
        expires_at=int(user["exp"]),
    )
