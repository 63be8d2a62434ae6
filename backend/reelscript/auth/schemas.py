"""Pydantic schemas for auth endpoints."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    """Body for /register."""

    email: EmailStr
    password: str = Field(..., min_length=6)


class UserLogin(BaseModel):
    """Request body for login."""

    email: EmailStr
    password: str


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    user_id: str


class UserResponse(BaseModel):
    """Response for /me."""

    id: str
    email: str
    created_at: str | None = None


class SessionResponse(BaseModel):
    """Current session as seen by the backend."""

    user_id: str
    email: str | None = None
    issued_at: int | None = None
    expires_at: int


class LogoutResponse(BaseModel):
    success: bool = True
