"""Session API schemas."""

from __future__ import annotations

from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class LoginResponse(BaseModel):
    ok: bool = True
