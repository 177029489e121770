from __future__ import annotations

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(max_length=256)
    password: str = Field(max_length=1024)


class LoginResponse(BaseModel):
    success: bool
    message: str
    authRequired: bool | None = None


class AuthCheckResponse(BaseModel):
    authenticated: bool
    authRequired: bool
    reason: str | None = None
    message: str | None = None


class LogoutResponse(BaseModel):
    success: bool
    message: str
