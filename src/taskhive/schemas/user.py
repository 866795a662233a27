"""Pydantic schemas for users and auth payloads."""

import uuid
from typing import Optional

from pydantic import BaseModel, Field

from taskhive.schemas import UtcDatetime

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8)


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    avatar_url: Optional[str] = None
    created_at: UtcDatetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(TokenResponse):
    """Register/login response: the user plus a fresh token pair."""
    user: UserRead
