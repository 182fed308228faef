"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from heroes.clock import UtcDatetime


class RegisterRequest(BaseModel):
    """Parent registration. ``join_family_code`` makes the new account a co-parent."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=64)
    last_name: str = Field(..., min_length=1, max_length=64)
    phone_number: str | None = Field(None, max_length=32)
    join_family_code: str | None = Field(None, min_length=6, max_length=6)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class ChildLoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    pin: str = Field(..., min_length=4, max_length=4)
    family_code: str | None = Field(None, min_length=6, max_length=6)


class ParentResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone_number: str | None = None
    family_code: str
    subscription_status: str
    created_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}


class PrincipalResponse(BaseModel):
    """``GET /api/auth/me``: exactly one of ``user`` / ``child`` is set."""

    role: Literal["parent", "child"]
    family_code: str
    user: ParentResponse | None = None
    child: dict | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    role: Literal["parent", "child"]
    user: ParentResponse | None = None
    child: dict | None = None
