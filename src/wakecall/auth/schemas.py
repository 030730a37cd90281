"""
Pydantic schemas for authentication endpoints.
"""

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

E164_PATTERN = re.compile(r"^\+[1-9]\d{4,14}$")


def validate_e164(value: str) -> str:
    cleaned = re.sub(r"[\s\-()]", "", value)
    if not E164_PATTERN.match(cleaned):
        raise ValueError("Phone number must be in E.164 format, e.g. +14155550123")
    return cleaned


class EmailOtpRequest(BaseModel):
    """Request an email login or registration code."""

    email: EmailStr
    name: str | None = Field(default=None, min_length=1, max_length=255)
    mode: Literal["login", "register"] = "login"


class EmailOtpVerify(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=4, max_length=10)
    mode: Literal["login", "register"] = "login"
    remember_me: bool = False


class RefreshRequest(BaseModel):
    refresh_token: str


class PhoneOtpRequest(BaseModel):
    phone: str

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return validate_e164(v)


class PhoneOtpVerify(BaseModel):
    phone: str
    code: str = Field(..., min_length=4, max_length=10)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        return validate_e164(v)


class FirebasePhoneVerify(BaseModel):
    id_token: str = Field(..., min_length=10)


class UserResponse(BaseModel):
    """Public view of the authenticated user."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    phone: str | None
    phone_verified: bool
    is_personalized: bool
    call_credits: int
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class MessageResponse(BaseModel):
    success: bool = True
    message: str
