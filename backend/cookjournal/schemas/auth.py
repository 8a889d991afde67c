"""
Cook Journal Backend — Auth Request/Response Schemas
======================================================

What:  Contracts for register, login, profile update and password change.
Why:   Type checks (strings only, no coercion) happen before the service runs;
       business rules (duplicate email, password length, credential checks)
       stay in AuthService.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, StrictStr, field_validator

from cookjournal.schemas.common import CamelModel, is_valid_email, normalize_email


class UserResponse(CamelModel):
    """Public user projection. The password hash is never part of it."""

    id: uuid.UUID
    email: str
    name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UserEnvelope(CamelModel):
    """`{"user": {...}}` — null when no session is bound (GET /api/auth/me)."""

    user: Optional[UserResponse] = None


class RegisterRequest(CamelModel):
    email: StrictStr
    password: StrictStr
    name: Optional[StrictStr] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        email = normalize_email(v)
        if not email:
            raise ValueError("email is required")
        if not is_valid_email(email):
            raise ValueError("email must be a valid email address")
        return email

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if v == "":
            raise ValueError("password is required")
        return v


class LoginRequest(CamelModel):
    email: StrictStr
    password: StrictStr

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        email = normalize_email(v)
        if not email:
            raise ValueError("email is required")
        return email

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if v == "":
            raise ValueError("password is required")
        return v


class ProfileUpdateRequest(CamelModel):
    """Sparse update: omitted keys are left untouched."""

    name: Optional[StrictStr] = None
    email: Optional[StrictStr] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("email must be a string")
        email = normalize_email(v)
        if not is_valid_email(email):
            raise ValueError("email must be a valid email address")
        return email


class ChangePasswordRequest(CamelModel):
    """
    confirmPassword is optional; when sent it must match newPassword.
    That comparison is done by the route, not by AuthService.
    """

    current_password: StrictStr
    new_password: StrictStr
    confirm_password: Optional[StrictStr] = None


class MessageResponse(CamelModel):
    message: str = Field(description="Human-readable success message")
