"""Pydantic schemas for authentication endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from eduaudit.audit.schemas import as_utc


class LoginRequest(BaseModel):
    """Presence of both fields is checked by the identity gate (400, not 422)."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=128)


class SignupRequest(LoginRequest):
    email: Optional[EmailStr] = Field(default=None, max_length=255)


class AuthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    user_id: int = Field(serialization_alias="userId")


class MeResponse(BaseModel):
    id: int
    email: str
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, v: datetime) -> datetime:
        return as_utc(v)
