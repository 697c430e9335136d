"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator


class LoginRequest(BaseModel):
    """Email + password login. Fields are optional so missing ones get a 400 with a clear message."""

    email: str | None = None
    password: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.lower().strip() if v else v


class ChangePasswordRequest(BaseModel):
    current_password: str | None = None
    new_password: str | None = None


class PresenceRequest(BaseModel):
    online: bool = True


class UserResponse(BaseModel):
    """Public user profile."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: str
    status: str
    phone: str | None = None
    domains: str | None = None
    rate_per_word: float
    must_change_password: bool = False
    is_online: bool = False
    last_seen: datetime | None = None
    telegram_linked: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_user(cls, user: object) -> UserResponse:
        resp = cls.model_validate(user)
        resp.telegram_linked = bool(getattr(user, "telegram_chat_id", None))
        return resp


class LoginResponse(BaseModel):
    token: str
    user: UserResponse
    must_change_password: bool


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    message: str
    type: str
    link: str | None = None
    read: bool
    created_at: datetime
