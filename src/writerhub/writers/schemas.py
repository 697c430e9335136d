"""Request/response schemas for writer management."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WriterCreate(BaseModel):
    email: str | None = None
    name: str | None = None
    phone: str | None = None
    rate_per_word: Decimal | None = Field(None, ge=0)
    status: Literal["active", "inactive"] | None = None
    notes: str | None = None
    domains: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.lower().strip() if v else v


class WriterUpdate(BaseModel):
    """Partial update; ``None`` leaves a field unchanged."""

    name: str | None = None
    phone: str | None = None
    rate_per_word: Decimal | None = Field(None, ge=0)
    status: Literal["active", "inactive"] | None = None
    notes: str | None = None
    domains: str | None = None


class WriterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    phone: str | None = None
    rate_per_word: float
    status: str
    notes: str | None = None
    domains: str | None = None
    is_online: bool = False
    last_seen: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WriterStatsResponse(WriterResponse):
    assignment_count: int = 0
    total_earned: float = 0.0
    total_paid: float = 0.0
    total_owed: float = 0.0


class WriterCreatedResponse(WriterResponse):
    generated_password: str
    message: str


class PasswordResetResponse(BaseModel):
    message: str
    new_password: str
    email: str
    name: str
