"""Request/response schemas for assignment endpoints.

Updates are split per actor: writers send :class:`WriterUpdate`, admins send
:class:`AdminUpdate`. Required-looking fields are optional so the service
can answer with specific 400 messages.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from writerhub.db.types import as_utc

StatusValue = Literal["pending", "in_progress", "completed", "paid", "revision", "cancelled"]


def _aware(v: datetime | None) -> datetime | None:
    return as_utc(v) if v is not None else None


class AssignmentCreate(BaseModel):
    title: str | None = None
    description: str | None = None
    domain: str | None = None
    word_count: int | None = Field(None, ge=0)
    word_count_min: int | None = Field(None, ge=0)
    word_count_max: int | None = Field(None, ge=0)
    amount: Decimal | None = Field(None, ge=0)
    deadline: datetime | None = None
    links: str | None = None

    @field_validator("deadline")
    @classmethod
    def normalize_deadline(cls, v: datetime | None) -> datetime | None:
        return _aware(v)


class WriterUpdate(BaseModel):
    """The only fields a writer may change on their own assignment."""

    model_config = ConfigDict(extra="forbid")

    status: StatusValue | None = None
    submitted_amount: Decimal | None = Field(None, gt=0)


WRITER_FIELDS = frozenset(WriterUpdate.model_fields)


class AdminUpdate(BaseModel):
    """Partial update; ``None`` leaves a field unchanged."""

    title: str | None = None
    description: str | None = None
    domain: str | None = None
    word_count: int | None = Field(None, ge=0)
    word_count_min: int | None = Field(None, ge=0)
    word_count_max: int | None = Field(None, ge=0)
    rate: Decimal | None = Field(None, ge=0)
    amount: Decimal | None = Field(None, ge=0)
    deadline: datetime | None = None
    status: StatusValue | None = None
    payment_status: Literal["unpaid", "paid"] | None = None
    links: str | None = None
    amount_approved: bool | None = None

    @field_validator("deadline")
    @classmethod
    def normalize_deadline(cls, v: datetime | None) -> datetime | None:
        return _aware(v)


class PickRequest(BaseModel):
    writer_deadline: datetime | None = None

    @field_validator("writer_deadline")
    @classmethod
    def normalize_writer_deadline(cls, v: datetime | None) -> datetime | None:
        return _aware(v)


class ExtensionCreate(BaseModel):
    requested_deadline: datetime | None = None
    reason: str | None = None

    @field_validator("requested_deadline")
    @classmethod
    def normalize_requested_deadline(cls, v: datetime | None) -> datetime | None:
        return _aware(v)


class ExtensionRespond(BaseModel):
    status: str | None = None
    admin_response: str | None = None


class OverrideDeadline(BaseModel):
    new_deadline: datetime | None = None

    @field_validator("new_deadline")
    @classmethod
    def normalize_new_deadline(cls, v: datetime | None) -> datetime | None:
        return _aware(v)


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    domain: str | None = None
    word_count: int
    word_count_min: int
    word_count_max: int
    rate: float | None = None
    amount: float
    submitted_amount: float | None = None
    amount_approved: bool
    deadline: datetime
    writer_deadline: datetime | None = None
    status: str
    payment_status: str
    writer_id: int | None = None
    ineligible_writers: list[int] = []
    extension_requested: bool
    extension_reason: str | None = None
    links: str | None = None
    client_source: str | None = None
    submission_links: str | None = None
    submission_notes: str | None = None
    picked_at: datetime | None = None
    submitted_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    # Joined from users / files
    writer_name: str | None = None
    writer_email: str | None = None
    writer_online: bool | None = None
    writer_last_seen: datetime | None = None
    has_instructions: int | None = None


class ExtensionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignment_id: int
    writer_id: int
    requested_deadline: datetime
    reason: str
    status: str
    admin_response: str | None = None
    created_at: datetime
    responded_at: datetime | None = None

    assignment_title: str | None = None
    writer_name: str | None = None


class OverdueSweepResponse(BaseModel):
    reopened_count: int
    reopened_ids: list[int]
