"""Schemas for member support inquiries."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class InquiryCreate(BaseModel):
    subject: str | None = None
    message: str | None = None


class InquiryMessageCreate(BaseModel):
    message: str | None = None


class CloseRequest(BaseModel):
    resolution: str | None = None


class CreatedInquiry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    ticket_number: str
    subject: str
    status: str
    created_at: datetime | None = None


class InquiryCreateResponse(BaseModel):
    success: bool = True
    inquiry: CreatedInquiry


class InquiryMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    inquiry_id: int
    sender_type: str
    sender_id: int | None = None
    sender_name: str | None = None
    message: str
    is_system_message: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None


class InquirySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    member_id: int
    subject: str
    ticket_number: str
    status: str
    priority: str
    assigned_admin_id: int | None = None
    assigned_at: datetime | None = None
    closed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    member_name: str | None = None
    member_email: str | None = None
    admin_name: str | None = None
    unread_count: int = 0
    last_message: str | None = None
    last_message_at: datetime | None = None


class InquiryList(BaseModel):
    inquiries: list[InquirySummary]


class InquiryThread(BaseModel):
    inquiry: InquirySummary
    messages: list[InquiryMessageResponse]


class PostedMessage(BaseModel):
    success: bool = True
    message: InquiryMessageResponse
