"""Schemas for chat messages and threads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SendMessageRequest(BaseModel):
    message: str | None = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignment_id: int | None = None
    sender_id: int
    receiver_id: int | None = None
    message: str
    file_url: str | None = None
    file_name: str | None = None
    file_type: str | None = None
    read_at: datetime | None = None
    created_at: datetime | None = None
    sender_name: str | None = None
    sender_role: str | None = None


class AssignmentThread(BaseModel):
    assignment_id: int
    title: str
    writer_id: int | None = None
    writer_name: str | None = None
    writer_online: bool | None = None
    writer_last_seen: datetime | None = None
    unread_count: int = 0
    last_message_at: datetime | None = None
    chat_type: str = "assignment"


class AdminContact(BaseModel):
    user_id: int
    name: str
    is_online: bool = False
    last_seen: datetime | None = None
    chat_type: str = "admin"


class WriterThreads(BaseModel):
    admins: list[AdminContact]
    assignments: list[AssignmentThread]


class UnreadCountResponse(BaseModel):
    count: int


class UserStatusResponse(BaseModel):
    name: str
    is_online: bool
    last_seen: datetime | None = None
