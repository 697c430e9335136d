"""Schemas for assignment files."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AssignmentFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignment_id: int
    uploaded_by: int | None = None
    uploader_name: str | None = None
    filename: str
    original_name: str
    file_type: str | None = None
    file_size: int
    upload_type: str
    created_at: datetime | None = None


class SubmitLinksRequest(BaseModel):
    links: str | None = None
    notes: str | None = None
