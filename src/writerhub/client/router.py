"""Client portal router: /api/client/* endpoints (public)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.client.service import ClientSubmission, submit_client_assignment
from writerhub.config import get_settings
from writerhub.database import get_session
from writerhub.files.storage import (
    UploadTooLargeError,
    check_document_extension,
    read_limited,
    remove_stored,
    safe_name,
    store_bytes,
)
from writerhub.notifications.dispatcher import NotificationDispatcher, get_dispatcher

router = APIRouter(prefix="/api/client", tags=["Client"])


@router.post("/submit")
async def submit(
    title: str | None = Form(None),
    domain: str | None = Form(None),
    description: str | None = Form(None),
    deadline: str | None = Form(None),
    client_name: str | None = Form(None),
    client_email: str | None = Form(None),
    client_phone: str | None = Form(None),
    links: str | None = Form(None),
    word_count_min: int | None = Form(None),
    word_count_max: int | None = Form(None),
    referral_code: str | None = Form(None),
    files: list[UploadFile] | None = File(None),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict:
    """Accept an assignment brief with up to five documents."""
    submission = ClientSubmission(
        title=title,
        domain=domain,
        description=description,
        deadline=deadline,
        client_name=client_name,
        client_email=client_email,
        client_phone=client_phone,
        links=links,
        word_count_min=word_count_min,
        word_count_max=word_count_max,
        referral_code=referral_code,
    )
    try:
        submission.validate()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    uploads = [f for f in files or [] if f.filename]
    max_files = get_settings().client_upload_max_files
    if len(uploads) > max_files:
        raise HTTPException(status_code=400, detail=f"Too many files (max {max_files})")

    buffered = []
    for upload in uploads:
        try:
            check_document_extension(upload)
            buffered.append((safe_name(upload), upload.content_type, await read_limited(upload)))
        except UploadTooLargeError as e:
            raise HTTPException(status_code=413, detail=str(e)) from e
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    stored = [store_bytes(content, name, content_type, "client") for name, content_type, content in buffered]
    try:
        assignment = await submit_client_assignment(db, dispatcher, submission, stored)
    except ValueError as e:
        for s in stored:
            remove_stored(s.path)
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"success": True, "assignment_id": assignment.id, "message": "Assignment submitted successfully"}
