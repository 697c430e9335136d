"""Assignment files router: /api/files/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import get_current_user
from writerhub.database import get_session
from writerhub.db.models import AssignmentFile, User
from writerhub.files.schemas import AssignmentFileResponse, SubmitLinksRequest
from writerhub.files.service import (
    check_upload_allowed,
    delete_file,
    get_downloadable,
    list_files,
    record_upload,
    submit_links,
)
from writerhub.files.storage import (
    UploadTooLargeError,
    check_content_type,
    read_limited,
    safe_name,
    store_bytes,
)
from writerhub.notifications.dispatcher import NotificationDispatcher, get_dispatcher

router = APIRouter(prefix="/api/files", tags=["Files"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, UploadTooLargeError):
        return HTTPException(status_code=413, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _response(record: AssignmentFile, uploader_name: str | None = None) -> AssignmentFileResponse:
    out = AssignmentFileResponse.model_validate(record)
    out.uploader_name = uploader_name
    return out


@router.post("/{assignment_id}/upload", response_model=AssignmentFileResponse)
async def upload(
    assignment_id: int,
    file: UploadFile | None = File(None),
    upload_type: str = Form(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AssignmentFileResponse:
    """Attach instructions (admins) or a submission (the assigned writer)."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    try:
        assignment = await check_upload_allowed(db, user, assignment_id, upload_type)
        check_content_type(file)
        content = await read_limited(file)
    except (LookupError, PermissionError, ValueError) as e:
        raise _http_error(e) from e

    subdir = "instructions" if upload_type == "instructions" else "submissions"
    stored = store_bytes(content, safe_name(file), file.content_type, subdir)
    record = await record_upload(db, dispatcher, user, assignment, upload_type, stored)
    return _response(record, user.name)


@router.get("/download/{file_id}")
async def download(
    file_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> FileResponse:
    try:
        record = await get_downloadable(db, user, file_id)
    except (LookupError, PermissionError) as e:
        raise _http_error(e) from e
    return FileResponse(record.file_path, filename=record.original_name, media_type=record.file_type)


@router.post("/{assignment_id}/submit-links")
async def links(
    assignment_id: int,
    body: SubmitLinksRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict:
    try:
        await submit_links(db, dispatcher, user, assignment_id, body.links, body.notes)
    except (LookupError, PermissionError, ValueError) as e:
        raise _http_error(e) from e
    return {"message": "Links submitted successfully"}


@router.get("/{assignment_id}", response_model=list[AssignmentFileResponse])
async def files_for_assignment(
    assignment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[AssignmentFileResponse]:
    try:
        rows = await list_files(db, user, assignment_id)
    except PermissionError as e:
        raise _http_error(e) from e
    return [_response(f, name) for f, name in rows]


@router.delete("/{file_id}")
async def remove(
    file_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict:
    try:
        await delete_file(db, user, file_id)
    except (LookupError, PermissionError) as e:
        raise _http_error(e) from e
    return {"message": "File deleted successfully"}
