"""Chat router: /api/messages/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import get_current_user
from writerhub.database import get_session
from writerhub.db.models import User
from writerhub.files.storage import (
    StoredFile,
    UploadTooLargeError,
    check_content_type,
    read_limited,
    remove_stored,
    safe_name,
    store_bytes,
)
from writerhub.messages.schemas import (
    AssignmentThread,
    MessageResponse,
    SendMessageRequest,
    UnreadCountResponse,
    UserStatusResponse,
    WriterThreads,
)
from writerhub.messages.service import (
    admin_threads,
    message_attachment,
    post_direct,
    post_to_assignment,
    read_assignment_thread,
    read_direct_thread,
    unread_count,
    writer_threads,
)
from writerhub.notifications.dispatcher import NotificationDispatcher, get_dispatcher

router = APIRouter(prefix="/api/messages", tags=["Messages"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, UploadTooLargeError):
        return HTTPException(status_code=413, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


async def _store_chat_file(file: UploadFile | None) -> StoredFile:
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    try:
        check_content_type(file)
        content = await read_limited(file)
    except ValueError as e:
        raise _http_error(e) from e
    return store_bytes(content, safe_name(file), file.content_type, "chat")


@router.get("/threads", response_model=list[AssignmentThread] | WriterThreads)
async def threads(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[AssignmentThread] | WriterThreads:
    """Admins get assignment threads; writers get admin contacts plus their job threads."""
    if user.is_admin:
        return await admin_threads(db, user)
    admins, assignments = await writer_threads(db, user)
    return WriterThreads(admins=admins, assignments=assignments)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UnreadCountResponse:
    return UnreadCountResponse(count=await unread_count(db, user.id))


@router.get("/status/{user_id}", response_model=UserStatusResponse)
async def user_status(
    user_id: int,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserStatusResponse:
    other = await db.get(User, user_id)
    if other is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserStatusResponse(name=other.name, is_online=bool(other.is_online), last_seen=other.last_seen)


@router.get("/file/{message_id}")
async def download_attachment(
    message_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> FileResponse:
    try:
        message = await message_attachment(db, user, message_id)
    except (LookupError, PermissionError) as e:
        raise _http_error(e) from e
    return FileResponse(message.file_url, filename=message.file_name, media_type=message.file_type)


# ---------------------------------------------------------------------------
# Assignment threads
# ---------------------------------------------------------------------------


@router.get("/assignment/{assignment_id}", response_model=list[MessageResponse])
async def assignment_thread(
    assignment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[MessageResponse]:
    try:
        return await read_assignment_thread(db, user, assignment_id)
    except PermissionError as e:
        raise _http_error(e) from e


@router.post("/assignment/{assignment_id}", response_model=MessageResponse)
async def send_to_assignment(
    assignment_id: int,
    body: SendMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MessageResponse:
    try:
        return await post_to_assignment(db, dispatcher, user, assignment_id, body.message)
    except (LookupError, PermissionError, ValueError) as e:
        raise _http_error(e) from e


@router.post("/assignment/{assignment_id}/file", response_model=MessageResponse)
async def send_file_to_assignment(
    assignment_id: int,
    file: UploadFile | None = File(None),
    message: str = Form(""),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MessageResponse:
    stored = await _store_chat_file(file)
    try:
        return await post_to_assignment(db, dispatcher, user, assignment_id, message, stored)
    except (LookupError, PermissionError, ValueError) as e:
        remove_stored(stored.path)
        raise _http_error(e) from e


# ---------------------------------------------------------------------------
# Direct messages
# ---------------------------------------------------------------------------


@router.get("/direct/{user_id}", response_model=list[MessageResponse])
async def direct_thread(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[MessageResponse]:
    return await read_direct_thread(db, user, user_id)


@router.post("/direct/{user_id}", response_model=MessageResponse)
async def send_direct(
    user_id: int,
    body: SendMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MessageResponse:
    try:
        return await post_direct(db, dispatcher, user, user_id, body.message)
    except (LookupError, PermissionError, ValueError) as e:
        raise _http_error(e) from e


@router.post("/direct/{user_id}/file", response_model=MessageResponse)
async def send_direct_file(
    user_id: int,
    file: UploadFile | None = File(None),
    message: str = Form(""),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MessageResponse:
    stored = await _store_chat_file(file)
    try:
        return await post_direct(db, dispatcher, user, user_id, message, stored)
    except (LookupError, PermissionError, ValueError) as e:
        remove_stored(stored.path)
        raise _http_error(e) from e
