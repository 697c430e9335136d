"""Support inquiries router: /api/inquiries/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import get_current_member, require_admin
from writerhub.database import get_session
from writerhub.db.models import ClientMember, InquiryMessage, User
from writerhub.inquiries.schemas import (
    CloseRequest,
    CreatedInquiry,
    InquiryCreate,
    InquiryCreateResponse,
    InquiryList,
    InquiryMessageCreate,
    InquiryMessageResponse,
    InquirySummary,
    InquiryThread,
    PostedMessage,
)
from writerhub.inquiries.service import (
    admin_inquiries,
    admin_reply,
    admin_thread,
    assign_inquiry,
    close_inquiry,
    create_inquiry,
    member_inquiries,
    member_reply,
    member_thread,
    reopen_inquiry,
)
from writerhub.notifications.dispatcher import NotificationDispatcher, get_dispatcher

router = APIRouter(prefix="/api/inquiries", tags=["Inquiries"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _thread(summary: InquirySummary, messages: list[InquiryMessage]) -> InquiryThread:
    return InquiryThread(
        inquiry=summary,
        messages=[InquiryMessageResponse.model_validate(m) for m in messages],
    )


@router.post("/create", response_model=InquiryCreateResponse)
async def create(
    body: InquiryCreate,
    member: ClientMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> InquiryCreateResponse:
    try:
        inquiry = await create_inquiry(db, dispatcher, member, body.subject, body.message)
    except ValueError as e:
        raise _http_error(e) from e
    return InquiryCreateResponse(
        inquiry=CreatedInquiry(
            id=inquiry.id,
            ticket_number=inquiry.ticket_number,
            subject=inquiry.subject,
            status=inquiry.status,
            created_at=inquiry.created_at,
        )
    )


@router.get("/my-inquiries", response_model=InquiryList)
async def my_inquiries(
    member: ClientMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_session),
) -> InquiryList:
    return InquiryList(inquiries=await member_inquiries(db, member))


@router.get("/{inquiry_id}/messages", response_model=InquiryThread)
async def member_messages(
    inquiry_id: int,
    member: ClientMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_session),
) -> InquiryThread:
    try:
        summary, messages = await member_thread(db, member, inquiry_id)
    except LookupError as e:
        raise _http_error(e) from e
    return _thread(summary, messages)


@router.post("/{inquiry_id}/message", response_model=PostedMessage)
async def member_message(
    inquiry_id: int,
    body: InquiryMessageCreate,
    member: ClientMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> PostedMessage:
    try:
        message = await member_reply(db, dispatcher, member, inquiry_id, body.message)
    except (LookupError, ValueError) as e:
        raise _http_error(e) from e
    return PostedMessage(message=InquiryMessageResponse.model_validate(message))


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/admin/all", response_model=InquiryList)
async def all_inquiries(
    status: str | None = Query(None),
    assigned: str | None = Query(None, pattern="^(me|unassigned)$"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> InquiryList:
    return InquiryList(inquiries=await admin_inquiries(db, admin, status, assigned))


@router.post("/admin/{inquiry_id}/assign")
async def assign(
    inquiry_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict:
    try:
        await assign_inquiry(db, admin, inquiry_id)
    except (LookupError, ValueError) as e:
        raise _http_error(e) from e
    return {"success": True, "message": "Inquiry assigned successfully"}


@router.get("/admin/{inquiry_id}/messages", response_model=InquiryThread)
async def admin_messages(
    inquiry_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> InquiryThread:
    try:
        summary, messages = await admin_thread(db, inquiry_id)
    except LookupError as e:
        raise _http_error(e) from e
    return _thread(summary, messages)


@router.post("/admin/{inquiry_id}/message", response_model=PostedMessage)
async def admin_message(
    inquiry_id: int,
    body: InquiryMessageCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> PostedMessage:
    try:
        message = await admin_reply(db, admin, inquiry_id, body.message)
    except (LookupError, ValueError) as e:
        raise _http_error(e) from e
    return PostedMessage(message=InquiryMessageResponse.model_validate(message))


@router.post("/admin/{inquiry_id}/close")
async def close(
    inquiry_id: int,
    body: CloseRequest | None = None,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict:
    try:
        await close_inquiry(db, inquiry_id, body.resolution if body else None)
    except LookupError as e:
        raise _http_error(e) from e
    return {"success": True, "message": "Inquiry closed"}


@router.post("/admin/{inquiry_id}/reopen")
async def reopen(
    inquiry_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict:
    try:
        await reopen_inquiry(db, inquiry_id)
    except LookupError as e:
        raise _http_error(e) from e
    return {"success": True, "message": "Inquiry reopened"}
