"""Member support tickets: threads between client members and admins."""

from __future__ import annotations

import html
import secrets
import string
import time

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.db.models import ClientInquiry, ClientMember, InquiryMessage, User
from writerhub.db.types import utcnow
from writerhub.inquiries.schemas import InquirySummary
from writerhub.notifications.dispatcher import NotificationDispatcher

logger = structlog.get_logger()

SUPPORT_NAME = "WriterHub Support"
AUTO_ACK_MESSAGE = """Thank you for reaching out! 🎓

We've received your message and our support team has been notified. One of our team members will respond to your inquiry shortly.

In the meantime, here are some helpful resources:
• Check our FAQ section for common questions
• For urgent matters, use our Priority Support (available for verified members)

We typically respond within 2-4 hours during business hours.

Thank you for your patience!
The WriterHub Team"""

SUBJECT_LABELS = {
    "pricing": "💰 Pricing Question",
    "custom": "🎯 Custom Order",
    "revision": "📝 Revision Request",
    "deadline": "⏰ Deadline Extension",
    "refund": "💸 Refund Request",
    "other": "❓ Other",
}

_BASE36 = string.digits + string.ascii_uppercase


class InquiryNotFoundError(LookupError):
    pass


def generate_ticket_number(now_ms: int | None = None) -> str:
    """``HP-{base36 epoch ms}-{4 base36 chars}``."""
    ms = int(time.time() * 1000) if now_ms is None else now_ms
    stamp = ""
    while True:
        ms, r = divmod(ms, 36)
        stamp = _BASE36[r] + stamp
        if ms == 0:
            break
    return f"HP-{stamp}-{''.join(secrets.choice(_BASE36) for _ in range(4))}"


def subject_label(subject: str) -> str:
    return SUBJECT_LABELS.get(subject, subject)


def _system_message(inquiry_id: int, text: str, sender_name: str = "System") -> InquiryMessage:
    return InquiryMessage(
        inquiry_id=inquiry_id, sender_type="system", sender_name=sender_name, message=text, is_system_message=True
    )


def _summaries_select(unread_from: str):
    unread = (
        select(func.count(InquiryMessage.id))
        .where(
            InquiryMessage.inquiry_id == ClientInquiry.id,
            InquiryMessage.sender_type == unread_from,
            InquiryMessage.read_at.is_(None),
        )
        .correlate(ClientInquiry)
        .scalar_subquery()
    )
    latest = (
        select(InquiryMessage.message)
        .where(InquiryMessage.inquiry_id == ClientInquiry.id)
        .order_by(InquiryMessage.created_at.desc(), InquiryMessage.id.desc())
        .limit(1)
        .correlate(ClientInquiry)
        .scalar_subquery()
    )
    latest_at = (
        select(func.max(InquiryMessage.created_at))
        .where(InquiryMessage.inquiry_id == ClientInquiry.id)
        .correlate(ClientInquiry)
        .scalar_subquery()
    )
    return (
        select(ClientInquiry, ClientMember.name, ClientMember.email, User.name, unread, latest, latest_at)
        .outerjoin(ClientMember, ClientInquiry.member_id == ClientMember.id)
        .outerjoin(User, ClientInquiry.assigned_admin_id == User.id)
        .order_by(ClientInquiry.updated_at.desc(), ClientInquiry.id.desc())
    )


def _summary(row) -> InquirySummary:
    inquiry, member_name, member_email, admin_name, unread, last_message, last_at = row
    out = InquirySummary.model_validate(inquiry)
    out.member_name = member_name
    out.member_email = member_email
    out.admin_name = admin_name
    out.unread_count = int(unread or 0)
    out.last_message = last_message
    out.last_message_at = last_at
    return out


async def _get(db: AsyncSession, inquiry_id: int, member_id: int | None = None) -> ClientInquiry:
    inquiry = await db.get(ClientInquiry, inquiry_id)
    if inquiry is None or (member_id is not None and inquiry.member_id != member_id):
        raise InquiryNotFoundError("Inquiry not found")
    return inquiry


async def _thread(db: AsyncSession, inquiry_id: int) -> list[InquiryMessage]:
    result = await db.execute(
        select(InquiryMessage)
        .where(InquiryMessage.inquiry_id == inquiry_id)
        .order_by(InquiryMessage.created_at.asc(), InquiryMessage.id.asc())
    )
    return list(result.scalars().all())


async def _mark_read(db: AsyncSession, inquiry_id: int, sender_type: str) -> None:
    await db.execute(
        update(InquiryMessage)
        .where(
            InquiryMessage.inquiry_id == inquiry_id,
            InquiryMessage.sender_type == sender_type,
            InquiryMessage.read_at.is_(None),
        )
        .values(read_at=utcnow())
    )
    await db.commit()


async def _notify_new_inquiry(
    db: AsyncSession, dispatcher: NotificationDispatcher, inquiry: ClientInquiry, member: ClientMember, message: str
) -> None:
    label = subject_label(inquiry.subject)
    await dispatcher.notify_admins(
        db,
        f"New Inquiry: {inquiry.ticket_number}",
        f"{label} from {member.name}",
        "client_inquiry",
        "/inquiries",
        telegram_html=(
            f"📩 <b>New Client Inquiry</b>\n\n🎫 {inquiry.ticket_number}\n{html.escape(label)}\n\n"
            f"From: {html.escape(member.name)}\nEmail: {html.escape(member.email)}\n\n"
            f'"{html.escape(message[:200])}"'
        ),
    )


# ---------------------------------------------------------------------------
# Member side
# ---------------------------------------------------------------------------


async def create_inquiry(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    member: ClientMember,
    subject: str | None,
    message: str | None,
) -> ClientInquiry:
    """Open a ticket with the member's message and an automatic acknowledgement."""
    if not subject or not message:
        raise ValueError("Subject and message are required")
    inquiry = ClientInquiry(member_id=member.id, subject=subject, ticket_number=generate_ticket_number(), status="open")
    db.add(inquiry)
    await db.flush()
    db.add(
        InquiryMessage(
            inquiry_id=inquiry.id, sender_type="member", sender_id=member.id, sender_name=member.name, message=message
        )
    )
    db.add(_system_message(inquiry.id, AUTO_ACK_MESSAGE, SUPPORT_NAME))
    await db.commit()
    logger.info("inquiry_created", inquiry_id=inquiry.id, ticket=inquiry.ticket_number)

    await _notify_new_inquiry(db, dispatcher, inquiry, member, message)
    await db.commit()
    return inquiry


async def member_inquiries(db: AsyncSession, member: ClientMember) -> list[InquirySummary]:
    result = await db.execute(_summaries_select("admin").where(ClientInquiry.member_id == member.id))
    return [_summary(row) for row in result.all()]


async def member_thread(
    db: AsyncSession, member: ClientMember, inquiry_id: int
) -> tuple[InquirySummary, list[InquiryMessage]]:
    """The member's own ticket; admin replies are marked read."""
    await _get(db, inquiry_id, member.id)
    return await _thread_for(db, inquiry_id, unread_from="admin")


async def _thread_for(
    db: AsyncSession, inquiry_id: int, unread_from: str
) -> tuple[InquirySummary, list[InquiryMessage]]:
    row = (await db.execute(_summaries_select(unread_from).where(ClientInquiry.id == inquiry_id))).first()
    messages = await _thread(db, inquiry_id)
    await _mark_read(db, inquiry_id, unread_from)
    return _summary(row), messages


async def member_reply(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    member: ClientMember,
    inquiry_id: int,
    text: str | None,
) -> InquiryMessage:
    """Append a member message; the handling admin, or every admin, is told."""
    if not text:
        raise ValueError("Message is required")
    inquiry = await _get(db, inquiry_id, member.id)
    message = InquiryMessage(
        inquiry_id=inquiry.id, sender_type="member", sender_id=member.id, sender_name=member.name, message=text
    )
    db.add(message)
    inquiry.updated_at = utcnow()
    await db.commit()

    if inquiry.assigned_admin_id is not None:
        await dispatcher.notify_user(
            db,
            inquiry.assigned_admin_id,
            f"Reply: {inquiry.ticket_number}",
            f"{member.name}: {text[:100]}",
            "inquiry_reply",
            f"/inquiries?id={inquiry.id}",
            telegram_html=(
                f"💬 <b>New Reply</b>\n\n🎫 {inquiry.ticket_number}\nFrom: {html.escape(member.name)}\n\n"
                f'"{html.escape(text[:200])}"'
            ),
        )
    else:
        await _notify_new_inquiry(db, dispatcher, inquiry, member, text)
    await db.commit()
    return message


# ---------------------------------------------------------------------------
# Admin side
# ---------------------------------------------------------------------------


async def admin_inquiries(
    db: AsyncSession, admin: User, status: str | None = None, assigned: str | None = None
) -> list[InquirySummary]:
    """All tickets, optionally by status and by ``assigned`` = ``me`` / ``unassigned``."""
    stmt = _summaries_select("member")
    if status:
        stmt = stmt.where(ClientInquiry.status == status)
    if assigned == "me":
        stmt = stmt.where(ClientInquiry.assigned_admin_id == admin.id)
    elif assigned == "unassigned":
        stmt = stmt.where(ClientInquiry.assigned_admin_id.is_(None))
    result = await db.execute(stmt)
    return [_summary(row) for row in result.all()]


def _take(inquiry: ClientInquiry, admin: User) -> None:
    inquiry.assigned_admin_id = admin.id
    inquiry.assigned_at = utcnow()
    inquiry.status = "in-progress"


async def assign_inquiry(db: AsyncSession, admin: User, inquiry_id: int) -> ClientInquiry:
    """
    Raises:
        InquiryNotFoundError: Unknown ticket.
        ValueError: Already handled by another admin.
    """
    inquiry = await _get(db, inquiry_id)
    if inquiry.assigned_admin_id is not None and inquiry.assigned_admin_id != admin.id:
        raise ValueError("This inquiry is already assigned to another admin")
    _take(inquiry, admin)
    db.add(_system_message(inquiry.id, f"{admin.name} is now handling this inquiry."))
    await db.commit()
    logger.info("inquiry_assigned", inquiry_id=inquiry.id, admin_id=admin.id)
    return inquiry


async def admin_thread(db: AsyncSession, inquiry_id: int) -> tuple[InquirySummary, list[InquiryMessage]]:
    await _get(db, inquiry_id)
    return await _thread_for(db, inquiry_id, unread_from="member")


async def admin_reply(db: AsyncSession, admin: User, inquiry_id: int, text: str | None) -> InquiryMessage:
    """Reply as an admin, taking the ticket if nobody has yet."""
    if not text:
        raise ValueError("Message is required")
    inquiry = await _get(db, inquiry_id)
    if inquiry.assigned_admin_id is None:
        _take(inquiry, admin)
    message = InquiryMessage(
        inquiry_id=inquiry.id, sender_type="admin", sender_id=admin.id, sender_name=admin.name, message=text
    )
    db.add(message)
    inquiry.updated_at = utcnow()
    await db.commit()
    return message


async def close_inquiry(db: AsyncSession, inquiry_id: int, resolution: str | None = None) -> ClientInquiry:
    inquiry = await _get(db, inquiry_id)
    inquiry.status = "closed"
    inquiry.closed_at = utcnow()
    note = "This inquiry has been resolved and closed."
    db.add(_system_message(inquiry.id, f"{note} {resolution}" if resolution else note))
    await db.commit()
    logger.info("inquiry_closed", inquiry_id=inquiry.id)
    return inquiry


async def reopen_inquiry(db: AsyncSession, inquiry_id: int) -> ClientInquiry:
    inquiry = await _get(db, inquiry_id)
    inquiry.status = "open"
    inquiry.closed_at = None
    db.add(_system_message(inquiry.id, "This inquiry has been reopened."))
    await db.commit()
    return inquiry
