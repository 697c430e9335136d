"""Assignment chat threads and direct messages between staff."""

from __future__ import annotations

import structlog
from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.assignments.service import get_assignment_or_404
from writerhub.db.models import Assignment, Message, User
from writerhub.db.types import as_utc, utcnow
from writerhub.files.storage import StoredFile
from writerhub.messages.schemas import AdminContact, AssignmentThread, MessageResponse
from writerhub.notifications.dispatcher import NotificationDispatcher

logger = structlog.get_logger()

CLOSED_STATUSES = ("completed", "cancelled")


class UserNotFoundError(LookupError):
    pass


def _clean(text: str | None, attachment: StoredFile | None) -> str:
    body = (text or "").strip()
    if not body and attachment is None:
        raise ValueError("Message cannot be empty")
    return body


def _to_response(message: Message, sender_name: str | None, sender_role: str | None) -> MessageResponse:
    out = MessageResponse.model_validate(message)
    out.sender_name = sender_name
    out.sender_role = sender_role
    # file_url holds the disk path; clients download through the API
    if message.file_url:
        out.file_url = f"/api/messages/file/{message.id}"
    return out


async def _thread(db: AsyncSession, *criteria) -> list[MessageResponse]:
    result = await db.execute(
        select(Message, User.name, User.role)
        .join(User, Message.sender_id == User.id)
        .where(*criteria)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return [_to_response(message, name, role) for message, name, role in result.all()]


async def _mark_read(db: AsyncSession, *criteria) -> None:
    await db.execute(update(Message).where(Message.read_at.is_(None), *criteria).values(read_at=utcnow()))
    await db.commit()


def _attachment_fields(attachment: StoredFile | None) -> dict:
    if attachment is None:
        return {}
    return {"file_url": attachment.path, "file_name": attachment.original_name, "file_type": attachment.content_type}


# ---------------------------------------------------------------------------
# Assignment threads
# ---------------------------------------------------------------------------


async def assignment_for_chat(db: AsyncSession, user: User, assignment_id: int) -> Assignment:
    """
    Raises:
        AssignmentNotFoundError: Unknown assignment.
        PermissionError: Writer who is not on the job.
    """
    assignment = await get_assignment_or_404(db, assignment_id)
    if not user.is_admin and assignment.writer_id != user.id:
        raise PermissionError("You are not assigned to this job")
    return assignment


async def read_assignment_thread(db: AsyncSession, user: User, assignment_id: int) -> list[MessageResponse]:
    """The thread in order, marking everything addressed to the reader as read."""
    if not user.is_admin:
        assignment = await db.get(Assignment, assignment_id)
        if assignment is None or assignment.writer_id != user.id:
            raise PermissionError("Access denied")
    messages = await _thread(db, Message.assignment_id == assignment_id)
    await _mark_read(db, Message.assignment_id == assignment_id, Message.receiver_id == user.id)
    return messages


async def post_to_assignment(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    user: User,
    assignment_id: int,
    text: str | None,
    attachment: StoredFile | None = None,
) -> MessageResponse:
    """Admins write to the assigned writer; writers write to the first admin."""
    body = _clean(text, attachment)
    assignment = await assignment_for_chat(db, user, assignment_id)
    if user.is_admin:
        receiver_id = assignment.writer_id
    else:
        result = await db.execute(select(User.id).where(User.role == "admin").order_by(User.id).limit(1))
        receiver_id = result.scalar_one_or_none()

    message = Message(
        assignment_id=assignment.id,
        sender_id=user.id,
        receiver_id=receiver_id,
        message=body,
        **_attachment_fields(attachment),
    )
    db.add(message)
    await db.commit()

    if receiver_id is not None:
        title, text_ = (
            ("New File", f'File shared in "{assignment.title}"')
            if attachment
            else ("New Message", f'New message in "{assignment.title}"')
        )
        await dispatcher.notify_user(db, receiver_id, title, text_, "info", f"/chat/{assignment.id}")
        await db.commit()
    return _to_response(message, user.name, user.role)


# ---------------------------------------------------------------------------
# Direct messages
# ---------------------------------------------------------------------------


async def _direct_peer(db: AsyncSession, user: User, other_id: int) -> User:
    other = await db.get(User, other_id)
    if other is None:
        raise UserNotFoundError("User not found")
    if not user.is_admin and not other.is_admin:
        raise PermissionError("Writers can only message admins")
    return other


def _between(a: int, b: int):
    return and_(
        Message.assignment_id.is_(None),
        or_(
            and_(Message.sender_id == a, Message.receiver_id == b),
            and_(Message.sender_id == b, Message.receiver_id == a),
        ),
    )


async def read_direct_thread(db: AsyncSession, user: User, other_id: int) -> list[MessageResponse]:
    messages = await _thread(db, _between(user.id, other_id))
    await _mark_read(
        db, Message.assignment_id.is_(None), Message.sender_id == other_id, Message.receiver_id == user.id
    )
    return messages


async def post_direct(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    user: User,
    other_id: int,
    text: str | None,
    attachment: StoredFile | None = None,
) -> MessageResponse:
    """
    Raises:
        ValueError: Empty message.
        UserNotFoundError: Unknown receiver.
        PermissionError: Writer messaging another writer.
    """
    body = _clean(text, attachment)
    other = await _direct_peer(db, user, other_id)
    message = Message(sender_id=user.id, receiver_id=other.id, message=body, **_attachment_fields(attachment))
    db.add(message)
    await db.commit()

    title, text_ = ("New File", f"File shared by {user.name}") if attachment else (
        "New Message",
        f"New message from {user.name}",
    )
    await dispatcher.notify_user(db, other.id, title, text_, "info", f"/chat/direct/{user.id}")
    await db.commit()
    return _to_response(message, user.name, user.role)


# ---------------------------------------------------------------------------
# Threads and counters
# ---------------------------------------------------------------------------


def _newest_first(threads: list[AssignmentThread]) -> list[AssignmentThread]:
    def key(t: AssignmentThread) -> tuple[bool, float]:
        return (t.last_message_at is None, -as_utc(t.last_message_at).timestamp() if t.last_message_at else 0.0)

    return sorted(threads, key=key)


async def _assignment_threads(db: AsyncSession, user: User, *criteria) -> list[AssignmentThread]:
    unread = func.coalesce(
        func.sum(case((and_(Message.receiver_id == user.id, Message.read_at.is_(None)), 1), else_=0)), 0
    )
    result = await db.execute(
        select(
            Assignment.id,
            Assignment.title,
            Assignment.writer_id,
            User.name,
            User.is_online,
            User.last_seen,
            unread,
            func.max(Message.created_at),
        )
        .outerjoin(User, Assignment.writer_id == User.id)
        .outerjoin(Message, Message.assignment_id == Assignment.id)
        .where(*criteria)
        .group_by(
            Assignment.id, Assignment.title, Assignment.writer_id, User.name, User.is_online, User.last_seen
        )
        .having(or_(func.count(Message.id) > 0, Assignment.status.notin_(CLOSED_STATUSES)))
    )
    threads = [
        AssignmentThread(
            assignment_id=aid,
            title=title,
            writer_id=writer_id,
            writer_name=name,
            writer_online=online,
            writer_last_seen=last_seen,
            unread_count=int(unread_count or 0),
            last_message_at=last_at,
        )
        for aid, title, writer_id, name, online, last_seen, unread_count, last_at in result.all()
    ]
    return _newest_first(threads)


async def admin_threads(db: AsyncSession, user: User) -> list[AssignmentThread]:
    return await _assignment_threads(db, user, Assignment.writer_id.is_not(None))


async def writer_threads(db: AsyncSession, user: User) -> tuple[list[AdminContact], list[AssignmentThread]]:
    result = await db.execute(
        select(User).where(User.role == "admin", User.status == "active").order_by(User.name)
    )
    admins = [
        AdminContact(user_id=a.id, name=a.name, is_online=bool(a.is_online), last_seen=a.last_seen)
        for a in result.scalars().all()
    ]
    return admins, await _assignment_threads(db, user, Assignment.writer_id == user.id)


async def unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(Message).where(Message.receiver_id == user_id, Message.read_at.is_(None))
    )
    return result.scalar_one()


async def message_attachment(db: AsyncSession, user: User, message_id: int) -> Message:
    """A message with a file, visible to its sender, receiver or any admin."""
    message = await db.get(Message, message_id)
    if message is None or not message.file_url:
        raise LookupError("File not found")
    if not user.is_admin and user.id not in (message.sender_id, message.receiver_id):
        if message.assignment_id is None:
            raise PermissionError("Access denied")
        await assignment_for_chat(db, user, message.assignment_id)
    return message
