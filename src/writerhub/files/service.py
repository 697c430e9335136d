"""Assignment attachments and link submissions."""

from __future__ import annotations

import html
from pathlib import Path
from typing import Literal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.assignments.service import get_assignment_or_404
from writerhub.db.models import Assignment, AssignmentFile, User
from writerhub.db.types import utcnow
from writerhub.files.storage import StoredFile, remove_stored
from writerhub.notifications.dispatcher import NotificationDispatcher

logger = structlog.get_logger()

UploadType = Literal["instructions", "submission"]
UPLOAD_TYPES = ("instructions", "submission")


class FileNotFoundInStoreError(LookupError):
    pass


async def check_upload_allowed(db: AsyncSession, user: User, assignment_id: int, upload_type: str) -> Assignment:
    """
    Validate an upload before anything is written to disk.

    Raises:
        ValueError: Unknown upload type.
        PermissionError: Writers uploading instructions, or submitting for
            someone else's job.
        AssignmentNotFoundError: Unknown assignment.
    """
    if upload_type not in UPLOAD_TYPES:
        raise ValueError("Invalid upload type")
    if upload_type == "instructions" and not user.is_admin:
        raise PermissionError("Only admin can upload instructions")
    assignment = await get_assignment_or_404(db, assignment_id)
    if upload_type == "submission" and not user.is_admin and assignment.writer_id != user.id:
        raise PermissionError("You are not assigned to this job")
    return assignment


async def record_upload(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    user: User,
    assignment: Assignment,
    upload_type: str,
    stored: StoredFile,
) -> AssignmentFile:
    """Persist the file row, then tell the other side of the job."""
    record = AssignmentFile(
        assignment_id=assignment.id,
        uploaded_by=user.id,
        filename=stored.filename,
        original_name=stored.original_name,
        file_type=stored.content_type,
        file_size=stored.size,
        file_path=stored.path,
        upload_type=upload_type,
    )
    db.add(record)
    await db.commit()
    logger.info("file_uploaded", assignment_id=assignment.id, file_id=record.id, upload_type=upload_type)

    if upload_type == "submission":
        await dispatcher.notify_admins(
            db,
            "Work Submitted",
            f'Writer has submitted work for "{assignment.title}"',
            "info",
            f"/assignments/{assignment.id}",
            telegram_html=(
                f"📤 <b>Work Submitted</b>\n\n📋 Job: {html.escape(assignment.title)}\n"
                f"👤 Writer: {html.escape(user.name)}\n📎 File: {html.escape(stored.original_name)}"
            ),
        )
    elif assignment.writer_id is not None:
        await dispatcher.notify_user(
            db,
            assignment.writer_id,
            "New Instructions Added",
            f'Admin has added instructions for "{assignment.title}"',
            "info",
            f"/assignments/{assignment.id}",
        )
    await db.commit()
    return record


async def list_files(db: AsyncSession, user: User, assignment_id: int) -> list[tuple[AssignmentFile, str | None]]:
    """Files with uploader names, newest first. Writers see only their own jobs."""
    if not user.is_admin:
        assignment = await db.get(Assignment, assignment_id)
        if assignment is None or assignment.writer_id != user.id:
            raise PermissionError("Access denied")
    result = await db.execute(
        select(AssignmentFile, User.name)
        .outerjoin(User, AssignmentFile.uploaded_by == User.id)
        .where(AssignmentFile.assignment_id == assignment_id)
        .order_by(AssignmentFile.created_at.desc(), AssignmentFile.id.desc())
    )
    return [(f, name) for f, name in result.all()]


async def get_downloadable(db: AsyncSession, user: User, file_id: int) -> AssignmentFile:
    """
    Raises:
        FileNotFoundInStoreError: Unknown id or the bytes are gone from disk.
        PermissionError: Writer asking for another writer's file.
    """
    result = await db.execute(
        select(AssignmentFile, Assignment.writer_id)
        .join(Assignment, AssignmentFile.assignment_id == Assignment.id)
        .where(AssignmentFile.id == file_id)
    )
    row = result.first()
    if row is None:
        raise FileNotFoundInStoreError("File not found")
    record, writer_id = row
    if not user.is_admin and writer_id != user.id:
        raise PermissionError("Access denied")
    if not Path(record.file_path).is_file():
        raise FileNotFoundInStoreError("File not found on server")
    return record


async def delete_file(db: AsyncSession, user: User, file_id: int) -> None:
    """Only the uploader or an admin may delete."""
    record = await db.get(AssignmentFile, file_id)
    if record is None:
        raise FileNotFoundInStoreError("File not found")
    if not user.is_admin and record.uploaded_by != user.id:
        raise PermissionError("Access denied")
    remove_stored(record.file_path)
    await db.delete(record)
    await db.commit()
    logger.info("file_deleted", file_id=file_id, by=user.id)


async def submit_links(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    user: User,
    assignment_id: int,
    links: str | None,
    notes: str | None,
) -> Assignment:
    """Record work delivered as links (shared docs and the like)."""
    if not links or not links.strip():
        raise ValueError("Links are required")
    assignment = await get_assignment_or_404(db, assignment_id)
    if not user.is_admin and assignment.writer_id != user.id:
        raise PermissionError("You are not assigned to this job")

    assignment.submission_links = links
    assignment.submission_notes = notes
    assignment.submitted_at = utcnow()
    await db.commit()

    notes_html = f"📝 Notes: {html.escape(notes)}\n\n" if notes else ""
    await dispatcher.notify_admins(
        db,
        "Links Submitted",
        f'Writer submitted work links for "{assignment.title}"',
        "info",
        "/assignments",
        telegram_html=(
            f"🔗 <b>Work Links Submitted</b>\n\n📋 Job: {html.escape(assignment.title)}\n"
            f"👤 Writer: {html.escape(user.name)}\n\n📎 Links:\n{html.escape(links)}\n\n{notes_html}"
        ),
    )
    await db.commit()
    return assignment
