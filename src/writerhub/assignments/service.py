"""Assignment service: job board, picking, extensions, overdue sweep and updates.

Each mutating operation commits its write first and only then hands the
notification to the dispatcher, so a delivery problem never undoes the
state change.
"""

from __future__ import annotations

import html
from datetime import datetime, timedelta
from decimal import Decimal

import structlog
from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.assignments.lifecycle import (
    AssignmentNotFoundError,
    AssignmentStatus,
    Claimed,
    PickConflictError,
    claim,
    compute_amount,
    is_ineligible,
    is_on_job_board,
    is_overdue,
    matches_domains,
    reopen,
    respects_buffer,
    validate_transition,
)
from writerhub.assignments.schemas import AdminUpdate, AssignmentCreate, WriterUpdate
from writerhub.config import get_settings
from writerhub.db.models import Assignment, AssignmentFile, ExtensionRequest, User
from writerhub.db.types import utcnow
from writerhub.email.service import render_email
from writerhub.notifications.dispatcher import EmailContent, NotificationDispatcher

logger = structlog.get_logger()


class ExtensionNotFoundError(LookupError):
    """No pending extension request with the requested id."""


def _buffer() -> timedelta:
    return timedelta(minutes=get_settings().deadline_buffer_minutes)


def _buffer_minutes() -> int:
    return get_settings().deadline_buffer_minutes


def _money(value: Decimal | None) -> str:
    return f"{Decimal(value or 0):.2f}"


async def get_assignment_or_404(db: AsyncSession, assignment_id: int) -> Assignment:
    assignment = await db.get(Assignment, assignment_id)
    if assignment is None:
        raise AssignmentNotFoundError("Assignment not found")
    return assignment


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_assignments(db: AsyncSession, user: User) -> list[tuple[Assignment, User | None]]:
    """Admins see everything, amounts awaiting approval first. Writers see their own."""
    stmt = select(Assignment, User).outerjoin(User, User.id == Assignment.writer_id)
    if user.is_admin:
        awaiting_approval = case(
            (and_(Assignment.submitted_amount.is_not(None), Assignment.amount_approved.is_(False)), 0),
            else_=1,
        )
        stmt = stmt.order_by(awaiting_approval, Assignment.deadline.asc(), Assignment.created_at.desc())
    else:
        stmt = stmt.where(Assignment.writer_id == user.id).order_by(
            Assignment.deadline.asc(), Assignment.created_at.desc()
        )
    result = await db.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


async def list_job_board(db: AsyncSession, writer: User) -> list[tuple[Assignment, int]]:
    """Unassigned pending jobs in the writer's domains that they are not barred from.

    Each row is paired with its number of instruction files.
    """
    instruction_count = (
        select(func.count(AssignmentFile.id))
        .where(AssignmentFile.assignment_id == Assignment.id, AssignmentFile.upload_type == "instructions")
        .correlate(Assignment)
        .scalar_subquery()
    )
    result = await db.execute(
        select(Assignment, instruction_count)
        .where(Assignment.writer_id.is_(None), Assignment.status == AssignmentStatus.PENDING.value)
        .order_by(Assignment.deadline.asc(), Assignment.created_at.desc())
    )
    domains = writer.domain_list
    return [
        (assignment, int(count or 0))
        for assignment, count in result.all()
        if matches_domains(assignment, domains) and not is_ineligible(assignment, writer.id)
    ]


async def get_assignment_for_user(db: AsyncSession, user: User, assignment_id: int) -> tuple[Assignment, User | None]:
    """
    Fetch one assignment with its writer.

    Writers may view their own assignments and anything still on the job board.

    Raises:
        AssignmentNotFoundError: If it does not exist.
        PermissionError: If a writer asks for someone else's job.
    """
    assignment = await get_assignment_or_404(db, assignment_id)
    if not user.is_admin and assignment.writer_id not in (None, user.id):
        raise PermissionError("Access denied")
    writer = await db.get(User, assignment.writer_id) if assignment.writer_id else None
    return assignment, writer


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_assignment(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    body: AssignmentCreate,
) -> Assignment:
    """Post a new job to the board and alert writers in its domain."""
    title = (body.title or "").strip()
    if not title or body.deadline is None:
        raise ValueError("Title and deadline are required")

    word_min = body.word_count_min or body.word_count or 0
    word_max = body.word_count_max or body.word_count or word_min
    domain = (body.domain or "").strip()

    assignment = Assignment(
        title=title,
        description=body.description,
        domain=domain,
        word_count=word_max,
        word_count_min=word_min,
        word_count_max=word_max,
        rate=Decimal("0"),
        amount=body.amount or Decimal("0"),
        deadline=body.deadline,
        links=body.links,
        status=AssignmentStatus.PENDING.value,
        ineligible_writers=[],
    )
    db.add(assignment)
    await db.commit()
    logger.info("assignment_created", assignment_id=assignment.id, domain=domain)

    notice = f"New {domain} job posted: {title}" if domain else f"New job posted: {title}"
    telegram_html = (
        f"🆕 <b>New Job Available!</b>\n\n📋 {html.escape(title)}\n🏷️ Domain: {html.escape(domain or 'General')}\n\n"
        f"Open {get_settings().app_name} to pick this job."
    )
    app_url = get_settings().base_url
    deadline_text = assignment.deadline.strftime("%Y-%m-%d %H:%M UTC")

    def email_for(writer: User) -> EmailContent:
        return render_email(
            "new_assignment",
            writer_name=writer.name,
            title=title,
            word_count=word_max,
            deadline=deadline_text,
            app_url=app_url,
        )

    await dispatcher.notify_writers(
        db,
        domain,
        "New Job Available",
        notice,
        "assignment",
        "/job-board",
        telegram_html=telegram_html,
        email_for=email_for,
    )
    await db.commit()
    return assignment


# ---------------------------------------------------------------------------
# Pick
# ---------------------------------------------------------------------------


async def pick_assignment(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    writer: User,
    assignment_id: int,
    writer_deadline: datetime | None,
) -> Assignment:
    """
    Claim a job-board assignment for ``writer``.

    Raises:
        ValueError: Missing or invalid delivery deadline, or job already taken.
        AssignmentNotFoundError: If the assignment does not exist.
        PermissionError: If the writer was removed from this job before.
        PickConflictError: If another writer won the claim.
    """
    if writer_deadline is None:
        raise ValueError("You must set a delivery deadline")

    assignment = await get_assignment_or_404(db, assignment_id)
    if not is_on_job_board(assignment):
        raise ValueError("This job has already been picked by another writer")
    if is_ineligible(assignment, writer.id):
        raise PermissionError("You are ineligible to pick this job")
    if not respects_buffer(writer_deadline, assignment.deadline, _buffer()):
        raise ValueError(
            f"Your delivery deadline must be at least {_buffer_minutes()} minutes before the client deadline"
        )
    if writer_deadline <= utcnow():
        raise ValueError("Delivery deadline must be in the future")

    rate = writer.rate_per_word or assignment.rate
    amount = compute_amount(assignment.word_count, rate)

    outcome = await claim(db, assignment.id, writer.id, writer_deadline, Decimal(rate or 0), amount)
    if not isinstance(outcome, Claimed):
        await db.rollback()
        logger.info("assignment_pick_conflict", assignment_id=assignment_id, writer_id=writer.id)
        raise PickConflictError(outcome.reason)

    await db.commit()
    picked = outcome.assignment
    logger.info("assignment_picked", assignment_id=picked.id, writer_id=writer.id, amount=str(amount))

    await dispatcher.notify_admins(
        db,
        "Job Picked",
        f"A writer picked: {picked.title}",
        "info",
        "/assignments",
        telegram_html=f"✅ <b>Job Picked</b>\n\n📋 {html.escape(picked.title)}\n👤 {html.escape(writer.name)}",
    )
    await db.commit()
    return picked


# ---------------------------------------------------------------------------
# Extensions and deadlines
# ---------------------------------------------------------------------------


async def request_extension(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    writer: User,
    assignment_id: int,
    requested_deadline: datetime | None,
    reason: str | None,
) -> ExtensionRequest:
    """File an extension request on the writer's own assignment."""
    reason = (reason or "").strip()
    if requested_deadline is None or not reason:
        raise ValueError("Please provide new deadline and reason")

    assignment = await get_assignment_or_404(db, assignment_id)
    if assignment.writer_id != writer.id:
        raise PermissionError("This is not your assignment")
    if not respects_buffer(requested_deadline, assignment.deadline, _buffer()):
        raise ValueError(
            f"Extended deadline must still be at least {_buffer_minutes()} minutes before the client deadline"
        )

    extension = ExtensionRequest(
        assignment_id=assignment.id,
        writer_id=writer.id,
        requested_deadline=requested_deadline,
        reason=reason,
        status="pending",
    )
    db.add(extension)
    assignment.extension_requested = True
    assignment.extension_reason = reason
    await db.commit()
    logger.info("extension_requested", assignment_id=assignment.id, extension_id=extension.id)

    await dispatcher.notify_admins(
        db,
        "Extension Request",
        f"Extension requested for: {assignment.title}",
        "warning",
        "/assignments",
    )
    await db.commit()
    return extension


async def list_pending_extensions(db: AsyncSession) -> list[tuple[ExtensionRequest, str | None, str | None]]:
    """Pending requests, oldest first, with assignment title and writer name."""
    result = await db.execute(
        select(ExtensionRequest, Assignment.title, User.name)
        .outerjoin(Assignment, Assignment.id == ExtensionRequest.assignment_id)
        .outerjoin(User, User.id == ExtensionRequest.writer_id)
        .where(ExtensionRequest.status == "pending")
        .order_by(ExtensionRequest.created_at.asc(), ExtensionRequest.id.asc())
    )
    return [(row[0], row[1], row[2]) for row in result.all()]


async def respond_to_extension(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    extension_id: int,
    status: str | None,
    admin_response: str | None,
) -> ExtensionRequest:
    """Approve or reject a pending extension. Approval moves the writer deadline."""
    if status not in ("approved", "rejected"):
        raise ValueError("Status must be approved or rejected")

    extension = await db.get(ExtensionRequest, extension_id)
    if extension is None or extension.status != "pending":
        raise ExtensionNotFoundError("Extension request not found")

    extension.status = status
    extension.admin_response = admin_response
    extension.responded_at = utcnow()

    assignment = await db.get(Assignment, extension.assignment_id)
    if assignment is not None:
        if status == "approved":
            assignment.writer_deadline = extension.requested_deadline
        assignment.extension_requested = False
        assignment.extension_reason = None
    await db.commit()
    logger.info("extension_resolved", extension_id=extension.id, status=status)

    if status == "approved":
        await dispatcher.notify_user(
            db, extension.writer_id, "Extension Approved", "Your extension request was approved", "success"
        )
    else:
        await dispatcher.notify_user(
            db,
            extension.writer_id,
            "Extension Rejected",
            f"Extension rejected: {admin_response or 'No reason given'}",
            "error",
        )
    await db.commit()
    return extension


async def override_deadline(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    assignment_id: int,
    new_deadline: datetime | None,
) -> Assignment:
    """Set the writer deadline directly, without buffer checks."""
    if new_deadline is None:
        raise ValueError("Please provide new deadline")

    assignment = await get_assignment_or_404(db, assignment_id)
    assignment.writer_deadline = new_deadline
    await db.commit()

    if assignment.writer_id is not None:
        await dispatcher.notify_user(
            db,
            assignment.writer_id,
            "Deadline Updated",
            f"Admin has updated your deadline for: {assignment.title}",
            "warning",
        )
        await db.commit()
    return assignment


async def check_overdue(db: AsyncSession, dispatcher: NotificationDispatcher) -> list[int]:
    """
    Reopen jobs whose writer missed the delivery deadline.

    Only jobs whose client deadline is still ahead are reopened. The displaced
    writer is added to ``ineligible_writers`` and cannot pick the job again.
    Returns the reopened assignment ids.
    """
    now = utcnow()
    result = await db.execute(
        select(Assignment).where(
            Assignment.writer_id.is_not(None),
            Assignment.writer_deadline.is_not(None),
            Assignment.writer_deadline < now,
            Assignment.status.in_(("pending", "in_progress")),
            Assignment.deadline > now,
        )
    )
    displaced: list[tuple[Assignment, int]] = []
    for assignment in result.scalars().all():
        if not is_overdue(assignment, now):
            continue
        writer_id = reopen(assignment)
        if writer_id is not None:
            displaced.append((assignment, writer_id))
    await db.commit()

    for assignment, writer_id in displaced:
        logger.info("assignment_auto_reopened", assignment_id=assignment.id, writer_id=writer_id)
        await dispatcher.notify_user(
            db,
            writer_id,
            "Job Auto-Reopened",
            f'You missed the deadline for "{assignment.title}". '
            "The job has been reopened and you cannot pick it again.",
            "error",
        )
    await db.commit()
    return [assignment.id for assignment, _ in displaced]


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------


async def writer_update(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    writer: User,
    assignment_id: int,
    body: WriterUpdate,
) -> Assignment:
    """Apply a writer's status change and/or price proposal to their own job."""
    assignment = await get_assignment_or_404(db, assignment_id)
    if assignment.writer_id != writer.id:
        raise PermissionError("Access denied")

    submitted_amount = body.submitted_amount
    completed = False
    if body.status is not None and body.status != assignment.status:
        validate_transition(assignment.status, body.status, writer=True)
        assignment.status = body.status
        if body.status == AssignmentStatus.COMPLETED.value:
            now = utcnow()
            assignment.submitted_at = now
            assignment.completed_at = now
            completed = True
    if submitted_amount is not None:
        assignment.submitted_amount = submitted_amount
        assignment.amount_approved = False
    await db.commit()
    logger.info(
        "assignment_writer_update",
        assignment_id=assignment.id,
        writer_id=writer.id,
        status=assignment.status,
        submitted_amount=str(submitted_amount) if submitted_amount is not None else None,
    )

    if submitted_amount is not None:
        await dispatcher.notify_admins(
            db,
            "Price Approval Needed",
            f"Writer submitted ${_money(submitted_amount)} for: {assignment.title}",
            "approval",
            "/assignments",
        )
    if completed:
        await dispatcher.notify_admins(
            db,
            "Work Submitted",
            f'Writer marked "{assignment.title}" as completed',
            "success",
            "/assignments",
        )
    await db.commit()
    return assignment


async def admin_update(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    assignment_id: int,
    body: AdminUpdate,
) -> Assignment:
    """Apply a partial admin update. ``None`` fields are left unchanged."""
    assignment = await get_assignment_or_404(db, assignment_id)

    if body.status is not None:
        validate_transition(assignment.status, body.status)

    for field_name in (
        "title",
        "description",
        "domain",
        "word_count_min",
        "word_count_max",
        "rate",
        "amount",
        "deadline",
        "status",
        "payment_status",
        "links",
    ):
        value = getattr(body, field_name)
        if value is not None:
            setattr(assignment, field_name, value)
    if body.word_count is not None:
        assignment.word_count = body.word_count
    elif body.word_count_max is not None:
        assignment.word_count = body.word_count_max

    if body.status == AssignmentStatus.COMPLETED.value and assignment.completed_at is None:
        assignment.completed_at = utcnow()
    if body.payment_status == "paid" and assignment.status == AssignmentStatus.COMPLETED.value:
        assignment.status = AssignmentStatus.PAID.value

    approved_amount: Decimal | None = None
    if body.amount_approved and assignment.submitted_amount is not None:
        approved_amount = assignment.submitted_amount
        assignment.amount = approved_amount
        assignment.submitted_amount = None
        assignment.amount_approved = True
    elif body.amount_approved is not None:
        assignment.amount_approved = body.amount_approved

    await db.commit()
    logger.info("assignment_admin_update", assignment_id=assignment.id, status=assignment.status)

    if approved_amount is not None and assignment.writer_id is not None:
        await dispatcher.notify_user(
            db,
            assignment.writer_id,
            "Amount Approved",
            f'Your submitted amount of ${_money(approved_amount)} for "{assignment.title}" has been approved.',
            "success",
            "/assignments",
        )
        await db.commit()
    return assignment


async def delete_assignment(db: AsyncSession, assignment_id: int) -> None:
    assignment = await get_assignment_or_404(db, assignment_id)
    await db.delete(assignment)
    await db.commit()
    logger.info("assignment_deleted", assignment_id=assignment_id)
