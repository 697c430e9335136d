"""Writer account management and earnings summaries."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.assignments.lifecycle import EARNED_STATUSES
from writerhub.auth.password import generate_temp_password, hash_password
from writerhub.auth.service import get_user_by_email
from writerhub.db.models import Assignment, Payment, User
from writerhub.writers.schemas import WriterCreate, WriterUpdate

logger = structlog.get_logger()


class WriterNotFoundError(LookupError):
    """No writer with the requested id."""


@dataclass
class WriterStats:
    writer: User
    assignment_count: int
    total_earned: Decimal
    total_paid: Decimal

    @property
    def total_owed(self) -> Decimal:
        return self.total_earned - self.total_paid


def _stats_select() -> Select:
    assignment_count = (
        select(func.count(Assignment.id)).where(Assignment.writer_id == User.id).correlate(User).scalar_subquery()
    )
    total_earned = (
        select(func.coalesce(func.sum(Assignment.amount), 0))
        .where(Assignment.writer_id == User.id, Assignment.status.in_(EARNED_STATUSES))
        .correlate(User)
        .scalar_subquery()
    )
    total_paid = (
        select(func.coalesce(func.sum(Payment.amount), 0))
        .where(Payment.writer_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    return select(User, assignment_count, total_earned, total_paid).where(User.role == "writer")


def _to_stats(row: tuple) -> WriterStats:
    writer, count, earned, paid = row
    return WriterStats(writer, int(count or 0), Decimal(str(earned or 0)), Decimal(str(paid or 0)))


async def list_writers_with_stats(db: AsyncSession) -> list[WriterStats]:
    result = await db.execute(_stats_select().order_by(User.name.asc()))
    return [_to_stats(tuple(row)) for row in result.all()]


async def get_writer_with_stats(db: AsyncSession, writer_id: int) -> WriterStats:
    result = await db.execute(_stats_select().where(User.id == writer_id))
    row = result.first()
    if row is None:
        raise WriterNotFoundError("Writer not found")
    return _to_stats(tuple(row))


async def get_writer(db: AsyncSession, writer_id: int) -> User:
    result = await db.execute(select(User).where(User.id == writer_id, User.role == "writer"))
    writer = result.scalar_one_or_none()
    if writer is None:
        raise WriterNotFoundError("Writer not found")
    return writer


async def create_writer(db: AsyncSession, body: WriterCreate) -> tuple[User, str]:
    """
    Create a writer with a temporary password they must change on first login.

    Returns the writer and the plaintext temporary password.

    Raises:
        ValueError: If email or name is missing, or the email is taken.
    """
    if not body.email or not body.name:
        raise ValueError("Email and name are required")
    if await get_user_by_email(db, body.email) is not None:
        raise ValueError("Email already exists")

    temp_password = generate_temp_password()
    writer = User(
        email=body.email,
        name=body.name.strip(),
        password_hash=hash_password(temp_password),
        role="writer",
        status=body.status or "active",
        phone=body.phone,
        notes=body.notes,
        domains=body.domains or "",
        rate_per_word=body.rate_per_word or Decimal("0.01"),
        must_change_password=True,
    )
    db.add(writer)
    await db.flush()
    logger.info("writer_created", writer_id=writer.id)
    return writer, temp_password


async def update_writer(db: AsyncSession, writer_id: int, body: WriterUpdate) -> User:
    writer = await get_writer(db, writer_id)
    for field_name, value in body.model_dump(exclude_none=True).items():
        setattr(writer, field_name, value)
    await db.flush()
    return writer


async def delete_writer(db: AsyncSession, writer_id: int) -> None:
    """Delete a writer after unassigning their assignments."""
    writer = await get_writer(db, writer_id)
    await db.execute(update(Assignment).where(Assignment.writer_id == writer_id).values(writer_id=None))
    await db.delete(writer)
    await db.flush()
    logger.info("writer_deleted", writer_id=writer_id)


async def reset_writer_password(db: AsyncSession, writer_id: int) -> tuple[User, str]:
    """Replace the writer's password with a new temporary one."""
    writer = await get_writer(db, writer_id)
    temp_password = generate_temp_password()
    writer.password_hash = hash_password(temp_password)
    writer.must_change_password = True
    await db.flush()
    logger.info("writer_password_reset", writer_id=writer_id)
    return writer, temp_password
