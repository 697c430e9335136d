"""Writer payment ledger: summaries, history and recording payments."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.assignments.lifecycle import EARNED_STATUSES, AssignmentStatus
from writerhub.db.models import Assignment, Payment, User
from writerhub.db.types import as_utc
from writerhub.payments.schemas import PaymentCreate

logger = structlog.get_logger()


@dataclass
class EarningsSummary:
    writer: User
    completed_assignments: int
    total_earned: Decimal
    total_paid: Decimal

    @property
    def balance_owed(self) -> Decimal:
        return self.total_earned - self.total_paid


async def payment_summary(db: AsyncSession, user: User) -> list[EarningsSummary]:
    """Per-writer earned vs paid. Writers only see their own row."""
    completed = (
        select(func.count(Assignment.id))
        .where(Assignment.writer_id == User.id, Assignment.status.in_(EARNED_STATUSES))
        .correlate(User)
        .scalar_subquery()
    )
    earned = (
        select(func.coalesce(func.sum(Assignment.amount), 0))
        .where(Assignment.writer_id == User.id, Assignment.status.in_(EARNED_STATUSES))
        .correlate(User)
        .scalar_subquery()
    )
    paid = (
        select(func.coalesce(func.sum(Payment.amount), 0))
        .where(Payment.writer_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    stmt = select(User, completed, earned, paid)
    if user.is_admin:
        has_assignments = select(Assignment.id).where(Assignment.writer_id == User.id).correlate(User).exists()
        has_payments = select(Payment.id).where(Payment.writer_id == User.id).correlate(User).exists()
        stmt = stmt.where(User.role == "writer", or_(has_assignments, has_payments)).order_by(User.name)
    else:
        stmt = stmt.where(User.id == user.id)

    result = await db.execute(stmt)
    return [
        EarningsSummary(writer, int(count or 0), Decimal(str(e or 0)), Decimal(str(p or 0)))
        for writer, count, e, p in result.all()
    ]


async def payment_history(db: AsyncSession, user: User) -> list[tuple[Payment, User]]:
    stmt = select(Payment, User).join(User, User.id == Payment.writer_id)
    if not user.is_admin:
        stmt = stmt.where(Payment.writer_id == user.id)
    result = await db.execute(stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc()))
    return [(row[0], row[1]) for row in result.all()]


async def record_payment(db: AsyncSession, body: PaymentCreate) -> tuple[Payment, User]:
    """
    Record a payment and settle the writer's completed, unpaid assignments.

    Raises:
        ValueError: If required fields are missing or the writer does not exist.
    """
    if not body.writer_id or not body.amount or body.payment_date is None:
        raise ValueError("Writer, amount, and payment date are required")

    result = await db.execute(select(User).where(User.id == body.writer_id, User.role == "writer"))
    writer = result.scalar_one_or_none()
    if writer is None:
        raise ValueError("Writer not found")

    payment = Payment(
        writer_id=writer.id,
        amount=body.amount,
        payment_date=as_utc(body.payment_date),
        method=body.method or "bank-transfer",
        reference=body.reference,
        notes=body.notes,
    )
    db.add(payment)
    settled = await db.execute(
        update(Assignment)
        .where(
            Assignment.writer_id == writer.id,
            Assignment.status == AssignmentStatus.COMPLETED.value,
            Assignment.payment_status == "unpaid",
        )
        .values(payment_status="paid", status=AssignmentStatus.PAID.value)
    )
    await db.flush()
    logger.info(
        "payment_recorded",
        payment_id=payment.id,
        writer_id=writer.id,
        amount=str(body.amount),
        assignments_settled=settled.rowcount,
    )
    return payment, writer


async def payment_totals(db: AsyncSession) -> tuple[Decimal, Decimal]:
    """Total paid out and the outstanding balance (never negative)."""
    paid = Decimal(str(await db.scalar(select(func.coalesce(func.sum(Payment.amount), 0))) or 0))
    earned = Decimal(
        str(
            await db.scalar(
                select(func.coalesce(func.sum(Assignment.amount), 0)).where(Assignment.status.in_(EARNED_STATUSES))
            )
            or 0
        )
    )
    return paid, max(Decimal("0"), earned - paid)
