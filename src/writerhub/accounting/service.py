"""Per-assignment finance records: revenue, costs and profit."""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import structlog
from sqlalchemy import Select, and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.accounting.schemas import (
    BulkFinanceItem,
    FinanceRow,
    FinanceTotals,
    FinanceUpsert,
    MonthlyFinance,
    UntrackedAssignment,
)
from writerhub.assignments.lifecycle import EARNED_STATUSES, AssignmentNotFoundError
from writerhub.db.models import Assignment, AssignmentFinance, User
from writerhub.db.types import as_utc, utcnow

logger = structlog.get_logger()

UNTRACKED_LIMIT = 50


def _profit(f: AssignmentFinance) -> Decimal:
    return Decimal(f.client_paid or 0) - Decimal(f.writer_cost or 0) - Decimal(f.other_costs or 0)


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def _date_window(stmt: Select, start: date | None, end: date | None) -> Select:
    if start is not None:
        stmt = stmt.where(Assignment.created_at >= _day_start(start))
    if end is not None:
        stmt = stmt.where(Assignment.created_at < _day_start(end + timedelta(days=1)))
    return stmt


def _finance_select() -> Select:
    return (
        select(AssignmentFinance, Assignment, User.name)
        .join(Assignment, AssignmentFinance.assignment_id == Assignment.id)
        .outerjoin(User, and_(Assignment.writer_id == User.id, User.role == "writer"))
    )


def _row(f: AssignmentFinance, a: Assignment, writer_name: str | None) -> FinanceRow:
    return FinanceRow(
        id=f.id,
        assignment_id=a.id,
        title=a.title,
        domain=a.domain,
        writer_name=writer_name,
        assignment_status=a.status,
        assignment_date=a.created_at,
        client_paid=float(f.client_paid or 0),
        writer_cost=float(f.writer_cost or 0),
        other_costs=float(f.other_costs or 0),
        profit=float(_profit(f)),
        payment_status=f.payment_status,
        payment_date=f.payment_date,
        notes=f.notes,
    )


async def list_finances(db: AsyncSession, start: date | None = None, end: date | None = None) -> list[FinanceRow]:
    stmt = _date_window(_finance_select(), start, end).order_by(Assignment.created_at.desc())
    result = await db.execute(stmt)
    return [_row(f, a, name) for f, a, name in result.all()]


async def finance_totals(db: AsyncSession, start: date | None = None, end: date | None = None) -> FinanceTotals:
    result = await db.execute(_date_window(_finance_select(), start, end))
    finances = [f for f, _a, _n in result.all()]
    revenue = sum((Decimal(f.client_paid or 0) for f in finances), Decimal("0"))
    writer_costs = sum((Decimal(f.writer_cost or 0) for f in finances), Decimal("0"))
    other_costs = sum((Decimal(f.other_costs or 0) for f in finances), Decimal("0"))
    return FinanceTotals(
        total_revenue=float(revenue),
        total_writer_costs=float(writer_costs),
        total_other_costs=float(other_costs),
        total_profit=float(revenue - writer_costs - other_costs),
        total_orders=len(finances),
        paid_orders=sum(1 for f in finances if f.payment_status == "paid"),
        pending_orders=sum(1 for f in finances if f.payment_status == "pending"),
    )


async def monthly_breakdown(db: AsyncSession, now: datetime | None = None) -> list[MonthlyFinance]:
    """Revenue, costs and profit per calendar month over the last year."""
    since = (now or utcnow()) - timedelta(days=365)
    result = await db.execute(_finance_select().where(Assignment.created_at >= since).order_by(Assignment.created_at))

    months: OrderedDict[str, list[Decimal]] = OrderedDict()
    for f, a, _name in result.all():
        key = as_utc(a.created_at).strftime("%Y-%m")
        bucket = months.setdefault(key, [Decimal("0"), Decimal("0")])
        bucket[0] += Decimal(f.client_paid or 0)
        bucket[1] += Decimal(f.writer_cost or 0) + Decimal(f.other_costs or 0)
    return [
        MonthlyFinance(month=k, revenue=float(rev), costs=float(cost), profit=float(rev - cost))
        for k, (rev, cost) in months.items()
    ]


def _untracked_select() -> Select:
    return (
        select(Assignment, User.name)
        .outerjoin(AssignmentFinance, AssignmentFinance.assignment_id == Assignment.id)
        .outerjoin(User, and_(Assignment.writer_id == User.id, User.role == "writer"))
        .where(AssignmentFinance.id.is_(None), Assignment.status.in_(EARNED_STATUSES))
    )


async def untracked_count(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(_untracked_select().subquery()))
    return result.scalar_one()


async def list_untracked(db: AsyncSession) -> list[UntrackedAssignment]:
    """Completed or paid assignments with no finance record yet."""
    result = await db.execute(_untracked_select().order_by(Assignment.created_at.desc()).limit(UNTRACKED_LIMIT))
    return [
        UntrackedAssignment(
            id=a.id,
            title=a.title,
            domain=a.domain,
            status=a.status,
            amount=float(a.amount or 0),
            writer_name=name,
            created_at=a.created_at,
        )
        for a, name in result.all()
    ]


async def get_assignment_finance(db: AsyncSession, assignment_id: int) -> FinanceRow:
    """
    Finance row for an assignment, or an all-zero pending row when untracked.

    Raises:
        AssignmentNotFoundError: Unknown assignment.
    """
    result = await db.execute(_finance_select().where(AssignmentFinance.assignment_id == assignment_id))
    row = result.first()
    if row is not None:
        return _row(*row)

    result = await db.execute(
        select(Assignment, User.name)
        .outerjoin(User, and_(Assignment.writer_id == User.id, User.role == "writer"))
        .where(Assignment.id == assignment_id)
    )
    found = result.first()
    if found is None:
        raise AssignmentNotFoundError("Assignment not found")
    a, name = found
    return FinanceRow(
        assignment_id=a.id,
        title=a.title,
        domain=a.domain,
        writer_name=name,
        assignment_status=a.status,
        assignment_date=a.created_at,
        notes="",
    )


async def upsert_finance(db: AsyncSession, assignment_id: int, body: FinanceUpsert) -> AssignmentFinance:
    """
    Create or replace an assignment's finance record.

    ``payment_date`` is stamped only on the first transition to paid.

    Raises:
        AssignmentNotFoundError: Unknown assignment.
    """
    if await db.get(Assignment, assignment_id) is None:
        raise AssignmentNotFoundError("Assignment not found")
    result = await db.execute(select(AssignmentFinance).where(AssignmentFinance.assignment_id == assignment_id))
    finance = result.scalar_one_or_none()
    previous_status = None
    if finance is None:
        finance = AssignmentFinance(assignment_id=assignment_id)
        db.add(finance)
    else:
        previous_status = finance.payment_status

    finance.client_paid = body.client_paid
    finance.writer_cost = body.writer_cost
    finance.other_costs = body.other_costs
    finance.payment_status = body.payment_status
    finance.notes = body.notes or ""
    if body.payment_status == "paid" and previous_status != "paid":
        finance.payment_date = utcnow()
    await db.flush()
    logger.info("finance_saved", assignment_id=assignment_id, payment_status=finance.payment_status)
    return finance


async def bulk_create(db: AsyncSession, items: list[BulkFinanceItem]) -> int:
    """Insert pending records for assignments that have none. Existing rows are left alone."""
    if not items:
        return 0
    ids = [i.assignment_id for i in items]
    existing = set((await db.execute(select(Assignment.id).where(Assignment.id.in_(ids)))).scalars().all())
    tracked = set(
        (
            await db.execute(select(AssignmentFinance.assignment_id).where(AssignmentFinance.assignment_id.in_(ids)))
        ).scalars().all()
    )
    created = 0
    for item in items:
        if item.assignment_id not in existing or item.assignment_id in tracked:
            continue
        db.add(
            AssignmentFinance(
                assignment_id=item.assignment_id,
                client_paid=item.client_paid,
                writer_cost=item.writer_cost,
                other_costs=item.other_costs,
                payment_status="pending",
            )
        )
        tracked.add(item.assignment_id)
        created += 1
    await db.flush()
    logger.info("finance_bulk_created", created=created)
    return created
