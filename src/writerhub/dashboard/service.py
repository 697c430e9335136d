"""Dashboard aggregation.

Stats are cached in Redis with a 10-second TTL. The cache is best effort:
when Redis is unavailable the numbers are computed straight from the DB.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from decimal import Decimal

import redis.asyncio as aioredis
import structlog
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.assignments.lifecycle import EARNED_STATUSES
from writerhub.dashboard.schemas import (
    AdminStatsResponse,
    DashboardReport,
    TopWriter,
    WriterPerformance,
    WriterStatsResponse,
)
from writerhub.db.models import Assignment, Notification, Payment, User
from writerhub.db.types import utcnow

logger = structlog.get_logger()

DASHBOARD_CACHE_KEY = "dashboard:stats:{user_id}"
DASHBOARD_CACHE_TTL = 10  # seconds

ACTIVE_STATUSES: tuple[str, ...] = ("pending", "in_progress", "revision")
RECENT_LIMIT = 5
TOP_WRITERS_LIMIT = 5


def _money(value: object) -> Decimal:
    return Decimal(str(value or 0))


async def _cached(redis: aioredis.Redis | None, key: str) -> dict | None:
    if redis is None:
        return None
    try:
        raw = await redis.get(key)
    except aioredis.RedisError:
        logger.warning("dashboard_cache_read_failed", key=key, exc_info=True)
        return None
    return json.loads(raw) if raw else None


async def _store(redis: aioredis.Redis | None, key: str, data: dict) -> None:
    if redis is None:
        return
    try:
        await redis.setex(key, DASHBOARD_CACHE_TTL, json.dumps(data))
    except aioredis.RedisError:
        logger.warning("dashboard_cache_write_failed", key=key, exc_info=True)


async def _earned(db: AsyncSession, writer_id: int | None = None) -> Decimal:
    stmt = select(func.coalesce(func.sum(Assignment.amount), 0)).where(Assignment.status.in_(EARNED_STATUSES))
    if writer_id is not None:
        stmt = stmt.where(Assignment.writer_id == writer_id)
    return _money(await db.scalar(stmt))


async def _paid(db: AsyncSession, writer_id: int | None = None) -> Decimal:
    stmt = select(func.coalesce(func.sum(Payment.amount), 0))
    if writer_id is not None:
        stmt = stmt.where(Payment.writer_id == writer_id)
    return _money(await db.scalar(stmt))


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


async def admin_stats(db: AsyncSession) -> AdminStatsResponse:
    total_writers = await db.scalar(select(func.count(User.id)).where(User.role == "writer"))
    active = await db.scalar(select(func.count(Assignment.id)).where(Assignment.status.in_(ACTIVE_STATUSES)))
    completed_month = await db.scalar(
        select(func.count(Assignment.id)).where(
            Assignment.status == "completed",
            Assignment.created_at >= _month_start(utcnow()),
        )
    )
    owed = await _earned(db) - await _paid(db)
    return AdminStatsResponse(
        total_writers=total_writers or 0,
        active_assignments=active or 0,
        pending_payments=float(max(Decimal("0"), owed)),
        completed_this_month=completed_month or 0,
    )


async def writer_stats(db: AsyncSession, writer_id: int) -> WriterStatsResponse:
    active = await db.scalar(
        select(func.count(Assignment.id)).where(
            Assignment.writer_id == writer_id, Assignment.status.in_(ACTIVE_STATUSES)
        )
    )
    completed = await db.scalar(
        select(func.count(Assignment.id)).where(Assignment.writer_id == writer_id, Assignment.status == "completed")
    )
    unread = await db.scalar(
        select(func.count(Notification.id)).where(Notification.user_id == writer_id, Notification.read.is_(False))
    )
    earned = await _earned(db, writer_id)
    balance = earned - await _paid(db, writer_id)
    return WriterStatsResponse(
        active_assignments=active or 0,
        completed_assignments=completed or 0,
        total_earned=float(earned),
        balance_owed=float(max(Decimal("0"), balance)),
        unread_notifications=unread or 0,
    )


async def get_dashboard_stats(
    db: AsyncSession,
    redis: aioredis.Redis | None,
    user: User,
) -> AdminStatsResponse | WriterStatsResponse:
    """Role-specific headline numbers for the dashboard."""
    cache_key = DASHBOARD_CACHE_KEY.format(user_id=user.id)
    model = AdminStatsResponse if user.is_admin else WriterStatsResponse

    cached = await _cached(redis, cache_key)
    if cached:
        return model.model_validate(cached)

    stats = await admin_stats(db) if user.is_admin else await writer_stats(db, user.id)
    await _store(redis, cache_key, stats.model_dump())
    return stats


async def recent_assignments(db: AsyncSession, user: User) -> list[tuple[Assignment, User | None]]:
    stmt = (
        select(Assignment, User)
        .outerjoin(User, Assignment.writer_id == User.id)
        .order_by(Assignment.created_at.desc(), Assignment.id.desc())
        .limit(RECENT_LIMIT)
    )
    if not user.is_admin:
        stmt = stmt.where(Assignment.writer_id == user.id)
    result = await db.execute(stmt)
    return [(a, w) for a, w in result.all()]


async def top_writers(db: AsyncSession) -> list[TopWriter]:
    """Writers ranked by completed assignments; writers with none are left out."""
    completed = func.count(case((Assignment.status == "completed", Assignment.id)))
    earned = func.coalesce(func.sum(case((Assignment.status == "completed", Assignment.amount), else_=0)), 0)
    result = await db.execute(
        select(User.id, User.name, completed, earned)
        .outerjoin(Assignment, Assignment.writer_id == User.id)
        .where(User.role == "writer")
        .group_by(User.id, User.name)
        .having(completed > 0)
        .order_by(completed.desc())
        .limit(TOP_WRITERS_LIMIT)
    )
    return [
        TopWriter(id=wid, name=name, completed_count=count, total_earned=float(_money(total)))
        for wid, name, count, total in result.all()
    ]


async def build_report(
    db: AsyncSession, start: datetime | None = None, end: datetime | None = None
) -> DashboardReport:
    """Totals and per-writer performance, optionally limited to a creation window."""
    window = []
    if start is not None and end is not None:
        window = [Assignment.created_at >= start, Assignment.created_at <= end]

    completed_amount = case((Assignment.status == "completed", Assignment.amount), else_=0)
    total_count, total_spent, total_words = (
        await db.execute(
            select(
                func.count(Assignment.id),
                func.coalesce(func.sum(completed_amount), 0),
                func.coalesce(func.sum(Assignment.word_count), 0),
            ).where(*window)
        )
    ).one()
    spent = _money(total_spent)
    words = int(total_words or 0)

    assignments = func.count(Assignment.id)
    earned = func.coalesce(func.sum(completed_amount), 0)
    result = await db.execute(
        select(
            User.id,
            User.name,
            assignments,
            func.coalesce(func.sum(Assignment.word_count), 0),
            func.count(case((Assignment.status == "completed", Assignment.id))),
            earned,
        )
        .join(Assignment, Assignment.writer_id == User.id)
        .where(User.role == "writer", *window)
        .group_by(User.id, User.name)
        .having(assignments > 0)
        .order_by(earned.desc())
    )
    performance = [
        WriterPerformance(
            id=wid,
            name=name,
            assignments=count,
            words_written=int(written or 0),
            completed=done,
            earned=float(_money(amount)),
        )
        for wid, name, count, written, done, amount in result.all()
    ]
    return DashboardReport(
        total_assignments=total_count or 0,
        total_spent=float(spent),
        total_words=words,
        avg_rate=float(spent / words) if words else 0.0,
        writer_performance=performance,
    )


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1, microseconds=-1)
