"""Weekly writer and site performance reports.

Aggregation happens in Python over the rows of the period so hour
arithmetic behaves the same on every database backend.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.db.models import Assignment, ClientInquiry, ClientMember, User
from writerhub.db.types import as_utc, utcnow
from writerhub.reports.schemas import (
    DailyRow,
    DomainRow,
    InquiryStats,
    MembershipStats,
    OverallStats,
    Period,
    SiteReport,
    SiteSummary,
    WriterReport,
    WriterReportRow,
)

logger = structlog.get_logger()

DEFAULT_PERIOD = timedelta(days=7)
TOP_PERFORMERS = 5


@dataclass(frozen=True)
class ReportWindow:
    start: datetime
    end: datetime

    @classmethod
    def resolve(cls, start: datetime | None = None, end: datetime | None = None) -> ReportWindow:
        """Missing bounds default to the 7 days ending now (or at ``end``)."""
        end = as_utc(end) if end else utcnow()
        start = as_utc(start) if start else end - DEFAULT_PERIOD
        if start > end:
            raise ValueError("Start date must be before end date")
        return cls(start, end)

    def previous(self) -> ReportWindow:
        return ReportWindow(self.start - DEFAULT_PERIOD, self.start)

    def period(self) -> Period:
        return Period(start=self.start.date(), end=self.end.date())


def _hours(later: datetime, earlier: datetime) -> float:
    return (as_utc(later) - as_utc(earlier)).total_seconds() / 3600


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _growth(current: Decimal, previous: Decimal) -> float:
    if previous <= 0:
        return 0.0
    return round(float((current - previous) / previous * 100), 1)


async def _assignments_in(db: AsyncSession, window: ReportWindow) -> list[Assignment]:
    result = await db.execute(
        select(Assignment).where(Assignment.created_at >= window.start, Assignment.created_at <= window.end)
    )
    return list(result.scalars().all())


def _writer_row(writer: User, jobs: list[Assignment]) -> WriterReportRow:
    completed = [a for a in jobs if a.status == "completed"]
    durations = [_hours(a.completed_at, a.picked_at) for a in completed if a.completed_at and a.picked_at]
    late = [a for a in jobs if a.completed_at and as_utc(a.completed_at) > as_utc(a.deadline)]
    return WriterReportRow(
        id=writer.id,
        name=writer.name,
        email=writer.email,
        total_assignments=len(jobs),
        completed=len(completed),
        in_progress=sum(1 for a in jobs if a.status == "in_progress"),
        revisions=sum(1 for a in jobs if a.status == "revision"),
        total_earned=float(sum((a.amount for a in completed), Decimal("0"))),
        avg_completion_hours=_mean(durations),
        late_deliveries=len(late),
    )


async def writer_report(db: AsyncSession, window: ReportWindow) -> WriterReport:
    """Per-writer performance for assignments created in the window."""
    jobs = await _assignments_in(db, window)
    by_writer: dict[int, list[Assignment]] = defaultdict(list)
    for a in jobs:
        if a.writer_id is not None:
            by_writer[a.writer_id].append(a)

    writers = (await db.execute(select(User).where(User.role == "writer"))).scalars().all()
    rows = sorted(
        (_writer_row(w, by_writer.get(w.id, [])) for w in writers),
        key=lambda r: (r.completed, r.total_earned),
        reverse=True,
    )

    turnaround = [_hours(a.completed_at, a.created_at) for a in jobs if a.completed_at]
    overall = OverallStats(
        total_assignments=len(jobs),
        completed=sum(1 for a in jobs if a.status == "completed"),
        pending=sum(1 for a in jobs if a.status == "pending"),
        in_progress=sum(1 for a in jobs if a.status == "in_progress"),
        total_value=float(sum((a.amount for a in jobs), Decimal("0"))),
        avg_turnaround_hours=_mean(turnaround),
    )
    logger.info("writer_report_generated", start=window.start.isoformat(), end=window.end.isoformat())
    return WriterReport(
        period=window.period(),
        overall=overall,
        writers=rows,
        top_performers=[r for r in rows if r.completed > 0][:TOP_PERFORMERS],
        generated_at=utcnow(),
    )


def _breakdowns(jobs: list[Assignment]) -> tuple[list[DomainRow], list[DailyRow]]:
    domains: dict[str | None, list[Decimal]] = defaultdict(list)
    days: dict[date, list[Decimal]] = defaultdict(list)
    for a in jobs:
        domains[a.domain].append(a.amount)
        days[as_utc(a.created_at).date()].append(a.amount)
    by_domain = sorted(
        (DomainRow(domain=d, count=len(v), revenue=float(sum(v, Decimal("0")))) for d, v in domains.items()),
        key=lambda r: r.count,
        reverse=True,
    )
    daily = [DailyRow(date=d, orders=len(v), revenue=float(sum(v, Decimal("0")))) for d, v in sorted(days.items())]
    return by_domain, daily


async def _membership_stats(db: AsyncSession, window: ReportWindow) -> MembershipStats:
    total = await db.scalar(select(func.count(ClientMember.id)))
    verified = await db.scalar(select(func.count(ClientMember.id)).where(ClientMember.is_verified.is_(True)))
    new = await db.scalar(
        select(func.count(ClientMember.id)).where(
            ClientMember.created_at >= window.start, ClientMember.created_at <= window.end
        )
    )
    return MembershipStats(total_members=total or 0, verified_members=verified or 0, new_members=new or 0)


async def _inquiry_stats(db: AsyncSession, window: ReportWindow) -> InquiryStats:
    result = await db.execute(
        select(ClientInquiry).where(ClientInquiry.created_at >= window.start, ClientInquiry.created_at <= window.end)
    )
    inquiries = result.scalars().all()
    resolution = [_hours(i.closed_at, i.created_at) for i in inquiries if i.closed_at]
    return InquiryStats(
        total=len(inquiries),
        resolved=sum(1 for i in inquiries if i.status == "closed"),
        avg_resolution_hours=_mean(resolution),
    )


async def site_report(db: AsyncSession, window: ReportWindow) -> SiteReport:
    """Order volume and revenue against the previous 7 days, with breakdowns."""
    jobs = await _assignments_in(db, window)
    previous = await _assignments_in(db, window.previous())

    revenue = sum((a.amount for a in jobs), Decimal("0"))
    prev_revenue = sum((a.amount for a in previous), Decimal("0"))
    summary = SiteSummary(
        total_orders=len(jobs),
        completed_orders=sum(1 for a in jobs if a.status == "completed"),
        client_portal_orders=sum(1 for a in jobs if a.client_source == "client_portal"),
        total_revenue=float(revenue),
        avg_order_value=round(float(revenue / len(jobs)), 2) if jobs else 0.0,
        order_growth=_growth(Decimal(len(jobs)), Decimal(len(previous))),
        revenue_growth=_growth(revenue, prev_revenue),
    )
    by_domain, daily = _breakdowns(jobs)
    logger.info("site_report_generated", start=window.start.isoformat(), end=window.end.isoformat())
    return SiteReport(
        period=window.period(),
        summary=summary,
        by_domain=by_domain,
        daily_stats=daily,
        membership=await _membership_stats(db, window),
        inquiries=await _inquiry_stats(db, window),
        generated_at=utcnow(),
    )
