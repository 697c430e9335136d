"""Dashboard router: /api/dashboard/* endpoints."""

from __future__ import annotations

from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.assignments.schemas import AssignmentResponse
from writerhub.auth.dependencies import get_current_user, require_admin
from writerhub.dashboard.schemas import AdminStatsResponse, DashboardReport, TopWriter, WriterStatsResponse
from writerhub.dashboard.service import (
    build_report,
    end_of_day,
    get_dashboard_stats,
    recent_assignments,
    top_writers,
)
from writerhub.database import get_session
from writerhub.db.models import User
from writerhub.redis_client import get_optional_redis

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=AdminStatsResponse | WriterStatsResponse)
async def dashboard_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AdminStatsResponse | WriterStatsResponse:
    """Role-specific dashboard statistics (10s cached in Redis)."""
    return await get_dashboard_stats(db, get_optional_redis(), user)


@router.get("/recent-assignments", response_model=list[AssignmentResponse])
async def recent(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[AssignmentResponse]:
    return [
        AssignmentResponse.model_validate(a).model_copy(update={"writer_name": w.name if w else None})
        for a, w in await recent_assignments(db, user)
    ]


@router.get("/top-writers", response_model=list[TopWriter])
async def top(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> list[TopWriter]:
    return await top_writers(db)


@router.get("/report", response_model=DashboardReport)
async def report(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> DashboardReport:
    """Totals, average rate per word and per-writer performance. Both dates bound the window, inclusive."""
    if start_date and end_date:
        start = datetime.combine(start_date, datetime.min.time(), tzinfo=timezone.utc)
        end = end_of_day(datetime.combine(end_date, datetime.min.time(), tzinfo=timezone.utc))
        return await build_report(db, start, end)
    return await build_report(db)
