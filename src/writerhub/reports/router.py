"""Admin reports router: /api/reports/* endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import require_admin
from writerhub.database import get_session
from writerhub.reports.schemas import SiteReportResponse, WriterReportResponse
from writerhub.reports.service import ReportWindow, site_report, writer_report

router = APIRouter(prefix="/api/reports", tags=["Reports"], dependencies=[Depends(require_admin)])


def _window(start: datetime | None, end: datetime | None) -> ReportWindow:
    try:
        return ReportWindow.resolve(start, end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/writers/weekly", response_model=WriterReportResponse, response_model_by_alias=True)
async def writers_weekly(
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_session),
) -> WriterReportResponse:
    report = await writer_report(db, _window(start_date, end_date))
    return WriterReportResponse(report=report)


@router.get("/site/weekly", response_model=SiteReportResponse, response_model_by_alias=True)
async def site_weekly(
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_session),
) -> SiteReportResponse:
    report = await site_report(db, _window(start_date, end_date))
    return SiteReportResponse(report=report)
