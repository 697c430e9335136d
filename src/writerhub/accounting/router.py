"""Accounting router: /api/accounting/* endpoints (admin only)."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.accounting.schemas import (
    BulkCreateRequest,
    BulkCreateResponse,
    FinanceRow,
    FinanceSummaryResponse,
    FinanceUpsert,
    UntrackedAssignment,
)
from writerhub.accounting.service import (
    bulk_create,
    finance_totals,
    get_assignment_finance,
    list_finances,
    list_untracked,
    monthly_breakdown,
    untracked_count,
    upsert_finance,
)
from writerhub.assignments.lifecycle import AssignmentNotFoundError
from writerhub.auth.dependencies import require_admin
from writerhub.database import get_session

router = APIRouter(prefix="/api/accounting", tags=["Accounting"], dependencies=[Depends(require_admin)])


@router.get("", response_model=list[FinanceRow])
async def finances(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_session),
) -> list[FinanceRow]:
    return await list_finances(db, start_date, end_date)


@router.get("/summary", response_model=FinanceSummaryResponse)
async def summary(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_session),
) -> FinanceSummaryResponse:
    return FinanceSummaryResponse(
        summary=await finance_totals(db, start_date, end_date),
        monthly=await monthly_breakdown(db),
        untracked_count=await untracked_count(db),
    )


@router.get("/untracked", response_model=list[UntrackedAssignment])
async def untracked(db: AsyncSession = Depends(get_session)) -> list[UntrackedAssignment]:
    return await list_untracked(db)


@router.post("/bulk-create", response_model=BulkCreateResponse)
async def bulk(body: BulkCreateRequest, db: AsyncSession = Depends(get_session)) -> BulkCreateResponse:
    created = await bulk_create(db, body.assignments)
    await db.commit()
    return BulkCreateResponse(created=created)


@router.get("/assignment/{assignment_id}", response_model=FinanceRow)
async def assignment_finance(assignment_id: int, db: AsyncSession = Depends(get_session)) -> FinanceRow:
    try:
        return await get_assignment_finance(db, assignment_id)
    except AssignmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post("/assignment/{assignment_id}", response_model=FinanceRow)
async def save_assignment_finance(
    assignment_id: int,
    body: FinanceUpsert,
    db: AsyncSession = Depends(get_session),
) -> FinanceRow:
    try:
        await upsert_finance(db, assignment_id, body)
    except AssignmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return await get_assignment_finance(db, assignment_id)
