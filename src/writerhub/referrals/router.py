"""Referrals router: /api/referrals/* endpoints."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import require_admin
from writerhub.database import get_session
from writerhub.db.models import ReferralCode, User
from writerhub.referrals.schemas import (
    AddCreditRequest,
    AdminCodeRequest,
    ApplyCreditRequest,
    ApplyCreditResponse,
    CodeRequest,
    CodeResponse,
    CodeStats,
    ConvertRequest,
    ConvertResponse,
    CreditItem,
    OverviewResponse,
    ProgramTotals,
    RecentReferral,
    ReferralCodeRow,
    ReferralItem,
    ReferralStatsResponse,
    ReferralStatsSummary,
    TrackRequest,
    TrackResponse,
    ValidateResponse,
)
from writerhub.referrals.service import (
    add_manual_credit,
    apply_credit,
    available_credits,
    convert_referral,
    create_code,
    find_active_code,
    get_code_for_email,
    get_or_create_code,
    list_codes,
    program_totals,
    recent_referrals,
    referral_link,
    referrals_by,
    toggle_code,
    top_referrers,
    track_referral,
)

router = APIRouter(prefix="/api/referrals", tags=["Referrals"])

REFERRED_DISCOUNT = "10%"


def _code_row(code: ReferralCode, referral_count: int | None = None) -> ReferralCodeRow:
    return ReferralCodeRow(
        id=code.id,
        code=code.code,
        client_email=code.client_email,
        client_name=code.client_name,
        is_active=code.is_active,
        total_referrals=code.total_referrals or 0,
        total_credits_earned=float(code.total_credits_earned or 0),
        created_at=code.created_at,
        referral_count=referral_count,
    )


@router.post("/code", response_model=CodeResponse)
async def code(body: CodeRequest, db: AsyncSession = Depends(get_session)) -> CodeResponse:
    """Get the client's referral code, creating one on first request."""
    try:
        record = await get_or_create_code(db, body.email, body.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return CodeResponse(
        code=record.code,
        referral_link=referral_link(record.code),
        stats=CodeStats(
            total_referrals=record.total_referrals or 0,
            total_credits=float(record.total_credits_earned or 0),
        ),
    )


@router.get("/validate/{code}", response_model=ValidateResponse, response_model_exclude_none=True)
async def validate(code: str, db: AsyncSession = Depends(get_session)) -> ValidateResponse:
    record = await find_active_code(db, code)
    if record is None:
        return ValidateResponse(valid=False)
    return ValidateResponse(valid=True, referrer_name=record.client_name, discount=REFERRED_DISCOUNT)


@router.get("/stats/{email}", response_model=ReferralStatsResponse, response_model_exclude_none=True)
async def stats(email: str, db: AsyncSession = Depends(get_session)) -> ReferralStatsResponse:
    record = await get_code_for_email(db, email)
    if record is None:
        return ReferralStatsResponse(
            has_code=False, message="No referral code found. Submit your first order to get one!"
        )
    referrals = await referrals_by(db, email)
    credits = await available_credits(db, email)
    return ReferralStatsResponse(
        has_code=True,
        code=record.code,
        referral_link=referral_link(record.code),
        stats=ReferralStatsSummary(
            total_referrals=record.total_referrals or 0,
            total_credits_earned=float(record.total_credits_earned or 0),
            available_credits=float(sum((Decimal(c.amount) for c in credits), Decimal("0"))),
            pending_referrals=sum(1 for r in referrals if r.status == "pending"),
            converted_referrals=sum(1 for r in referrals if r.status == "converted"),
        ),
        referrals=[
            ReferralItem(
                id=r.id,
                referred_name=r.referred_name or "Anonymous",
                status=r.status,
                credit_amount=float(r.credit_amount or 0),
                created_at=r.created_at,
                converted_at=r.converted_at,
            )
            for r in referrals
        ],
        credits=[
            CreditItem(id=c.id, amount=float(c.amount), type=c.type, description=c.description, created_at=c.created_at)
            for c in credits
        ],
    )


@router.post("/track", response_model=TrackResponse, response_model_exclude_none=True)
async def track(body: TrackRequest, db: AsyncSession = Depends(get_session)) -> TrackResponse:
    try:
        result = await track_referral(
            db, body.referral_code, body.referred_email, body.referred_name, body.assignment_id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if not result.tracked:
        return TrackResponse(tracked=False, reason=result.reason)
    await db.commit()
    return TrackResponse(tracked=True, referral_id=result.referral.id, referrer_name=result.referrer.client_name)


@router.post("/convert/{referral_id}", response_model=ConvertResponse, response_model_exclude_none=True)
async def convert(
    referral_id: int,
    body: ConvertRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ConvertResponse:
    """Award referral credits once the referred client's order is paid."""
    conversion = await convert_referral(db, referral_id, body.assignment_amount)
    if conversion is None:
        return ConvertResponse(converted=False, reason="Referral not found or already converted")
    await db.commit()
    return ConvertResponse(
        converted=True,
        referrer_credit=float(conversion.referrer_credit),
        referred_credit=float(conversion.referred_credit),
    )


@router.post("/apply-credit", response_model=ApplyCreditResponse, response_model_exclude_none=True)
async def apply(
    body: ApplyCreditRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ApplyCreditResponse:
    try:
        result = await apply_credit(db, body.client_email, body.assignment_id, body.credit_amount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if result.applied <= 0:
        return ApplyCreditResponse(applied=False, reason="No credits available")
    await db.commit()
    return ApplyCreditResponse(
        applied=True, amount_applied=float(result.applied), remaining_credits=float(result.remaining)
    )


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/admin/overview", response_model=OverviewResponse, dependencies=[Depends(require_admin)])
async def overview(db: AsyncSession = Depends(get_session)) -> OverviewResponse:
    totals = await program_totals(db)
    return OverviewResponse(
        stats=ProgramTotals(
            total_codes=totals["total_codes"],
            total_referrals=totals["total_referrals"],
            converted_referrals=totals["converted_referrals"],
            total_credits_issued=float(totals["total_credits_issued"]),
            total_credits_used=float(totals["total_credits_used"]),
        ),
        top_referrers=[_code_row(c) for c in await top_referrers(db)],
        recent_referrals=[
            RecentReferral(
                id=r.id,
                referrer_name=c.client_name,
                referral_code=c.code,
                referred_email=r.referred_email,
                referred_name=r.referred_name,
                status=r.status,
                credit_amount=float(r.credit_amount or 0),
                created_at=r.created_at,
            )
            for r, c in await recent_referrals(db)
        ],
    )


@router.get("/admin/codes", response_model=list[ReferralCodeRow], dependencies=[Depends(require_admin)])
async def codes(db: AsyncSession = Depends(get_session)) -> list[ReferralCodeRow]:
    return [_code_row(c, n) for c, n in await list_codes(db)]


@router.post("/admin/create-code", response_model=ReferralCodeRow, dependencies=[Depends(require_admin)])
async def admin_create_code(body: AdminCodeRequest, db: AsyncSession = Depends(get_session)) -> ReferralCodeRow:
    if not body.email or not body.name:
        raise HTTPException(status_code=400, detail="Email and name required")
    if await get_code_for_email(db, body.email) is not None:
        raise HTTPException(status_code=400, detail="Client already has a referral code")
    try:
        record = await create_code(db, body.email, body.name, body.custom_code)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return _code_row(record)


@router.put("/admin/code/{code_id}/toggle", response_model=ReferralCodeRow, dependencies=[Depends(require_admin)])
async def toggle(code_id: int, db: AsyncSession = Depends(get_session)) -> ReferralCodeRow:
    try:
        record = await toggle_code(db, code_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return _code_row(record)


@router.post("/admin/add-credit", response_model=CreditItem, dependencies=[Depends(require_admin)])
async def add_credit(body: AddCreditRequest, db: AsyncSession = Depends(get_session)) -> CreditItem:
    try:
        credit = await add_manual_credit(db, body.email, body.amount, body.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return CreditItem(
        id=credit.id,
        amount=float(credit.amount),
        type=credit.type,
        description=credit.description,
        created_at=credit.created_at,
    )
