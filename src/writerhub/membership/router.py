"""Client membership router: /api/membership/* endpoints."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import get_current_member, require_admin
from writerhub.auth.jwt import create_member_token
from writerhub.database import get_session
from writerhub.db.models import ClientMember, User
from writerhub.membership.schemas import (
    DiscountResponse,
    MemberAuthResponse,
    MemberLoginRequest,
    MemberSummary,
    NextTier,
    ProfileResponse,
    RegisterRequest,
    TierResponse,
    UpdateStatsRequest,
    UpdateStatsResponse,
)
from writerhub.membership.service import (
    authenticate_member,
    get_member_by_email,
    get_tier,
    list_tiers,
    next_tier_for,
    record_member_order,
    register_member,
    split_perks,
)

router = APIRouter(prefix="/api/membership", tags=["Membership"])


def _summary(member: ClientMember, *, with_totals: bool = False) -> MemberSummary:
    return MemberSummary(
        id=member.id,
        email=member.email,
        name=member.name,
        tier=member.membership_tier,
        discount=float(member.discount_percent),
        total_orders=member.total_orders if with_totals else None,
        total_spent=float(member.total_spent or 0) if with_totals else None,
    )


@router.post("/register", response_model=MemberAuthResponse)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> MemberAuthResponse:
    try:
        member = await register_member(db, body.email, body.name, body.password, body.phone)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return MemberAuthResponse(
        token=create_member_token(member.id, member.email),
        member=_summary(member),
        message="Registration successful! Welcome to membership.",
    )


@router.post("/login", response_model=MemberAuthResponse)
async def login(
    body: MemberLoginRequest,
    db: AsyncSession = Depends(get_session),
) -> MemberAuthResponse:
    try:
        member = await authenticate_member(db, body.email, body.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except LookupError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e
    await db.commit()
    return MemberAuthResponse(
        token=create_member_token(member.id, member.email),
        member=_summary(member, with_totals=True),
    )


@router.get("/tiers", response_model=list[TierResponse])
async def tiers(db: AsyncSession = Depends(get_session)) -> list[TierResponse]:
    return [
        TierResponse(
            name=t.tier_name,
            min_orders=t.min_orders,
            min_spent=float(t.min_spent),
            discount=float(t.discount_percent),
            perks=split_perks(t.perks),
        )
        for t in await list_tiers(db)
    ]


@router.get("/profile", response_model=ProfileResponse)
async def profile(
    member: ClientMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Member profile with perks and the gap to the next tier."""
    tier = await get_tier(db, member.membership_tier)
    upcoming = await next_tier_for(db, member)
    spent = Decimal(member.total_spent or 0)
    return ProfileResponse(
        id=member.id,
        email=member.email,
        name=member.name,
        phone=member.phone,
        tier=member.membership_tier,
        discount=float(member.discount_percent),
        total_orders=member.total_orders,
        total_spent=float(spent),
        perks=split_perks(tier.perks if tier else None),
        member_since=member.created_at,
        next_tier=NextTier(
            name=upcoming.tier_name,
            orders_needed=upcoming.min_orders - member.total_orders,
            spent_needed=float(upcoming.min_spent - spent),
            discount=float(upcoming.discount_percent),
        )
        if upcoming
        else None,
    )


@router.post("/update-stats", response_model=UpdateStatsResponse, response_model_exclude_none=True)
async def update_stats(
    body: UpdateStatsRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> UpdateStatsResponse:
    """Count a completed order towards a member's tier."""
    if not body.email:
        return UpdateStatsResponse(updated=False)
    member = await get_member_by_email(db, body.email)
    if member is None:
        return UpdateStatsResponse(updated=False, reason="Not a member")

    result = await record_member_order(db, member, body.order_amount)
    await db.commit()
    return UpdateStatsResponse(
        updated=True,
        new_tier=member.membership_tier,
        new_discount=float(member.discount_percent),
        upgraded=result.upgraded,
        total_orders=member.total_orders,
        total_spent=float(member.total_spent),
    )


@router.get("/discount/{email}", response_model=DiscountResponse, response_model_exclude_none=True)
async def discount(email: str, db: AsyncSession = Depends(get_session)) -> DiscountResponse:
    member = await get_member_by_email(db, email)
    if member is None or member.status != "active":
        return DiscountResponse(is_member=False, discount=0)
    return DiscountResponse(is_member=True, tier=member.membership_tier, discount=float(member.discount_percent))
