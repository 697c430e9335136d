"""Client referral codes, conversions and credit ledger."""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.config import get_settings
from writerhub.db.models import ClientCredit, ClientReferral, ReferralCode
from writerhub.db.types import utcnow

logger = structlog.get_logger()

CREDIT_RATE = Decimal("0.10")
MIN_CREDIT = Decimal("5")
MAX_CREDIT = Decimal("25")
MAX_WELCOME_CREDIT = Decimal("10")
DEFAULT_ORDER_AMOUNT = Decimal("50")
CODE_ATTEMPTS = 5


def _normalize_email(email: str) -> str:
    return email.lower().strip()


def generate_code(name: str) -> str:
    """Up to four letters of the name plus four hex digits, e.g. ``JANE3FA0``."""
    letters = re.sub(r"[^a-zA-Z]", "", name).upper()[:4]
    return f"{letters}{secrets.token_hex(2).upper()}"


def referral_link(code: str) -> str:
    return f"{get_settings().base_url}/order?ref={code}"


def referral_credit(order_amount: Decimal | None) -> tuple[Decimal, Decimal]:
    """(referrer credit, referred welcome credit) for a converted order."""
    base = Decimal(order_amount) if order_amount else DEFAULT_ORDER_AMOUNT
    credit = min(max(base * CREDIT_RATE, MIN_CREDIT), MAX_CREDIT)
    return credit, min(credit, MAX_WELCOME_CREDIT)


async def get_code_for_email(db: AsyncSession, email: str) -> ReferralCode | None:
    result = await db.execute(select(ReferralCode).where(ReferralCode.client_email == _normalize_email(email)))
    return result.scalar_one_or_none()


async def _code_taken(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(ReferralCode.id).where(ReferralCode.code == code))
    return result.scalar_one_or_none() is not None


async def create_code(db: AsyncSession, email: str, name: str, custom_code: str | None = None) -> ReferralCode:
    """
    Raises:
        ValueError: Custom code already taken.
    """
    if custom_code:
        code = custom_code.upper().strip()
        if await _code_taken(db, code):
            raise ValueError("Referral code already taken")
    else:
        code = generate_code(name)
        for _ in range(CODE_ATTEMPTS):
            if not await _code_taken(db, code):
                break
            code = generate_code(name)
    record = ReferralCode(code=code, client_email=_normalize_email(email), client_name=name.strip())
    db.add(record)
    await db.flush()
    logger.info("referral_code_created", code=code)
    return record


async def get_or_create_code(db: AsyncSession, email: str | None, name: str | None) -> ReferralCode:
    if not email or not name:
        raise ValueError("Email and name required")
    existing = await get_code_for_email(db, email)
    if existing is not None:
        return existing
    return await create_code(db, email, name)


async def find_active_code(db: AsyncSession, code: str) -> ReferralCode | None:
    result = await db.execute(
        select(ReferralCode).where(ReferralCode.code == code.upper().strip(), ReferralCode.is_active.is_(True))
    )
    return result.scalar_one_or_none()


@dataclass(frozen=True)
class TrackResult:
    referral: ClientReferral | None
    referrer: ReferralCode | None = None
    reason: str | None = None

    @property
    def tracked(self) -> bool:
        return self.referral is not None


async def track_referral(
    db: AsyncSession,
    code: str | None,
    referred_email: str | None,
    referred_name: str | None = None,
    assignment_id: int | None = None,
) -> TrackResult:
    """
    Record that a new client arrived through a code.

    Unknown codes, self-referrals and already-referred clients are refused
    softly with a reason rather than an error.
    """
    if not code or not referred_email:
        raise ValueError("Referral code and email required")
    referrer = await find_active_code(db, code)
    if referrer is None:
        return TrackResult(None, reason="Invalid referral code")
    email = _normalize_email(referred_email)
    if referrer.client_email == email:
        return TrackResult(None, referrer, "Cannot use your own referral code")
    existing = await db.execute(select(ClientReferral.id).where(ClientReferral.referred_email == email))
    if existing.scalar_one_or_none() is not None:
        return TrackResult(None, referrer, "Client already referred")

    referral = ClientReferral(
        referral_code_id=referrer.id,
        referrer_email=referrer.client_email,
        referred_email=email,
        referred_name=referred_name,
        assignment_id=assignment_id,
        status="pending",
    )
    db.add(referral)
    referrer.total_referrals = (referrer.total_referrals or 0) + 1
    await db.flush()
    logger.info("referral_tracked", referral_id=referral.id, code=referrer.code)
    return TrackResult(referral, referrer)


@dataclass(frozen=True)
class Conversion:
    referrer_credit: Decimal
    referred_credit: Decimal


async def convert_referral(db: AsyncSession, referral_id: int, order_amount: Decimal | None) -> Conversion | None:
    """Award both sides their credits. None when missing or already converted."""
    result = await db.execute(
        select(ClientReferral).where(ClientReferral.id == referral_id, ClientReferral.status == "pending")
    )
    referral = result.scalar_one_or_none()
    if referral is None:
        return None

    credit, welcome = referral_credit(order_amount)
    referral.status = "converted"
    referral.credit_amount = credit
    referral.converted_at = utcnow()
    db.add(
        ClientCredit(
            client_email=referral.referrer_email,
            amount=credit,
            type="referral_bonus",
            description=f"Referral bonus for {referral.referred_name or 'a friend'}",
            referral_id=referral.id,
        )
    )
    code = await db.get(ReferralCode, referral.referral_code_id)
    if code is not None:
        code.total_credits_earned = Decimal(code.total_credits_earned or 0) + credit
    db.add(
        ClientCredit(
            client_email=referral.referred_email,
            amount=welcome,
            type="welcome_bonus",
            description="Welcome bonus for being referred!",
            referral_id=referral.id,
        )
    )
    await db.flush()
    logger.info("referral_converted", referral_id=referral.id, credit=str(credit))
    return Conversion(credit, welcome)


async def available_credits(db: AsyncSession, email: str) -> list[ClientCredit]:
    """Unused credits, oldest first."""
    result = await db.execute(
        select(ClientCredit)
        .where(ClientCredit.client_email == _normalize_email(email), ClientCredit.is_used.is_(False))
        .order_by(ClientCredit.created_at.asc(), ClientCredit.id.asc())
    )
    return list(result.scalars().all())


@dataclass(frozen=True)
class CreditApplication:
    applied: Decimal
    remaining: Decimal


async def apply_credit(
    db: AsyncSession,
    email: str | None,
    assignment_id: int | None,
    requested: Decimal | None = None,
) -> CreditApplication:
    """
    Consume unused credits oldest first, up to ``requested`` (all when omitted).

    A credit larger than what is left to apply is split: the used part is
    marked consumed and the rest stays available as a new credit.
    """
    if not email or not assignment_id:
        raise ValueError("Client email and assignment ID required")
    credits = await available_credits(db, email)
    total = sum((Decimal(c.amount) for c in credits), Decimal("0"))
    target = min(Decimal(requested), total) if requested else total
    if target <= 0:
        return CreditApplication(Decimal("0"), total)

    now = utcnow()
    remaining = target
    for credit in credits:
        if remaining <= 0:
            break
        amount = Decimal(credit.amount)
        if amount > remaining:
            db.add(
                ClientCredit(
                    client_email=credit.client_email,
                    amount=amount - remaining,
                    type=credit.type,
                    description=credit.description,
                    referral_id=credit.referral_id,
                )
            )
            credit.amount = remaining
            amount = remaining
        credit.is_used = True
        credit.used_at = now
        credit.assignment_id = assignment_id
        remaining -= amount
    await db.flush()
    logger.info("referral_credit_applied", assignment_id=assignment_id, amount=str(target))
    return CreditApplication(target, total - target)


async def referrals_by(db: AsyncSession, referrer_email: str) -> list[ClientReferral]:
    result = await db.execute(
        select(ClientReferral)
        .where(ClientReferral.referrer_email == _normalize_email(referrer_email))
        .order_by(ClientReferral.created_at.desc())
    )
    return list(result.scalars().all())


async def add_manual_credit(
    db: AsyncSession, email: str | None, amount: Decimal | None, description: str | None
) -> ClientCredit:
    if not email or not amount:
        raise ValueError("Email and amount required")
    credit = ClientCredit(
        client_email=_normalize_email(email),
        amount=amount,
        type="manual",
        description=description or "Manual credit from admin",
    )
    db.add(credit)
    await db.flush()
    return credit


async def toggle_code(db: AsyncSession, code_id: int) -> ReferralCode:
    code = await db.get(ReferralCode, code_id)
    if code is None:
        raise LookupError("Code not found")
    code.is_active = not code.is_active
    await db.flush()
    return code


async def list_codes(db: AsyncSession) -> list[tuple[ReferralCode, int]]:
    count = (
        select(func.count(ClientReferral.id))
        .where(ClientReferral.referral_code_id == ReferralCode.id)
        .correlate(ReferralCode)
        .scalar_subquery()
    )
    result = await db.execute(select(ReferralCode, count).order_by(ReferralCode.created_at.desc()))
    return [(code, n) for code, n in result.all()]


async def program_totals(db: AsyncSession) -> dict[str, Decimal | int]:
    async def scalar(stmt) -> Decimal | int:
        return (await db.execute(stmt)).scalar_one()

    return {
        "total_codes": await scalar(select(func.count(ReferralCode.id))),
        "total_referrals": await scalar(select(func.count(ClientReferral.id))),
        "converted_referrals": await scalar(
            select(func.count(ClientReferral.id)).where(ClientReferral.status == "converted")
        ),
        "total_credits_issued": await scalar(select(func.coalesce(func.sum(ClientCredit.amount), 0))),
        "total_credits_used": await scalar(
            select(func.coalesce(func.sum(ClientCredit.amount), 0)).where(ClientCredit.is_used.is_(True))
        ),
    }


async def top_referrers(db: AsyncSession, limit: int = 10) -> list[ReferralCode]:
    result = await db.execute(select(ReferralCode).order_by(ReferralCode.total_referrals.desc()).limit(limit))
    return list(result.scalars().all())


async def recent_referrals(db: AsyncSession, limit: int = 20) -> list[tuple[ClientReferral, ReferralCode]]:
    result = await db.execute(
        select(ClientReferral, ReferralCode)
        .join(ReferralCode, ClientReferral.referral_code_id == ReferralCode.id)
        .order_by(ClientReferral.created_at.desc())
        .limit(limit)
    )
    return [(r, c) for r, c in result.all()]
