"""Client membership: accounts, tiers and order statistics."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.password import hash_password, validate_password_strength, verify_password
from writerhub.db.models import ClientMember, MembershipTier
from writerhub.db.types import utcnow

logger = structlog.get_logger()

DEFAULT_TIER = "basic"
DEFAULT_DISCOUNT = 5

TIER_SEED_DATA: list[dict] = [
    {
        "tier_name": "basic",
        "min_orders": 0,
        "min_spent": Decimal("0"),
        "discount_percent": 5,
        "perks": "Early access to new services, Priority email support",
    },
    {
        "tier_name": "silver",
        "min_orders": 5,
        "min_spent": Decimal("100"),
        "discount_percent": 10,
        "perks": "All Basic perks plus: Free revision on every order, Dedicated support",
    },
    {
        "tier_name": "gold",
        "min_orders": 15,
        "min_spent": Decimal("500"),
        "discount_percent": 15,
        "perks": "All Silver perks plus: Express delivery priority, Exclusive resources",
    },
    {
        "tier_name": "platinum",
        "min_orders": 30,
        "min_spent": Decimal("1500"),
        "discount_percent": 20,
        "perks": "All Gold perks plus: Personal account manager, Custom pricing",
    },
]


async def seed_tiers(db: AsyncSession) -> int:
    """Upsert the membership tiers. Returns the number seeded."""
    existing = {t.tier_name: t for t in (await db.execute(select(MembershipTier))).scalars().all()}
    for data in TIER_SEED_DATA:
        tier = existing.get(data["tier_name"])
        if tier is None:
            db.add(MembershipTier(**data))
        else:
            tier.discount_percent = data["discount_percent"]
            tier.perks = data["perks"]
    await db.commit()
    return len(TIER_SEED_DATA)


def split_perks(perks: str | None) -> list[str]:
    return [p.strip() for p in perks.split(", ")] if perks else []


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


async def get_member_by_email(db: AsyncSession, email: str) -> ClientMember | None:
    result = await db.execute(select(ClientMember).where(func.lower(ClientMember.email) == email.lower().strip()))
    return result.scalar_one_or_none()


async def register_member(
    db: AsyncSession,
    email: str | None,
    name: str | None,
    password: str | None,
    phone: str | None = None,
) -> ClientMember:
    """
    Create a verified basic-tier member.

    Raises:
        ValueError: Missing fields, short password or duplicate email.
    """
    if not email or not name or not password:
        raise ValueError("Email, name, and password are required")
    validate_password_strength(password)
    if await get_member_by_email(db, email) is not None:
        raise ValueError("Email already registered. Please login instead.")

    member = ClientMember(
        email=email.lower().strip(),
        name=name.strip(),
        phone=phone,
        password_hash=hash_password(password),
        membership_tier=DEFAULT_TIER,
        discount_percent=DEFAULT_DISCOUNT,
        is_verified=True,
        status="active",
    )
    db.add(member)
    await db.flush()
    logger.info("member_registered", member_id=member.id)
    return member


async def authenticate_member(db: AsyncSession, email: str | None, password: str | None) -> ClientMember:
    """
    Raises:
        ValueError: Missing fields.
        LookupError: Wrong email or password.
        PermissionError: Inactive account.
    """
    if not email or not password:
        raise ValueError("Email and password are required")
    member = await get_member_by_email(db, email)
    if member is None or not verify_password(password, member.password_hash):
        raise LookupError("Invalid email or password")
    if member.status != "active":
        raise PermissionError("Account is inactive. Please contact support.")
    member.last_login = utcnow()
    await db.flush()
    return member


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------


async def list_tiers(db: AsyncSession) -> list[MembershipTier]:
    result = await db.execute(select(MembershipTier).order_by(MembershipTier.min_orders.asc()))
    return list(result.scalars().all())


async def get_tier(db: AsyncSession, tier_name: str) -> MembershipTier | None:
    result = await db.execute(select(MembershipTier).where(MembershipTier.tier_name == tier_name))
    return result.scalar_one_or_none()


async def best_tier_for(db: AsyncSession, total_orders: int, total_spent: Decimal) -> MembershipTier | None:
    """Highest-discount tier whose order and spend thresholds are both met."""
    result = await db.execute(
        select(MembershipTier)
        .where(MembershipTier.min_orders <= total_orders, MembershipTier.min_spent <= total_spent)
        .order_by(MembershipTier.discount_percent.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def next_tier_for(db: AsyncSession, member: ClientMember) -> MembershipTier | None:
    result = await db.execute(
        select(MembershipTier)
        .where(
            or_(
                MembershipTier.min_orders > member.total_orders,
                MembershipTier.min_spent > (member.total_spent or 0),
            )
        )
        .order_by(MembershipTier.min_orders.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


@dataclass
class StatsUpdate:
    member: ClientMember
    previous_tier: str

    @property
    def upgraded(self) -> bool:
        return self.member.membership_tier != self.previous_tier


async def recalculate_tier(db: AsyncSession, member: ClientMember) -> None:
    tier = await best_tier_for(db, member.total_orders, Decimal(member.total_spent or 0))
    member.membership_tier = tier.tier_name if tier else DEFAULT_TIER
    member.discount_percent = tier.discount_percent if tier else DEFAULT_DISCOUNT


async def record_member_order(db: AsyncSession, member: ClientMember, order_amount: Decimal | None) -> StatsUpdate:
    """Count one paid order towards the member's totals and re-evaluate the tier."""
    previous = member.membership_tier
    member.total_orders = (member.total_orders or 0) + 1
    member.total_spent = Decimal(member.total_spent or 0) + Decimal(order_amount or 0)
    member.is_verified = True
    await recalculate_tier(db, member)
    await db.flush()
    update = StatsUpdate(member, previous)
    if update.upgraded:
        logger.info("member_tier_upgraded", member_id=member.id, tier=member.membership_tier)
    return update
