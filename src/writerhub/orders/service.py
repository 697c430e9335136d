"""Client orders: per-page quotes, order records and payment settlement."""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.db.models import ClientMember, ClientOrder
from writerhub.db.types import utcnow
from writerhub.email.service import EmailService
from writerhub.membership.service import record_member_order
from writerhub.pricing.engine import STANDARD_PAGE_PRICES, Discount, apply_discount, to_cents

logger = structlog.get_logger()

COMPLEXITY_MULTIPLIERS: dict[str, Decimal] = {
    "simple": Decimal("0.9"),
    "standard": Decimal("1.0"),
    "complex": Decimal("1.15"),
    "expert": Decimal("1.30"),
}
WORDS_PER_PAGE = 275

_ORDER_ALPHABET = string.digits + string.ascii_uppercase


class OrderNotFoundError(LookupError):
    pass


def generate_order_number(now: datetime | None = None) -> str:
    """``HP{yy}{mm}-{6 base36 chars}``."""
    now = now or utcnow()
    suffix = "".join(secrets.choice(_ORDER_ALPHABET) for _ in range(6))
    return f"HP{now:%y%m}-{suffix}"


def package_name(package_type: str) -> str:
    return package_type[:1].upper() + package_type[1:]


@dataclass(frozen=True)
class OrderQuote:
    package_type: str
    pages: int
    complexity: str
    price_per_page: Decimal
    base_price: Decimal
    member_tier: str | None
    discount: Discount


def quote_order(
    package_type: str | None,
    pages: int | None,
    deadline_hours: int | None,
    complexity: str | None,
    member: ClientMember | None,
) -> OrderQuote:
    """
    Price a per-page order. Only verified members get their tier discount.

    Raises:
        ValueError: Missing fields or unknown package.
    """
    if not package_type or not pages or not deadline_hours:
        raise ValueError("Missing required fields")
    if package_type not in STANDARD_PAGE_PRICES:
        raise ValueError("Invalid package type")

    complexity = complexity or "standard"
    per_page = STANDARD_PAGE_PRICES[package_type] * COMPLEXITY_MULTIPLIERS.get(complexity, Decimal("1.0"))
    base = per_page * pages

    tier = None
    percent = 0
    if member is not None and member.is_verified:
        tier = member.membership_tier
        percent = member.discount_percent or 0
    return OrderQuote(package_type, pages, complexity, per_page, to_cents(base), tier, apply_discount(base, percent))


async def create_order(
    db: AsyncSession,
    quote: OrderQuote,
    deadline_hours: int,
    member: ClientMember | None,
    guest_email: str | None = None,
    guest_name: str | None = None,
    title: str | None = None,
    description: str | None = None,
) -> ClientOrder:
    """Record a pending order. Members are linked by id, guests by email."""
    linked = member if member is not None and member.is_verified else None
    order = ClientOrder(
        order_number=generate_order_number(),
        member_id=linked.id if linked else None,
        guest_email=None if linked else guest_email,
        guest_name=None if linked else guest_name,
        title=title,
        description=description,
        package_type=quote.package_type,
        pages=quote.pages,
        deadline_hours=deadline_hours,
        complexity=quote.complexity,
        base_price=quote.base_price,
        discount_percent=int(quote.discount.percent),
        discount_amount=quote.discount.amount,
        final_price=quote.discount.final_price,
        payment_status="pending",
    )
    db.add(order)
    await db.flush()
    logger.info("order_created", order_number=order.order_number, final_price=str(order.final_price))
    return order


async def get_order(db: AsyncSession, order_number: str) -> ClientOrder:
    result = await db.execute(select(ClientOrder).where(ClientOrder.order_number == order_number))
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFoundError("Order not found")
    return order


async def order_customer(db: AsyncSession, order: ClientOrder) -> tuple[str | None, str | None]:
    """(name, email) of whoever placed the order."""
    if order.member_id is not None:
        member = await db.get(ClientMember, order.member_id)
        if member is not None:
            return member.name, member.email
    return order.guest_name, order.guest_email


async def mark_order_paid(
    db: AsyncSession,
    order: ClientOrder,
    payment_method: str | None,
    payment_reference: str | None,
) -> bool:
    """
    Settle an order and count it towards the member's tier.

    Returns False without changes when the order was already paid, so repeat
    gateway deliveries do not double-count member stats.
    """
    if order.payment_status == "paid":
        return False
    order.payment_status = "paid"
    order.payment_method = payment_method
    order.payment_reference = payment_reference
    order.paid_at = utcnow()

    if order.member_id is not None:
        member = await db.get(ClientMember, order.member_id)
        if member is not None:
            await record_member_order(db, member, order.final_price)
    await db.flush()
    logger.info("order_paid", order_number=order.order_number, method=payment_method)
    return True


async def send_order_receipt(db: AsyncSession, email_service: EmailService, order: ClientOrder) -> bool:
    """Email the receipt; stamps receipt_sent on success."""
    name, email = await order_customer(db, order)
    if not email:
        return False
    sent = await email_service.send_template(
        email,
        "order_receipt",
        customer_name=name or "Customer",
        order_number=order.order_number,
        package_name=package_name(order.package_type),
        pages=order.pages,
        base_price=order.base_price,
        discount_amount=order.discount_amount,
        final_price=order.final_price,
        payment_method=order.payment_method,
    )
    if sent:
        order.receipt_sent = True
        order.receipt_sent_at = utcnow()
        await db.flush()
    return sent
