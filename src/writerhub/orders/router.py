"""Client orders router: /api/orders/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import get_optional_member, require_admin
from writerhub.database import get_session
from writerhub.db.models import ClientMember, User
from writerhub.email.service import EmailService, get_email_service
from writerhub.orders.schemas import (
    CreatedOrder,
    MarkPaidRequest,
    OrderBreakdown,
    OrderCreateRequest,
    OrderCreateResponse,
    OrderQuoteRequest,
    QuoteBreakdown,
    QuoteResponse,
    ReceiptResponse,
)
from writerhub.orders.service import (
    WORDS_PER_PAGE,
    OrderNotFoundError,
    create_order,
    get_order,
    mark_order_paid,
    order_customer,
    package_name,
    quote_order,
    send_order_receipt,
)
from writerhub.pricing.engine import to_cents

router = APIRouter(prefix="/api/orders", tags=["Orders"])

_MEMBER_NOTE = "You're saving {}% with your membership!"
_GUEST_NOTE = "Join membership to save up to 20% on every order!"


@router.post("/calculate", response_model=QuoteResponse)
async def calculate(
    body: OrderQuoteRequest,
    member: ClientMember | None = Depends(get_optional_member),
) -> QuoteResponse:
    try:
        quote = quote_order(body.package_type, body.pages, body.deadline_hours, body.complexity, member)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    percent = quote.discount.percent
    return QuoteResponse(
        breakdown=QuoteBreakdown(
            package_type=quote.package_type,
            package_name=package_name(quote.package_type),
            pages=quote.pages,
            price_per_page=f"{to_cents(quote.price_per_page):.2f}",
            base_price=f"{quote.base_price:.2f}",
            deadline_hours=body.deadline_hours,
            subtotal=f"{quote.base_price:.2f}",
            member_tier=quote.member_tier,
            discount_percent=float(percent),
            discount_amount=f"{quote.discount.amount:.2f}",
            final_price=f"{quote.discount.final_price:.2f}",
            complexity=quote.complexity,
            member_savings_note=_MEMBER_NOTE.format(percent) if percent > 0 else _GUEST_NOTE,
        )
    )


@router.post("/create", response_model=OrderCreateResponse)
async def create(
    body: OrderCreateRequest,
    member: ClientMember | None = Depends(get_optional_member),
    db: AsyncSession = Depends(get_session),
) -> OrderCreateResponse:
    """Price the order server-side and record it as pending payment."""
    try:
        quote = quote_order(body.package_type, body.pages, body.deadline_hours, body.complexity, member)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if member is None and not body.client_email:
        raise HTTPException(status_code=400, detail="Client email is required")

    order = await create_order(
        db,
        quote,
        body.deadline_hours,
        member,
        guest_email=body.client_email,
        guest_name=body.client_name,
        title=body.title,
        description=body.description,
    )
    await db.commit()
    return OrderCreateResponse(
        order=CreatedOrder(
            order_number=order.order_number,
            final_price=f"{order.final_price:.2f}",
            breakdown=OrderBreakdown(
                package_type=order.package_type,
                pages=order.pages,
                base_price=f"{order.base_price:.2f}",
                discount_percent=float(order.discount_percent),
                discount_amount=f"{order.discount_amount:.2f}",
                final_price=f"{order.final_price:.2f}",
            ),
        )
    )


@router.get("/{order_number}/receipt", response_model=ReceiptResponse)
async def receipt(order_number: str, db: AsyncSession = Depends(get_session)) -> ReceiptResponse:
    try:
        order = await get_order(db, order_number)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    name, email = await order_customer(db, order)
    return ReceiptResponse(
        order_number=order.order_number,
        customer_name=name,
        customer_email=email,
        package_type=order.package_type,
        package_name=package_name(order.package_type),
        pages=order.pages,
        approx_words=order.pages * WORDS_PER_PAGE,
        deadline_hours=order.deadline_hours,
        complexity=order.complexity,
        base_price=f"{order.base_price:.2f}",
        discount_percent=float(order.discount_percent),
        discount_amount=f"{order.discount_amount:.2f}",
        final_price=f"{order.final_price:.2f}",
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        paid_at=order.paid_at,
        created_at=order.created_at,
    )


@router.post("/{order_number}/paid")
async def mark_paid(
    order_number: str,
    body: MarkPaidRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    email_service: EmailService = Depends(get_email_service),
) -> dict:
    """Settle an order, update member stats and email the receipt."""
    try:
        order = await get_order(db, order_number)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    newly_paid = await mark_order_paid(db, order, body.payment_method, body.payment_reference)
    await db.commit()
    if newly_paid:
        await send_order_receipt(db, email_service, order)
        await db.commit()
    return {"success": True, "message": "Payment recorded and receipt sent"}
