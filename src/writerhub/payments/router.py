"""Writer payments router: /api/payments/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import get_current_user, require_admin
from writerhub.config import get_settings
from writerhub.database import get_session
from writerhub.db.models import User
from writerhub.email.service import render_email
from writerhub.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from writerhub.payments.schemas import PaymentCreate, PaymentResponse, PaymentSummaryRow, PaymentTotals
from writerhub.payments.service import payment_history, payment_summary, payment_totals, record_payment

router = APIRouter(prefix="/api/payments", tags=["Payments"])


@router.get("/summary", response_model=list[PaymentSummaryRow])
async def summary(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[PaymentSummaryRow]:
    rows = await payment_summary(db, user)
    return [
        PaymentSummaryRow(
            id=row.writer.id,
            name=row.writer.name,
            email=row.writer.email,
            completed_assignments=row.completed_assignments,
            total_earned=float(row.total_earned),
            total_paid=float(row.total_paid),
            balance_owed=float(row.balance_owed),
        )
        for row in rows
    ]


@router.get("/history", response_model=list[PaymentResponse])
async def history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[PaymentResponse]:
    rows = await payment_history(db, user)
    return [
        PaymentResponse.model_validate(p).model_copy(update={"writer_name": w.name, "writer_email": w.email})
        for p, w in rows
    ]


@router.post("", response_model=PaymentResponse, status_code=201)
async def create_payment(
    body: PaymentCreate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> PaymentResponse:
    """Record a payment to a writer and notify them by email and in-app."""
    try:
        payment, writer = await record_payment(db, body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    email = render_email(
        "payment_received",
        writer_name=writer.name,
        amount=payment.amount,
        method=payment.method,
        reference=payment.reference,
        app_url=get_settings().base_url,
    )
    await dispatcher.notify_user(
        db,
        writer.id,
        "Payment Received",
        f"You received a payment of ${payment.amount:.2f}",
        "payment",
        email=email,
    )
    await db.commit()
    return PaymentResponse.model_validate(payment).model_copy(
        update={"writer_name": writer.name, "writer_email": writer.email}
    )


@router.get("/totals", response_model=PaymentTotals)
async def totals(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> PaymentTotals:
    paid, pending = await payment_totals(db)
    return PaymentTotals(total_paid=float(paid), total_pending=float(pending))
