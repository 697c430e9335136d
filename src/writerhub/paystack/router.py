"""Paystack router: /api/paystack/* endpoints."""

from __future__ import annotations

import json

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.config import get_settings
from writerhub.database import get_session
from writerhub.email.service import EmailService, get_email_service
from writerhub.orders.service import send_order_receipt
from writerhub.paystack.client import PaystackClient, PaystackError, get_paystack_client
from writerhub.paystack.schemas import (
    Bank,
    BanksResponse,
    InitializeRequest,
    InitializeResponse,
    VerifyAccountRequest,
    VerifyAccountResponse,
    VerifyResponse,
)
from writerhub.paystack.service import from_subunit, handle_event, initialize_payment, verify_payment, verify_signature

logger = structlog.get_logger()

router = APIRouter(prefix="/api/paystack", tags=["Paystack"])


def _gateway_down(exc: httpx.HTTPError) -> HTTPException:
    logger.error("paystack_unreachable", error=str(exc))
    return HTTPException(status_code=502, detail="Payment gateway unavailable")


@router.post("/initialize", response_model=InitializeResponse)
async def initialize(
    body: InitializeRequest,
    db: AsyncSession = Depends(get_session),
    client: PaystackClient = Depends(get_paystack_client),
) -> InitializeResponse:
    if not body.email or not body.amount:
        raise HTTPException(status_code=400, detail="Email and amount are required")
    settings = get_settings()
    callback_url = (
        body.callback_url or settings.paystack_callback_url or f"{settings.base_url}/client.html?payment=callback"
    )
    try:
        data = await initialize_payment(
            db,
            client,
            body.email,
            body.amount,
            body.currency or settings.paystack_currency,
            callback_url,
            body.metadata,
        )
    except PaystackError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except httpx.HTTPError as e:
        raise _gateway_down(e) from e
    await db.commit()
    return InitializeResponse(
        authorization_url=data.get("authorization_url"),
        access_code=data.get("access_code"),
        reference=data.get("reference"),
    )


@router.get("/verify/{reference}", response_model=VerifyResponse)
async def verify(
    reference: str,
    db: AsyncSession = Depends(get_session),
    client: PaystackClient = Depends(get_paystack_client),
) -> VerifyResponse:
    try:
        data = await verify_payment(db, client, reference)
    except PaystackError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except httpx.HTTPError as e:
        raise _gateway_down(e) from e
    await db.commit()
    return VerifyResponse(
        success=data.get("status") == "success",
        status=data.get("status"),
        amount=from_subunit(data.get("amount")),
        currency=data.get("currency"),
        reference=data.get("reference"),
        channel=data.get("channel"),
        paid_at=data.get("paid_at"),
        metadata=data.get("metadata"),
    )


@router.post("/webhook")
async def webhook(
    request: Request,
    db: AsyncSession = Depends(get_session),
    email_service: EmailService = Depends(get_email_service),
) -> Response:
    """Gateway events. Unsigned or mis-signed deliveries are rejected untouched."""
    raw = await request.body()
    signature = request.headers.get("x-paystack-signature")
    if not verify_signature(raw, signature, get_settings().paystack_secret_key):
        logger.warning("paystack_bad_signature")
        raise HTTPException(status_code=401, detail="Invalid signature")
    try:
        event = json.loads(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid payload") from e
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")

    order = await handle_event(db, event)
    await db.commit()
    if order is not None:
        await send_order_receipt(db, email_service, order)
        await db.commit()
    return Response(status_code=200)


@router.get("/config")
async def config() -> dict:
    settings = get_settings()
    return {"publicKey": settings.paystack_public_key, "currency": settings.paystack_currency}


@router.get("/banks", response_model=BanksResponse)
async def banks(
    country: str = "nigeria",
    client: PaystackClient = Depends(get_paystack_client),
) -> BanksResponse:
    try:
        data = await client.list_banks(country)
    except PaystackError as e:
        raise HTTPException(status_code=400, detail="Failed to fetch banks") from e
    except httpx.HTTPError as e:
        raise _gateway_down(e) from e
    return BanksResponse(banks=[Bank(name=b["name"], code=str(b["code"]), type=b.get("type")) for b in data or []])


@router.post("/verify-account", response_model=VerifyAccountResponse)
async def verify_account(
    body: VerifyAccountRequest,
    client: PaystackClient = Depends(get_paystack_client),
) -> VerifyAccountResponse:
    if not body.account_number or not body.bank_code:
        raise HTTPException(status_code=400, detail="Account number and bank code are required")
    try:
        data = await client.resolve_account(body.account_number, body.bank_code)
    except PaystackError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except httpx.HTTPError as e:
        raise _gateway_down(e) from e
    return VerifyAccountResponse(account_name=data.get("account_name"), account_number=data.get("account_number"))
