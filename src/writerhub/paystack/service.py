"""Paystack transactions: references, amounts, signatures and webhook events."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.db.models import ClientOrder, PaymentTransaction
from writerhub.db.types import utcnow
from writerhub.orders.service import OrderNotFoundError, get_order, mark_order_paid
from writerhub.paystack.client import PaystackClient

logger = structlog.get_logger()

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    digits = ""
    while True:
        n, r = divmod(n, 36)
        digits = _BASE36[r] + digits
        if n == 0:
            return digits


def generate_reference(now_ms: int | None = None) -> str:
    """``HP-{base36 epoch ms}-{8 hex}``, upper-cased."""
    ms = int(time.time() * 1000) if now_ms is None else now_ms
    return f"HP-{_base36(ms)}-{secrets.token_hex(4)}".upper()


def to_subunit(amount: Decimal) -> int:
    """Major currency units to the smallest unit (kobo, pesewas, cents)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_subunit(amount: int | None) -> float:
    return (amount or 0) / 100


def verify_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    """HMAC-SHA512 of the raw body, compared in constant time."""
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode(), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)


def _parse_time(value: Any) -> datetime:  # noqa: ANN401
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return utcnow()
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return utcnow()


async def get_transaction(db: AsyncSession, reference: str) -> PaymentTransaction | None:
    result = await db.execute(select(PaymentTransaction).where(PaymentTransaction.reference == reference))
    return result.scalar_one_or_none()


async def initialize_payment(
    db: AsyncSession,
    client: PaystackClient,
    email: str,
    amount: Decimal,
    currency: str,
    callback_url: str,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Open a gateway transaction and upsert the pending local record.

    Raises:
        PaystackError: The gateway rejected the request.
    """
    metadata = dict(metadata or {})
    reference = generate_reference()
    gateway_metadata = {
        **metadata,
        "custom_fields": [
            {
                "display_name": "Order Type",
                "variable_name": "order_type",
                "value": metadata.get("orderType", "assignment"),
            }
        ],
    }
    data = await client.initialize(email, to_subunit(amount), currency, reference, callback_url, gateway_metadata)

    tx = await get_transaction(db, reference)
    if tx is None:
        tx = PaymentTransaction(reference=reference, email=email, amount=amount, currency=currency, metadata_=metadata)
        db.add(tx)
    else:
        tx.email = email
        tx.amount = amount
    tx.status = "pending"
    await db.flush()
    logger.info("paystack_initialized", reference=reference, amount=str(amount), currency=currency)
    return data


async def verify_payment(db: AsyncSession, client: PaystackClient, reference: str) -> dict[str, Any]:
    """
    Refresh the local transaction from the gateway.

    Raises:
        PaystackError: The gateway could not verify the reference.
    """
    data = await client.verify(reference)
    tx = await get_transaction(db, reference)
    if tx is not None:
        tx.status = data.get("status") or tx.status
        tx.paystack_response = data
        tx.gateway_response = data.get("gateway_response")
        tx.channel = data.get("channel")
        tx.verified_at = utcnow()
        if data.get("paid_at"):
            tx.paid_at = _parse_time(data["paid_at"])
        await db.flush()
    return data


async def _settle_order(db: AsyncSession, order_number: str, reference: str) -> ClientOrder | None:
    try:
        order = await get_order(db, order_number)
    except OrderNotFoundError:
        logger.warning("paystack_order_missing", order_number=order_number, reference=reference)
        return None
    if await mark_order_paid(db, order, "paystack", reference):
        return order
    return None


async def handle_charge_success(db: AsyncSession, data: dict[str, Any]) -> ClientOrder | None:
    """
    Mark the transaction successful and settle the order it pays for.

    Returns the order when this delivery newly settled it. Repeat deliveries
    of the same event change nothing.
    """
    reference = data.get("reference")
    if not reference:
        return None
    tx = await get_transaction(db, reference)
    if tx is not None and tx.status == "success":
        logger.info("paystack_duplicate_event", reference=reference)
        return None

    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    if tx is not None:
        tx.status = "success"
        tx.paystack_response = data
        tx.paid_at = _parse_time(data.get("paid_at"))
        tx.verified_at = utcnow()
        metadata = tx.metadata_ or metadata

    order = None
    if metadata.get("orderNumber"):
        order = await _settle_order(db, str(metadata["orderNumber"]), reference)
    await db.flush()
    logger.info("paystack_charge_success", reference=reference)
    return order


async def handle_charge_failed(db: AsyncSession, data: dict[str, Any]) -> None:
    reference = data.get("reference")
    tx = await get_transaction(db, reference) if reference else None
    if tx is None or tx.status == "success":
        return
    tx.status = "failed"
    tx.paystack_response = data
    tx.gateway_response = data.get("gateway_response")
    await db.flush()
    logger.info("paystack_charge_failed", reference=reference, gateway_response=tx.gateway_response)


async def handle_event(db: AsyncSession, event: dict[str, Any]) -> ClientOrder | None:
    """Dispatch a verified webhook event. Returns a newly settled order, if any."""
    kind = event.get("event")
    data = event.get("data")
    if not isinstance(data, dict):
        data = {}
    if kind == "charge.success":
        return await handle_charge_success(db, data)
    if kind == "charge.failed":
        await handle_charge_failed(db, data)
    elif kind in ("transfer.success", "transfer.failed"):
        logger.info("paystack_transfer_event", event_type=kind, reference=data.get("reference"))
    else:
        logger.debug("paystack_event_ignored", event_type=kind)
    return None
