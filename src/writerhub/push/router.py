"""Web Push subscription endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import get_current_user
from writerhub.config import get_settings
from writerhub.database import get_session
from writerhub.db.models import PushSubscription, User
from writerhub.push.sender import send_push_to_user

router = APIRouter(prefix="/api/push", tags=["Push"])


class SubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class Subscription(BaseModel):
    endpoint: str | None = None
    keys: SubscriptionKeys | None = None


class SubscribeRequest(BaseModel):
    subscription: Subscription | None = None


class UnsubscribeRequest(BaseModel):
    endpoint: str | None = None


@router.get("/vapid-key")
async def vapid_key() -> dict:
    """Public VAPID key for the browser subscription call."""
    return {"publicKey": get_settings().vapid_public_key or None}


@router.post("/subscribe")
async def subscribe(
    body: SubscribeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict:
    """Store (or refresh) a subscription for the current user."""
    sub = body.subscription
    if sub is None or not sub.endpoint or sub.keys is None:
        raise HTTPException(status_code=400, detail="Invalid subscription")

    result = await db.execute(
        select(PushSubscription).where(
            PushSubscription.user_id == user.id, PushSubscription.endpoint == sub.endpoint
        )
    )
    existing = result.scalar_one_or_none()
    if existing is None:
        db.add(PushSubscription(user_id=user.id, endpoint=sub.endpoint, p256dh=sub.keys.p256dh, auth=sub.keys.auth))
    else:
        existing.p256dh = sub.keys.p256dh
        existing.auth = sub.keys.auth
    await db.commit()
    return {"success": True, "message": "Subscription saved"}


@router.post("/unsubscribe")
async def unsubscribe(
    body: UnsubscribeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await db.execute(
        delete(PushSubscription).where(
            PushSubscription.user_id == user.id, PushSubscription.endpoint == body.endpoint
        )
    )
    await db.commit()
    return {"success": True}


@router.get("/status")
async def status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict:
    result = await db.execute(select(PushSubscription).where(PushSubscription.user_id == user.id))
    subs = list(result.scalars().all())
    return {
        "subscribed": bool(subs),
        "subscriptions": len(subs),
        "devices": [
            {"id": s.id, "endpoint": s.endpoint[:50] + "...", "created": s.created_at} for s in subs
        ],
    }


@router.post("/test")
async def test_push(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict:
    """Send a test push to the caller's own devices."""
    sent = await send_push_to_user(
        db, user.id, "Test Notification", "If you see this, push notifications are working!", "/"
    )
    await db.commit()
    return {"success": True, "sent": sent, "message": "Test push sent - check your notifications"}
