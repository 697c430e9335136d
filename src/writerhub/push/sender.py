"""Web Push delivery via pywebpush."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

import structlog
from pywebpush import WebPushException, webpush
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.config import get_settings
from writerhub.db.models import PushSubscription, User
from writerhub.notifications.dispatcher import NotificationChannel, OutboundMessage

logger = structlog.get_logger()

ICON_URL = "/icons/icon.svg"
# Push service answers these for expired or unknown subscriptions
GONE_STATUS_CODES = frozenset({404, 410})


def build_payload(title: str, body: str, url: str | None = None) -> str:
    """JSON payload consumed by the service worker."""
    return json.dumps(
        {
            "title": title,
            "body": body,
            "icon": ICON_URL,
            "badge": ICON_URL,
            "url": url or "/",
            "timestamp": int(time.time() * 1000),
        }
    )


def _send_blocking(subscription: PushSubscription, payload: str, private_key: str, subject: str) -> Any:  # noqa: ANN401
    return webpush(
        subscription_info={
            "endpoint": subscription.endpoint,
            "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
        },
        data=payload,
        vapid_private_key=private_key,
        vapid_claims={"sub": subject},
    )


async def send_push_to_user(db: AsyncSession, user_id: int, title: str, body: str, url: str | None = None) -> int:
    """Push to every subscription of a user. Returns how many succeeded.

    Subscriptions the push service reports as gone are deleted.
    """
    settings = get_settings()
    if not settings.vapid_public_key or not settings.vapid_private_key:
        return 0

    result = await db.execute(select(PushSubscription).where(PushSubscription.user_id == user_id))
    subscriptions = list(result.scalars().all())
    payload = build_payload(title, body, url)
    sent = 0
    for sub in subscriptions:
        try:
            await asyncio.to_thread(
                _send_blocking, sub, payload, settings.vapid_private_key, settings.vapid_subject
            )
            sent += 1
        except WebPushException as exc:
            status = exc.response.status_code if exc.response is not None else None
            logger.warning("push_send_failed", subscription_id=sub.id, status=status)
            if status in GONE_STATUS_CODES:
                await db.execute(delete(PushSubscription).where(PushSubscription.id == sub.id))
                logger.info("push_subscription_removed", subscription_id=sub.id)
    return sent


class WebPushChannel(NotificationChannel):
    """Deliver notifications as browser push messages."""

    name = "web_push"

    async def deliver(self, db: AsyncSession, user: User, message: OutboundMessage) -> None:
        await send_push_to_user(db, user.id, message.title, message.body, message.link)
