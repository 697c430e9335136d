"""Notification fan-out.

State-changing code calls the :class:`NotificationDispatcher` after its write
succeeds. The dispatcher stores an in-app notification for every recipient
and then offers the message to each delivery channel (Web Push, Telegram,
email). Channel failures are logged and never reach the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field, replace

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.db.models import User
from writerhub.notifications.service import create_notification

logger = structlog.get_logger()


@dataclass(frozen=True)
class EmailContent:
    subject: str
    html_body: str
    text_body: str


@dataclass(frozen=True)
class OutboundMessage:
    """What a channel needs to deliver one notification."""

    title: str
    body: str
    type: str = "info"
    link: str | None = None
    telegram_html: str | None = None
    email: EmailContent | None = None


class NotificationChannel(ABC):
    """A delivery transport beyond the in-app inbox."""

    name: str = "channel"

    @abstractmethod
    async def deliver(self, db: AsyncSession, user: User, message: OutboundMessage) -> None:
        """Deliver to one user. May raise; the dispatcher contains failures."""


@dataclass
class NotificationDispatcher:
    """Persist in-app notifications and fan out to delivery channels."""

    channels: list[NotificationChannel] = field(default_factory=list)

    async def _fan_out(self, db: AsyncSession, user: User, message: OutboundMessage) -> None:
        for channel in self.channels:
            try:
                await channel.deliver(db, user, message)
            except Exception:
                logger.warning(
                    "notification_channel_failed",
                    channel=channel.name,
                    user_id=user.id,
                    title=message.title,
                    exc_info=True,
                )

    async def send(
        self,
        db: AsyncSession,
        users: list[User],
        message: OutboundMessage,
        email_for: Callable[[User], EmailContent] | None = None,
    ) -> int:
        """Notify each user. Returns the number of recipients.

        ``email_for`` builds a personalised email per recipient.
        """
        for user in users:
            await create_notification(db, user.id, message.title, message.body, message.type, message.link)
        for user in users:
            personal = replace(message, email=email_for(user)) if email_for else message
            await self._fan_out(db, user, personal)
        if users:
            logger.info("notification_dispatched", title=message.title, recipients=len(users))
        return len(users)

    async def notify_user(
        self,
        db: AsyncSession,
        user_id: int,
        title: str,
        body: str,
        type_: str = "info",
        link: str | None = None,
        *,
        telegram_html: str | None = None,
        email: EmailContent | None = None,
    ) -> int:
        user = await db.get(User, user_id)
        if user is None:
            return 0
        message = OutboundMessage(title, body, type_, link, telegram_html, email)
        return await self.send(db, [user], message)

    async def notify_admins(
        self,
        db: AsyncSession,
        title: str,
        body: str,
        type_: str = "info",
        link: str | None = None,
        *,
        telegram_html: str | None = None,
    ) -> int:
        result = await db.execute(select(User).where(User.role == "admin", User.status == "active"))
        admins = list(result.scalars().all())
        return await self.send(db, admins, OutboundMessage(title, body, type_, link, telegram_html))

    async def notify_writers(
        self,
        db: AsyncSession,
        domain: str | None,
        title: str,
        body: str,
        type_: str = "info",
        link: str | None = None,
        *,
        telegram_html: str | None = None,
        email_for: Callable[[User], EmailContent] | None = None,
    ) -> int:
        """Notify active writers covering ``domain``, or every active writer when it is empty."""
        result = await db.execute(select(User).where(User.role == "writer", User.status == "active"))
        writers = list(result.scalars().all())
        wanted = (domain or "").strip().lower()
        if wanted:
            writers = [w for w in writers if wanted in (d.lower() for d in w.domain_list)]
        return await self.send(db, writers, OutboundMessage(title, body, type_, link, telegram_html), email_for)


_dispatcher: NotificationDispatcher | None = None


def build_default_channels() -> list[NotificationChannel]:
    """Channels enabled by configuration."""
    from writerhub.email.service import EmailChannel
    from writerhub.push.sender import WebPushChannel
    from writerhub.telegram.bot import TelegramChannel

    return [WebPushChannel(), TelegramChannel(), EmailChannel()]


def get_dispatcher() -> NotificationDispatcher:
    """Get or create the dispatcher singleton (FastAPI dependency)."""
    global _dispatcher  # noqa: PLW0603
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(channels=build_default_channels())
    return _dispatcher


def reset_dispatcher() -> None:
    """Reset the dispatcher singleton (for testing)."""
    global _dispatcher  # noqa: PLW0603
    _dispatcher = None
