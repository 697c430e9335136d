"""Telegram Bot API client and notification channel."""

from __future__ import annotations

import html

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.config import get_settings
from writerhub.db.models import User
from writerhub.notifications.dispatcher import NotificationChannel, OutboundMessage

logger = structlog.get_logger()


class TelegramBot:
    """Minimal async client for ``sendMessage``."""

    def __init__(
        self,
        token: str | None = None,
        api_base: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.token = settings.telegram_bot_token if token is None else token
        self.api_base = (api_base or settings.telegram_api_base).rstrip("/")
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    async def send_message(self, chat_id: str | int, text: str) -> bool:
        """Send an HTML-formatted message. Returns the API's ``ok`` flag."""
        if not self.enabled or not chat_id:
            return False
        async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
            response = await client.post(
                f"{self.api_base}/bot{self.token}/sendMessage",
                json={"chat_id": chat_id, "text": text, "parse_mode": "HTML"},
            )
        data = response.json()
        if not data.get("ok"):
            logger.warning("telegram_send_rejected", chat_id=str(chat_id), description=data.get("description"))
            return False
        return True


def format_notification(message: OutboundMessage) -> str:
    """Default Telegram rendering: bold title, escaped body."""
    if message.telegram_html:
        return message.telegram_html
    return f"<b>{html.escape(message.title)}</b>\n\n{html.escape(message.body)}"


class TelegramChannel(NotificationChannel):
    """Deliver notifications to users with a linked Telegram chat."""

    name = "telegram"

    def __init__(self, bot: TelegramBot | None = None) -> None:
        self.bot = bot or TelegramBot()

    async def deliver(self, db: AsyncSession, user: User, message: OutboundMessage) -> None:
        if not user.telegram_chat_id or not self.bot.enabled:
            return
        await self.bot.send_message(user.telegram_chat_id, format_notification(message))


_bot: TelegramBot | None = None


def get_telegram_bot() -> TelegramBot:
    """Get or create the bot client (FastAPI dependency)."""
    global _bot  # noqa: PLW0603
    if _bot is None:
        _bot = TelegramBot()
    return _bot


def reset_telegram_bot() -> None:
    global _bot  # noqa: PLW0603
    _bot = None
