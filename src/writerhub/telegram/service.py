"""Telegram account linking and bot command handling."""

from __future__ import annotations

import html
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.db.models import TelegramLinkCode, User

logger = structlog.get_logger()

LINK_CODE_TTL = timedelta(minutes=10)
LINK_CODE_PATTERN = re.compile(r"^[A-F0-9]{6}$")

HELP_TEXT = (
    "👋 Welcome to <b>{app}</b> notifications!\n\n"
    "To link your account, go to {app} settings and generate a link code, then send it here.\n\n"
    "Commands:\n"
    "/start - Show this message\n"
    "/status - Check link status\n"
    "/unlink - Unlink your account"
)
NOT_LINKED_TEXT = (
    "❌ Your Telegram is not linked to any {app} account.\n\n"
    "Generate a link code in {app} settings to connect."
)
INVALID_CODE_TEXT = "❌ Invalid or expired code.\n\nPlease generate a new code in {app} settings."
FALLBACK_TEXT = "ℹ️ Send a valid link code, or use /start for help."


@dataclass(frozen=True)
class LinkCode:
    code: str
    expires_at: datetime


async def generate_link_code(db: AsyncSession, user_id: int) -> LinkCode:
    """Replace any outstanding code for the user with a fresh 6-hex-digit one."""
    await db.execute(delete(TelegramLinkCode).where(TelegramLinkCode.user_id == user_id))
    code = secrets.token_hex(3).upper()
    expires_at = datetime.now(timezone.utc) + LINK_CODE_TTL
    db.add(TelegramLinkCode(user_id=user_id, code=code, expires_at=expires_at))
    await db.flush()
    return LinkCode(code=code, expires_at=expires_at)


async def unlink_user(db: AsyncSession, user: User) -> None:
    user.telegram_chat_id = None
    user.telegram_username = None
    user.telegram_linked_at = None
    await db.flush()


async def _user_for_chat(db: AsyncSession, chat_id: str) -> User | None:
    result = await db.execute(select(User).where(User.telegram_chat_id == chat_id))
    return result.scalars().first()


async def redeem_link_code(db: AsyncSession, code: str, chat_id: str, username: str | None) -> User | None:
    """Link the chat to the code's owner. Returns None for unknown or expired codes."""
    result = await db.execute(
        select(TelegramLinkCode).where(
            TelegramLinkCode.code == code,
            TelegramLinkCode.expires_at > datetime.now(timezone.utc),
        )
    )
    link = result.scalar_one_or_none()
    if link is None:
        return None
    user = await db.get(User, link.user_id)
    if user is None:
        return None
    user.telegram_chat_id = chat_id
    user.telegram_username = username
    user.telegram_linked_at = datetime.now(timezone.utc)
    await db.execute(delete(TelegramLinkCode).where(TelegramLinkCode.code == code))
    await db.flush()
    logger.info("telegram_linked", user_id=user.id)
    return user


async def handle_bot_message(db: AsyncSession, chat_id: str, text: str, username: str | None, app_name: str) -> str:
    """Apply a bot command or link code and return the reply text."""
    text = (text or "").strip()
    if text == "/start":
        return HELP_TEXT.format(app=app_name)
    if text == "/status":
        user = await _user_for_chat(db, chat_id)
        if user is None:
            return NOT_LINKED_TEXT.format(app=app_name)
        return f"✅ Your Telegram is linked to: <b>{html.escape(user.name)}</b>"
    if text == "/unlink":
        user = await _user_for_chat(db, chat_id)
        if user is not None:
            await unlink_user(db, user)
        return "✅ Your account has been unlinked."
    if LINK_CODE_PATTERN.match(text.upper()):
        user = await redeem_link_code(db, text.upper(), chat_id, username)
        if user is None:
            return INVALID_CODE_TEXT.format(app=app_name)
        return (
            "✅ <b>Success!</b>\n\n"
            f"Your Telegram is now linked to: <b>{html.escape(user.name)}</b>\n\n"
            "You'll receive notifications for:\n"
            "📋 New job postings\n"
            "💬 New messages\n"
            "📢 Important updates"
        )
    return FALLBACK_TEXT
