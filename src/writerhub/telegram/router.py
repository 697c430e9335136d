"""Telegram linking endpoints and bot webhook."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import get_current_user
from writerhub.config import get_settings
from writerhub.database import get_session
from writerhub.db.models import User
from writerhub.telegram.bot import TelegramBot, get_telegram_bot
from writerhub.telegram.service import generate_link_code, handle_bot_message, unlink_user

logger = structlog.get_logger()

router = APIRouter(prefix="/api/telegram", tags=["Telegram"])


@router.post("/generate-link-code")
async def create_link_code(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict:
    link = await generate_link_code(db, user.id)
    await db.commit()
    bot_username = get_settings().telegram_bot_username
    return {
        "code": link.code,
        "expiresAt": link.expires_at,
        "botLink": f"https://t.me/{bot_username}",
        "instructions": (
            f"1. Open Telegram and search for @{bot_username}\n"
            "2. Start a chat with the bot\n"
            f"3. Send this code: {link.code}"
        ),
    }


@router.get("/status")
async def link_status(user: User = Depends(get_current_user)) -> dict:
    return {
        "linked": bool(user.telegram_chat_id),
        "username": user.telegram_username,
        "linkedAt": user.telegram_linked_at,
    }


@router.post("/unlink")
async def unlink(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict:
    await unlink_user(db, user)
    await db.commit()
    return {"success": True, "message": "Telegram unlinked successfully"}


@router.post("/webhook")
async def webhook(
    request: Request,
    db: AsyncSession = Depends(get_session),
    bot: TelegramBot = Depends(get_telegram_bot),
) -> dict:
    """Bot update receiver. Always answers 200 so Telegram does not retry."""
    try:
        update: dict[str, Any] = await request.json()
        message = update.get("message") or {}
        chat = message.get("chat") or {}
        if chat.get("id") is not None:
            sender = message.get("from") or {}
            reply = await handle_bot_message(
                db,
                str(chat["id"]),
                message.get("text") or "",
                sender.get("username") or sender.get("first_name"),
                get_settings().app_name,
            )
            await db.commit()
            await bot.send_message(chat["id"], reply)
    except Exception:
        await db.rollback()
        logger.warning("telegram_webhook_failed", exc_info=True)
    return {"ok": True}
