"""Integration tests: Telegram account linking, bot webhook and the bot client."""

from __future__ import annotations

import json

import httpx
from httpx import AsyncClient

from writerhub.notifications.dispatcher import OutboundMessage
from writerhub.telegram.bot import TelegramBot, TelegramChannel, format_notification


def _update(chat_id: int, text: str, username: str = "wendy_w") -> dict:
    return {"message": {"chat": {"id": chat_id}, "from": {"username": username}, "text": text}}


class TestLinking:
    async def test_code_links_chat_to_account(
        self, writer_client: AsyncClient, client: AsyncClient, telegram_bot, writer, db_session
    ):
        data = (await writer_client.post("/api/telegram/generate-link-code")).json()
        assert len(data["code"]) == 6
        assert data["botLink"] == "https://t.me/WriterHubBot"

        response = await client.post("/api/telegram/webhook", json=_update(555, data["code"].lower()))
        assert response.json() == {"ok": True}
        chat_id, reply = telegram_bot.sent[-1]
        assert chat_id == "555"
        assert "Wendy Writer" in reply

        status = (await writer_client.get("/api/telegram/status")).json()
        assert status["linked"] is True
        assert status["username"] == "wendy_w"

        await db_session.refresh(writer)
        assert writer.telegram_chat_id == "555"

    async def test_code_is_single_use(self, writer_client: AsyncClient, client: AsyncClient, telegram_bot):
        code = (await writer_client.post("/api/telegram/generate-link-code")).json()["code"]
        await client.post("/api/telegram/webhook", json=_update(555, code))
        await client.post("/api/telegram/webhook", json=_update(777, code))
        assert telegram_bot.sent[-1][1].startswith("❌ Invalid or expired code.")

    async def test_unlink(self, writer_client: AsyncClient, client: AsyncClient):
        code = (await writer_client.post("/api/telegram/generate-link-code")).json()["code"]
        await client.post("/api/telegram/webhook", json=_update(555, code))
        assert (await writer_client.post("/api/telegram/unlink")).json()["success"] is True
        assert (await writer_client.get("/api/telegram/status")).json()["linked"] is False


class TestBotCommands:
    async def test_start_and_status(self, client: AsyncClient, telegram_bot):
        await client.post("/api/telegram/webhook", json=_update(1, "/start"))
        await client.post("/api/telegram/webhook", json=_update(1, "/status"))
        await client.post("/api/telegram/webhook", json=_update(1, "hello"))
        replies = [text for _chat, text in telegram_bot.sent]
        assert "Welcome to <b>WriterHub</b>" in replies[0]
        assert replies[1].startswith("❌ Your Telegram is not linked")
        assert replies[2] == "ℹ️ Send a valid link code, or use /start for help."

    async def test_malformed_update_is_acknowledged(self, client: AsyncClient, telegram_bot):
        response = await client.post("/api/telegram/webhook", content=b"not json")
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert telegram_bot.sent == []

    async def test_update_without_message(self, client: AsyncClient, telegram_bot):
        assert (await client.post("/api/telegram/webhook", json={"edited_message": {}})).json() == {"ok": True}
        assert telegram_bot.sent == []


class TestBotClient:
    async def test_send_message_posts_html(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        bot = TelegramBot(token="abc", api_base="https://tg.test/", transport=httpx.MockTransport(handler))
        assert await bot.send_message(42, "<b>hi</b>") is True
        assert str(requests[0].url) == "https://tg.test/botabc/sendMessage"
        assert json.loads(requests[0].content) == {"chat_id": 42, "text": "<b>hi</b>", "parse_mode": "HTML"}

    async def test_rejected_send(self):
        transport = httpx.MockTransport(lambda _req: httpx.Response(200, json={"ok": False, "description": "blocked"}))
        bot = TelegramBot(token="abc", transport=transport)
        assert await bot.send_message(42, "hi") is False

    async def test_disabled_without_token(self):
        bot = TelegramBot(token="")
        assert bot.enabled is False
        assert await bot.send_message(42, "hi") is False

    def test_default_formatting_escapes_body(self):
        text = format_notification(OutboundMessage("Heads up", "a < b"))
        assert text == "<b>Heads up</b>\n\na &lt; b"

    async def test_channel_skips_unlinked_users(self, writer, db_session, telegram_bot):
        await TelegramChannel(telegram_bot).deliver(db_session, writer, OutboundMessage("T", "B"))
        assert telegram_bot.sent == []
