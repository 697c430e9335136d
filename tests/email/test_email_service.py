"""Tests for email service and templates."""

import json
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import aiosmtplib
import httpx
import pytest

from writerhub.email import service as email_module
from writerhub.email.service import (
    _TEMPLATE_REGISTRY,
    BaseEmailProvider,
    EmailChannel,
    EmailService,
    ResendProvider,
    SMTPProvider,
    provider_from_settings,
    render_email,
)
from writerhub.email.templates import (
    new_assignment,
    order_receipt,
    payment_received,
    welcome_writer,
)
from writerhub.notifications.dispatcher import EmailContent, OutboundMessage


CONTENT = EmailContent("Hi", "<p>Hi</p>", "Hi")


class _Outbox(BaseEmailProvider):
    def __init__(self, configured: bool = True) -> None:
        self._configured = configured
        self.sent: list[tuple[str, str]] = []

    @property
    def configured(self) -> bool:
        return self._configured

    async def send(self, to_email: str, content: EmailContent) -> bool:
        self.sent.append((to_email, content.subject))
        return True


class TestEmailTemplates:
    def test_new_assignment(self):
        subject, html, text = new_assignment("Wendy", "Care <plan>", 1500, "2026-03-01", "https://app.test")
        assert subject == "New Assignment: Care <plan>"
        assert "Care &lt;plan&gt;" in html
        assert "1,500 words" in html
        assert "https://app.test/job-board" in text

    def test_payment_received(self):
        subject, html, text = payment_received("Wendy", Decimal("120.5"), "bank-transfer", "REF-9", "https://app.test")
        assert subject == "Payment Received: $120.50"
        assert "via bank transfer" in html
        assert "Reference: REF-9" in text

    def test_payment_without_reference(self):
        _subject, html, text = payment_received("Wendy", Decimal("10"), "mpesa", None, "https://app.test")
        assert "Ref:" not in html
        assert "Reference" not in text

    def test_welcome_writer_carries_credentials(self):
        subject, html, text = welcome_writer("Wendy", "wendy@example.com", "Xk7pQ2mn9a", "https://app.test")
        assert subject == "Welcome to WriterHub!"
        assert "Xk7pQ2mn9a" in html
        assert "Temporary password: Xk7pQ2mn9a" in text

    def test_order_receipt_shows_discount_only_when_applied(self):
        args = ("Casey", "ORD-1", "Standard Essay", 3, Decimal("45"))
        _s, with_discount, _t = order_receipt(*args, Decimal("4.50"), Decimal("40.50"), "card")
        _s, without_discount, text = order_receipt(*args, Decimal("0"), Decimal("45"), None)
        assert "-$4.50" in with_discount
        assert "Member discount" not in without_discount
        assert "Total paid: $45.00" in text


class TestEmailService:
    def test_template_registry(self):
        assert set(_TEMPLATE_REGISTRY) == {"new_assignment", "payment_received", "welcome_writer", "order_receipt"}

    async def test_send_template_renders_and_sends(self):
        outbox = _Outbox()
        service = EmailService(provider=outbox)
        sent = await service.send_template(
            "wendy@example.com",
            "welcome_writer",
            writer_name="Wendy",
            email="wendy@example.com",
            temp_password="abc",
            app_url="https://app.test",
        )
        assert sent is True
        assert outbox.sent == [("wendy@example.com", "Welcome to WriterHub!")]

    def test_render_returns_email_content(self):
        content = render_email(
            "payment_received",
            writer_name="Wendy",
            amount=Decimal("5"),
            method="mpesa",
            reference=None,
            app_url="https://app.test",
        )
        assert content.subject == "Payment Received: $5.00"

    def test_unknown_template(self):
        with pytest.raises(ValueError, match="Unknown template"):
            render_email("nope")

    async def test_unconfigured_provider_skips(self):
        outbox = _Outbox(configured=False)
        assert await EmailService(provider=outbox).send("a@example.com", CONTENT) is False
        assert outbox.sent == []

    async def test_empty_recipient_skips(self):
        assert await EmailService(provider=_Outbox()).send("", CONTENT) is False


class TestProviders:
    async def test_smtp_send(self):
        provider = SMTPProvider("smtp.test", 587, "user", "pass", "noreply@test", "WriterHub")
        with patch("writerhub.email.service.aiosmtplib.send", new_callable=AsyncMock) as send:
            assert await provider.send("a@example.com", CONTENT) is True
        message = send.call_args.args[0]
        assert message["To"] == "a@example.com"
        assert message["From"] == "WriterHub <noreply@test>"
        assert send.call_args.kwargs["hostname"] == "smtp.test"

    async def test_smtp_failure_returns_false(self):
        provider = SMTPProvider("smtp.test", 587, "user", "pass", "noreply@test", "WriterHub")
        with patch("writerhub.email.service.aiosmtplib.send", new=AsyncMock(side_effect=aiosmtplib.SMTPConnectError("refused"))):
            assert await provider.send("a@example.com", CONTENT) is False

    def test_provider_chosen_from_settings(self):
        settings = SimpleNamespace(
            email_provider="RESEND", resend_api_key="k", email_from_address="a@test", email_from_name="W"
        )
        assert isinstance(provider_from_settings(settings), ResendProvider)
        with pytest.raises(ValueError, match="Unsupported email provider"):
            provider_from_settings(SimpleNamespace(email_provider="pigeon"))

    def test_smtp_requires_credentials(self):
        assert SMTPProvider("smtp.test", 587, "", "", "noreply@test", "WriterHub").configured is False

    async def test_resend_posts_json(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "email_1"})

        provider = ResendProvider("re_key", "noreply@test", "WriterHub", transport=httpx.MockTransport(handler))
        assert await provider.send("a@example.com", CONTENT) is True
        body = json.loads(requests[0].content)
        assert body["to"] == ["a@example.com"]
        assert requests[0].headers["Authorization"] == "Bearer re_key"

    async def test_resend_error_returns_false(self):
        provider = ResendProvider(
            "re_key", "noreply@test", "WriterHub", transport=httpx.MockTransport(lambda _r: httpx.Response(500))
        )
        assert await provider.send("a@example.com", CONTENT) is False


class TestEmailChannel:
    async def test_delivers_only_messages_with_email_content(self, monkeypatch):
        outbox = _Outbox()
        monkeypatch.setattr(email_module, "_email_service", EmailService(provider=outbox))
        user = SimpleNamespace(email="wendy@example.com")
        channel = EmailChannel()

        await channel.deliver(None, user, OutboundMessage("Plain", "no email"))
        await channel.deliver(
            None, user, OutboundMessage("Paid", "body", email=EmailContent("Payment Received", "<p>x</p>", "x"))
        )
        assert outbox.sent == [("wendy@example.com", "Payment Received")]
