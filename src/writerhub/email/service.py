"""
Outbound email: template rendering and provider delivery.

Templates render to :class:`EmailContent`, the same value the notification
dispatcher carries, so an email can be sent directly or attached to a
notification and delivered by :class:`EmailChannel`.

Delivery never raises: providers log the failure and return False.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable
from email.message import EmailMessage
from typing import TYPE_CHECKING, Any

import aiosmtplib
import httpx
import structlog

from writerhub.config import Settings, get_settings
from writerhub.email.templates import (
    new_assignment,
    order_receipt,
    payment_received,
    welcome_writer,
)
from writerhub.notifications.dispatcher import EmailContent, NotificationChannel, OutboundMessage

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from writerhub.db.models import User

logger = structlog.get_logger()

RESEND_API_URL = "https://api.resend.com/emails"

_TEMPLATE_REGISTRY: dict[str, Callable[..., tuple[str, str, str]]] = {
    "new_assignment": new_assignment,
    "payment_received": payment_received,
    "welcome_writer": welcome_writer,
    "order_receipt": order_receipt,
}


def render_email(template_name: str, **context: Any) -> EmailContent:  # noqa: ANN401
    """Render a registered template; ValueError for an unknown name."""
    template = _TEMPLATE_REGISTRY.get(template_name)
    if template is None:
        msg = f"Unknown template: {template_name}"
        raise ValueError(msg)
    return EmailContent(*template(**context))


class BaseEmailProvider(ABC):
    """A transport that delivers one rendered email."""

    name = "base"

    def __init__(self, from_address: str = "", from_name: str = "") -> None:
        self.from_address = from_address
        self.from_name = from_name

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_address}>"

    @property
    def configured(self) -> bool:
        return True

    @abstractmethod
    async def send(self, to_email: str, content: EmailContent) -> bool:
        """Deliver; True on success."""


class SMTPProvider(BaseEmailProvider):
    """Multipart text+HTML over SMTP with STARTTLS."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        super().__init__(from_address, from_name)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    @property
    def configured(self) -> bool:
        return bool(self.username and self.password)

    def build_message(self, to_email: str, content: EmailContent) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_email
        message["Subject"] = content.subject
        message.set_content(content.text_body)
        message.add_alternative(content.html_body, subtype="html")
        return message

    async def send(self, to_email: str, content: EmailContent) -> bool:
        try:
            await aiosmtplib.send(
                self.build_message(to_email, content),
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                tls_context=ssl.create_default_context() if self.use_tls else None,
            )
        except (aiosmtplib.SMTPException, OSError):
            logger.warning("email_send_failed", to=to_email, provider=self.name, exc_info=True)
            return False
        logger.info("email_sent", to=to_email, subject=content.subject, provider=self.name)
        return True


class ResendProvider(BaseEmailProvider):
    """JSON POST to the Resend API."""

    name = "resend"

    def __init__(
        self,
        api_key: str,
        from_address: str,
        from_name: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(from_address, from_name)
        self.api_key = api_key
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to_email: str, content: EmailContent) -> bool:
        payload = {
            "from": self.sender,
            "to": [to_email],
            "subject": content.subject,
            "html": content.html_body,
            "text": content.text_body,
        }
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                response = await client.post(
                    RESEND_API_URL, headers={"Authorization": f"Bearer {self.api_key}"}, json=payload
                )
                response.raise_for_status()
        except httpx.HTTPError:
            logger.warning("email_send_failed", to=to_email, provider=self.name, exc_info=True)
            return False
        logger.info("email_sent", to=to_email, subject=content.subject, provider=self.name)
        return True


def _smtp_provider(settings: Settings) -> BaseEmailProvider:
    return SMTPProvider(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        from_address=settings.email_from_address,
        from_name=settings.email_from_name,
        use_tls=settings.smtp_use_tls,
    )


def _resend_provider(settings: Settings) -> BaseEmailProvider:
    return ResendProvider(
        api_key=settings.resend_api_key,
        from_address=settings.email_from_address,
        from_name=settings.email_from_name,
    )


_PROVIDERS: dict[str, Callable[[Settings], BaseEmailProvider]] = {
    "smtp": _smtp_provider,
    "resend": _resend_provider,
}


def provider_from_settings(settings: Settings) -> BaseEmailProvider:
    factory = _PROVIDERS.get(settings.email_provider.lower())
    if factory is None:
        msg = f"Unsupported email provider: {settings.email_provider}"
        raise ValueError(msg)
    return factory(settings)


class EmailService:
    """Send rendered emails through the configured provider."""

    def __init__(self, provider: BaseEmailProvider | None = None) -> None:
        self.provider = provider or provider_from_settings(get_settings())

    async def send(self, to: str, content: EmailContent) -> bool:
        """False without a recipient, an unconfigured provider, or on failure."""
        if not to:
            return False
        if not self.provider.configured:
            logger.info("email_skipped_unconfigured", to=to, subject=content.subject)
            return False
        return await self.provider.send(to, content)

    async def send_template(self, to: str, template_name: str, **context: Any) -> bool:  # noqa: ANN401
        return await self.send(to, render_email(template_name, **context))


class EmailChannel(NotificationChannel):
    """Deliver notifications that carry email content."""

    name = "email"

    async def deliver(self, db: AsyncSession, user: User, message: OutboundMessage) -> None:
        if message.email is not None:
            await get_email_service().send(user.email, message.email)


_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


def reset_email_service() -> None:
    global _email_service  # noqa: PLW0603
    _email_service = None
