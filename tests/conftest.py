"""Shared test fixtures."""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

# Settings are read once and cached; configure the environment before any import.
os.environ["WH_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["WH_REDIS_URL"] = ""
os.environ["WH_JWT_SECRET"] = "test-secret"
os.environ["WH_UPLOAD_DIR"] = tempfile.mkdtemp(prefix="writerhub_test_uploads_")
os.environ["WH_PAYSTACK_SECRET_KEY"] = "sk_test_secret"
os.environ["WH_PAYSTACK_PUBLIC_KEY"] = "pk_test_public"
os.environ["WH_ANTHROPIC_API_KEY"] = ""
os.environ["WH_TELEGRAM_BOT_TOKEN"] = ""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.jwt import create_access_token, create_member_token
from writerhub.auth.password import hash_password
from writerhub.config import get_settings
from writerhub.database import close_db, create_tables, get_session_factory, init_db
from writerhub.db.models import Assignment, ClientMember, User
from writerhub.db.types import utcnow
from writerhub.email.service import BaseEmailProvider, EmailService, get_email_service, reset_email_service
from writerhub.main import create_app
from writerhub.membership.service import seed_tiers
from writerhub.notifications.dispatcher import (
    EmailContent,
    NotificationChannel,
    NotificationDispatcher,
    OutboundMessage,
    get_dispatcher,
    reset_dispatcher,
)
from writerhub.paystack.client import PaystackClient, get_paystack_client, reset_paystack_client
from writerhub.pricing.ai import (
    AIEstimate,
    EstimateRequest,
    PriceEstimator,
    get_price_estimator,
    reset_price_estimator,
)
from writerhub.telegram.bot import TelegramBot, get_telegram_bot, reset_telegram_bot

get_settings.cache_clear()

PASSWORD = "secret123"


# ---------------------------------------------------------------------------
# In-memory fakes for external collaborators
# ---------------------------------------------------------------------------


@dataclass
class Delivery:
    user_id: int
    message: OutboundMessage


class RecordingChannel(NotificationChannel):
    """Collects every delivery instead of sending it."""

    name = "recording"

    def __init__(self) -> None:
        self.deliveries: list[Delivery] = []

    async def deliver(self, db: AsyncSession, user: User, message: OutboundMessage) -> None:
        self.deliveries.append(Delivery(user.id, message))

    def titles(self) -> list[str]:
        return [d.message.title for d in self.deliveries]

    def recipients(self, title: str) -> set[int]:
        return {d.user_id for d in self.deliveries if d.message.title == title}


@dataclass
class SentEmail:
    to: str
    subject: str
    html_body: str
    text_body: str


class RecordingEmailProvider(BaseEmailProvider):
    def __init__(self) -> None:
        self.sent: list[SentEmail] = []

    async def send(self, to_email: str, content: EmailContent) -> bool:
        self.sent.append(SentEmail(to_email, content.subject, content.html_body, content.text_body))
        return True


@dataclass
class FakeEstimator(PriceEstimator):
    """Returns a fixed AI price (or nothing) and records the requests."""

    price: str | None = None
    requests: list[EstimateRequest] = field(default_factory=list)

    async def estimate(self, request: EstimateRequest) -> AIEstimate | None:
        self.requests.append(request)
        if self.price is None:
            return None
        return AIEstimate(estimated_price=Decimal(self.price), estimated_hours=4, reasoning="test estimate")


class RecordingBot(TelegramBot):
    def __init__(self) -> None:
        super().__init__(token="test-token")
        self.sent: list[tuple[str, str]] = []

    async def send_message(self, chat_id: str | int, text: str) -> bool:
        self.sent.append((str(chat_id), text))
        return True


PaystackHandler = Callable[[httpx.Request], httpx.Response]


class PaystackRoutes:
    """Maps request paths to canned gateway responses for httpx.MockTransport."""

    def __init__(self) -> None:
        self.handlers: dict[str, PaystackHandler] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for prefix, handler in self.handlers.items():
            if request.url.path.startswith(prefix):
                return handler(request)
        return httpx.Response(404, json={"status": False, "message": "Not found"})


# ---------------------------------------------------------------------------
# Application and database
# ---------------------------------------------------------------------------


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def email_provider() -> RecordingEmailProvider:
    return RecordingEmailProvider()


@pytest.fixture
def estimator() -> FakeEstimator:
    return FakeEstimator()


@pytest.fixture
def telegram_bot() -> RecordingBot:
    return RecordingBot()


@pytest.fixture
def paystack_routes() -> PaystackRoutes:
    return PaystackRoutes()


@pytest_asyncio.fixture
async def app(
    channel: RecordingChannel,
    email_provider: RecordingEmailProvider,
    estimator: FakeEstimator,
    telegram_bot: RecordingBot,
    paystack_routes: PaystackRoutes,
) -> AsyncGenerator[object, None]:
    """Application on a fresh in-memory database with fakes wired in."""
    settings = get_settings()
    await init_db(settings.database_url)
    await create_tables()
    async with get_session_factory()() as db:
        await seed_tiers(db)

    application = create_app()
    dispatcher = NotificationDispatcher(channels=[channel])
    email_service = EmailService(provider=email_provider)
    paystack = PaystackClient(
        secret_key=settings.paystack_secret_key,
        base_url=settings.paystack_base_url,
        transport=httpx.MockTransport(paystack_routes),
    )
    application.dependency_overrides[get_dispatcher] = lambda: dispatcher
    application.dependency_overrides[get_email_service] = lambda: email_service
    application.dependency_overrides[get_price_estimator] = lambda: estimator
    application.dependency_overrides[get_telegram_bot] = lambda: telegram_bot
    application.dependency_overrides[get_paystack_client] = lambda: paystack
    yield application
    await close_db()
    # Singletons may have been built by code paths that bypass dependency overrides
    reset_dispatcher()
    reset_email_service()
    reset_paystack_client()
    reset_price_estimator()
    reset_telegram_bot()


@pytest_asyncio.fixture
async def db_session(app: object) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for arranging data and asserting on it."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def client(app: object) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous HTTP client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


async def make_user(
    db: AsyncSession,
    email: str,
    role: str = "writer",
    name: str | None = None,
    domains: str | None = None,
    status: str = "active",
) -> User:
    user = User(
        name=name or email.split("@")[0].title(),
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
        status=status,
        domains=domains,
    )
    db.add(user)
    await db.commit()
    return user


async def make_member(db: AsyncSession, email: str = "client@example.com", **fields: object) -> ClientMember:
    values: dict[str, object] = {
        "name": "Casey Client",
        "password_hash": hash_password(PASSWORD),
        "membership_tier": "silver",
        "discount_percent": 10,
        "is_verified": True,
        "status": "active",
    }
    values.update(fields)
    member = ClientMember(email=email, **values)
    db.add(member)
    await db.commit()
    return member


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


def member_headers(member: ClientMember) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_member_token(member.id, member.email)}"}


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin@example.com", role="admin", name="Ada Admin")


@pytest_asyncio.fixture
async def writer(db_session: AsyncSession) -> User:
    return await make_user(db_session, "writer@example.com", name="Wendy Writer", domains="Nursing, History")


@pytest_asyncio.fixture
async def other_writer(db_session: AsyncSession) -> User:
    return await make_user(db_session, "other@example.com", name="Oscar Other", domains="Programming")


@pytest_asyncio.fixture
async def member(db_session: AsyncSession) -> ClientMember:
    return await make_member(db_session)


async def _client_for(app: object, headers: dict[str, str]) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", headers=headers)


@pytest_asyncio.fixture
async def admin_client(app: object, admin: User) -> AsyncGenerator[AsyncClient, None]:
    async with await _client_for(app, auth_headers(admin)) as ac:
        yield ac


@pytest_asyncio.fixture
async def writer_client(app: object, writer: User) -> AsyncGenerator[AsyncClient, None]:
    async with await _client_for(app, auth_headers(writer)) as ac:
        yield ac


@pytest_asyncio.fixture
async def other_writer_client(app: object, other_writer: User) -> AsyncGenerator[AsyncClient, None]:
    async with await _client_for(app, auth_headers(other_writer)) as ac:
        yield ac


@pytest_asyncio.fixture
async def member_client(app: object, member: ClientMember) -> AsyncGenerator[AsyncClient, None]:
    async with await _client_for(app, member_headers(member)) as ac:
        yield ac


@pytest.fixture
def headers_for() -> Callable[[User | ClientMember], dict[str, str]]:
    """Bearer headers for a staff user or a client member."""

    def build(account: User | ClientMember) -> dict[str, str]:
        if isinstance(account, ClientMember):
            return member_headers(account)
        return auth_headers(account)

    return build


@pytest.fixture
def make_assignment(db_session: AsyncSession) -> Callable[..., Awaitable[Assignment]]:
    """Insert an assignment directly; defaults describe an open job-board entry."""

    async def create(
        title: str = "Care plan essay",
        domain: str | None = "Nursing",
        deadline: datetime | None = None,
        word_count: int = 1000,
        **fields: object,
    ) -> Assignment:
        fields.setdefault("ineligible_writers", [])
        assignment = Assignment(
            title=title,
            domain=domain,
            word_count=word_count,
            word_count_min=word_count,
            word_count_max=word_count,
            deadline=deadline or utcnow() + timedelta(days=3),
            **fields,
        )
        db_session.add(assignment)
        await db_session.commit()
        return assignment

    return create


@pytest.fixture
def staff_factory(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def create(email: str, **fields: object) -> User:
        return await make_user(db_session, email, **fields)  # type: ignore[arg-type]

    return create
