"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI

from writerhub.accounting.router import router as accounting_router
from writerhub.assignments.router import router as assignments_router
from writerhub.auth.router import router as auth_router
from writerhub.client.router import router as client_router
from writerhub.config import get_settings
from writerhub.dashboard.router import router as dashboard_router
from writerhub.database import close_db, create_tables, get_session_factory, init_db
from writerhub.files.router import router as files_router
from writerhub.health.router import router as health_router
from writerhub.inquiries.router import router as inquiries_router
from writerhub.membership.service import seed_tiers
from writerhub.membership.router import router as membership_router
from writerhub.messages.router import router as messages_router
from writerhub.middleware import setup_middleware
from writerhub.orders.router import router as orders_router
from writerhub.payments.router import router as payments_router
from writerhub.paystack.router import router as paystack_router
from writerhub.pricing.router import router as pricing_router
from writerhub.push.router import router as push_router
from writerhub.redis_client import close_redis, init_redis
from writerhub.referrals.router import router as referrals_router
from writerhub.reports.router import router as reports_router
from writerhub.telegram.router import router as telegram_router
from writerhub.writers.router import router as writers_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.auto_create_tables:
        await create_tables()
    if settings.redis_url:
        await init_redis(settings.redis_url)
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)

    # Seed membership tiers (idempotent)
    try:
        async with get_session_factory()() as db:
            await seed_tiers(db)
    except Exception:
        logger.warning("tier_seeding_failed", exc_info=True)

    logger.info("app_started", environment=settings.environment, version=settings.app_version)
    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="WriterHub API",
        description="Backend API for WriterHub, an academic writing marketplace",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(writers_router)
    app.include_router(assignments_router)
    app.include_router(payments_router)
    app.include_router(dashboard_router)
    app.include_router(files_router)
    app.include_router(messages_router)
    app.include_router(push_router)
    app.include_router(telegram_router)
    app.include_router(client_router)
    app.include_router(accounting_router)
    app.include_router(orders_router)
    app.include_router(pricing_router)
    app.include_router(referrals_router)
    app.include_router(membership_router)
    app.include_router(inquiries_router)
    app.include_router(reports_router)
    app.include_router(paystack_router)

    return app


app = create_app()
