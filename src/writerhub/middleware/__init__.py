"""Middleware registration.

Starlette wraps middleware in reverse-add order. The stack, outermost first:
CORS, request id, rate limit. CORS is outermost so 429 responses carry its
headers too.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from writerhub.config import Settings
from writerhub.middleware.error_handler import setup_error_handlers
from writerhub.middleware.logging import setup_logging
from writerhub.middleware.rate_limit import RateLimitMiddleware
from writerhub.middleware.request_id import RequestIdMiddleware

# Download endpoints set Content-Disposition; the dashboard reads it for file names
EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "Content-Disposition"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    setup_logging(settings)
    setup_error_handlers(app)

    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=EXPOSED_HEADERS,
    )
