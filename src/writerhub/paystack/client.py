"""Async Paystack API client."""

from __future__ import annotations

from typing import Any

import httpx

from writerhub.config import get_settings


class PaystackError(Exception):
    """The gateway answered with ``status: false``."""


class PaystackClient:
    """Thin httpx adapter over the Paystack REST API.

    Every call returns the ``data`` member of the gateway envelope and raises
    :class:`PaystackError` carrying the gateway message when ``status`` is false.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.secret_key = settings.paystack_secret_key if secret_key is None else secret_key
        self.base_url = (base_url or settings.paystack_base_url).rstrip("/")
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        fallback_error: str,
    ) -> Any:  # noqa: ANN401
        async with httpx.AsyncClient(
            base_url=self.base_url,
            transport=self._transport,
            timeout=15.0,
            headers={"Authorization": f"Bearer {self.secret_key}"},
        ) as client:
            response = await client.request(method, path, json=json, params=params)
        body = response.json()
        if not body.get("status"):
            raise PaystackError(body.get("message") or fallback_error)
        return body.get("data")

    async def initialize(
        self,
        email: str,
        amount: int,
        currency: str,
        reference: str,
        callback_url: str,
        metadata: dict[str, Any],
    ) -> dict[str, Any]:
        """Start a transaction. ``amount`` is in the smallest currency unit."""
        return await self._request(
            "POST",
            "/transaction/initialize",
            json={
                "email": email,
                "amount": amount,
                "currency": currency,
                "reference": reference,
                "callback_url": callback_url,
                "metadata": metadata,
            },
            fallback_error="Failed to initialize payment",
        )

    async def verify(self, reference: str) -> dict[str, Any]:
        return await self._request("GET", f"/transaction/verify/{reference}", fallback_error="Verification failed")

    async def list_banks(self, country: str = "nigeria") -> list[dict[str, Any]]:
        return await self._request("GET", "/bank", params={"country": country}, fallback_error="Failed to fetch banks")

    async def resolve_account(self, account_number: str, bank_code: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            "/bank/resolve",
            params={"account_number": account_number, "bank_code": bank_code},
            fallback_error="Could not verify account",
        )


_client: PaystackClient | None = None


def get_paystack_client() -> PaystackClient:
    """Get or create the gateway client (FastAPI dependency)."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = PaystackClient()
    return _client


def reset_paystack_client() -> None:
    global _client  # noqa: PLW0603
    _client = None
