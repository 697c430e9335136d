"""Schemas for the Paystack endpoints."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel


class InitializeRequest(BaseModel):
    email: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    metadata: dict[str, Any] = {}
    callback_url: str | None = None


class InitializeResponse(BaseModel):
    success: bool = True
    authorization_url: str | None = None
    access_code: str | None = None
    reference: str


class VerifyResponse(BaseModel):
    success: bool
    status: str | None = None
    amount: float
    currency: str | None = None
    reference: str | None = None
    channel: str | None = None
    paid_at: str | None = None
    metadata: Any = None


class Bank(BaseModel):
    name: str
    code: str
    type: str | None = None


class BanksResponse(BaseModel):
    success: bool = True
    banks: list[Bank]


class VerifyAccountRequest(BaseModel):
    account_number: str | None = None
    bank_code: str | None = None


class VerifyAccountResponse(BaseModel):
    success: bool = True
    account_name: str | None = None
    account_number: str | None = None
