"""Request/response schemas for writer payments."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PaymentCreate(BaseModel):
    writer_id: int | None = None
    amount: Decimal | None = Field(None, ge=0)
    payment_date: datetime | None = None
    method: str | None = None
    reference: str | None = None
    notes: str | None = None


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    writer_id: int
    amount: float
    payment_date: datetime
    method: str
    reference: str | None = None
    notes: str | None = None
    created_at: datetime

    writer_name: str | None = None
    writer_email: str | None = None


class PaymentSummaryRow(BaseModel):
    id: int
    name: str
    email: str
    completed_assignments: int
    total_earned: float
    total_paid: float
    balance_owed: float


class PaymentTotals(BaseModel):
    total_paid: float
    total_pending: float
