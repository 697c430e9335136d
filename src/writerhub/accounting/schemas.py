"""Schemas for per-assignment finance tracking."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class FinanceUpsert(BaseModel):
    client_paid: Decimal = Decimal("0")
    writer_cost: Decimal = Decimal("0")
    other_costs: Decimal = Decimal("0")
    payment_status: Literal["pending", "paid", "partial", "refunded"] = "pending"
    notes: str | None = None


class FinanceRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    assignment_id: int
    title: str | None = None
    domain: str | None = None
    writer_name: str | None = None
    assignment_status: str | None = None
    assignment_date: datetime | None = None
    client_paid: float = 0
    writer_cost: float = 0
    other_costs: float = 0
    profit: float = 0
    payment_status: str = "pending"
    payment_date: datetime | None = None
    notes: str | None = None


class FinanceTotals(BaseModel):
    total_revenue: float
    total_writer_costs: float
    total_other_costs: float
    total_profit: float
    total_orders: int
    paid_orders: int
    pending_orders: int


class MonthlyFinance(BaseModel):
    month: str
    revenue: float
    costs: float
    profit: float


class FinanceSummaryResponse(BaseModel):
    summary: FinanceTotals
    monthly: list[MonthlyFinance]
    untracked_count: int = Field(serialization_alias="untrackedCount")


class UntrackedAssignment(BaseModel):
    id: int
    title: str
    domain: str | None = None
    status: str
    amount: float
    writer_name: str | None = None
    created_at: datetime | None = None


class BulkFinanceItem(BaseModel):
    assignment_id: int = Field(validation_alias="assignmentId")
    client_paid: Decimal = Decimal("0")
    writer_cost: Decimal = Decimal("0")
    other_costs: Decimal = Decimal("0")


class BulkCreateRequest(BaseModel):
    assignments: list[BulkFinanceItem]


class BulkCreateResponse(BaseModel):
    success: bool = True
    created: int
