"""Schemas for client orders. Wire names are camelCase, money is a 2dp string."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderQuoteRequest(_CamelModel):
    package_type: str | None = None
    pages: int | None = None
    deadline_hours: int | None = None
    complexity: str = "standard"
    domain: str | None = None


class OrderCreateRequest(OrderQuoteRequest):
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    title: str | None = None
    description: str | None = None

    @field_validator("client_email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.lower().strip() if v else v


class MarkPaidRequest(_CamelModel):
    payment_method: str | None = None
    payment_reference: str | None = None


class QuoteBreakdown(_CamelModel):
    package_type: str
    package_name: str
    pages: int
    price_per_page: str
    base_price: str
    deadline_hours: int
    subtotal: str
    member_tier: str | None = None
    discount_percent: float
    discount_amount: str
    final_price: str
    complexity: str
    member_savings_note: str


class QuoteResponse(BaseModel):
    success: bool = True
    breakdown: QuoteBreakdown


class OrderBreakdown(_CamelModel):
    package_type: str
    pages: int
    base_price: str
    discount_percent: float
    discount_amount: str
    final_price: str


class CreatedOrder(_CamelModel):
    order_number: str
    final_price: str
    breakdown: OrderBreakdown


class OrderCreateResponse(BaseModel):
    success: bool = True
    order: CreatedOrder


class ReceiptResponse(_CamelModel):
    order_number: str
    customer_name: str | None = None
    customer_email: str | None = None
    package_type: str
    package_name: str
    pages: int
    approx_words: int
    deadline_hours: int
    complexity: str | None = None
    base_price: str
    discount_percent: float
    discount_amount: str
    final_price: str
    payment_status: str
    payment_method: str | None = None
    paid_at: datetime | None = None
    created_at: datetime | None = None
