"""Schemas for client membership endpoints. Wire names are camelCase."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(BaseModel):
    email: str | None = None
    name: str | None = None
    phone: str | None = None
    password: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.lower().strip() if v else v


class MemberLoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class UpdateStatsRequest(_CamelModel):
    email: str | None = None
    order_amount: Decimal | None = None


class MemberSummary(_CamelModel):
    id: int
    email: str
    name: str
    tier: str
    discount: float
    total_orders: int | None = None
    total_spent: float | None = None


class MemberAuthResponse(BaseModel):
    success: bool = True
    token: str
    member: MemberSummary
    message: str | None = None


class TierResponse(_CamelModel):
    name: str
    min_orders: int
    min_spent: float
    discount: float
    perks: list[str]


class NextTier(_CamelModel):
    name: str
    orders_needed: int
    spent_needed: float
    discount: float


class ProfileResponse(_CamelModel):
    id: int
    email: str
    name: str
    phone: str | None = None
    tier: str
    discount: float
    total_orders: int
    total_spent: float
    perks: list[str]
    member_since: datetime | None = None
    next_tier: NextTier | None = None


class UpdateStatsResponse(_CamelModel):
    updated: bool
    reason: str | None = None
    new_tier: str | None = None
    new_discount: float | None = None
    upgraded: bool | None = None
    total_orders: int | None = None
    total_spent: float | None = None


class DiscountResponse(_CamelModel):
    is_member: bool
    tier: str | None = None
    discount: float = 0
