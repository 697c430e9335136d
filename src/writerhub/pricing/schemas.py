"""Schemas for the pricing calculator. Wire names are camelCase."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PriceCalculateRequest(_CamelModel):
    type: str = "standard"
    package_type: str = "silver"
    pages: Any = None
    slides: Any = None
    tasks: Any = None
    course_duration: str | None = None
    complexity: str | None = None
    title: str | None = None
    domain: str | None = None
    description: str | None = None
    deadline_hours: int = 72
    special_requirements: str | None = None
    use_ai: bool = Field(False, alias="useAI")


class LineItemResponse(BaseModel):
    item: str
    amount: float


class PriceBreakdown(_CamelModel):
    assignment_type: str
    package_type: str
    base_price: str
    subtotal: str
    member_tier: str | None = None
    discount_percent: float = 0
    discount_amount: str
    final_price: str
    estimated_hours: float | None = None
    itemized_breakdown: list[LineItemResponse]
    ai_reasoning: str | None = None
    complexity: str
    pages: int | None = None
    price_per_page: str | None = None
    slides: int | None = None
    course_duration: str | None = None


class PriceCalculateResponse(BaseModel):
    success: bool = True
    breakdown: PriceBreakdown
