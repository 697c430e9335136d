"""Pricing calculator router: /api/ai-pricing/* endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from writerhub.auth.dependencies import get_optional_member
from writerhub.db.models import ClientMember
from writerhub.pricing.ai import PriceEstimator, get_price_estimator
from writerhub.pricing.schemas import PriceCalculateRequest, PriceCalculateResponse
from writerhub.pricing.service import calculate_price

router = APIRouter(prefix="/api/ai-pricing", tags=["Pricing"])

PRICING_GUIDE: dict[str, Any] = {
    "standard": {
        "description": "Written assignments (essays, papers, reports)",
        "unit": "per page (~275 words)",
        "tiers": {"bronze": "$8.49/page", "silver": "$12.49/page", "gold": "$17.99/page"},
    },
    "excel": {
        "description": "Spreadsheet & data work",
        "levels": {
            "simple": {"price": "$25", "examples": "Basic formulas, simple data entry"},
            "moderate": {"price": "$50", "examples": "Pivot tables, charts, VLOOKUP"},
            "complex": {"price": "$100", "examples": "Macros, VBA, complex analysis"},
            "advanced": {"price": "$175", "examples": "Full dashboards, automation"},
        },
    },
    "course": {
        "description": "Full course assistance",
        "levels": {
            "mini": {"price": "From $150", "duration": "2-4 weeks"},
            "standard": {"price": "From $350", "duration": "6-8 weeks"},
            "intensive": {"price": "From $600", "duration": "10-12 weeks"},
            "comprehensive": {"price": "From $1000", "duration": "Full semester"},
        },
    },
    "programming": {
        "description": "Code & software development",
        "levels": {
            "simple": {"price": "$30", "examples": "Basic script, single file"},
            "moderate": {"price": "$75", "examples": "Multi-file project"},
            "complex": {"price": "$150", "examples": "Full application"},
            "advanced": {"price": "$300", "examples": "System design"},
        },
    },
    "presentation": {
        "description": "PowerPoint & presentation slides",
        "pricing": "$3-8 per slide",
        "note": "Price varies based on research and content creation needs",
    },
    "membership": {
        "note": "Members save up to 20% on every order!",
        "tiers": ["Basic (5%)", "Silver (10%)", "Gold (15%)", "Platinum (20%)"],
    },
}


@router.post("/calculate", response_model=PriceCalculateResponse)
async def calculate(
    body: PriceCalculateRequest,
    member: ClientMember | None = Depends(get_optional_member),
    estimator: PriceEstimator = Depends(get_price_estimator),
) -> PriceCalculateResponse:
    """Quote a price. Guests pay full price; verified members get their tier discount."""
    breakdown = await calculate_price(body, estimator, member)
    return PriceCalculateResponse(breakdown=breakdown)


@router.get("/pricing-guide")
async def pricing_guide() -> dict[str, Any]:
    return {"success": True, "pricing": PRICING_GUIDE}
