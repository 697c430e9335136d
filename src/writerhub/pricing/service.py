"""Price calculation: rule tables, optional AI estimate, member discount."""

from __future__ import annotations

import structlog

from writerhub.db.models import ClientMember
from writerhub.pricing.ai import EstimateRequest, PriceEstimator
from writerhub.pricing.engine import (
    AI_TRUSTED_TYPES,
    DEFAULT_SLIDES,
    STANDARD_PAGE_PRICES,
    apply_discount,
    parse_count,
    resolve_base_price,
    rule_based_price,
    to_cents,
)
from writerhub.pricing.schemas import LineItemResponse, PriceBreakdown, PriceCalculateRequest

logger = structlog.get_logger()


def wants_ai(body: PriceCalculateRequest) -> bool:
    return body.use_ai or body.type in AI_TRUSTED_TYPES


async def calculate_price(
    body: PriceCalculateRequest,
    estimator: PriceEstimator,
    member: ClientMember | None = None,
) -> PriceBreakdown:
    """Quote a price. Only verified members receive their tier discount."""
    ai_estimate = None
    if wants_ai(body):
        ai_estimate = await estimator.estimate(
            EstimateRequest(
                type=body.type,
                package_type=body.package_type,
                title=body.title,
                domain=body.domain,
                description=body.description,
                deadline_hours=body.deadline_hours,
                pages=body.pages,
                slides=body.slides,
                tasks=body.tasks,
                course_duration=body.course_duration,
                special_requirements=body.special_requirements,
            )
        )

    rule = rule_based_price(
        body.type,
        package_type=body.package_type,
        pages=body.pages,
        slides=body.slides,
        tasks=body.tasks,
        course_duration=body.course_duration,
        complexity=body.complexity,
    )
    base_price, used_ai = resolve_base_price(
        rule.base_price, ai_estimate.estimated_price if ai_estimate else None, body.type
    )
    breakdown = rule.breakdown
    if used_ai and ai_estimate is not None and ai_estimate.breakdown:
        breakdown = ai_estimate.breakdown

    member_tier = None
    discount_percent = 0
    if member is not None and member.is_verified:
        member_tier = member.membership_tier
        discount_percent = member.discount_percent or 0
    discount = apply_discount(base_price, discount_percent)

    logger.info(
        "price_calculated",
        type=body.type,
        base_price=str(base_price),
        used_ai=used_ai,
        discount_percent=discount_percent,
    )

    result = PriceBreakdown(
        assignment_type=body.type,
        package_type=body.package_type,
        base_price=f"{to_cents(base_price):.2f}",
        subtotal=f"{to_cents(base_price):.2f}",
        member_tier=member_tier,
        discount_percent=float(discount.percent),
        discount_amount=f"{discount.amount:.2f}",
        final_price=f"{discount.final_price:.2f}",
        estimated_hours=ai_estimate.estimated_hours if used_ai and ai_estimate else None,
        itemized_breakdown=[LineItemResponse(item=li.item, amount=float(li.amount)) for li in breakdown],
        ai_reasoning=ai_estimate.reasoning if used_ai and ai_estimate else None,
        complexity=(ai_estimate.complexity if ai_estimate else None) or body.complexity or "moderate",
    )
    if body.type == "standard":
        result.pages = parse_count(body.pages, 1)
        per_page = STANDARD_PAGE_PRICES.get(body.package_type, STANDARD_PAGE_PRICES["silver"])
        result.price_per_page = f"{per_page:.2f}"
    elif body.type == "presentation":
        result.slides = parse_count(body.slides, DEFAULT_SLIDES)
    elif body.type == "course":
        result.course_duration = body.course_duration or "standard"
    return result

