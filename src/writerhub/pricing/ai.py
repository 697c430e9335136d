"""LLM-backed price estimation via the Anthropic API.

The estimator is advisory: it returns ``None`` when unconfigured or on any
failure, and callers fall back to the rule tables.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

import anthropic
import structlog

from writerhub.config import get_settings
from writerhub.pricing.engine import LineItem

logger = structlog.get_logger()

SYSTEM_PROMPT = """\
You are a pricing assistant for an academic assistance service.
Your job is to estimate fair prices for academic tasks based on complexity, time required and skill level needed.

PRICING GUIDELINES:
- Standard written work: $8-18 per page (275 words)
- Excel/Spreadsheet: $25-175 depending on complexity
- Programming: $30-300 depending on scope
- Full courses: $150-1000 depending on duration/workload
- Presentations: $3-8 per slide
- Minimum order: $15

Consider time to complete, skill level, research requirements and specialization.
Do not add urgency fees; urgency is included in tier pricing.

Always respond with a JSON object in this exact format:
{
  "estimatedPrice": <number>,
  "estimatedHours": <number>,
  "complexity": "simple|moderate|complex|advanced",
  "reasoning": "<brief explanation>",
  "breakdown": [{"item": "<description>", "amount": <number>}]
}"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class EstimateRequest:
    type: str
    package_type: str = "silver"
    title: str | None = None
    domain: str | None = None
    description: str | None = None
    deadline_hours: int = 72
    pages: Any = None
    slides: Any = None
    tasks: Any = None
    course_duration: str | None = None
    special_requirements: str | None = None

    def to_prompt(self) -> str:
        return (
            "Estimate the price for this assignment:\n\n"
            f"Type: {self.type}\n"
            f"Title: {self.title or 'Not specified'}\n"
            f"Domain/Subject: {self.domain or 'General'}\n"
            f"Description: {self.description or 'No description'}\n"
            f"Deadline: {self.deadline_hours or 72} hours\n"
            f"Package Tier: {self.package_type or 'silver'}\n\n"
            "Additional details:\n"
            f"- Pages (if applicable): {self.pages or 'N/A'}\n"
            f"- Slides (if presentation): {self.slides or 'N/A'}\n"
            f"- Tasks/problems (if applicable): {self.tasks or 'N/A'}\n"
            f"- Course duration (if course): {self.course_duration or 'N/A'}\n"
            f"- Special requirements: {self.special_requirements or 'None'}\n\n"
            "Provide a fair price estimate based on the complexity and work involved."
        )


@dataclass
class AIEstimate:
    estimated_price: Decimal
    estimated_hours: float | None = None
    complexity: str | None = None
    reasoning: str | None = None
    breakdown: list[LineItem] = field(default_factory=list)


def _decimal(value: Any) -> Decimal | None:  # noqa: ANN401
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None


def parse_estimate(text: str) -> AIEstimate | None:
    """Extract the first JSON object from a model reply."""
    match = _JSON_OBJECT.search(text or "")
    if match is None:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    price = _decimal(data.get("estimatedPrice"))
    if price is None or price <= 0:
        return None

    breakdown = []
    for entry in data.get("breakdown") or []:
        if isinstance(entry, dict) and (amount := _decimal(entry.get("amount"))) is not None:
            breakdown.append(LineItem(str(entry.get("item", "")), amount))

    hours = data.get("estimatedHours")
    return AIEstimate(
        estimated_price=price,
        estimated_hours=float(hours) if isinstance(hours, (int, float)) else None,
        complexity=data.get("complexity"),
        reasoning=data.get("reasoning"),
        breakdown=breakdown,
    )


class PriceEstimator(ABC):
    @abstractmethod
    async def estimate(self, request: EstimateRequest) -> AIEstimate | None:
        """Return an estimate, or None when no estimate is available."""


class AnthropicPriceEstimator(PriceEstimator):
    """Estimate prices with Claude. Disabled when no API key is configured."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        settings = get_settings()
        key = settings.anthropic_api_key if api_key is None else api_key
        self.model = model or settings.ai_pricing_model
        self.max_tokens = max_tokens or settings.ai_pricing_max_tokens
        self.client = client or (anthropic.AsyncAnthropic(api_key=key) if key else None)

    async def estimate(self, request: EstimateRequest) -> AIEstimate | None:
        if self.client is None:
            logger.debug("ai_pricing_unconfigured")
            return None
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.3,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": request.to_prompt()}],
            )
            text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        except Exception:
            logger.warning("ai_price_estimate_failed", type=request.type, exc_info=True)
            return None

        estimate = parse_estimate(text)
        if estimate is None:
            logger.warning("ai_price_estimate_unparseable", type=request.type)
        return estimate


_estimator: PriceEstimator | None = None


def get_price_estimator() -> PriceEstimator:
    """Get or create the estimator singleton (FastAPI dependency)."""
    global _estimator  # noqa: PLW0603
    if _estimator is None:
        _estimator = AnthropicPriceEstimator()
    return _estimator


def reset_price_estimator() -> None:
    """Reset the estimator singleton (for testing)."""
    global _estimator  # noqa: PLW0603
    _estimator = None
