"""Rule-based pricing, AI bounds checking and member discounts.

All money is :class:`~decimal.Decimal`; results are rounded half-up to cents
only at the end so ``3 x 12.49`` stays exactly ``37.47``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")

STANDARD_PAGE_PRICES: dict[str, Decimal] = {
    "bronze": Decimal("8.49"),
    "silver": Decimal("12.49"),
    "gold": Decimal("17.99"),
}
EXCEL_PRICES: dict[str, Decimal] = {
    "simple": Decimal("25"),
    "moderate": Decimal("50"),
    "complex": Decimal("100"),
    "advanced": Decimal("175"),
}
COURSE_PRICES: dict[str, Decimal] = {
    "mini": Decimal("150"),
    "standard": Decimal("350"),
    "intensive": Decimal("600"),
    "comprehensive": Decimal("1000"),
}
PROGRAMMING_PRICES: dict[str, Decimal] = {
    "simple": Decimal("30"),
    "moderate": Decimal("75"),
    "complex": Decimal("150"),
    "advanced": Decimal("300"),
}
PRESENTATION_SLIDE_PRICE = Decimal("8")  # with research and content
DEFAULT_SLIDES = 10
EXTRA_EXCEL_TASK_FACTOR = Decimal("0.5")
CUSTOM_BASE_MINIMUM = Decimal("15")

# Types where an AI estimate outside the sanity band is still used
AI_TRUSTED_TYPES = frozenset({"custom", "course"})
AI_LOWER_BOUND = Decimal("0.5")
AI_UPPER_BOUND = Decimal("2")


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_count(value: object, default: int) -> int:
    """Parse a positive count leniently; junk and non-positive values fall back."""
    try:
        n = int(float(str(value)))
    except (TypeError, ValueError, OverflowError):
        return default
    return n if n > 0 else default


@dataclass(frozen=True)
class LineItem:
    item: str
    amount: Decimal


@dataclass
class RuleEstimate:
    base_price: Decimal
    breakdown: list[LineItem] = field(default_factory=list)


def rule_based_price(
    type_: str,
    package_type: str = "silver",
    pages: object = None,
    slides: object = None,
    tasks: object = None,
    course_duration: str | None = None,
    complexity: str | None = "moderate",
) -> RuleEstimate:
    """Deterministic base price for an assignment type. Unknown types price as custom."""
    complexity = complexity or "moderate"

    if type_ == "standard":
        page_count = parse_count(pages, 1)
        per_page = STANDARD_PAGE_PRICES.get(package_type, STANDARD_PAGE_PRICES["silver"])
        base = page_count * per_page
        return RuleEstimate(base, [LineItem(f"{page_count} page(s) @ ${per_page}/page", base)])

    if type_ == "excel":
        base = EXCEL_PRICES.get(complexity, EXCEL_PRICES["moderate"])
        task_count = parse_count(tasks, 1)
        if task_count > 1:
            base = base * (1 + (task_count - 1) * EXTRA_EXCEL_TASK_FACTOR)
        return RuleEstimate(base, [LineItem(f"Excel work ({complexity} complexity)", base)])

    if type_ == "course":
        duration = course_duration or "standard"
        base = COURSE_PRICES.get(duration, COURSE_PRICES["standard"])
        return RuleEstimate(base, [LineItem(f"Full course ({duration})", base)])

    if type_ == "programming":
        base = PROGRAMMING_PRICES.get(complexity, PROGRAMMING_PRICES["moderate"])
        return RuleEstimate(base, [LineItem(f"Programming work ({complexity} complexity)", base)])

    if type_ == "presentation":
        slide_count = parse_count(slides, DEFAULT_SLIDES)
        base = slide_count * PRESENTATION_SLIDE_PRICE
        return RuleEstimate(base, [LineItem(f"{slide_count} slides @ ${PRESENTATION_SLIDE_PRICE}/slide", base)])

    return RuleEstimate(CUSTOM_BASE_MINIMUM, [LineItem("Custom assignment (base)", CUSTOM_BASE_MINIMUM)])


def within_ai_bounds(ai_price: Decimal, rule_price: Decimal) -> bool:
    return rule_price * AI_LOWER_BOUND <= ai_price <= rule_price * AI_UPPER_BOUND


def resolve_base_price(rule_price: Decimal, ai_price: Decimal | None, type_: str) -> tuple[Decimal, bool]:
    """
    Pick the base price from the rule and AI estimates.

    The AI price wins when it lies within [0.5x, 2x] of the rule price, or
    unconditionally for custom and course work. Returns (price, used_ai).
    """
    if not ai_price or ai_price <= 0:
        return rule_price, False
    if within_ai_bounds(ai_price, rule_price) or type_ in AI_TRUSTED_TYPES:
        return ai_price, True
    return rule_price, False


@dataclass(frozen=True)
class Discount:
    percent: Decimal
    amount: Decimal
    final_price: Decimal


def apply_discount(base_price: Decimal, percent: Decimal | int | None) -> Discount:
    """Member discount applied after the base price is settled."""
    pct = Decimal(percent or 0)
    amount = to_cents(base_price * pct / 100)
    return Discount(pct, amount, to_cents(base_price) - amount)
