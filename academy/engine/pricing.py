"""
Pricing calculator.

Works in major-unit Decimals (rupees, pesos). Conversion to the gateway's
minor unit happens only at the gateway boundary via to_minor_units().
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional

from academy.engine.errors import EmptySelectionError, InvalidBundlePriceError
from academy.engine.plan_types import PlanType, PurchaseKind, parse_plan_type

ZERO = Decimal("0")


@dataclass
class PriceQuote:
    final_price: Decimal
    purchase_kind: PurchaseKind
    breakdown: Dict[str, Any] = field(default_factory=dict)


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _positive_bundle_price(plan_type: PlanType, bundle_price) -> Decimal:
    price = _money(bundle_price)
    if price <= 0:
        raise InvalidBundlePriceError(f"{plan_type.value} plan requires a valid bundle price")
    return price


def _individual_total(topic_prices: Mapping, selected: list) -> Decimal:
    # Topics without a price count as 0
    return sum((_money(topic_prices.get(topic_id)) for topic_id in selected), ZERO)


def calculate_price(
    plan_type,
    bundle_price=None,
    topic_prices: Optional[Mapping] = None,
    selected_topic_ids: Optional[Iterable] = None,
) -> PriceQuote:
    """
    Calculate the amount owed for a purchase.

    FLEXIBLE with a topic selection is priced as individual topics even when
    the bundle is cheaper; breakdown["is_bundle_cheaper"] tells the caller.

    Raises:
        InvalidPlanTypeError: unknown plan type
        EmptySelectionError: INDIVIDUAL without selected topics
        InvalidBundlePriceError: BUNDLE/FLEXIBLE without a positive bundle price
    """
    plan_type = parse_plan_type(plan_type)
    topic_prices = topic_prices or {}
    selected = list(dict.fromkeys(selected_topic_ids or []))

    if plan_type is PlanType.FREE:
        return PriceQuote(final_price=ZERO, purchase_kind=PurchaseKind.FREE, breakdown={"free": True})

    if plan_type is PlanType.INDIVIDUAL:
        if not selected:
            raise EmptySelectionError("INDIVIDUAL plan requires topic selection")
        return PriceQuote(
            final_price=_individual_total(topic_prices, selected),
            purchase_kind=PurchaseKind.INDIVIDUAL,
            breakdown={
                "topics": len(selected),
                "price_per_topic": {t: _money(topic_prices.get(t)) for t in selected},
                "selected_topics": selected,
            },
        )

    bundle = _positive_bundle_price(plan_type, bundle_price)

    if plan_type is PlanType.BUNDLE or not selected:
        return PriceQuote(final_price=bundle, purchase_kind=PurchaseKind.BUNDLE, breakdown={"bundle_price": bundle})

    # FLEXIBLE with a selection
    individual_total = _individual_total(topic_prices, selected)
    return PriceQuote(
        final_price=individual_total,
        purchase_kind=PurchaseKind.INDIVIDUAL,
        breakdown={
            "individual_total": individual_total,
            "bundle_price": bundle,
            "is_bundle_cheaper": bundle < individual_total,
            "topics": len(selected),
        },
    )


def to_minor_units(amount) -> int:
    """Major units -> minor units (paise/cents), half-up."""
    return int((_money(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def split_amount(amount, parts: int) -> List[Decimal]:
    """
    Split amount into parts shares of whole cents that add back up to amount.
    Shares are rounded down; the last one carries the remainder.
    """
    if parts <= 0:
        return []
    total = _money(amount)
    share = (total / parts).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
    return [share] * (parts - 1) + [total - share * (parts - 1)]
