"""
Plan catalog: the four category plan types and what each one allows.

| plan type  | bundle price | topic prices | purchase kinds              |
|------------|--------------|--------------|-----------------------------|
| FREE       | no           | no           | free                        |
| INDIVIDUAL | no           | yes          | individual                  |
| BUNDLE     | yes          | no           | bundle                      |
| FLEXIBLE   | yes          | yes          | bundle, individual, free    |
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from academy.engine.errors import ErrorCode, InvalidPlanTypeError


class PlanType(str, Enum):
    FREE = "FREE"
    INDIVIDUAL = "INDIVIDUAL"
    BUNDLE = "BUNDLE"
    FLEXIBLE = "FLEXIBLE"


class PurchaseKind(str, Enum):
    FREE = "free"
    INDIVIDUAL = "individual"
    BUNDLE = "bundle"


# Older clients send "individual_topics"
_PURCHASE_KIND_ALIASES = {"individual_topics": PurchaseKind.INDIVIDUAL}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validate_* call. Rejections are values, never raised."""
    valid: bool
    error_code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def reject(cls, error_code, message: str) -> "ValidationResult":
        return cls(valid=False, error_code=getattr(error_code, "value", error_code), message=message)


@dataclass(frozen=True)
class PricingRequirements:
    require_bundle_price: bool
    require_topic_prices: bool
    allowed_purchase_kinds: frozenset
    description: str


_CATALOG = {
    PlanType.FREE: PricingRequirements(
        require_bundle_price=False,
        require_topic_prices=False,
        allowed_purchase_kinds=frozenset({PurchaseKind.FREE}),
        description="All topics are free. No pricing required.",
    ),
    PlanType.INDIVIDUAL: PricingRequirements(
        require_bundle_price=False,
        require_topic_prices=True,
        allowed_purchase_kinds=frozenset({PurchaseKind.INDIVIDUAL}),
        description="Each topic has its own price. No category pricing.",
    ),
    PlanType.BUNDLE: PricingRequirements(
        require_bundle_price=True,
        require_topic_prices=False,
        allowed_purchase_kinds=frozenset({PurchaseKind.BUNDLE}),
        description="Users purchase the entire category at one price. No individual topic pricing.",
    ),
    PlanType.FLEXIBLE: PricingRequirements(
        require_bundle_price=True,
        require_topic_prices=True,
        allowed_purchase_kinds=frozenset(
            {PurchaseKind.BUNDLE, PurchaseKind.INDIVIDUAL, PurchaseKind.FREE}
        ),
        description="Users can buy individual topics OR the entire bundle.",
    ),
}


def parse_plan_type(value: Union[str, PlanType, None]) -> PlanType:
    """Coerce a stored/requested value to PlanType or raise InvalidPlanTypeError."""
    if isinstance(value, PlanType):
        return value
    try:
        return PlanType(value)
    except ValueError:
        raise InvalidPlanTypeError(value)


def parse_purchase_kind(value: Union[str, PurchaseKind, None]) -> Optional[PurchaseKind]:
    """Return the PurchaseKind for value, or None if it is not a known kind."""
    if isinstance(value, PurchaseKind):
        return value
    if value in _PURCHASE_KIND_ALIASES:
        return _PURCHASE_KIND_ALIASES[value]
    try:
        return PurchaseKind(value)
    except ValueError:
        return None


def get_pricing_requirements(plan_type) -> PricingRequirements:
    """
    Get pricing fields required for a plan type.

    Raises:
        InvalidPlanTypeError: plan_type is not one of the four plan types
    """
    return _CATALOG[parse_plan_type(plan_type)]


def can_purchase_individual_topics(plan_type) -> bool:
    return PurchaseKind.INDIVIDUAL in get_pricing_requirements(plan_type).allowed_purchase_kinds


def can_purchase_bundle(plan_type) -> bool:
    return PurchaseKind.BUNDLE in get_pricing_requirements(plan_type).allowed_purchase_kinds


def _as_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def validate_category_pricing(bundle_price, plan_type) -> ValidationResult:
    """
    Validate category pricing for a plan type.

    Bundle price must be positive when the plan requires one; otherwise it is
    ignored. Unknown plan types are reported as a rejection.
    """
    try:
        requirements = get_pricing_requirements(plan_type)
    except InvalidPlanTypeError as e:
        return ValidationResult.reject(ErrorCode.INVALID_PLAN_TYPE, e.message)

    if requirements.require_bundle_price:
        price = _as_decimal(bundle_price)
        if price is None or price <= 0:
            return ValidationResult.reject(
                ErrorCode.INVALID_BUNDLE_PRICE,
                f"{parse_plan_type(plan_type).value} plan requires a positive bundle price",
            )

    return ValidationResult.ok()
