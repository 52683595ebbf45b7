"""
Entitlement & pricing error hierarchy.

Provides:
- EntitlementError: base for all engine failures, carries an error_code
- ErrorCode: machine-readable codes shared by raised errors and
  ValidationResult rejections
- Computation errors raised by the pricing calculator and plan catalog
- Not-found errors raised by persistence-backed lookups
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    MISSING_FIELDS = "MISSING_FIELDS"
    INVALID_PLAN_TYPE = "INVALID_PLAN_TYPE"
    INVALID_BUNDLE_PRICE = "INVALID_BUNDLE_PRICE"
    EMPTY_SELECTION = "EMPTY_SELECTION"
    PLAN_MISMATCH = "PLAN_MISMATCH"
    UNKNOWN_PURCHASE_KIND = "UNKNOWN_PURCHASE_KIND"
    UNKNOWN_TOPIC = "UNKNOWN_TOPIC"
    PLAN_TYPE_LOCKED = "PLAN_TYPE_LOCKED"
    NOT_FOUND = "NOT_FOUND"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    ALREADY_PURCHASED = "ALREADY_PURCHASED"


class EntitlementError(Exception):
    """Base exception for entitlement-related failures."""

    error_code: ErrorCode = ErrorCode.MISSING_FIELDS

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.error_code.value, "message": self.message}


class InvalidPlanTypeError(EntitlementError):
    """A plan type outside the catalog. Configuration error, not user error."""

    error_code = ErrorCode.INVALID_PLAN_TYPE

    def __init__(self, plan_type: object):
        self.plan_type = plan_type
        super().__init__(f"Invalid plan type: {plan_type}")


class InvalidBundlePriceError(EntitlementError):
    error_code = ErrorCode.INVALID_BUNDLE_PRICE


class EmptySelectionError(EntitlementError):
    error_code = ErrorCode.EMPTY_SELECTION


class PurchaseRejectedError(EntitlementError):
    """Raised by workflows when a ValidationResult rejects a purchase."""

    def __init__(self, error_code: ErrorCode, message: str):
        self.error_code = error_code
        super().__init__(message)


class PlanTypeLockedError(EntitlementError):
    """Plan type change attempted on a category that already has purchases."""

    error_code = ErrorCode.PLAN_TYPE_LOCKED

    def __init__(self, category_id: int, current: str, requested: str):
        self.category_id = category_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Category {category_id} has purchases under {current}; "
            f"cannot change plan type to {requested}"
        )


class NotFoundError(EntitlementError):
    error_code = ErrorCode.NOT_FOUND

    entity: str = "Record"

    def __init__(self, entity_id: object, detail: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(detail or f"{self.entity} {entity_id} not found")


class CategoryNotFoundError(NotFoundError):
    entity = "Category"


class TopicNotFoundError(NotFoundError):
    entity = "Topic"


class PurchaseNotFoundError(NotFoundError):
    entity = "Purchase order"


class PaymentVerificationError(EntitlementError):
    error_code = ErrorCode.PAYMENT_FAILED


class CategoryPricingError(EntitlementError):
    """Category pricing does not satisfy its plan type."""

    def __init__(self, error_code: ErrorCode, message: str):
        self.error_code = error_code
        super().__init__(message)
