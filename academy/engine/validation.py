"""Purchase validation: is a requested purchase legal under a plan type?"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from academy.engine.errors import ErrorCode, InvalidPlanTypeError
from academy.engine.plan_types import (
    PlanType,
    PurchaseKind,
    ValidationResult,
    parse_plan_type,
    parse_purchase_kind,
)


@dataclass
class PurchaseRequest:
    plan_type: Optional[str]
    purchase_kind: Optional[str]
    category_id: Optional[Any]
    user_id: Optional[Any]
    selected_topic_ids: List[Any] = field(default_factory=list)


def validate_purchase_request(purchase: PurchaseRequest) -> ValidationResult:
    if not purchase.plan_type or not purchase.category_id or not purchase.user_id:
        return ValidationResult.reject(
            ErrorCode.MISSING_FIELDS,
            "Missing required fields: plan_type, category_id, user_id",
        )

    try:
        plan_type = parse_plan_type(purchase.plan_type)
    except InvalidPlanTypeError as e:
        return ValidationResult.reject(ErrorCode.INVALID_PLAN_TYPE, e.message)

    kind = parse_purchase_kind(purchase.purchase_kind)
    has_selection = bool(purchase.selected_topic_ids)

    if plan_type is PlanType.FREE:
        if kind is not PurchaseKind.FREE:
            return ValidationResult.reject(ErrorCode.PLAN_MISMATCH, "FREE plan should not require payment")
        return ValidationResult.ok()

    if plan_type is PlanType.INDIVIDUAL:
        if kind is not PurchaseKind.INDIVIDUAL:
            return ValidationResult.reject(
                ErrorCode.PLAN_MISMATCH,
                "INDIVIDUAL plan only supports individual topic purchases",
            )
        if not has_selection:
            return ValidationResult.reject(
                ErrorCode.EMPTY_SELECTION,
                "INDIVIDUAL plan requires at least one topic to be selected",
            )
        return ValidationResult.ok()

    if plan_type is PlanType.BUNDLE:
        if kind is not PurchaseKind.BUNDLE:
            return ValidationResult.reject(ErrorCode.PLAN_MISMATCH, "BUNDLE plan only supports full category purchase")
        return ValidationResult.ok()

    # FLEXIBLE
    if kind is PurchaseKind.BUNDLE or kind is PurchaseKind.FREE:
        return ValidationResult.ok()
    if kind is PurchaseKind.INDIVIDUAL:
        if not has_selection:
            return ValidationResult.reject(
                ErrorCode.EMPTY_SELECTION,
                "Individual purchase requires at least one topic",
            )
        return ValidationResult.ok()
    return ValidationResult.reject(
        ErrorCode.UNKNOWN_PURCHASE_KIND,
        f"Invalid purchase type for FLEXIBLE plan: {purchase.purchase_kind}",
    )
