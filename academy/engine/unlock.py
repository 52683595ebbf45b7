from typing import Iterable, List, Optional

from academy.engine.plan_types import PlanType, PurchaseKind, parse_plan_type, parse_purchase_kind


def get_topics_to_unlock(
    plan_type,
    purchase_kind,
    category_topic_ids: Optional[Iterable] = None,
    selected_topic_ids: Optional[Iterable] = None,
) -> List:
    """Topic ids a validated purchase grants, in input order, without duplicates."""
    plan_type = parse_plan_type(plan_type)
    kind = parse_purchase_kind(purchase_kind)

    if plan_type in (PlanType.FREE, PlanType.BUNDLE):
        topic_ids = category_topic_ids
    elif plan_type is PlanType.FLEXIBLE and kind is PurchaseKind.BUNDLE:
        topic_ids = category_topic_ids
    else:
        topic_ids = selected_topic_ids

    return list(dict.fromkeys(topic_ids or []))


def future_topics_included_for(plan_type) -> bool:
    # Only a true BUNDLE plan follows the category as it grows
    return parse_plan_type(plan_type) is PlanType.BUNDLE
