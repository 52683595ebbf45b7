from fastapi import APIRouter, Depends

from academy.api.deps import get_access_evaluator, get_current_user, to_http_error
from academy.engine.errors import NotFoundError
from academy.models.user import User
from academy.schemas.purchases import AccessibleTopicsOut, CategoryPurchasesOut, TopicAccessOut
from academy.services.access import AccessEvaluator

router = APIRouter(tags=["access"])

@router.get("/topics/{topic_id}/access", response_model=TopicAccessOut)
def check_topic_access(
    topic_id: int,
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
    user: User = Depends(get_current_user),
):
    try:
        decision = evaluator.has_access(user.id, topic_id)
    except NotFoundError as e:
        raise to_http_error(e)
    return TopicAccessOut(
        topic_id=topic_id,
        has_access=decision.has_access,
        access_type=decision.access_type.value,
        reason=decision.reason.value,
    )

@router.get("/categories/{category_id}/accessible-topics", response_model=AccessibleTopicsOut)
def accessible_topics(
    category_id: int,
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
    user: User = Depends(get_current_user),
):
    try:
        topic_ids = evaluator.accessible_topics(user.id, category_id)
    except NotFoundError as e:
        raise to_http_error(e)
    return AccessibleTopicsOut(category_id=category_id, topic_ids=sorted(topic_ids))

# Obtain current user's purchases grouped by category
@router.get("/users/me/purchases", response_model=list[CategoryPurchasesOut])
def my_purchases(
    evaluator: AccessEvaluator = Depends(get_access_evaluator),
    user: User = Depends(get_current_user),
):
    return evaluator.purchases_summary(user.id)
