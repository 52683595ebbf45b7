from fastapi import APIRouter, Depends, HTTPException

from academy.api.deps import get_catalog_service, get_repository, require_admin, to_http_error
from academy.engine.errors import EntitlementError
from academy.engine.plan_types import get_pricing_requirements
from academy.models.user import User
from academy.repositories.enrollments import EnrollmentRepository
from academy.schemas.catalog import (
    CategoryDetailsOut,
    CategoryIn,
    CategoryOut,
    CategoryUpdateIn,
    PricingRequirementsOut,
    TopicIn,
    TopicOut,
)
from academy.services.catalog import CatalogService, CategoryUpdate, TopicCreate

router = APIRouter(prefix="/categories", tags=["categories"])

# Category with plan rules and topics (for the storefront)
@router.get("/{category_id}", response_model=CategoryDetailsOut)
def get_category_details(category_id: int, repo: EnrollmentRepository = Depends(get_repository)):
    category = repo.find_category(category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    req = get_pricing_requirements(category.plan_type)
    return CategoryDetailsOut(
        id=category.id,
        name=category.name,
        description=category.description,
        status=category.status,
        plan_type=category.plan_type,
        bundle_price=category.bundle_price,
        requirements=PricingRequirementsOut(
            require_bundle_price=req.require_bundle_price,
            require_topic_prices=req.require_topic_prices,
            allowed_purchase_kinds=sorted(k.value for k in req.allowed_purchase_kinds),
            description=req.description,
        ),
        topics=[TopicOut.model_validate(t) for t in repo.find_topics_by_category(category_id)],
    )

@router.post("", response_model=CategoryOut, status_code=201)
def create_category(
    payload: CategoryIn,
    service: CatalogService = Depends(get_catalog_service),
    admin: User = Depends(require_admin),
):
    try:
        return service.create_category(
            name=payload.name,
            plan_type=payload.plan_type,
            bundle_price=payload.bundle_price,
            description=payload.description,
            status=payload.status,
        )
    except EntitlementError as e:
        raise to_http_error(e)

@router.put("/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    payload: CategoryUpdateIn,
    service: CatalogService = Depends(get_catalog_service),
    admin: User = Depends(require_admin),
):
    try:
        return service.update_category(category_id, CategoryUpdate(**payload.model_dump()))
    except EntitlementError as e:
        raise to_http_error(e)

# Adding a topic notifies bundle holders with future-topic access
@router.post("/{category_id}/topics", response_model=TopicOut, status_code=201)
def add_topic(
    category_id: int,
    payload: TopicIn,
    service: CatalogService = Depends(get_catalog_service),
    admin: User = Depends(require_admin),
):
    try:
        return service.add_topic(category_id, TopicCreate(**payload.model_dump()))
    except EntitlementError as e:
        raise to_http_error(e)
