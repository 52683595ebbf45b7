"""Admin operations on categories and topics."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from academy.engine.errors import CategoryNotFoundError, CategoryPricingError, ErrorCode, PlanTypeLockedError
from academy.engine.plan_types import get_pricing_requirements, parse_plan_type, validate_category_pricing
from academy.models.category import Category, Topic
from academy.repositories.enrollments import EnrollmentRepository
from academy.services.notifications import Notifier, notify_users

logger = logging.getLogger(__name__)


@dataclass
class CategoryUpdate:
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    plan_type: Optional[str] = None
    bundle_price: Optional[Decimal] = None


@dataclass
class TopicCreate:
    title: str
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    is_free: bool = False
    display_order: int = 0


def _check_pricing(bundle_price, plan_type) -> None:
    result = validate_category_pricing(bundle_price, plan_type)
    if not result.valid:
        raise CategoryPricingError(ErrorCode(result.error_code), result.message)


def _stored_bundle_price(bundle_price, plan_type) -> Decimal:
    # Plans without a bundle keep 0
    if not get_pricing_requirements(plan_type).require_bundle_price:
        return Decimal("0")
    return Decimal(str(bundle_price))


class CatalogService:
    def __init__(self, repo: EnrollmentRepository, notifier: Optional[Notifier] = None, schedule: Optional[Callable] = None):
        self.repo = repo
        self.notifier = notifier
        self.schedule = schedule

    def create_category(self, name: str, plan_type: str, bundle_price=None, description=None, status="active") -> Category:
        _check_pricing(bundle_price, plan_type)
        category = Category(
            name=name,
            description=description,
            status=status,
            plan_type=parse_plan_type(plan_type).value,
            bundle_price=_stored_bundle_price(bundle_price, plan_type),
        )
        self.repo.db.add(category)
        self.repo.commit()
        logger.info("Created category %s (%s)", category.id, category.plan_type)
        return category

    def update_category(self, category_id: int, changes: CategoryUpdate) -> Category:
        """
        Apply an edit. The plan type is frozen once anyone holds a paid, free
        or completed grant in the category.
        """
        category = self.repo.find_category(category_id)
        if not category:
            raise CategoryNotFoundError(category_id)

        plan_type = parse_plan_type(changes.plan_type or category.plan_type).value
        bundle_price = changes.bundle_price if changes.bundle_price is not None else category.bundle_price

        if plan_type != category.plan_type and self.repo.has_active_purchases(category_id):
            logger.warning(
                "Rejected plan type change %s -> %s on category %s with purchases",
                category.plan_type, plan_type, category_id,
            )
            raise PlanTypeLockedError(category_id, category.plan_type, plan_type)

        _check_pricing(bundle_price, plan_type)

        if changes.name is not None:
            category.name = changes.name
        if changes.description is not None:
            category.description = changes.description
        if changes.status is not None:
            category.status = changes.status
        category.plan_type = plan_type
        category.bundle_price = _stored_bundle_price(bundle_price, plan_type)

        self.repo.commit()
        return category

    def add_topic(self, category_id: int, data: TopicCreate) -> Topic:
        """Add a topic and tell bundle holders whose purchase covers future topics."""
        category = self.repo.find_category(category_id)
        if not category:
            raise CategoryNotFoundError(category_id)

        topic = Topic(
            category_id=category_id,
            title=data.title,
            description=data.description,
            price=data.price,
            is_free=data.is_free,
            display_order=data.display_order,
        )
        self.repo.db.add(topic)
        self.repo.commit()

        subscribers = self.repo.list_future_topic_subscribers(category_id)
        logger.info("Topic %s added to category %s; %d bundle subscriber(s)", topic.id, category_id, len(subscribers))
        if subscribers and self.notifier is not None:
            variables = {"topic_title": topic.title, "category_name": category.name}
            if self.schedule is not None:
                self.schedule(notify_users, self.notifier, subscribers, "NEW_TOPIC_AVAILABLE", variables)
            else:
                notify_users(self.notifier, subscribers, "NEW_TOPIC_AVAILABLE", variables)
        return topic
