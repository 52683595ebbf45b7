"""Access checks backed by the enrollment repository."""

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Set

from academy.engine.access import AccessDecision, accessible_topic_ids, validate_topic_access
from academy.engine.errors import CategoryNotFoundError, TopicNotFoundError
from academy.repositories.enrollments import EnrollmentRepository
from academy.utils.dt import as_utc_aware

logger = logging.getLogger(__name__)


class AccessEvaluator:
    def __init__(self, repo: EnrollmentRepository):
        self.repo = repo

    def has_access(self, user_id: int, topic_id: int) -> AccessDecision:
        topic = self.repo.find_topic(topic_id)
        if not topic:
            raise TopicNotFoundError(topic_id)

        enrollment = self.repo.find_enrollment(user_id, topic_id)
        bundle = self.repo.find_bundle_enrollment(user_id, topic.category_id)
        decision = validate_topic_access(topic, enrollment, bundle)

        logger.debug(
            "Access user=%s topic=%s -> %s (%s)",
            user_id, topic_id, decision.has_access, decision.reason.value,
        )
        return decision

    def accessible_topics(self, user_id: int, category_id: int) -> Set[int]:
        if not self.repo.find_category(category_id):
            raise CategoryNotFoundError(category_id)

        topics = self.repo.find_topics_by_category(category_id)
        enrollments = self.repo.find_enrollments_for_category(user_id, category_id)
        bundle = self.repo.find_bundle_enrollment(user_id, category_id)
        return accessible_topic_ids(topics, enrollments, bundle)

    def purchases_summary(self, user_id: int) -> list[dict]:
        """Granted topic enrollments grouped by category, plus completed bundles."""
        rows = self.repo.find_user_enrollments(user_id, statuses=("free", "paid", "completed"))
        bundles = {b.category_id: b for b in self.repo.find_user_bundles(user_id)}

        grouped: "OrderedDict[int, dict]" = OrderedDict()
        for ent, topic, category in rows:
            entry = grouped.setdefault(category.id, {
                "category_id": category.id,
                "category_name": category.name,
                "plan_type": category.plan_type,
                "topics_purchased": 0,
                "total_spent": Decimal("0"),
                "latest_purchase": None,
                "bundle": None,
                "purchases": [],
            })
            entry["topics_purchased"] += 1
            entry["total_spent"] += ent.amount_paid or Decimal("0")
            enrolled_at = as_utc_aware(ent.enrolled_at)
            if enrolled_at and (entry["latest_purchase"] is None or enrolled_at > entry["latest_purchase"]):
                entry["latest_purchase"] = enrolled_at
            entry["purchases"].append({
                "topic_id": topic.id,
                "topic_title": topic.title,
                "purchase_kind": ent.purchase_kind,
                "payment_status": ent.payment_status,
                "amount_paid": ent.amount_paid,
            })

        for category_id, entry in grouped.items():
            bundle = bundles.get(category_id)
            if bundle:
                entry["bundle"] = {
                    "enrolled_at": as_utc_aware(bundle.enrolled_at),
                    "future_topics_included": bundle.future_topics_included,
                }

        return list(grouped.values())
