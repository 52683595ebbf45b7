"""
Persistence boundary for the entitlement engine.

All lookups take the session passed in by the caller; nothing here opens its
own connection. Upserts rely on the (user, topic) / (user, category) unique
constraints, so a concurrent insert surfaces as an IntegrityError on commit.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from academy.models.category import Category, Topic
from academy.models.enrollment import BundleEnrollment, TopicEnrollment
from academy.models.purchase_order import PurchaseOrder

logger = logging.getLogger(__name__)


class EnrollmentRepository:
    def __init__(self, db: Session):
        self.db = db

    # ---------------------------
    # catalog
    # ---------------------------

    def find_category(self, category_id: int) -> Optional[Category]:
        return self.db.get(Category, category_id)

    def find_topic(self, topic_id: int) -> Optional[Topic]:
        return self.db.get(Topic, topic_id)

    def find_topics_by_category(self, category_id: int) -> List[Topic]:
        return (
            self.db.query(Topic)
            .filter(Topic.category_id == category_id)
            .order_by(Topic.display_order, Topic.id)
            .all()
        )

    # ---------------------------
    # enrollments
    # ---------------------------

    def find_enrollment(self, user_id: int, topic_id: int) -> Optional[TopicEnrollment]:
        return self.db.query(TopicEnrollment).filter(
            TopicEnrollment.user_id == user_id,
            TopicEnrollment.topic_id == topic_id,
        ).first()

    def find_enrollments_for_category(self, user_id: int, category_id: int) -> List[TopicEnrollment]:
        return (
            self.db.query(TopicEnrollment)
            .join(Topic, Topic.id == TopicEnrollment.topic_id)
            .filter(
                TopicEnrollment.user_id == user_id,
                Topic.category_id == category_id,
            )
            .all()
        )

    def find_user_enrollments(self, user_id: int, statuses: Iterable[str]) -> List[tuple]:
        return (
            self.db.query(TopicEnrollment, Topic, Category)
            .join(Topic, Topic.id == TopicEnrollment.topic_id)
            .join(Category, Category.id == Topic.category_id)
            .filter(
                TopicEnrollment.user_id == user_id,
                TopicEnrollment.payment_status.in_(tuple(statuses)),
            )
            .order_by(Category.id, Topic.display_order, Topic.id)
            .all()
        )

    def find_bundle_enrollment(self, user_id: int, category_id: int) -> Optional[BundleEnrollment]:
        return self.db.query(BundleEnrollment).filter(
            BundleEnrollment.user_id == user_id,
            BundleEnrollment.category_id == category_id,
        ).first()

    def find_user_bundles(self, user_id: int, status: str = "completed") -> List[BundleEnrollment]:
        return self.db.query(BundleEnrollment).filter(
            BundleEnrollment.user_id == user_id,
            BundleEnrollment.payment_status == status,
        ).all()

    def upsert_enrollment(
        self,
        user_id: int,
        topic_id: int,
        *,
        payment_status: str,
        purchase_kind: Optional[str] = None,
        amount_paid: Optional[Decimal] = None,
        order_reference: Optional[str] = None,
        payment_id: Optional[str] = None,
        enrolled_at: Optional[datetime] = None,
    ) -> TopicEnrollment:
        ent = self.find_enrollment(user_id, topic_id)
        if not ent:
            ent = TopicEnrollment(user_id=user_id, topic_id=topic_id)
            self.db.add(ent)

        ent.payment_status = payment_status
        if purchase_kind is not None:
            ent.purchase_kind = purchase_kind
        if amount_paid is not None:
            ent.amount_paid = amount_paid
        # Keep the earlier reference if this write carries none
        if order_reference is not None:
            ent.order_reference = order_reference
        if payment_id is not None:
            ent.payment_id = payment_id
        if enrolled_at is not None:
            ent.enrolled_at = enrolled_at

        self.db.flush()
        return ent

    def upsert_bundle_enrollment(
        self,
        user_id: int,
        category_id: int,
        *,
        payment_status: str,
        enrolled_at: Optional[datetime] = None,
        future_topics_included: Optional[bool] = None,
        order_reference: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> BundleEnrollment:
        bundle = self.find_bundle_enrollment(user_id, category_id)
        if not bundle:
            bundle = BundleEnrollment(user_id=user_id, category_id=category_id)
            self.db.add(bundle)

        bundle.payment_status = payment_status
        if enrolled_at is not None:
            bundle.enrolled_at = enrolled_at
        if future_topics_included is not None:
            bundle.future_topics_included = future_topics_included
        if order_reference is not None:
            bundle.order_reference = order_reference
        if payment_id is not None:
            bundle.payment_id = payment_id

        self.db.flush()
        return bundle

    def find_enrollments_by_order(self, order_reference: str) -> List[TopicEnrollment]:
        return self.db.query(TopicEnrollment).filter(
            TopicEnrollment.order_reference == order_reference
        ).all()

    def has_active_purchases(self, category_id: int) -> bool:
        """True if any user holds a granted topic or a completed bundle in the category."""
        topic_grant = (
            self.db.query(TopicEnrollment.id)
            .join(Topic, Topic.id == TopicEnrollment.topic_id)
            .filter(
                Topic.category_id == category_id,
                TopicEnrollment.payment_status.in_(("paid", "completed", "free")),
            )
            .first()
        )
        if topic_grant:
            return True

        bundle = self.db.query(BundleEnrollment.id).filter(
            BundleEnrollment.category_id == category_id,
            BundleEnrollment.payment_status == "completed",
        ).first()
        return bundle is not None

    def list_future_topic_subscribers(self, category_id: int) -> List[int]:
        rows = (
            self.db.query(BundleEnrollment.user_id)
            .filter(
                BundleEnrollment.category_id == category_id,
                BundleEnrollment.payment_status == "completed",
                BundleEnrollment.future_topics_included == True,  # noqa: E712
            )
            .distinct()
            .all()
        )
        return [r[0] for r in rows]

    # ---------------------------
    # purchase orders
    # ---------------------------

    def add_order(self, order: PurchaseOrder) -> PurchaseOrder:
        self.db.add(order)
        self.db.flush()
        return order

    def find_order_by_reference(self, reference: str) -> Optional[PurchaseOrder]:
        return self.db.query(PurchaseOrder).filter(PurchaseOrder.reference == reference).first()

    def find_order_by_gateway_id(self, gateway_order_id: str) -> Optional[PurchaseOrder]:
        return self.db.query(PurchaseOrder).filter(
            PurchaseOrder.gateway_order_id == gateway_order_id
        ).first()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        logger.debug("Rolling back enrollment transaction")
        self.db.rollback()
