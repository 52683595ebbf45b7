"""
Purchase workflow: validate -> price -> gateway order -> confirm -> unlock.

Enrollment rows are created as pending when the gateway order is created and
moved to a terminal status only when the gateway confirms (or rejects) the
payment. Zero-priced purchases are granted immediately.

Order states: created -> paid, or created -> failed. Both end states are
final; paying again after a failure opens a new order.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from academy.core.config import settings
from academy.engine.access import COMPLETED_BUNDLE_STATUS, enrollment_grants_access
from academy.engine.errors import (
    CategoryNotFoundError,
    EmptySelectionError,
    ErrorCode,
    PaymentVerificationError,
    PurchaseNotFoundError,
    PurchaseRejectedError,
)
from academy.engine.plan_types import (
    PlanType,
    PurchaseKind,
    get_pricing_requirements,
    parse_plan_type,
    parse_purchase_kind,
)
from academy.engine.pricing import PriceQuote, calculate_price, split_amount, to_minor_units
from academy.engine.unlock import future_topics_included_for, get_topics_to_unlock
from academy.engine.validation import PurchaseRequest, validate_purchase_request
from academy.integrations.payment_gateway import PaymentGateway, PaymentOutcome
from academy.models.category import Category, Topic
from academy.models.purchase_order import PurchaseOrder
from academy.repositories.enrollments import EnrollmentRepository
from academy.services.notifications import Notifier, notify_users
from academy.utils.dt import utcnow

logger = logging.getLogger(__name__)

FINAL_ORDER_STATUSES = ("paid", "failed")


@dataclass
class PurchaseResult:
    status: str  # granted / pending_payment / paid / failed
    purchase_kind: PurchaseKind
    amount: Decimal
    currency: str
    reference: Optional[str] = None
    gateway_order_id: Optional[str] = None
    checkout_url: Optional[str] = None
    unlocked_topic_ids: List[int] = field(default_factory=list)
    breakdown: dict = field(default_factory=dict)


class PurchaseService:
    def __init__(
        self,
        repo: EnrollmentRepository,
        gateway: Optional[PaymentGateway] = None,
        notifier: Optional[Notifier] = None,
        schedule: Optional[Callable] = None,
    ):
        self.repo = repo
        self.gateway = gateway
        self.notifier = notifier
        # e.g. BackgroundTasks.add_task; notifications run inline without it
        self.schedule = schedule

    # ---------------------------
    # helpers
    # ---------------------------

    def _notify(self, user_ids: List[int], event: str, variables: dict) -> None:
        if self.notifier is None:
            return
        if self.schedule is not None:
            self.schedule(notify_users, self.notifier, user_ids, event, variables)
        else:
            notify_users(self.notifier, user_ids, event, variables)

    def _load_category(self, category_id: int) -> tuple[Category, List[Topic]]:
        category = self.repo.find_category(category_id)
        if not category:
            raise CategoryNotFoundError(category_id)
        return category, self.repo.find_topics_by_category(category_id)

    @staticmethod
    def _check_selection(topics: List[Topic], selected: List[int]) -> None:
        known = {t.id for t in topics}
        unknown = [t for t in selected if t not in known]
        if unknown:
            raise PurchaseRejectedError(
                ErrorCode.UNKNOWN_TOPIC,
                f"Topics {unknown} do not belong to this category",
            )

    @staticmethod
    def _topic_prices(category: Category, topics: List[Topic]) -> dict:
        if not get_pricing_requirements(category.plan_type).require_topic_prices:
            return {}
        return {t.id: t.price or Decimal("0") for t in topics}

    def _owns_topic(self, user_id: int, topic_id: int) -> bool:
        return enrollment_grants_access(self.repo.find_enrollment(user_id, topic_id))

    def _exclude_owned(self, user_id: int, category: Category, kind: PurchaseKind, selected: List[int]) -> List[int]:
        """
        Drop topics the user already owns from a paid selection, and refuse a
        second bundle for a category whose bundle is already completed.
        """
        if kind is PurchaseKind.BUNDLE:
            bundle = self.repo.find_bundle_enrollment(user_id, category.id)
            if bundle and bundle.payment_status == COMPLETED_BUNDLE_STATUS:
                raise PurchaseRejectedError(
                    ErrorCode.ALREADY_PURCHASED,
                    f"Bundle for category {category.id} already purchased",
                )
            return selected

        if kind is PurchaseKind.INDIVIDUAL:
            remaining = [t for t in selected if not self._owns_topic(user_id, t)]
            if selected and not remaining:
                raise PurchaseRejectedError(ErrorCode.ALREADY_PURCHASED, "All selected topics are already owned")
            return remaining

        return selected

    # ---------------------------
    # pricing
    # ---------------------------

    def quote(self, category_id: int, selected_topic_ids: Optional[List[int]] = None) -> PriceQuote:
        category, topics = self._load_category(category_id)
        selected = list(dict.fromkeys(selected_topic_ids or []))
        self._check_selection(topics, selected)
        return calculate_price(
            category.plan_type,
            category.bundle_price,
            self._topic_prices(category, topics),
            selected,
        )

    # ---------------------------
    # purchase creation
    # ---------------------------

    def create_purchase(
        self,
        user_id: int,
        category_id: int,
        purchase_kind: Optional[str],
        selected_topic_ids: Optional[List[int]] = None,
    ) -> PurchaseResult:
        category, topics = self._load_category(category_id)
        selected = list(dict.fromkeys(selected_topic_ids or []))

        validation = validate_purchase_request(PurchaseRequest(
            plan_type=category.plan_type,
            purchase_kind=purchase_kind,
            category_id=category_id,
            user_id=user_id,
            selected_topic_ids=selected,
        ))
        if not validation.valid:
            logger.info(
                "Purchase rejected user=%s category=%s kind=%s: %s",
                user_id, category_id, purchase_kind, validation.message,
            )
            raise PurchaseRejectedError(ErrorCode(validation.error_code), validation.message)

        self._check_selection(topics, selected)
        kind = parse_purchase_kind(purchase_kind)

        if kind is PurchaseKind.FREE:
            return self._grant_free(user_id, category, topics, selected)

        selected = self._exclude_owned(user_id, category, kind, selected)

        # A bundle is priced without a selection
        pricing_selection = [] if kind is PurchaseKind.BUNDLE else selected
        quote = calculate_price(
            category.plan_type,
            category.bundle_price,
            self._topic_prices(category, topics),
            pricing_selection,
        )

        if quote.final_price <= 0:
            unlock = get_topics_to_unlock(category.plan_type, kind, [t.id for t in topics], selected)
            return self._grant(user_id, category, kind, unlock, quote)

        return self._open_order(user_id, category, kind, pricing_selection, quote)

    def _grant_free(self, user_id: int, category: Category, topics: List[Topic], selected: List[int]) -> PurchaseResult:
        plan_type = parse_plan_type(category.plan_type)
        if plan_type is PlanType.FREE:
            unlock = get_topics_to_unlock(plan_type, PurchaseKind.FREE, [t.id for t in topics], selected)
        else:
            # FLEXIBLE: a free enrollment only covers topics flagged free
            free_ids = {t.id for t in topics if t.is_free}
            unlock = [t for t in selected if t in free_ids]
            if not unlock:
                raise PurchaseRejectedError(ErrorCode.EMPTY_SELECTION, "No free topics selected")

        quote = PriceQuote(final_price=Decimal("0"), purchase_kind=PurchaseKind.FREE, breakdown={"free": True})
        return self._grant(user_id, category, PurchaseKind.FREE, unlock, quote)

    def _grant(self, user_id: int, category: Category, kind: PurchaseKind, unlock: List[int], quote: PriceQuote) -> PurchaseResult:
        # Topics already owned keep their paid/completed row
        unlock = [t for t in unlock if not self._owns_topic(user_id, t)]
        now = utcnow()
        for topic_id in unlock:
            self.repo.upsert_enrollment(
                user_id, topic_id,
                payment_status="free",
                purchase_kind=kind.value,
                amount_paid=Decimal("0"),
                enrolled_at=now,
            )
        if kind is PurchaseKind.BUNDLE:
            self.repo.upsert_bundle_enrollment(
                user_id, category.id,
                payment_status="completed",
                enrolled_at=now,
                future_topics_included=future_topics_included_for(category.plan_type),
            )
        self.repo.commit()

        logger.info("Granted %d free topic(s) in category %s to user %s", len(unlock), category.id, user_id)
        self._notify([user_id], "TOPIC_ENROLLED", {"count": len(unlock), "category_name": category.name})
        return PurchaseResult(
            status="granted",
            purchase_kind=kind,
            amount=Decimal("0"),
            currency=settings.payment_currency,
            unlocked_topic_ids=unlock,
            breakdown=quote.breakdown,
        )

    def _open_order(
        self,
        user_id: int,
        category: Category,
        kind: PurchaseKind,
        selected: List[int],
        quote: PriceQuote,
    ) -> PurchaseResult:
        if self.gateway is None:
            raise RuntimeError("A payment gateway is required for paid purchases")

        reference = uuid4().hex
        currency = settings.payment_currency
        metadata = {
            "reference": reference,
            "user_id": user_id,
            "category_id": category.id,
            "purchase_kind": kind.value,
            "title": category.name,
        }

        # Gateway first: nothing is persisted if order creation fails
        gateway_order = self.gateway.create_order(to_minor_units(quote.final_price), currency, metadata)

        try:
            order = self.repo.add_order(PurchaseOrder(
                reference=reference,
                user_id=user_id,
                category_id=category.id,
                plan_type=parse_plan_type(category.plan_type).value,
                purchase_kind=kind.value,
                selected_topic_ids=selected,
                amount=quote.final_price,
                currency=currency,
                provider=self.gateway.provider,
                gateway_order_id=gateway_order.order_id,
                status="created",
            ))

            if kind is PurchaseKind.BUNDLE:
                self.repo.upsert_bundle_enrollment(
                    user_id, category.id,
                    payment_status="pending",
                    order_reference=reference,
                )
            else:
                for topic_id in selected:
                    self.repo.upsert_enrollment(
                        user_id, topic_id,
                        payment_status="pending",
                        purchase_kind=kind.value,
                        order_reference=reference,
                    )

            self.repo.commit()
        except SQLAlchemyError:
            logger.error("Could not store order %s; gateway order %s is orphaned", reference, gateway_order.order_id)
            self.repo.rollback()
            raise

        logger.info(
            "Opened %s order %s (%s) for user %s category %s: %s %s",
            order.provider, reference, gateway_order.order_id, user_id, category.id, quote.final_price, currency,
        )
        return PurchaseResult(
            status="pending_payment",
            purchase_kind=kind,
            amount=quote.final_price,
            currency=currency,
            reference=reference,
            gateway_order_id=gateway_order.order_id,
            checkout_url=gateway_order.checkout_url,
            breakdown=quote.breakdown,
        )

    # ---------------------------
    # confirmation
    # ---------------------------

    def confirm_payment(self, user_id: int, gateway_order_id: str, payment_id: str, signature: Optional[str]) -> PurchaseResult:
        """
        Client-side confirmation after checkout.

        Only the gateway's own rejection fails the order. A proof that does not
        verify is refused without touching the order, and a payment the gateway
        still holds as pending leaves the order open.

        Raises:
            PurchaseNotFoundError: unknown order, or an order of another user
            PaymentVerificationError: invalid proof, or payment rejected
        """
        order = self.repo.find_order_by_gateway_id(gateway_order_id)
        if not order or order.user_id != user_id:
            raise PurchaseNotFoundError(gateway_order_id)

        if order.status in FINAL_ORDER_STATUSES:
            return self._order_result(order, status=order.status)

        if self.gateway is None:
            raise RuntimeError("A payment gateway is required to confirm payments")

        outcome = self.gateway.check_payment(gateway_order_id, payment_id, signature)

        if outcome is PaymentOutcome.APPROVED:
            return self.complete_order(order, payment_id)

        if outcome is PaymentOutcome.FAILED:
            self.fail_order(order, payment_id)
            raise PaymentVerificationError(f"Payment {payment_id} was rejected for order {gateway_order_id}")

        if outcome is PaymentOutcome.PENDING:
            logger.info("Payment %s for order %s is still pending", payment_id, order.reference)
            return self._order_result(order, status="pending_payment")

        logger.warning("Unverified payment proof for order %s (payment %s)", order.reference, payment_id)
        raise PaymentVerificationError(f"Payment verification failed for order {gateway_order_id}")

    def complete_order(self, order: PurchaseOrder, payment_id: Optional[str]) -> PurchaseResult:
        if order.status in FINAL_ORDER_STATUSES:
            if order.status == "failed":
                logger.warning("Ignoring approval of failed order %s (payment %s)", order.reference, payment_id)
            return self._order_result(order, status=order.status)

        category, topics = self._load_category(order.category_id)
        kind = parse_purchase_kind(order.purchase_kind)
        unlock = get_topics_to_unlock(
            order.plan_type,
            kind,
            [t.id for t in topics],
            order.selected_topic_ids or [],
        )
        if not unlock and kind is not PurchaseKind.BUNDLE:
            raise EmptySelectionError(f"Order {order.reference} unlocks no topics")

        now = utcnow()
        try:
            for topic_id, amount_paid in zip(unlock, split_amount(order.amount, len(unlock))):
                self.repo.upsert_enrollment(
                    order.user_id, topic_id,
                    payment_status="paid",
                    purchase_kind=order.purchase_kind,
                    amount_paid=amount_paid,
                    order_reference=order.reference,
                    payment_id=payment_id,
                    enrolled_at=now,
                )

            if kind is PurchaseKind.BUNDLE:
                self.repo.upsert_bundle_enrollment(
                    order.user_id, order.category_id,
                    payment_status="completed",
                    enrolled_at=now,
                    future_topics_included=future_topics_included_for(category.plan_type),
                    order_reference=order.reference,
                    payment_id=payment_id,
                )

            order.status = "paid"
            order.payment_id = payment_id
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        logger.info("Order %s paid (payment %s): unlocked %d topic(s)", order.reference, payment_id, len(unlock))
        self._notify([order.user_id], "PAYMENT_SUCCESS", {"amount": order.amount, "currency": order.currency})
        if kind is PurchaseKind.BUNDLE:
            self._notify([order.user_id], "BUNDLE_PURCHASED", {"category_name": category.name})
        else:
            self._notify([order.user_id], "TOPIC_ENROLLED", {"count": len(unlock), "category_name": category.name})

        return self._order_result(order, status="paid", unlocked=unlock)

    def fail_order(self, order: PurchaseOrder, payment_id: Optional[str]) -> PurchaseResult:
        """Gateway rejected the payment: pending rows of this order become failed."""
        if order.status in FINAL_ORDER_STATUSES:
            return self._order_result(order, status=order.status)

        try:
            for ent in self.repo.find_enrollments_by_order(order.reference):
                if ent.payment_status == "pending":
                    ent.payment_status = "failed"
                    if payment_id:
                        ent.payment_id = payment_id

            bundle = self.repo.find_bundle_enrollment(order.user_id, order.category_id)
            if bundle and bundle.order_reference == order.reference and bundle.payment_status == "pending":
                bundle.payment_status = "failed"

            order.status = "failed"
            if payment_id:
                order.payment_id = payment_id
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        logger.warning("Order %s failed (payment %s)", order.reference, payment_id)
        self._notify([order.user_id], "PAYMENT_FAILED", {})
        return self._order_result(order, status="failed")

    @staticmethod
    def _order_result(order: PurchaseOrder, status: str, unlocked: Optional[List[int]] = None) -> PurchaseResult:
        return PurchaseResult(
            status=status,
            purchase_kind=parse_purchase_kind(order.purchase_kind),
            amount=order.amount,
            currency=order.currency,
            reference=order.reference,
            gateway_order_id=order.gateway_order_id,
            unlocked_topic_ids=list(unlocked or []),
        )
