from datetime import datetime
from decimal import Decimal
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from academy.db.base import Base
from academy.utils.dt import utcnow

class TopicEnrollment(Base):
    """Direct per-topic grant. One row per (user, topic), upserted."""
    __tablename__ = "topic_enrollments"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id"), index=True)

    # pending -> paid / completed / free, or pending -> failed
    payment_status: Mapped[str] = mapped_column(
        Enum("pending", "free", "paid", "completed", "failed", name="enrollment_status"),
        default="pending",
        index=True
    )

    # free / individual / bundle
    purchase_kind: Mapped[str | None] = mapped_column(String(20), nullable=True)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))

    # Gateway order that produced the current state of this row
    order_reference: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    enrolled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    topic = relationship("Topic")

    __table_args__ = (
        UniqueConstraint("user_id", "topic_id", name="uq_topic_enrollments_user_topic"),
        Index("ix_topic_enrollments_user_status", "user_id", "payment_status"),
    )


class BundleEnrollment(Base):
    """Whole-category grant. One row per (user, category), upserted."""
    __tablename__ = "bundle_enrollments"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), index=True)

    # pending -> completed, or pending -> failed
    payment_status: Mapped[str] = mapped_column(
        Enum("pending", "completed", "failed", name="bundle_status"),
        default="pending",
        index=True
    )

    # Set when the payment succeeds, not when the row is created
    enrolled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Fixed at completion from the category plan type (True only for BUNDLE)
    future_topics_included: Mapped[bool] = mapped_column(Boolean, default=False)

    order_reference: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_bundle_enrollments_user_category"),
        Index("ix_bundle_enrollments_future", "category_id", "future_topics_included"),
    )
