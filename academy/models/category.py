from datetime import datetime
from decimal import Decimal
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from academy.db.base import Base
from academy.utils.dt import utcnow

PLAN_TYPES = ("FREE", "INDIVIDUAL", "BUNDLE", "FLEXIBLE")

class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active")

    # One of: FREE, INDIVIDUAL, BUNDLE, FLEXIBLE
    plan_type: Mapped[str] = mapped_column(
        Enum(*PLAN_TYPES, name="plan_type"),
        default="FREE",
        index=True
    )

    # Only meaningful for BUNDLE / FLEXIBLE
    bundle_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    topics = relationship(
        "Topic",
        back_populates="category",
        order_by=lambda: [Topic.display_order, Topic.id],
    )


class Topic(Base):
    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), index=True)

    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Only meaningful for INDIVIDUAL / FLEXIBLE
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    is_free: Mapped[bool] = mapped_column(Boolean, default=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0)

    # Compared against bundle enrolled_at for future-topic access
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    category = relationship("Category", back_populates="topics")
