from datetime import datetime
from decimal import Decimal
from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from academy.db.base import Base
from academy.utils.dt import utcnow

class PurchaseOrder(Base):
    """Snapshot of a purchase handed to the payment gateway."""
    __tablename__ = "purchase_orders"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Our own stable reference (sent to the gateway as metadata)
    reference: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), index=True)

    # Plan type of the category when the order was created
    plan_type: Mapped[str] = mapped_column(String(20))
    purchase_kind: Mapped[str] = mapped_column(String(20))
    selected_topic_ids: Mapped[list] = mapped_column(JSON, default=list)

    # Major units (e.g. rupees); gateways get minor units
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3))

    provider: Mapped[str] = mapped_column(String(20))
    gateway_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True, index=True)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    status: Mapped[str] = mapped_column(
        Enum("created", "paid", "failed", name="purchase_order_status"),
        default="created",
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
