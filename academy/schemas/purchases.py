from datetime import datetime
from decimal import Decimal
from typing import Any
from pydantic import BaseModel, Field

class QuoteIn(BaseModel):
    category_id: int
    selected_topic_ids: list[int] = Field(default_factory=list)

class QuoteOut(BaseModel):
    final_price: Decimal
    purchase_kind: str
    breakdown: dict[str, Any]

class CreatePurchaseIn(BaseModel):
    category_id: int
    # free / individual / bundle ("individual_topics" accepted)
    purchase_kind: str
    selected_topic_ids: list[int] = Field(default_factory=list)

class PurchaseOut(BaseModel):
    status: str
    purchase_kind: str
    amount: Decimal
    currency: str
    reference: str | None = None
    gateway_order_id: str | None = None
    checkout_url: str | None = None
    unlocked_topic_ids: list[int] = Field(default_factory=list)
    breakdown: dict[str, Any] = Field(default_factory=dict)

class VerifyPaymentIn(BaseModel):
    order_id: str
    payment_id: str
    signature: str | None = None

class TopicAccessOut(BaseModel):
    topic_id: int
    has_access: bool
    access_type: str
    reason: str

class AccessibleTopicsOut(BaseModel):
    category_id: int
    topic_ids: list[int]

class PurchaseLineOut(BaseModel):
    topic_id: int
    topic_title: str
    purchase_kind: str | None
    payment_status: str
    amount_paid: Decimal

class BundleOut(BaseModel):
    enrolled_at: datetime | None
    future_topics_included: bool

class CategoryPurchasesOut(BaseModel):
    category_id: int
    category_name: str
    plan_type: str
    topics_purchased: int
    total_spent: Decimal
    latest_purchase: datetime | None
    bundle: BundleOut | None
    purchases: list[PurchaseLineOut]
