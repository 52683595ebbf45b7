from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel

class TopicOut(BaseModel):
    id: int
    category_id: int
    title: str
    description: str | None
    price: Decimal
    is_free: bool
    display_order: int
    created_at: datetime

    class Config:
        from_attributes = True

class PricingRequirementsOut(BaseModel):
    require_bundle_price: bool
    require_topic_prices: bool
    allowed_purchase_kinds: list[str]
    description: str

class CategoryOut(BaseModel):
    id: int
    name: str
    description: str | None
    status: str
    plan_type: str
    bundle_price: Decimal

    class Config:
        from_attributes = True

class CategoryDetailsOut(CategoryOut):
    requirements: PricingRequirementsOut
    topics: list[TopicOut]

class CategoryIn(BaseModel):
    name: str
    description: str | None = None
    status: str = "active"
    plan_type: str
    bundle_price: Decimal | None = None

class CategoryUpdateIn(BaseModel):
    name: str | None = None
    description: str | None = None
    status: str | None = None
    plan_type: str | None = None
    bundle_price: Decimal | None = None

class TopicIn(BaseModel):
    title: str
    description: str | None = None
    price: Decimal = Decimal("0")
    is_free: bool = False
    display_order: int = 0
