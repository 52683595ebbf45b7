from academy.models.user import User
from academy.models.category import Category, Topic, PLAN_TYPES
from academy.models.enrollment import TopicEnrollment, BundleEnrollment
from academy.models.purchase_order import PurchaseOrder

__all__ = [
    "User",
    "Category",
    "Topic",
    "PLAN_TYPES",
    "TopicEnrollment",
    "BundleEnrollment",
    "PurchaseOrder",
]
