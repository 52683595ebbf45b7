from decimal import Decimal

from sqlalchemy.orm import Session
from academy.db.session import SessionLocal, init_db
from academy.engine.plan_types import validate_category_pricing
from academy.models.category import Category, Topic

CATALOG = [
    {"name": "Security Basics", "plan_type": "FREE", "bundle_price": None,
     "topics": [("Password hygiene", "0", True), ("Phishing 101", "0", True)]},

    {"name": "Network Defense", "plan_type": "INDIVIDUAL", "bundle_price": None,
     "topics": [("Firewalls", "299.00", False), ("IDS / IPS", "399.00", False)]},

    {"name": "Ethical Hacking", "plan_type": "BUNDLE", "bundle_price": "1499.00",
     "topics": [("Recon", "0", False), ("Exploitation", "0", False), ("Reporting", "0", False)]},

    {"name": "Cloud Security", "plan_type": "FLEXIBLE", "bundle_price": "999.00",
     "topics": [("IAM", "399.00", False), ("Storage", "399.00", False), ("Intro", "0", True)]},
]

def upsert_category(db: Session, data: dict) -> Category:
    result = validate_category_pricing(data["bundle_price"], data["plan_type"])
    if not result.valid:
        raise ValueError(f"{data['name']}: {result.message}")

    category = db.query(Category).filter(Category.name == data["name"]).first()
    if not category:
        category = Category(name=data["name"])
        db.add(category)

    category.plan_type = data["plan_type"]
    category.bundle_price = Decimal(data["bundle_price"] or "0")
    db.flush()

    existing = {t.title for t in category.topics}
    for order, (title, price, is_free) in enumerate(data["topics"]):
        if title in existing:
            continue
        db.add(Topic(category_id=category.id, title=title, price=Decimal(price), is_free=is_free, display_order=order))
    return category

def main():
    init_db()
    db = SessionLocal()
    try:
        for data in CATALOG:
            upsert_category(db, data)
        db.commit()
        print("Seeded categories:", [c["name"] for c in CATALOG])
    finally:
        db.close()

if __name__ == "__main__":
    main()
