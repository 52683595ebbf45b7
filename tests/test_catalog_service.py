"""Tests for category administration: pricing rules, plan type lock, new topics."""

from decimal import Decimal

import pytest

from academy.engine.errors import CategoryNotFoundError, CategoryPricingError, PlanTypeLockedError
from academy.services.catalog import CatalogService, CategoryUpdate, TopicCreate
from tests.conftest import make_category, make_user


@pytest.fixture
def catalog(repo, notifier):
    return CatalogService(repo, notifier=notifier)


def test_create_category(catalog):
    category = catalog.create_category("Cloud", "FLEXIBLE", bundle_price="999.00")

    assert category.id is not None
    assert category.plan_type == "FLEXIBLE"
    assert category.bundle_price == Decimal("999.00")


def test_create_category_drops_unused_bundle_price(catalog):
    category = catalog.create_category("Basics", "INDIVIDUAL", bundle_price=500)
    assert category.bundle_price == 0


def test_create_bundle_category_requires_price(catalog):
    with pytest.raises(CategoryPricingError) as exc:
        catalog.create_category("Bundle", "BUNDLE")
    assert exc.value.error_code.value == "INVALID_BUNDLE_PRICE"


def test_create_category_unknown_plan(catalog):
    with pytest.raises(CategoryPricingError) as exc:
        catalog.create_category("Odd", "WEEKLY", bundle_price=10)
    assert exc.value.error_code.value == "INVALID_PLAN_TYPE"


def test_update_unknown_category(catalog):
    with pytest.raises(CategoryNotFoundError):
        catalog.update_category(404, CategoryUpdate(name="x"))


def test_plan_type_change_allowed_without_purchases(catalog, db_session):
    category = make_category(db_session, "INDIVIDUAL", topics=[{"price": 10}])

    updated = catalog.update_category(category.id, CategoryUpdate(plan_type="BUNDLE", bundle_price=Decimal("50")))

    assert updated.plan_type == "BUNDLE"
    assert updated.bundle_price == Decimal("50")


def test_plan_type_change_requires_valid_pricing(catalog, db_session):
    category = make_category(db_session, "INDIVIDUAL", topics=[{"price": 10}])

    with pytest.raises(CategoryPricingError):
        catalog.update_category(category.id, CategoryUpdate(plan_type="FLEXIBLE"))


def test_plan_type_locked_after_purchase(catalog, repo, db_session):
    user = make_user(db_session)
    category = make_category(db_session, "INDIVIDUAL", topics=[{"price": 10}])
    repo.upsert_enrollment(user.id, category.topics[0].id, payment_status="paid")
    repo.commit()

    with pytest.raises(PlanTypeLockedError) as exc:
        catalog.update_category(category.id, CategoryUpdate(plan_type="BUNDLE", bundle_price=Decimal("50")))

    assert exc.value.current == "INDIVIDUAL"
    assert exc.value.requested == "BUNDLE"


def test_pending_enrollment_does_not_lock_plan_type(catalog, repo, db_session):
    user = make_user(db_session)
    category = make_category(db_session, "INDIVIDUAL", topics=[{"price": 10}])
    repo.upsert_enrollment(user.id, category.topics[0].id, payment_status="pending")
    repo.commit()

    updated = catalog.update_category(category.id, CategoryUpdate(plan_type="FREE"))
    assert updated.plan_type == "FREE"


def test_locked_category_still_editable(catalog, repo, db_session):
    user = make_user(db_session)
    category = make_category(db_session, "BUNDLE", bundle_price=100, topics=[{}])
    repo.upsert_bundle_enrollment(user.id, category.id, payment_status="completed")
    repo.commit()

    updated = catalog.update_category(category.id, CategoryUpdate(name="Renamed", bundle_price=Decimal("120")))

    assert updated.name == "Renamed"
    assert updated.bundle_price == Decimal("120")


def test_new_topic_notifies_future_topic_subscribers(catalog, repo, db_session, notifier):
    holder = make_user(db_session, "holder@example.com")
    flexible_holder = make_user(db_session, "flex@example.com")
    category = make_category(db_session, "BUNDLE", bundle_price=100, topics=[{}])
    repo.upsert_bundle_enrollment(holder.id, category.id, payment_status="completed", future_topics_included=True)
    repo.upsert_bundle_enrollment(flexible_holder.id, category.id, payment_status="completed", future_topics_included=False)
    repo.commit()

    topic = catalog.add_topic(category.id, TopicCreate(title="Advanced"))

    assert topic.category_id == category.id
    assert notifier.sent == [(holder.id, "NEW_TOPIC_AVAILABLE")]


def test_add_topic_unknown_category(catalog):
    with pytest.raises(CategoryNotFoundError):
        catalog.add_topic(404, TopicCreate(title="Nowhere"))


def test_add_topic_can_be_scheduled(repo, db_session, notifier):
    scheduled = []
    catalog = CatalogService(repo, notifier=notifier, schedule=lambda *args: scheduled.append(args))
    user = make_user(db_session)
    category = make_category(db_session, "BUNDLE", bundle_price=100)
    repo.upsert_bundle_enrollment(user.id, category.id, payment_status="completed", future_topics_included=True)
    repo.commit()

    catalog.add_topic(category.id, TopicCreate(title="Later"))

    assert len(scheduled) == 1
    assert scheduled[0][2] == [user.id]
    assert scheduled[0][3] == "NEW_TOPIC_AVAILABLE"
    assert notifier.sent == []
