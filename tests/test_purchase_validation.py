"""Tests for purchase request validation and topic unlock resolution."""

import pytest

from academy.engine.unlock import future_topics_included_for, get_topics_to_unlock
from academy.engine.validation import PurchaseRequest, validate_purchase_request


def request(plan_type="FLEXIBLE", kind="bundle", selected=None, category_id=1, user_id=7):
    return PurchaseRequest(
        plan_type=plan_type,
        purchase_kind=kind,
        category_id=category_id,
        user_id=user_id,
        selected_topic_ids=selected or [],
    )


# ============================================================================
# VALIDATION
# ============================================================================

@pytest.mark.parametrize("fields", [
    {"plan_type": None},
    {"category_id": None},
    {"user_id": None},
    {"plan_type": ""},
])
def test_missing_fields(fields):
    result = validate_purchase_request(request(**fields))

    assert not result.valid
    assert result.error_code == "MISSING_FIELDS"


def test_missing_fields_checked_before_plan_type():
    result = validate_purchase_request(request(plan_type="NOPE", user_id=None))
    assert result.error_code == "MISSING_FIELDS"


def test_invalid_plan_type():
    result = validate_purchase_request(request(plan_type="MONTHLY"))

    assert not result.valid
    assert result.error_code == "INVALID_PLAN_TYPE"


@pytest.mark.parametrize("plan_type,kind,selected", [
    ("FREE", "free", []),
    ("INDIVIDUAL", "individual", [1]),
    ("INDIVIDUAL", "individual_topics", [1, 2]),
    ("BUNDLE", "bundle", []),
    ("BUNDLE", "bundle", [1]),
    ("FLEXIBLE", "bundle", []),
    ("FLEXIBLE", "free", [3]),
    ("FLEXIBLE", "individual", [1]),
])
def test_valid_requests(plan_type, kind, selected):
    assert validate_purchase_request(request(plan_type, kind, selected)).valid


@pytest.mark.parametrize("plan_type,kind,selected,code", [
    ("FREE", "bundle", [], "PLAN_MISMATCH"),
    ("FREE", "individual", [1], "PLAN_MISMATCH"),
    ("INDIVIDUAL", "bundle", [], "PLAN_MISMATCH"),
    ("INDIVIDUAL", "free", [1], "PLAN_MISMATCH"),
    ("INDIVIDUAL", "individual", [], "EMPTY_SELECTION"),
    ("BUNDLE", "individual", [1], "PLAN_MISMATCH"),
    ("BUNDLE", "free", [], "PLAN_MISMATCH"),
    ("FLEXIBLE", "individual", [], "EMPTY_SELECTION"),
    ("FLEXIBLE", "subscription", [1], "UNKNOWN_PURCHASE_KIND"),
    ("FLEXIBLE", None, [], "UNKNOWN_PURCHASE_KIND"),
])
def test_rejected_requests(plan_type, kind, selected, code):
    result = validate_purchase_request(request(plan_type, kind, selected))

    assert not result.valid
    assert result.error_code == code
    assert result.message


def test_free_plan_message():
    result = validate_purchase_request(request("FREE", "individual", [1]))
    assert result.message == "FREE plan should not require payment"


# ============================================================================
# UNLOCK
# ============================================================================

CATEGORY_TOPICS = [10, 11, 12]


@pytest.mark.parametrize("plan_type,kind", [
    ("FREE", "free"),
    ("BUNDLE", "bundle"),
    ("FLEXIBLE", "bundle"),
])
def test_whole_category_unlocks(plan_type, kind):
    assert get_topics_to_unlock(plan_type, kind, CATEGORY_TOPICS, [11]) == CATEGORY_TOPICS


@pytest.mark.parametrize("plan_type,kind", [
    ("INDIVIDUAL", "individual"),
    ("FLEXIBLE", "individual"),
    ("FLEXIBLE", "individual_topics"),
    ("FLEXIBLE", "free"),
])
def test_selection_unlocks(plan_type, kind):
    assert get_topics_to_unlock(plan_type, kind, CATEGORY_TOPICS, [12, 10]) == [12, 10]


def test_unlock_removes_duplicates_keeping_order():
    assert get_topics_to_unlock("INDIVIDUAL", "individual", CATEGORY_TOPICS, [12, 10, 12]) == [12, 10]
    assert get_topics_to_unlock("BUNDLE", "bundle", [3, 1, 3, 2]) == [3, 1, 2]


def test_unlock_with_nothing_to_unlock():
    assert get_topics_to_unlock("BUNDLE", "bundle", None, None) == []
    assert get_topics_to_unlock("INDIVIDUAL", "individual", CATEGORY_TOPICS, None) == []


def test_only_bundle_plan_includes_future_topics():
    assert future_topics_included_for("BUNDLE") is True
    assert future_topics_included_for("FLEXIBLE") is False
    assert future_topics_included_for("INDIVIDUAL") is False
    assert future_topics_included_for("FREE") is False
