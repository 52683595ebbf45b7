"""
HTTP tests through FastAPI's TestClient.

The database, payment gateway and notifier are replaced in conftest.client.
"""

import hashlib
import hmac
from decimal import Decimal

import pytest

import academy.api.payments as payments_api
from academy.models import PurchaseOrder
from tests.conftest import auth_headers, make_category, make_user, sign


@pytest.fixture
def student(db_session):
    return make_user(db_session, "student@example.com")


@pytest.fixture
def admin(db_session):
    return make_user(db_session, "admin@example.com", is_admin=True)


def ids(category):
    return [t.id for t in category.topics]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ============================================================================
# AUTH
# ============================================================================

def test_missing_token(client):
    assert client.get("/users/me/purchases").status_code == 401


def test_invalid_token(client):
    resp = client.get("/users/me/purchases", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_admin_required(client, student):
    resp = client.post("/categories", json={"name": "X", "plan_type": "FREE"}, headers=auth_headers(student))
    assert resp.status_code == 403


# ============================================================================
# CATEGORIES
# ============================================================================

def test_category_details(client, db_session):
    category = make_category(db_session, "FLEXIBLE", bundle_price=999, topics=[{"price": 399}, {"is_free": True}])

    resp = client.get(f"/categories/{category.id}")

    assert resp.status_code == 200
    body = resp.json()
    assert body["plan_type"] == "FLEXIBLE"
    assert body["requirements"]["require_bundle_price"] is True
    assert body["requirements"]["allowed_purchase_kinds"] == ["bundle", "free", "individual"]
    assert [t["id"] for t in body["topics"]] == ids(category)


def test_category_details_not_found(client):
    assert client.get("/categories/404").status_code == 404


def test_create_category(client, admin):
    resp = client.post(
        "/categories",
        json={"name": "Ethical Hacking", "plan_type": "BUNDLE", "bundle_price": "1499.00"},
        headers=auth_headers(admin),
    )

    assert resp.status_code == 201
    assert resp.json()["plan_type"] == "BUNDLE"
    assert Decimal(str(resp.json()["bundle_price"])) == Decimal("1499.00")


def test_create_category_invalid_pricing(client, admin):
    resp = client.post("/categories", json={"name": "B", "plan_type": "BUNDLE"}, headers=auth_headers(admin))

    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "INVALID_BUNDLE_PRICE"


def test_plan_type_change_locked(client, admin, student, db_session, repo):
    category = make_category(db_session, "FREE", topics=[{}])
    repo.upsert_enrollment(student.id, ids(category)[0], payment_status="free")
    repo.commit()

    resp = client.put(
        f"/categories/{category.id}",
        json={"plan_type": "INDIVIDUAL"},
        headers=auth_headers(admin),
    )

    assert resp.status_code == 409
    assert resp.json()["detail"]["error"] == "PLAN_TYPE_LOCKED"


def test_add_topic_notifies_bundle_holders(client, admin, student, db_session, repo, notifier):
    category = make_category(db_session, "BUNDLE", bundle_price=100, topics=[{}])
    repo.upsert_bundle_enrollment(student.id, category.id, payment_status="completed", future_topics_included=True)
    repo.commit()
    student_id = student.id

    resp = client.post(
        f"/categories/{category.id}/topics",
        json={"title": "Post-exploitation"},
        headers=auth_headers(admin),
    )

    assert resp.status_code == 201
    assert notifier.sent == [(student_id, "NEW_TOPIC_AVAILABLE")]

    topic_id = resp.json()["id"]
    access = client.get(f"/topics/{topic_id}/access", headers=auth_headers(student)).json()
    assert access["has_access"] is True
    assert access["reason"] == "BUNDLE_FUTURE_TOPIC"


# ============================================================================
# PURCHASES
# ============================================================================

def test_quote(client, student, db_session):
    category = make_category(db_session, "FLEXIBLE", bundle_price=80, topics=[{"price": 60}, {"price": 40}])

    resp = client.post(
        "/purchases/quote",
        json={"category_id": category.id, "selected_topic_ids": ids(category)},
        headers=auth_headers(student),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert Decimal(str(body["final_price"])) == Decimal("100")
    assert body["purchase_kind"] == "individual"
    assert body["breakdown"]["is_bundle_cheaper"] is True


def test_free_purchase_grants_access(client, student, db_session):
    category = make_category(db_session, "FREE", topics=[{}, {}])
    topic_ids = ids(category)
    headers = auth_headers(student)

    resp = client.post("/purchases", json={"category_id": category.id, "purchase_kind": "free"}, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["status"] == "granted"
    access = client.get(f"/topics/{topic_ids[0]}/access", headers=headers).json()
    assert access == {
        "topic_id": topic_ids[0],
        "has_access": True,
        "access_type": "individual",
        "reason": "ENROLLED_FREE",
    }


def test_plan_mismatch(client, student, db_session):
    category = make_category(db_session, "BUNDLE", bundle_price=100, topics=[{}])

    resp = client.post(
        "/purchases",
        json={"category_id": category.id, "purchase_kind": "individual", "selected_topic_ids": ids(category)},
        headers=auth_headers(student),
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "PLAN_MISMATCH"


def test_paid_purchase_flow(client, student, db_session, gateway, notifier):
    category = make_category(db_session, "INDIVIDUAL", topics=[{"price": 299}, {"price": 399}])
    first, second = ids(category)
    headers = auth_headers(student)

    created = client.post(
        "/purchases",
        json={"category_id": category.id, "purchase_kind": "individual", "selected_topic_ids": [first]},
        headers=headers,
    )
    assert created.status_code == 200
    order = created.json()
    assert order["status"] == "pending_payment"
    assert order["checkout_url"] == f"https://pay.example/{order['gateway_order_id']}"
    assert gateway.orders[0]["amount"] == 29900

    pending = client.get(f"/topics/{first}/access", headers=headers).json()
    assert pending["has_access"] is False
    assert pending["reason"] == "INVALID_ENROLLMENT"

    verified = client.post(
        "/purchases/verify",
        json={
            "order_id": order["gateway_order_id"],
            "payment_id": "pay_1",
            "signature": sign(order["gateway_order_id"], "pay_1"),
        },
        headers=headers,
    )
    assert verified.status_code == 200
    assert verified.json()["status"] == "paid"
    assert verified.json()["unlocked_topic_ids"] == [first]

    accessible = client.get(f"/categories/{category.id}/accessible-topics", headers=headers).json()
    assert accessible == {"category_id": category.id, "topic_ids": [first]}

    purchases = client.get("/users/me/purchases", headers=headers).json()
    assert purchases[0]["topics_purchased"] == 1
    assert purchases[0]["purchases"][0]["topic_id"] == first
    assert "PAYMENT_SUCCESS" in {event for _, event in notifier.sent}


def test_verify_bad_signature(client, student, db_session):
    category = make_category(db_session, "BUNDLE", bundle_price=100, topics=[{}])
    headers = auth_headers(student)
    order = client.post("/purchases", json={"category_id": category.id, "purchase_kind": "bundle"}, headers=headers).json()

    resp = client.post(
        "/purchases/verify",
        json={"order_id": order["gateway_order_id"], "payment_id": "pay_1", "signature": "bad"},
        headers=headers,
    )

    assert resp.status_code == 402
    assert resp.json()["detail"]["error"] == "PAYMENT_FAILED"
    db_session.expire_all()
    assert db_session.query(PurchaseOrder).filter_by(reference=order["reference"]).one().status == "created"


def test_verify_other_users_order(client, student, db_session):
    category = make_category(db_session, "BUNDLE", bundle_price=100, topics=[{}])
    order = client.post(
        "/purchases", json={"category_id": category.id, "purchase_kind": "bundle"}, headers=auth_headers(student),
    ).json()
    intruder = make_user(db_session, "intruder@example.com")

    resp = client.post(
        "/purchases/verify",
        json={"order_id": order["gateway_order_id"], "payment_id": "pay_1", "signature": "bad"},
        headers=auth_headers(intruder),
    )

    assert resp.status_code == 404
    db_session.expire_all()
    assert db_session.query(PurchaseOrder).filter_by(reference=order["reference"]).one().status == "created"


def test_verify_unknown_order(client, student):
    resp = client.post(
        "/purchases/verify",
        json={"order_id": "order_404", "payment_id": "pay_1", "signature": "x"},
        headers=auth_headers(student),
    )
    assert resp.status_code == 404


def test_gateway_down(client, student, db_session, gateway):
    category = make_category(db_session, "BUNDLE", bundle_price=100, topics=[{}])
    gateway.fail_create = True

    resp = client.post(
        "/purchases",
        json={"category_id": category.id, "purchase_kind": "bundle"},
        headers=auth_headers(student),
    )

    assert resp.status_code == 502
    assert resp.json()["detail"]["provider"] == "fake"


# ============================================================================
# ACCESS
# ============================================================================

def test_access_unknown_topic(client, student):
    assert client.get("/topics/404/access", headers=auth_headers(student)).status_code == 404


def test_accessible_topics_unknown_category(client, student):
    assert client.get("/categories/404/accessible-topics", headers=auth_headers(student)).status_code == 404


# ============================================================================
# MERCADO PAGO WEBHOOK
# ============================================================================

def test_webhook_ignores_other_topics(client):
    resp = client.post("/payments/mp/webhook", json={"type": "subscription_preapproval", "data": {"id": "1"}})
    assert resp.json() == {"ok": True, "ignored": True}


def test_webhook_completes_order(client, student, db_session, monkeypatch):
    category = make_category(db_session, "BUNDLE", bundle_price=100, topics=[{}, {}])
    headers = auth_headers(student)
    created = client.post("/purchases", json={"category_id": category.id, "purchase_kind": "bundle"}, headers=headers).json()
    reference = created["reference"]

    async def fake_fetch(payment_id):
        return {"id": payment_id, "status": "approved", "external_reference": f"order:{reference}|user:1"}

    monkeypatch.setattr(payments_api, "fetch_payment", fake_fetch)

    resp = client.post("/payments/mp/webhook", json={"type": "payment", "data": {"id": "555"}})

    assert resp.status_code == 200
    assert resp.json()["order_status"] == "paid"
    assert sorted(resp.json()["unlocked_topic_ids"]) == sorted(ids(category))

    db_session.expire_all()
    order = db_session.query(PurchaseOrder).filter_by(reference=reference).one()
    assert order.status == "paid"
    assert order.payment_id == "555"


def test_webhook_rejected_payment(client, student, db_session, monkeypatch):
    category = make_category(db_session, "INDIVIDUAL", topics=[{"price": 10}])
    headers = auth_headers(student)
    created = client.post(
        "/purchases",
        json={"category_id": category.id, "purchase_kind": "individual", "selected_topic_ids": ids(category)},
        headers=headers,
    ).json()

    async def fake_fetch(payment_id):
        return {"status": "rejected", "external_reference": f"order:{created['reference']}"}

    monkeypatch.setattr(payments_api, "fetch_payment", fake_fetch)

    resp = client.post("/payments/mp/webhook?type=payment&data.id=777", json={})

    assert resp.json()["order_status"] == "failed"


def test_webhook_unknown_reference(client, monkeypatch):
    async def fake_fetch(payment_id):
        return {"status": "approved", "external_reference": "order:missing"}

    monkeypatch.setattr(payments_api, "fetch_payment", fake_fetch)

    resp = client.post("/payments/mp/webhook", json={"type": "payment", "data": {"id": "1"}})

    assert resp.json()["warning"] == "Purchase order not found (payment)"


def signed_headers(secret, data_id, request_id="req-1", ts="1700000000"):
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    v1 = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return {"x-signature": f"ts={ts},v1={v1}", "x-request-id": request_id}


@pytest.fixture
def approved_fetch(monkeypatch):
    async def fake_fetch(payment_id):
        return {"status": "approved", "external_reference": "order:missing"}

    monkeypatch.setattr(payments_api, "fetch_payment", fake_fetch)


def test_webhook_rejects_bad_signature(client, approved_fetch, monkeypatch):
    monkeypatch.setattr(payments_api.settings, "mp_webhook_secret", "whsec")

    resp = client.post(
        "/payments/mp/webhook",
        json={"type": "payment", "data": {"id": "1"}},
        headers=signed_headers("other", "1"),
    )

    assert resp.status_code == 401


def test_webhook_accepts_valid_signature(client, approved_fetch, monkeypatch):
    monkeypatch.setattr(payments_api.settings, "mp_webhook_secret", "whsec")
    monkeypatch.setattr(payments_api.settings, "mp_webhook_require_signature", True)

    resp = client.post(
        "/payments/mp/webhook",
        json={"type": "payment", "data": {"id": "1"}},
        headers=signed_headers("whsec", "1"),
    )

    assert resp.status_code == 200


@pytest.mark.parametrize("required,status_code", [(True, 401), (False, 200)])
def test_webhook_unsigned_notification(client, approved_fetch, monkeypatch, required, status_code):
    monkeypatch.setattr(payments_api.settings, "mp_webhook_secret", "whsec")
    monkeypatch.setattr(payments_api.settings, "mp_webhook_require_signature", required)

    resp = client.post("/payments/mp/webhook", json={"type": "payment", "data": {"id": "1"}})

    assert resp.status_code == status_code
