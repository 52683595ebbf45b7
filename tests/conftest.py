"""
Shared pytest fixtures.

Settings are read at import time, so the environment is prepared before any
academy module is imported.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_AUTO_CREATE", "false")
os.environ.setdefault("PAYMENT_CURRENCY", "INR")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "true")

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import academy.models  # noqa: F401
from academy.core.security import create_access_token
from academy.db.base import Base
from academy.db.session import get_db
from academy.integrations.payment_gateway import GatewayOrder, PaymentGatewayError, PaymentOutcome, get_payment_gateway
from academy.main import create_app
from academy.models import Category, Topic, User
from academy.repositories.enrollments import EnrollmentRepository
from academy.services.notifications import get_notifier


# ============================================================================
# TEST DOUBLES
# ============================================================================

class FakeGateway:
    """
    In-memory gateway. A valid signature is "sig:{order_id}:{payment_id}".

    outcomes maps a payment id to the status the gateway reports for it once
    the proof checks out; unlisted payments are approved.
    """

    provider = "fake"

    def __init__(self):
        self.orders = []
        self.fail_create = False
        self.outcomes = {}

    def create_order(self, amount_minor_units, currency, metadata):
        if self.fail_create:
            raise PaymentGatewayError("gateway down", provider=self.provider)
        order_id = f"order_{len(self.orders) + 1}"
        self.orders.append({
            "order_id": order_id,
            "amount": amount_minor_units,
            "currency": currency,
            "metadata": metadata,
        })
        return GatewayOrder(order_id=order_id, checkout_url=f"https://pay.example/{order_id}")

    def verify_signature(self, order_id, payment_id, signature):
        return signature == sign(order_id, payment_id)

    def check_payment(self, order_id, payment_id, signature):
        if not self.verify_signature(order_id, payment_id, signature):
            return PaymentOutcome.INVALID
        return self.outcomes.get(payment_id, PaymentOutcome.APPROVED)


def sign(order_id, payment_id):
    return f"sig:{order_id}:{payment_id}"


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, user_id, title, body, data):
        self.sent.append((user_id, data["type"]))


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repo(db_session):
    return EnrollmentRepository(db_session)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(session_factory, gateway, notifier):
    app = create_app()

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as c:
        yield c


# ============================================================================
# DATA HELPERS
# ============================================================================

def make_user(db, email="student@example.com", is_admin=False) -> User:
    user = User(email=email, is_admin=is_admin)
    db.add(user)
    db.commit()
    return user


def make_category(db, plan_type, bundle_price="0", topics=(), name=None) -> Category:
    """
    topics: iterable of dicts with optional price / is_free / created_at / title.
    """
    category = Category(
        name=name or f"{plan_type.title()} category",
        plan_type=plan_type,
        bundle_price=Decimal(str(bundle_price)),
    )
    db.add(category)
    db.flush()
    for i, attrs in enumerate(topics):
        topic = Topic(
            category_id=category.id,
            title=attrs.get("title", f"Topic {i + 1}"),
            price=Decimal(str(attrs.get("price", "0"))),
            is_free=attrs.get("is_free", False),
            display_order=i,
        )
        if "created_at" in attrs:
            topic.created_at = attrs["created_at"]
        db.add(topic)
    db.commit()
    db.refresh(category)
    return category


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
