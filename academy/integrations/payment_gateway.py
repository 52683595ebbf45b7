from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

from academy.core.config import settings


class PaymentGatewayError(Exception):
    """The gateway rejected or failed an API call."""

    def __init__(self, message: str, provider: str, details: Optional[Any] = None):
        self.provider = provider
        self.details = details
        super().__init__(message)


class PaymentOutcome(str, Enum):
    """What a gateway says about a payment the client reports as done."""
    APPROVED = "approved"
    # Accepted by the gateway but not settled yet (cash, bank transfer, review)
    PENDING = "pending"
    # Explicitly rejected or cancelled by the gateway
    FAILED = "failed"
    # The client's proof does not check out; the gateway said nothing
    INVALID = "invalid"


@dataclass
class GatewayOrder:
    # Id the client echoes back when confirming the payment
    order_id: str
    checkout_url: Optional[str] = None
    raw: dict = field(default_factory=dict)


class PaymentGateway(Protocol):
    provider: str

    def create_order(self, amount_minor_units: int, currency: str, metadata: dict) -> GatewayOrder:
        ...

    def verify_signature(self, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
        ...

    def check_payment(self, order_id: str, payment_id: str, signature: Optional[str]) -> PaymentOutcome:
        ...


def get_payment_gateway() -> PaymentGateway:
    """Dependency that returns the configured gateway."""
    if settings.payment_provider == "mercadopago":
        from academy.integrations.mercadopago_client import MercadoPagoGateway
        return MercadoPagoGateway()
    if settings.payment_provider == "razorpay":
        from academy.integrations.razorpay_client import RazorpayGateway
        return RazorpayGateway()
    raise ValueError(f"Unsupported payment provider: {settings.payment_provider}")
