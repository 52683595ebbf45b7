import logging
from typing import Optional

import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError

from academy.core.config import settings
from academy.integrations.payment_gateway import GatewayOrder, PaymentGatewayError, PaymentOutcome

logger = logging.getLogger(__name__)

def razorpay_client() -> razorpay.Client:
    if not settings.razorpay_key_id or not settings.razorpay_key_secret:
        raise ValueError("Razorpay credentials are not set in configuration.")
    return razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))


class RazorpayGateway:
    provider = "razorpay"

    def __init__(self, client: Optional[razorpay.Client] = None):
        self.client = client or razorpay_client()

    def create_order(self, amount_minor_units: int, currency: str, metadata: dict) -> GatewayOrder:
        order_data = {
            "amount": int(amount_minor_units),  # paise
            "currency": currency,
            # Razorpay caps receipts at 40 chars
            "receipt": str(metadata.get("reference", ""))[:40],
            "notes": {k: str(v) for k, v in metadata.items()},
        }
        try:
            order = self.client.order.create(data=order_data)
        except (BadRequestError, ServerError, GatewayError) as e:
            logger.error("Razorpay order creation failed: %s", e)
            raise PaymentGatewayError(str(e), provider=self.provider) from e

        order_id = order.get("id")
        if not order_id:
            raise PaymentGatewayError("Razorpay returned no order id", provider=self.provider, details=order)
        return GatewayOrder(order_id=str(order_id), raw=order)

    def verify_signature(self, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
        """HMAC-SHA256 of "{order_id}|{payment_id}" with the key secret."""
        if not signature:
            return False
        try:
            return bool(self.client.utility.verify_payment_signature({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            }))
        except SignatureVerificationError:
            logger.warning("Razorpay signature mismatch for order %s payment %s", order_id, payment_id)
            return False

    def check_payment(self, order_id: str, payment_id: str, signature: Optional[str]) -> PaymentOutcome:
        # Checkout only hands back a signature for captured/authorized payments
        if self.verify_signature(order_id, payment_id, signature):
            return PaymentOutcome.APPROVED
        return PaymentOutcome.INVALID
