import logging
from decimal import Decimal
from typing import Any, Optional

import httpx
import mercadopago

from academy.core.config import settings
from academy.integrations.payment_gateway import GatewayOrder, PaymentGatewayError, PaymentOutcome
from academy.integrations.mp_webhooks import payment_outcome

logger = logging.getLogger(__name__)

MP_API_BASE = "https://api.mercadopago.com"

def mp_sdk() -> mercadopago.SDK:
    if not settings.mp_access_token:
        raise ValueError("Mercado Pago access token is not set in configuration.")
    return mercadopago.SDK(settings.mp_access_token)


def build_external_reference(metadata: dict) -> str:
    # "order:<reference>|user:1|category:2|kind:bundle"
    return (
        f"order:{metadata.get('reference')}|user:{metadata.get('user_id')}"
        f"|category:{metadata.get('category_id')}|kind:{metadata.get('purchase_kind')}"
    )


def parse_order_reference(external_reference: str) -> Optional[str]:
    if "order:" not in external_reference:
        return None
    for part in external_reference.split("|"):
        if part.startswith("order:"):
            return part.split(":", 1)[1] or None
    return None


async def fetch_payment(payment_id: str) -> dict[str, Any]:
    url = f"{MP_API_BASE}/v1/payments/{payment_id}"
    headers = {"Authorization": f"Bearer {settings.mp_access_token}"}
    async with httpx.AsyncClient(timeout=20) as client:
        r = await client.get(url, headers=headers)
    if r.status_code != 200:
        # keep body as text to avoid json decode surprises
        raise PaymentGatewayError(
            f"Mercado Pago payment lookup failed ({r.status_code})",
            provider=MercadoPagoGateway.provider,
            details={"mp_status": r.status_code, "mp_response": r.text, "url": url},
        )
    return r.json()


class MercadoPagoGateway:
    """
    Checkout Pro preferences.

    The order id handed back to clients is our own reference: Mercado Pago
    echoes it on the payment as external_reference, which is how both the
    return-URL verification and the webhook find the purchase.
    """

    provider = "mercadopago"

    def __init__(self, sdk: Optional[mercadopago.SDK] = None):
        self.sdk = sdk or mp_sdk()

    def create_order(self, amount_minor_units: int, currency: str, metadata: dict) -> GatewayOrder:
        reference = str(metadata["reference"])
        preference_data = {
            "items": [
                {
                    "title": metadata.get("title") or "Course purchase",
                    "quantity": 1,
                    # MP expects major units
                    "unit_price": float(Decimal(int(amount_minor_units)) / 100),
                    "currency_id": currency,
                }
            ],
            "external_reference": build_external_reference(metadata),
            "metadata": metadata,
            "notification_url": settings.mp_webhook_url,
            "back_urls": {
                "success": f"{settings.app_base_url}/purchases/success",
                "failure": f"{settings.app_base_url}/purchases/failure",
                "pending": f"{settings.app_base_url}/purchases/pending",
            },
            "auto_return": "approved",
        }

        result = self.sdk.preference().create(preference_data)
        resp = result.get("response") or {}
        status = result.get("status")

        if status not in (200, 201):
            raise PaymentGatewayError(
                "Mercado Pago preference creation failed",
                provider=self.provider,
                details={"mp_status": status, "mp_response": resp},
            )

        is_test = (settings.mp_access_token or "").startswith("TEST-")
        init_point = (resp.get("sandbox_init_point") if is_test else resp.get("init_point")) or resp.get("init_point") or resp.get("sandbox_init_point")
        if not resp.get("id") or not init_point:
            raise PaymentGatewayError("Mercado Pago returned no preference", provider=self.provider, details=resp)

        return GatewayOrder(order_id=reference, checkout_url=init_point, raw=resp)

    def check_payment(self, order_id: str, payment_id: str, signature: Optional[str]) -> PaymentOutcome:
        """
        Mercado Pago return URLs carry no signature; look the payment up and
        map its status. A payment that is not ours counts as invalid proof.
        """
        result = self.sdk.payment().get(payment_id)
        payment = result.get("response") or {}
        if result.get("status") != 200:
            logger.warning("MP payment %s lookup returned %s", payment_id, result.get("status"))
            return PaymentOutcome.INVALID

        reference = parse_order_reference(str(payment.get("external_reference") or ""))
        if reference != order_id:
            logger.warning("MP payment %s belongs to %s, not %s", payment_id, reference, order_id)
            return PaymentOutcome.INVALID

        logger.info("MP payment %s for %s is %s (%s)", payment_id, order_id, payment.get("status"), payment.get("status_detail"))
        return PaymentOutcome(payment_outcome(payment))

    def verify_signature(self, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
        return self.check_payment(order_id, payment_id, signature) is PaymentOutcome.APPROVED
