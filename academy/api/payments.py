import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from academy.api.deps import get_settlement_service, to_http_error
from academy.core.config import settings
from academy.engine.errors import EntitlementError
from academy.integrations.mercadopago_client import fetch_payment, parse_order_reference
from academy.integrations.mp_webhooks import extract_payment_id, notification_signature_status, payment_outcome
from academy.integrations.payment_gateway import PaymentGatewayError
from academy.services.purchases import PurchaseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def _authenticate_notification(request: Request, payment_id: str) -> None:
    status = notification_signature_status(request.headers, payment_id, settings.mp_webhook_secret)
    if status == "invalid":
        logger.warning("Rejected MP notification for payment %s: bad signature", payment_id)
        raise HTTPException(401, "Invalid signature")
    if status == "unsigned":
        if settings.mp_webhook_require_signature:
            logger.warning("Rejected MP notification for payment %s: signature headers missing", payment_id)
            raise HTTPException(401, "Missing signature")
        logger.info("Unsigned MP notification for payment %s accepted", payment_id)


@router.post("/mp/webhook")
async def mp_webhook(request: Request, service: PurchaseService = Depends(get_settlement_service)):
    qp = dict(request.query_params)
    try:
        body = await request.json()
    except ValueError:
        body = {}

    logger.info("MP webhook hit query=%s type=%s", qp, body.get("type"))

    payment_id = extract_payment_id(qp, body)
    if not payment_id:
        return {"ok": True, "ignored": True}

    _authenticate_notification(request, payment_id)

    try:
        payment = await fetch_payment(payment_id)
    except PaymentGatewayError as e:
        raise to_http_error(e)

    reference = parse_order_reference(str(payment.get("external_reference") or ""))
    if not reference:
        return {"ok": True, "warning": "Could not map purchase order (payment)"}

    order = service.repo.find_order_by_reference(reference)
    if not order:
        return {"ok": True, "warning": "Purchase order not found (payment)"}

    outcome = payment_outcome(payment)
    logger.info("MP payment %s for order %s: %s (%s)", payment_id, reference, payment.get("status"), payment.get("status_detail"))

    try:
        if outcome == "approved":
            result = service.complete_order(order, payment_id)
        elif outcome == "failed":
            result = service.fail_order(order, payment_id)
        else:
            return {"ok": True, "order_status": order.status, "mp_status": payment.get("status")}
    except EntitlementError as e:
        raise to_http_error(e)

    return {"ok": True, "order_status": result.status, "unlocked_topic_ids": result.unlocked_topic_ids}
