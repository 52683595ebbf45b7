import hmac
import hashlib
from typing import Any, Mapping, Optional

# Terminal payment statuses -> purchase outcome; anything else keeps the order open
APPROVED_STATUSES = ("approved",)
FAILED_STATUSES = ("rejected", "cancelled", "refunded", "charged_back")

def _parse_x_signature(x_signature: str) -> tuple[Optional[str], Optional[str]]:
    # "ts=1700000000,v1=abcdef..."
    parts = dict(p.strip().partition("=")[::2] for p in x_signature.split(",") if p.strip())
    return parts.get("ts") or None, parts.get("v1") or None

def verify_mp_signature(*, secret: str, x_signature: str, x_request_id: str, data_id: str) -> bool:
    """
    HMAC-SHA256 over "id:{data_id};request-id:{x_request_id};ts:{ts};",
    hex digest compared to the v1 part of x-signature.
    """
    ts, v1 = _parse_x_signature(x_signature)
    if not ts or not v1:
        return False

    manifest = f"id:{data_id};request-id:{x_request_id};ts:{ts};"
    digest = hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()
    return hmac.compare_digest(digest, v1)

def extract_payment_id(query_params: Mapping[str, str], body: Mapping[str, Any]) -> Optional[str]:
    """Payment id from a "payment" notification, in body or query string form."""
    mp_type = body.get("type") or query_params.get("type") or query_params.get("topic")
    if mp_type != "payment":
        return None
    data = body.get("data") or {}
    payment_id = data.get("id") or query_params.get("data.id") or query_params.get("id")
    return str(payment_id) if payment_id else None

def payment_outcome(payment: Mapping[str, Any]) -> str:
    status = payment.get("status")
    if status in APPROVED_STATUSES:
        return "approved"
    if status in FAILED_STATUSES:
        return "failed"
    return "pending"

def notification_signature_status(headers: Mapping[str, str], data_id: str, secret: str) -> str:
    """
    Classify a notification by its x-signature / x-request-id headers.

    Returns "skipped" without a secret, "unsigned" when either header is
    absent, otherwise "verified" or "invalid".
    """
    if not secret:
        return "skipped"
    x_signature = headers.get("x-signature") or ""
    x_request_id = headers.get("x-request-id") or ""
    if not x_signature or not x_request_id:
        return "unsigned"
    ok = verify_mp_signature(secret=secret, x_signature=x_signature, x_request_id=x_request_id, data_id=data_id)
    return "verified" if ok else "invalid"
