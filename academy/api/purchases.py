from fastapi import APIRouter, Depends

from academy.api.deps import get_current_user, get_purchase_service, get_repository, to_http_error
from academy.engine.errors import EntitlementError
from academy.integrations.payment_gateway import PaymentGatewayError
from academy.models.user import User
from academy.repositories.enrollments import EnrollmentRepository
from academy.schemas.purchases import CreatePurchaseIn, PurchaseOut, QuoteIn, QuoteOut, VerifyPaymentIn
from academy.services.purchases import PurchaseResult, PurchaseService

router = APIRouter(prefix="/purchases", tags=["purchases"])

def _purchase_out(result: PurchaseResult) -> PurchaseOut:
    return PurchaseOut(
        status=result.status,
        purchase_kind=result.purchase_kind.value,
        amount=result.amount,
        currency=result.currency,
        reference=result.reference,
        gateway_order_id=result.gateway_order_id,
        checkout_url=result.checkout_url,
        unlocked_topic_ids=result.unlocked_topic_ids,
        breakdown=result.breakdown,
    )

# Price a selection without buying it
@router.post("/quote", response_model=QuoteOut)
def quote(
    payload: QuoteIn,
    repo: EnrollmentRepository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    # Quoting needs no gateway
    service = PurchaseService(repo)
    try:
        q = service.quote(payload.category_id, payload.selected_topic_ids)
    except EntitlementError as e:
        raise to_http_error(e)
    return QuoteOut(final_price=q.final_price, purchase_kind=q.purchase_kind.value, breakdown=q.breakdown)

# Free purchases are granted now; paid ones return a gateway order to pay
@router.post("", response_model=PurchaseOut)
def create_purchase(
    payload: CreatePurchaseIn,
    service: PurchaseService = Depends(get_purchase_service),
    user: User = Depends(get_current_user),
):
    try:
        result = service.create_purchase(
            user_id=user.id,
            category_id=payload.category_id,
            purchase_kind=payload.purchase_kind,
            selected_topic_ids=payload.selected_topic_ids,
        )
    except (EntitlementError, PaymentGatewayError) as e:
        raise to_http_error(e)
    return _purchase_out(result)

# Client-side confirmation after checkout (Razorpay handler / MP return URL)
@router.post("/verify", response_model=PurchaseOut)
def verify_payment(
    payload: VerifyPaymentIn,
    service: PurchaseService = Depends(get_purchase_service),
    user: User = Depends(get_current_user),
):
    try:
        result = service.confirm_payment(user.id, payload.order_id, payload.payment_id, payload.signature)
    except (EntitlementError, PaymentGatewayError) as e:
        raise to_http_error(e)
    return _purchase_out(result)
