from fastapi import BackgroundTasks, Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from academy.core.security import user_id_from_token
from academy.db.session import get_db
from academy.engine.errors import EntitlementError, NotFoundError, PlanTypeLockedError, PaymentVerificationError
from academy.integrations.payment_gateway import PaymentGateway, PaymentGatewayError, get_payment_gateway
from academy.models.user import User
from academy.repositories.enrollments import EnrollmentRepository
from academy.services.access import AccessEvaluator
from academy.services.catalog import CatalogService
from academy.services.notifications import Notifier, get_notifier
from academy.services.purchases import PurchaseService

bearer_scheme = HTTPBearer(auto_error=False)

def get_current_user(
        creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
        db: Session = Depends(get_db)
) -> User:
    if not creds:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    try:
        user_id = user_id_from_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user

def get_repository(db: Session = Depends(get_db)) -> EnrollmentRepository:
    return EnrollmentRepository(db)

def get_access_evaluator(repo: EnrollmentRepository = Depends(get_repository)) -> AccessEvaluator:
    return AccessEvaluator(repo)

def get_catalog_service(
        background_tasks: BackgroundTasks,
        repo: EnrollmentRepository = Depends(get_repository),
        notifier: Notifier = Depends(get_notifier),
) -> CatalogService:
    return CatalogService(repo, notifier=notifier, schedule=background_tasks.add_task)

def get_purchase_service(
        background_tasks: BackgroundTasks,
        repo: EnrollmentRepository = Depends(get_repository),
        gateway: PaymentGateway = Depends(get_payment_gateway),
        notifier: Notifier = Depends(get_notifier),
) -> PurchaseService:
    return PurchaseService(repo, gateway=gateway, notifier=notifier, schedule=background_tasks.add_task)

def to_http_error(e: Exception) -> HTTPException:
    """Map engine and gateway errors to HTTP responses."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=e.to_dict())
    if isinstance(e, PlanTypeLockedError):
        return HTTPException(status_code=409, detail=e.to_dict())
    if isinstance(e, PaymentVerificationError):
        return HTTPException(status_code=402, detail=e.to_dict())
    if isinstance(e, EntitlementError):
        return HTTPException(status_code=400, detail=e.to_dict())
    if isinstance(e, PaymentGatewayError):
        return HTTPException(status_code=502, detail={"provider": e.provider, "message": str(e), "details": e.details})
    return HTTPException(status_code=500, detail=str(e))

def get_settlement_service(
        background_tasks: BackgroundTasks,
        repo: EnrollmentRepository = Depends(get_repository),
        notifier: Notifier = Depends(get_notifier),
) -> PurchaseService:
    # Webhooks settle existing orders; no gateway client needed
    return PurchaseService(repo, notifier=notifier, schedule=background_tasks.add_task)
