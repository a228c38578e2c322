# marketplace/api/routers/payments.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.api.deps import get_current_user_id, get_gateways, get_lock_service, get_notifier
from marketplace.data.database import get_db
from marketplace.domain.schemas import (
    PaymentInitiateIn,
    PaymentInitiateOut,
    PaymentVerifyIn,
    PaymentVerifyOut,
)
from marketplace.services.gateways import GatewayRegistry
from marketplace.services.lock_service import LockService
from marketplace.services.notification_service import NotificationService
from marketplace.services.payment_service import PaymentService

router = APIRouter(prefix="/payment", tags=["payment"])


def get_service(
    db: Session = Depends(get_db),
    gateways: GatewayRegistry = Depends(get_gateways),
    lock_service: LockService = Depends(get_lock_service),
    notifier: NotificationService = Depends(get_notifier),
) -> PaymentService:
    return PaymentService(db, gateways, lock_service, notifier)


@router.post("/initiate", response_model=PaymentInitiateOut, response_model_exclude_none=True)
def initiate_payment(
    payload: PaymentInitiateIn,
    user_id: int = Depends(get_current_user_id),
    svc: PaymentService = Depends(get_service),
):
    return svc.initiate_payment(user_id, payload.order_id, payload.gateway)


@router.post("/verify", response_model=PaymentVerifyOut)
def verify_payment(
    payload: PaymentVerifyIn,
    user_id: int = Depends(get_current_user_id),
    svc: PaymentService = Depends(get_service),
):
    return svc.verify_payment(
        user_id,
        payload.order_id,
        payload.gateway,
        ref_id=payload.ref_id,
        pidx=payload.pidx,
    )
