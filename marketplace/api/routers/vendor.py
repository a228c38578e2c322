# marketplace/api/routers/vendor.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.api.deps import get_current_user_id, get_notifier
from marketplace.data.database import get_db
from marketplace.domain.schemas import StatusUpdateIn, StatusUpdateOut, VendorOrderListOut
from marketplace.services.notification_service import NotificationService
from marketplace.services.order_state_service import OrderStateService

router = APIRouter(prefix="/vendor", tags=["vendor"])


def get_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
) -> OrderStateService:
    return OrderStateService(db, notifier)


@router.get("/orders", response_model=VendorOrderListOut)
def list_vendor_orders(
    user_id: int = Depends(get_current_user_id),
    svc: OrderStateService = Depends(get_service),
):
    return {"orders": svc.list_vendor_orders(user_id)}


@router.put("/orders/{order_id}/status", response_model=StatusUpdateOut)
def update_order_status(
    order_id: int,
    payload: StatusUpdateIn,
    user_id: int = Depends(get_current_user_id),
    svc: OrderStateService = Depends(get_service),
):
    return svc.update_status_by_vendor(user_id, order_id, payload.status)
