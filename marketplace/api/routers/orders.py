# marketplace/api/routers/orders.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.api.deps import get_current_user_id, get_notifier
from marketplace.data.database import get_db
from marketplace.domain.schemas import OrderCreate, OrderCreatedOut, OrderDetailOut, OrderListOut
from marketplace.services.notification_service import NotificationService
from marketplace.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
) -> OrderService:
    return OrderService(db, notifier)


@router.post("", response_model=OrderCreatedOut, status_code=201)
def create_order(
    payload: OrderCreate,
    user_id: int = Depends(get_current_user_id),
    svc: OrderService = Depends(get_service),
):
    """
    Tworzy zamówienie z koszyka usera.
    Wysyła powiadomienie asynchronicznie.
    """
    return {"order": svc.create_order(user_id, payload.shipping_address)}


@router.get("", response_model=OrderListOut)
def list_orders(
    user_id: int = Depends(get_current_user_id),
    svc: OrderService = Depends(get_service),
):
    return {"orders": svc.list_orders(user_id)}


@router.get("/{order_id}", response_model=OrderDetailOut)
def get_order(
    order_id: int,
    user_id: int = Depends(get_current_user_id),
    svc: OrderService = Depends(get_service),
):
    """
    Pobiera szczegóły zamówienia z pozycjami i historia statusow.
    """
    return {"order": svc.get_order(user_id, order_id)}
