# marketplace/api/routers/cart.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.api.deps import get_current_user_id
from marketplace.data.database import get_db
from marketplace.domain.schemas import CartItemIn, CartItemUpdate, CartOut, MessageOut
from marketplace.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db)


@router.get("", response_model=CartOut)
def get_cart(
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_service),
):
    return svc.get_contents(user_id)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartItemIn,
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_service),
):
    return svc.add_item(user_id, payload.product_id, payload.quantity)


@router.put("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: CartItemUpdate,
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_service),
):
    return svc.update_quantity(user_id, item_id, payload.quantity)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_service),
):
    return svc.remove_item(user_id, item_id)


@router.delete("", response_model=MessageOut)
def clear_cart(
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_service),
):
    svc.clear(user_id)
    return {"message": "Cart cleared successfully"}
