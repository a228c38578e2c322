# marketplace/services/cart_service.py
from typing import Dict, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.data.models.cart import CartModel
from marketplace.data.models.cart_item import CartItemModel
from marketplace.domain.errors import (
    CartItemNotFound,
    CartNotFound,
    InsufficientStock,
    InternalError,
    ProductNotFound,
    ValidationError,
)
from marketplace.domain.money import line_total, sum_lines
from marketplace.repos.cart_repo import CartRepo
from marketplace.repos.product_repo import ProductRepo
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Prosta implementacja cqrs i proste use case dla domeny cart
    commands (add, update, remove, clear) modyfikuja stan
    query (get_contents) tylko odczyt

    Sprawdzenie stanu magazynu tutaj jest tylko informacyjne - nic nie
    jest rezerwowane. Wiazace sprawdzenie robi dopiero OrderService.
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)

    #query - odczyt
    def get_contents(self, user_id: int) -> Dict[str, Any]:
        cart = self._get_cart(user_id)
        lines = self.repo.get_cart_lines(cart.id)

        #subtotal liczony przy kazdym odczycie z aktualnych cen, nie zapisywany
        return {
            "id": cart.id,
            "items": [
                {
                    "id": item.id,
                    "quantity": item.quantity,
                    "added_at": item.added_at,
                    "line_total": line_total(product.price, item.quantity),
                    "product": {
                        "id": product.id,
                        "name": product.name,
                        "price": product.price,
                        "stock_quantity": product.stock_quantity,
                    },
                }
                for item, product in lines
            ],
            "subtotal": sum_lines((product.price, item.quantity) for item, product in lines),
            "item_count": sum(item.quantity for item, _ in lines),
        }

    #commands
    def add_item(self, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        self._validate_quantity(quantity)

        product = self.products.get_product(product_id)
        if not product or not product.is_active:
            raise ProductNotFound(product_id)

        cart = self._get_cart(user_id)

        # Sprawdz czy produkt juz jest w koszyku
        existing_item = self.repo.get_cart_item_by_product(cart.id, product_id)
        new_quantity = quantity + (existing_item.quantity if existing_item else 0)

        #laczna ilosc musi sie zmiescic w aktualnym stanie
        if new_quantity > product.stock_quantity:
            raise InsufficientStock(
                [{"productId": product_id, "requested": new_quantity, "available": product.stock_quantity}]
            )

        try:
            if existing_item:
                logger.info(
                    f"Produkt {product_id} już jest w koszyku {cart.id}, zwiekszam ilosc "
                    f"z {existing_item.quantity} do {new_quantity}"
                )
                existing_item.quantity = new_quantity
            else:
                logger.info(f"Dodaje nowy produkt {product_id} do koszyka {cart.id}")
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product_id,
                        quantity=quantity,
                    )
                )
            self.repo.commit()
        except SQLAlchemyError as e:
            self._storage_failure("add item", e)

        return self.get_contents(user_id)

    def update_quantity(self, user_id: int, item_id: int, quantity: int) -> Dict[str, Any]:
        self._validate_quantity(quantity)

        cart = self._get_cart(user_id)
        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            raise CartItemNotFound(item_id)

        product = self.products.get_product(item.product_id)
        if not product:
            raise ProductNotFound(item.product_id)

        if quantity > product.stock_quantity:
            raise InsufficientStock(
                [{"productId": product.id, "requested": quantity, "available": product.stock_quantity}]
            )

        try:
            item.quantity = quantity
            self.repo.commit()
        except SQLAlchemyError as e:
            self._storage_failure("update quantity", e)

        logger.info(f"Pozycja {item_id} w koszyku {cart.id} ma teraz ilosc {quantity}")
        return self.get_contents(user_id)

    def remove_item(self, user_id: int, item_id: int) -> Dict[str, Any]:
        cart = self._get_cart(user_id)
        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            raise CartItemNotFound(item_id)

        try:
            self.repo.delete_cart_item(item)
            self.repo.commit()
        except SQLAlchemyError as e:
            self._storage_failure("remove item", e)

        logger.info(f"Usunieto pozycje {item_id} z koszyka {cart.id}")
        return self.get_contents(user_id)

    def clear(self, user_id: int) -> int:
        cart = self._get_cart(user_id)
        try:
            removed = self.repo.clear_cart(cart.id)
            self.repo.commit()
        except SQLAlchemyError as e:
            self._storage_failure("clear cart", e)

        logger.info(f"Koszyk {cart.id} wyczyszczony ({removed} pozycji)")
        return removed

    def _get_cart(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            raise CartNotFound()
        return cart

    @staticmethod
    def _validate_quantity(quantity: int) -> None:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", details={"quantity": quantity})

    def _storage_failure(self, action: str, error: Exception) -> None:
        self.repo.rollback()
        logger.error(f"Blad bazy podczas operacji '{action}': {error}")
        raise InternalError() from error
