# marketplace/services/order_service.py
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.data.models.order import OrderModel
from marketplace.data.models.order_item import OrderItemModel
from marketplace.data.models.order_status_history import OrderStatusHistoryModel
from marketplace.domain.errors import (
    CartNotFound,
    DomainError,
    EmptyCart,
    InternalError,
    OrderNotFound,
    ProductUnavailable,
    ValidationError,
)
from marketplace.domain.money import line_total, sum_lines, to_money
from marketplace.domain.status import OrderStatus, PaymentStatus
from marketplace.repos.cart_repo import CartRepo
from marketplace.repos.order_repo import OrderRepo
from marketplace.services.inventory_service import InventoryService
from marketplace.services.notification_service import NotificationService
from marketplace.utils.settings import MIN_SHIPPING_ADDRESS_LENGTH
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class OrderService:
    """
    Serwis odpowiedzialny za domenę zamówień.
    Jedyna granica transakcyjna koszyk -> zamowienie.
    """

    def __init__(self, db: Session, notifier: NotificationService):
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.inventory = InventoryService(db)
        self.notifier = notifier

    def create_order(self, user_id: int, shipping_address: str) -> Dict[str, Any]:
        """
        Use Case: Tworzenie zamówienia z koszyka.

        1. Wczytuje koszyk razem z aktualnymi produktami (cena, stan)
        2. Waliduje adres i dostepnosc wszystkich pozycji
        3. Liczy total (Decimal, 2 miejsca)
        4. Zapisuje zamowienie + snapshot pozycji + historie
        5. Zmniejsza stany (warunkowy update) i czysci koszyk
        6. Commit - wszystko albo nic
        7. Wysyła powiadomienie (async, bledy polykane)
        """
        cart = self.carts.get_cart_by_user(user_id)
        if not cart:
            raise CartNotFound()

        lines = self.carts.get_cart_lines(cart.id)
        if not lines:
            raise EmptyCart()

        address = (shipping_address or "").strip()
        if len(address) < MIN_SHIPPING_ADDRESS_LENGTH:
            raise ValidationError(
                f"Shipping address must be at least {MIN_SHIPPING_ADDRESS_LENGTH} characters",
                details={"field": "shippingAddress"},
            )

        for item, product in lines:
            if not product.is_active:
                raise ProductUnavailable(product.id)

        self.inventory.check_availability([(item.id, item.quantity, product) for item, product in lines])

        total = sum_lines((product.price, item.quantity) for item, product in lines)

        try:
            order = self.repo.add_order(
                OrderModel(
                    user_id=user_id,
                    total_amount=total,
                    status=OrderStatus.PENDING.value,
                    payment_status=PaymentStatus.UNPAID.value,
                    shipping_address=address,
                )
            )

            # snapshot ceny z tej chwili - nigdy nie przeliczany
            self.repo.add_order_items(
                OrderItemModel(
                    order_id=order.id,
                    product_id=product.id,
                    vendor_id=product.vendor_id,
                    quantity=item.quantity,
                    price_at_purchase=to_money(product.price),
                )
                for item, product in lines
            )
            self.repo.add_history(
                OrderStatusHistoryModel(
                    order_id=order.id,
                    status=OrderStatus.PENDING.value,
                    note="Order placed",
                    created_by=user_id,
                )
            )

            self.inventory.reserve_stock((product.id, item.quantity) for item, product in lines)

            # wiersz koszyka zostaje, znikaja tylko pozycje
            self.carts.clear_cart(cart.id)

            self.repo.commit()
        except DomainError:
            self.repo.rollback()
            raise
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Order creation for user {user_id} failed: {e}")
            raise InternalError() from e

        logger.info(f"Order {order.id} created from cart {cart.id}, total {total}")

        # po commicie - blad powiadomienia nie cofa zamowienia
        self.notifier.order_confirmed(user_id, order.id, total)

        return {
            "id": order.id,
            "total_amount": order.total_amount,
            "status": order.status,
            "created_at": order.created_at,
        }

    def list_orders(self, user_id: int) -> List[Dict[str, Any]]:
        """
        Use Case: Lista zamówień użytkownika, najnowsze pierwsze (Query).
        """
        return [self._serialize(order) for order in self.repo.list_orders_by_user(user_id)]

    def get_order(self, user_id: int, order_id: int) -> Dict[str, Any]:
        """
        Use Case: Pobranie zamówienia (Query).
        Cudze zamowienie wyglada jak nieistniejace.
        """
        order = self.repo.get_order(order_id)

        if not order or order.user_id != user_id:
            raise OrderNotFound(order_id)

        return self._serialize(order)

    def _serialize(self, order: OrderModel) -> Dict[str, Any]:
        items = self.repo.get_items_with_products(order.id)
        return {
            "id": order.id,
            "user_id": order.user_id,
            "total_amount": order.total_amount,
            "status": order.status,
            "payment_status": order.payment_status,
            "payment_gateway": order.payment_gateway,
            "transaction_id": order.transaction_id,
            "shipping_address": order.shipping_address,
            "created_at": order.created_at,
            "updated_at": order.updated_at,
            "items": [
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "product_name": product.name,
                    "vendor_id": item.vendor_id,
                    "quantity": item.quantity,
                    "price_at_purchase": item.price_at_purchase,
                    "line_total": line_total(item.price_at_purchase, item.quantity),
                }
                for item, product in items
            ],
            "history": [
                {
                    "status": entry.status,
                    "note": entry.note,
                    "created_by": entry.created_by,
                    "created_at": entry.created_at,
                }
                for entry in order.history
            ],
        }
