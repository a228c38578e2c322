# marketplace/services/order_state_service.py
from collections import OrderedDict
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.data.models.order_status_history import OrderStatusHistoryModel
from marketplace.data.models.vendor import VendorModel
from marketplace.domain.errors import (
    Forbidden,
    InternalError,
    InvalidStatusTransition,
    OrderNotFound,
    ValidationError,
)
from marketplace.domain.status import VALID_STATUSES, OrderStatus, can_transition
from marketplace.repos.order_repo import OrderRepo
from marketplace.repos.user_repo import UserRepo
from marketplace.services.notification_service import NotificationService
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class OrderStateService:
    """
    Maszyna stanow zamowienia.

    status:          pending -> processing -> shipped -> delivered
                     pending/processing -> cancelled
    payment_status:  unpaid -> paid (-> refunded, poza tym serwisem)

    delivered i cancelled sa terminalne. Kazda zmiana to warunkowy update
    na poprzedni stan, wiec rownolegle zmiany nie nadpisza sie po cichu.
    """

    def __init__(self, db: Session, notifier: NotificationService):
        self.repo = OrderRepo(db)
        self.users = UserRepo(db)
        self.notifier = notifier

    def mark_paid(self, order_id: int, transaction_id: str, note: str | None = None) -> bool:
        """
        unpaid -> paid + pending -> processing atomowo, razem z wpisem historii.
        True tylko dla wywolania ktore faktycznie wykonalo przejscie.
        """
        try:
            rowcount = self.repo.mark_paid(order_id, transaction_id)
            if rowcount == 0:
                self.repo.rollback()
                return False

            self.repo.add_history(
                OrderStatusHistoryModel(
                    order_id=order_id,
                    status=OrderStatus.PROCESSING.value,
                    note=note or f"Payment verified ({transaction_id})",
                )
            )
            self.repo.commit()
        except IntegrityError as e:
            # transaction_id jest unikalne - jedna platnosc nie oplaci dwoch zamowien
            self.repo.rollback()
            logger.error(f"Transaction {transaction_id} already settles another order, order {order_id} left unpaid")
            raise ValidationError(
                "Payment transaction was already used for another order",
                details={"orderId": order_id, "transactionId": transaction_id},
            ) from e
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Marking order {order_id} as paid failed: {e}")
            raise InternalError() from e

        logger.info(f"Order {order_id} paid, transaction {transaction_id}")
        return True

    def update_status_by_vendor(self, user_id: int, order_id: int, status: str) -> Dict[str, Any]:
        vendor = self._require_vendor(user_id)

        if status not in VALID_STATUSES:
            raise ValidationError(
                "Invalid status. Must be one of: " + ", ".join(VALID_STATUSES),
                details={"status": status, "allowed": VALID_STATUSES},
            )
        target = OrderStatus(status)

        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)

        #vendor musi miec w zamowieniu przynajmniej jeden swoj produkt
        if not self.repo.vendor_has_items(order_id, vendor.id):
            raise Forbidden("Order doesn't contain your products")

        current = OrderStatus(order.status)
        if current == target:
            return {
                "success": True,
                "order_id": order.id,
                "status": current.value,
                "message": f"Order status is already {current.value}",
            }

        if not can_transition(current, target):
            raise InvalidStatusTransition(current.value, target.value)

        customer_id = order.user_id
        try:
            rowcount = self.repo.update_status(order.id, current.value, target.value)

            # np w bazie update set status 'shipped' where id 1 and status 'processing'
            if rowcount == 0:
                self.repo.rollback()
                raise ValidationError(
                    "Order was modified by another operation, reload and retry",
                    details={"orderId": order_id},
                    retryable=True,
                )

            self.repo.add_history(
                OrderStatusHistoryModel(
                    order_id=order.id,
                    status=target.value,
                    note=f"Status changed by vendor {vendor.id}",
                    created_by=user_id,
                )
            )
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Status update of order {order_id} failed: {e}")
            raise InternalError() from e

        logger.info(f"Order {order_id}: {current.value} -> {target.value} (vendor {vendor.id})")

        self.notifier.status_changed(customer_id, order_id, target.value)

        return {
            "success": True,
            "order_id": order_id,
            "status": target.value,
            "message": f"Order status updated to {target.value}",
        }

    def list_vendor_orders(self, user_id: int) -> List[Dict[str, Any]]:
        """Zamowienia z produktami vendora - tylko jego pozycje, najnowsze pierwsze."""
        vendor = self._require_vendor(user_id)

        orders: "OrderedDict[int, Dict[str, Any]]" = OrderedDict()
        for item, order, product in self.repo.list_vendor_items(vendor.id):
            entry = orders.get(order.id)
            if entry is None:
                entry = orders[order.id] = {
                    "id": order.id,
                    "total_amount": order.total_amount,
                    "status": order.status,
                    "payment_status": order.payment_status,
                    "shipping_address": order.shipping_address,
                    "created_at": order.created_at,
                    "items": [],
                }
            entry["items"].append(
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "product_name": product.name,
                    "quantity": item.quantity,
                    "price_at_purchase": item.price_at_purchase,
                }
            )

        return list(orders.values())

    def _require_vendor(self, user_id: int) -> VendorModel:
        vendor = self.users.get_vendor_by_user(user_id)
        if not vendor or not vendor.is_approved:
            raise Forbidden("Vendor access required")
        return vendor
