# marketplace/repos/order_repo.py
from datetime import datetime
from typing import Iterable, List, Tuple

from sqlalchemy import select, update, exists
from sqlalchemy.orm import Session

from marketplace.data.models._common import utcnow
from marketplace.data.models.order import OrderModel
from marketplace.data.models.order_item import OrderItemModel
from marketplace.data.models.order_status_history import OrderStatusHistoryModel
from marketplace.data.models.product import ProductModel
from marketplace.domain.status import PAYABLE_STATUSES, OrderStatus, PaymentStatus


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_order_items(self, items: Iterable[OrderItemModel]) -> None:
        self.db.add_all(list(items))
        self.db.flush()

    def add_history(self, entry: OrderStatusHistoryModel) -> None:
        self.db.add(entry)
        self.db.flush()

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def refresh(self, order: OrderModel) -> OrderModel:
        self.db.refresh(order)
        return order

    def list_orders_by_user(self, user_id: int) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars().all()
        )

    def get_items_with_products(self, order_id: int) -> List[Tuple[OrderItemModel, ProductModel]]:
        rows = self.db.execute(
            select(OrderItemModel, ProductModel)
            .join(ProductModel, OrderItemModel.product_id == ProductModel.id)
            .where(OrderItemModel.order_id == order_id)
            .order_by(OrderItemModel.id)
        ).all()
        return [(item, product) for item, product in rows]

    def set_payment_gateway(self, order: OrderModel, gateway: str, intent_id: str | None) -> None:
        order.payment_gateway = gateway
        if intent_id is not None:
            order.payment_intent_id = intent_id
        self.db.flush()

    def mark_paid(self, order_id: int, transaction_id: str) -> int:
        """
        unpaid -> paid i pending -> processing w jednym warunkowym update.
        Dwa rownolegle callbacki: tylko jeden dostanie rowcount 1.
        """
        result = self.db.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.payment_status == PaymentStatus.UNPAID.value,
                OrderModel.status.in_(PAYABLE_STATUSES),
            )
            .values(
                payment_status=PaymentStatus.PAID.value,
                status=OrderStatus.PROCESSING.value,
                transaction_id=transaction_id,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def update_status(self, order_id: int, old_status: str, new_status: str) -> int:
        # jak update_cart_version - warunek na poprzedni stan
        result = self.db.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.status == old_status,
            )
            .values(status=new_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def vendor_has_items(self, order_id: int, vendor_id: int) -> bool:
        return bool(
            self.db.execute(
                select(
                    exists().where(
                        OrderItemModel.order_id == order_id,
                        OrderItemModel.vendor_id == vendor_id,
                    )
                )
            ).scalar()
        )

    def list_vendor_items(self, vendor_id: int) -> List[Tuple[OrderItemModel, OrderModel, ProductModel]]:
        rows = self.db.execute(
            select(OrderItemModel, OrderModel, ProductModel)
            .join(OrderModel, OrderItemModel.order_id == OrderModel.id)
            .join(ProductModel, OrderItemModel.product_id == ProductModel.id)
            .where(OrderItemModel.vendor_id == vendor_id)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc(), OrderItemModel.id)
        ).all()
        return [(item, order, product) for item, order, product in rows]

    def find_unpaid_for_reconciliation(
        self,
        gateways: Iterable[str],
        created_before: datetime,
        limit: int,
    ) -> List[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(
                    OrderModel.payment_status == PaymentStatus.UNPAID.value,
                    OrderModel.status == OrderStatus.PENDING.value,
                    OrderModel.payment_gateway.in_(list(gateways)),
                    OrderModel.created_at < created_before,
                )
                .order_by(OrderModel.id)
                .limit(limit)
            ).scalars().all()
        )

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
