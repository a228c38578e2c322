# marketplace/services/notification_service.py
from decimal import Decimal

from marketplace.celery_worker import celery_app
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień (fire-and-forget).
    Używa Celery do asynchronicznego przetwarzania.

    Wywolywany dopiero po commicie transakcji biznesowej. Blad przy
    wrzucaniu taska jest logowany i polykany - nigdy nie cofa zamowienia
    ani platnosci.
    """

    def order_confirmed(self, user_id: int, order_id: int, total_amount: Decimal) -> bool:
        return self._emit(
            send_order_confirmed_task,
            user_id,
            order_id,
            str(total_amount),
        )

    def payment_result(
        self,
        user_id: int,
        order_id: int,
        success: bool,
        transaction_id: str | None = None,
    ) -> bool:
        return self._emit(
            send_payment_result_task,
            user_id,
            order_id,
            success,
            transaction_id,
        )

    def status_changed(self, user_id: int, order_id: int, status: str) -> bool:
        return self._emit(send_status_changed_task, user_id, order_id, status)

    @staticmethod
    def _emit(task, *args) -> bool:
        try:
            task.delay(*args)
            return True
        except Exception as e:
            logger.warning(f"[NOTIFICATION] Failed to enqueue {task.name} {args}: {e}")
            return False


# taski - w prawdziwym systemie email/SMS/push, tu tylko log

@celery_app.task(name="marketplace.services.notification_service.send_order_confirmed_task")
def send_order_confirmed_task(user_id: int, order_id: int, total_amount: str):
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_id} confirmed, total {total_amount}")
    return {"user_id": user_id, "order_id": order_id, "event": "order_confirmed", "status": "sent"}


@celery_app.task(name="marketplace.services.notification_service.send_payment_result_task")
def send_payment_result_task(user_id: int, order_id: int, success: bool, transaction_id: str | None):
    outcome = "succeeded" if success else "failed"
    logger.info(
        f"[NOTIFICATION] User {user_id}: payment for order {order_id} {outcome} "
        f"(transaction {transaction_id})"
    )
    return {"user_id": user_id, "order_id": order_id, "event": "payment_result", "status": "sent"}


@celery_app.task(name="marketplace.services.notification_service.send_status_changed_task")
def send_status_changed_task(user_id: int, order_id: int, status: str):
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_id} is now {status}")
    return {"user_id": user_id, "order_id": order_id, "event": "status_changed", "status": "sent"}
