# marketplace/tasks/reconcile.py
from marketplace.celery_worker import celery_app
from marketplace.data.database import SessionLocal
from marketplace.services.gateways import build_gateway_registry
from marketplace.services.lock_service import LockService
from marketplace.services.notification_service import NotificationService
from marketplace.services.payment_service import PaymentService
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="marketplace.tasks.reconcile.reconcile_pending_payments_task")
def reconcile_pending_payments_task():
    logger.info("Reconcile pending payments task started")

    db = SessionLocal()
    try:
        service = PaymentService(
            db=db,
            gateways=build_gateway_registry(),
            lock_service=LockService(),
            notifier=NotificationService(),
        )
        return service.reconcile_pending_payments()
    finally:
        db.close()
