# marketplace/celery_worker.py
from celery import Celery

from marketplace.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
    RECONCILE_INTERVAL_SECONDS,
)

celery_app = Celery(
    "marketplace",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# WAŻNE: Explicite importuj taski, żeby Celery je zarejestrował
celery_app.conf.imports = (
    "marketplace.tasks.reconcile",
    "marketplace.services.notification_service",
)

# Konfiguracja beat schedule
celery_app.conf.beat_schedule = {
    "reconcile-pending-payments": {
        "task": "marketplace.tasks.reconcile.reconcile_pending_payments_task",
        "schedule": float(RECONCILE_INTERVAL_SECONDS),
    },
}

celery_app.conf.timezone = "UTC"
# dev/testy - taski wykonywane od razu w procesie
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
