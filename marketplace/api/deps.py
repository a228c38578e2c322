# marketplace/api/deps.py
from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from marketplace.data.database import get_db
from marketplace.domain.errors import Unauthorized
from marketplace.repos.user_repo import UserRepo
from marketplace.services.gateways import GatewayRegistry, build_gateway_registry
from marketplace.services.lock_service import LockService
from marketplace.services.notification_service import NotificationService
from marketplace.utils.settings import AUTH_USER_HEADER


def get_current_user_id(request: Request, db: Session = Depends(get_db)) -> int:
    """
    Tozsamosc ustawia zewnetrzny serwis auth w naglowku.
    Brak / smieci / nieznany user -> 401.
    """
    raw = (request.headers.get(AUTH_USER_HEADER) or "").strip()
    # isdigit() przepuszcza np. "²", int() juz nie; >18 cyfr nie zmiesci sie w BIGINT
    if not raw or not raw.isascii() or not raw.isdigit() or len(raw) > 18:
        raise Unauthorized()

    user_id = int(raw)
    if not UserRepo(db).get_user(user_id):
        raise Unauthorized()
    return user_id


@lru_cache
def get_gateways() -> GatewayRegistry:
    return build_gateway_registry()


@lru_cache
def get_lock_service() -> LockService:
    return LockService()


def get_notifier() -> NotificationService:
    return NotificationService()
