"""
Shared fixtures: in-memory SQLite, FastAPI client with overridden
dependencies (no Redis, no Celery broker, no real payment providers).
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"

from decimal import Decimal
from itertools import count
from typing import Any, Dict, List, Tuple
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import marketplace.data.models  # noqa: F401
from marketplace.api.deps import get_gateways, get_lock_service, get_notifier
from marketplace.data.database import Base, get_db
from marketplace.data.models import (
    CartItemModel,
    CartModel,
    ProductModel,
    UserModel,
    VendorModel,
)
from marketplace.main import create_app
from marketplace.services.gateways import GatewayRegistry
from marketplace.services.gateways.cod import CashOnDeliveryGateway
from marketplace.services.gateways.esewa import EsewaGateway
from marketplace.services.gateways.khalti import KhaltiGateway
from marketplace.services.notification_service import NotificationService

ESEWA_SECRET = "8gBm/:&EnhH.1/q"


# ============================================================================
# Fakes
# ============================================================================


class RecordingNotifier(NotificationService):
    """Records events instead of enqueueing Celery tasks."""

    def __init__(self):
        self.events: List[Tuple[str, tuple]] = []

    def _emit(self, task, *args) -> bool:
        self.events.append((task.name.rsplit(".", 1)[-1], args))
        return True

    def names(self) -> List[str]:
        return [name for name, _ in self.events]


class FakeLockService:
    def __init__(self):
        self.held: Dict[int, str] = {}
        self._tokens = count(1)

    def new_token(self) -> str:
        return f"token-{next(self._tokens)}"

    def acquire_order_lock(self, order_id: int, token: str, ttl: int) -> bool:
        if order_id in self.held:
            return False
        self.held[order_id] = token
        return True

    def release_order_lock(self, order_id: int, token: str) -> bool:
        if self.held.get(order_id) == token:
            del self.held[order_id]
            return True
        return False


def http_response(payload: Dict[str, Any], status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error", response=resp)
    else:
        resp.raise_for_status.return_value = None
    return resp


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


class Factory:
    def __init__(self, db):
        self.db = db
        self._seq = count(1)

    def user(self, name: str = "Customer", role: str = "customer", with_cart: bool = True) -> UserModel:
        n = next(self._seq)
        user = UserModel(email=f"user{n}@example.com", name=f"{name} {n}", role=role)
        self.db.add(user)
        self.db.flush()
        if with_cart:
            self.db.add(CartModel(user_id=user.id))
        self.db.commit()
        return user

    def vendor(self, approved: bool = True) -> VendorModel:
        user = self.user(name="Vendor", role="vendor")
        vendor = VendorModel(user_id=user.id, business_name=f"Store of {user.name}", is_approved=approved)
        self.db.add(vendor)
        self.db.commit()
        return vendor

    def product(
        self,
        price: str = "100.00",
        stock: int = 10,
        vendor: VendorModel | None = None,
        active: bool = True,
        name: str | None = None,
    ) -> ProductModel:
        product = ProductModel(
            vendor_id=vendor.id if vendor else None,
            name=name or f"Product {next(self._seq)}",
            price=Decimal(price),
            stock_quantity=stock,
            is_active=active,
        )
        self.db.add(product)
        self.db.commit()
        return product

    def cart_item(self, user: UserModel, product: ProductModel, quantity: int) -> CartItemModel:
        cart = self.db.query(CartModel).filter(CartModel.user_id == user.id).one()
        item = CartItemModel(cart_id=cart.id, product_id=product.id, quantity=quantity)
        self.db.add(item)
        self.db.commit()
        return item

    def stock(self, product: ProductModel) -> int:
        self.db.expire_all()
        return self.db.get(ProductModel, product.id).stock_quantity


@pytest.fixture
def make(db):
    return Factory(db)


# ============================================================================
# Collaborators
# ============================================================================


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def lock_service():
    return FakeLockService()


@pytest.fixture
def gateways():
    return GatewayRegistry(
        [
            EsewaGateway(
                secret_key=ESEWA_SECRET,
                product_code="EPAYTEST",
                payment_url="https://esewa.test/form",
                status_url="https://esewa.test/status/",
                success_url="https://shop.test/success",
                failure_url="https://shop.test/failure",
                timeout=5,
                session=MagicMock(),
            ),
            KhaltiGateway(
                secret_key="khalti-secret",
                base_url="https://khalti.test/api/v2",
                return_url="https://shop.test/success",
                website_url="https://shop.test",
                timeout=5,
                session=MagicMock(),
            ),
            CashOnDeliveryGateway(),
        ]
    )


# ============================================================================
# HTTP
# ============================================================================


@pytest.fixture
def app(session_factory, gateways, lock_service, notifier):
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateways] = lambda: gateways
    app.dependency_overrides[get_lock_service] = lambda: lock_service
    app.dependency_overrides[get_notifier] = lambda: notifier
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def auth(user) -> Dict[str, str]:
    return {"X-User-Id": str(user.id)}
