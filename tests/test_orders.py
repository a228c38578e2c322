import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from marketplace.data.database import Base
from marketplace.data.models import CartItemModel, OrderModel, ProductModel
from marketplace.domain.errors import InsufficientStock
from marketplace.services.inventory_service import InventoryService
from marketplace.services.notification_service import NotificationService
from marketplace.services.order_service import OrderService
from tests.conftest import Factory, RecordingNotifier, auth

ADDRESS = "12 Durbar Marg, Kathmandu"


def place_order(client, user, address=ADDRESS):
    return client.post("/orders", json={"shippingAddress": address}, headers=auth(user))


def test_create_order_from_cart(client, make, notifier):
    user = make.user()
    product_a = make.product(price="100.00", stock=10)
    product_b = make.product(price="250.00", stock=10)
    make.cart_item(user, product_a, 2)
    make.cart_item(user, product_b, 1)

    resp = place_order(client, user)

    assert resp.status_code == 201
    order = resp.json()["order"]
    assert Decimal(order["totalAmount"]) == Decimal("450.00")
    assert order["status"] == "pending"

    assert make.stock(product_a) == 8
    assert make.stock(product_b) == 9
    assert client.get("/cart", headers=auth(user)).json()["items"] == []

    detail = client.get(f"/orders/{order['id']}", headers=auth(user)).json()["order"]
    assert detail["paymentStatus"] == "unpaid"
    assert detail["shippingAddress"] == ADDRESS
    assert [h["status"] for h in detail["history"]] == ["pending"]

    assert notifier.names() == ["send_order_confirmed_task"]
    assert notifier.events[0][1] == (user.id, order["id"], "450.00")


def test_insufficient_stock_creates_nothing(client, make, db):
    user = make.user()
    product = make.product(stock=3)
    make.cart_item(user, product, 5)

    resp = place_order(client, user)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INSUFFICIENT_STOCK"
    assert make.stock(product) == 3
    assert db.query(OrderModel).count() == 0
    assert db.query(CartItemModel).count() == 1


def test_lost_stock_race_rolls_back_whole_order(db, make, notifier, monkeypatch):
    # stan zmienil sie miedzy odczytem a zapisem - wygrywa warunkowy update
    monkeypatch.setattr(InventoryService, "check_availability", staticmethod(lambda lines: None))
    user = make.user()
    plenty = make.product(stock=10)
    scarce = make.product(stock=3)
    make.cart_item(user, plenty, 2)
    make.cart_item(user, scarce, 5)

    with pytest.raises(InsufficientStock) as exc:
        OrderService(db, notifier).create_order(user.id, ADDRESS)

    assert exc.value.retryable is True
    assert make.stock(plenty) == 10
    assert make.stock(scarce) == 3
    assert db.query(OrderModel).count() == 0
    assert db.query(CartItemModel).count() == 2
    assert notifier.events == []


def test_stock_is_never_oversold_across_customers(client, make, db):
    product = make.product(stock=2)
    buyers = [make.user() for _ in range(3)]
    for buyer in buyers:
        make.cart_item(buyer, product, 1)

    codes = [place_order(client, buyer).status_code for buyer in buyers]

    assert codes == [201, 201, 400]
    assert make.stock(product) == 0
    assert db.query(OrderModel).count() == 2


@pytest.fixture
def file_engine(tmp_path):
    # osobne polaczenia per watek; sqlite serializuje zapisujacych przez BEGIN IMMEDIATE
    engine = create_engine(
        f"sqlite:///{tmp_path / 'checkout.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


def test_parallel_checkouts_never_oversell(file_engine):
    stock, workers = 3, 8
    Session = sessionmaker(bind=file_engine, autocommit=False, autoflush=False)

    with Session() as setup:
        make = Factory(setup)
        product = make.product(stock=stock)
        buyers = [make.user() for _ in range(workers)]
        for buyer in buyers:
            make.cart_item(buyer, product, 1)
        buyer_ids = [buyer.id for buyer in buyers]
        product_id = product.id

    start = threading.Barrier(workers)

    def checkout(user_id):
        with Session() as session:
            start.wait()
            try:
                OrderService(session, RecordingNotifier()).create_order(user_id, ADDRESS)
                return "ok"
            except InsufficientStock:
                return "short"

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(checkout, buyer_ids))

    assert outcomes.count("ok") == stock
    assert outcomes.count("short") == workers - stock
    with Session() as check:
        assert check.get(ProductModel, product_id).stock_quantity == 0
        assert check.query(OrderModel).count() == stock
        assert check.query(CartItemModel).count() == workers - stock


def test_empty_cart_is_rejected(client, make):
    user = make.user()

    resp = place_order(client, user)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "EMPTY_CART"


def test_short_shipping_address_is_rejected(client, make, db):
    user = make.user()
    product = make.product(stock=5)
    make.cart_item(user, product, 1)

    resp = place_order(client, user, address="  short  ")

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
    assert make.stock(product) == 5
    assert db.query(OrderModel).count() == 0


def test_inactive_product_blocks_checkout(client, make, db):
    user = make.user()
    product = make.product(stock=5)
    make.cart_item(user, product, 1)
    db.get(ProductModel, product.id).is_active = False
    db.commit()

    resp = place_order(client, user)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "PRODUCT_UNAVAILABLE"


def test_order_keeps_price_at_purchase(client, make, db):
    user = make.user()
    product = make.product(price="19.99", stock=10)
    make.cart_item(user, product, 3)
    order_id = place_order(client, user).json()["order"]["id"]

    db.get(ProductModel, product.id).price = Decimal("99.00")
    db.commit()

    detail = client.get(f"/orders/{order_id}", headers=auth(user)).json()["order"]
    assert Decimal(detail["items"][0]["priceAtPurchase"]) == Decimal("19.99")
    assert Decimal(detail["totalAmount"]) == Decimal("59.97")


def test_item_totals_add_up_to_order_total(client, make):
    user = make.user()
    for price, qty in [("0.10", 3), ("33.33", 3), ("1.05", 7)]:
        make.cart_item(user, make.product(price=price, stock=10), qty)

    order_id = place_order(client, user).json()["order"]["id"]
    detail = client.get(f"/orders/{order_id}", headers=auth(user)).json()["order"]

    summed = sum(
        (Decimal(item["priceAtPurchase"]) * item["quantity"] for item in detail["items"]),
        Decimal("0"),
    )
    assert summed == Decimal(detail["totalAmount"]) == Decimal("107.64")


def test_orders_are_scoped_to_owner(client, make):
    owner = make.user()
    other = make.user()
    make.cart_item(owner, make.product(stock=5), 1)
    order_id = place_order(client, owner).json()["order"]["id"]

    assert client.get(f"/orders/{order_id}", headers=auth(other)).status_code == 404
    assert client.get("/orders", headers=auth(other)).json()["orders"] == []

    listed = client.get("/orders", headers=auth(owner)).json()["orders"]
    assert [o["id"] for o in listed] == [order_id]


def test_list_orders_newest_first(client, make):
    user = make.user()
    product = make.product(stock=10)
    ids = []
    for _ in range(2):
        make.cart_item(user, product, 1)
        ids.append(place_order(client, user).json()["order"]["id"])

    listed = client.get("/orders", headers=auth(user)).json()["orders"]
    assert [o["id"] for o in listed] == list(reversed(ids))


def test_notification_failure_keeps_order(db, make):
    user = make.user()
    product = make.product(stock=5)
    make.cart_item(user, product, 2)

    with patch(
        "marketplace.services.notification_service.send_order_confirmed_task.delay",
        side_effect=ConnectionError("broker down"),
    ):
        order = OrderService(db, NotificationService()).create_order(user.id, ADDRESS)

    assert db.get(OrderModel, order["id"]) is not None
    assert make.stock(product) == 3
