import pytest

from marketplace.data.models import OrderModel
from marketplace.domain.errors import ValidationError
from marketplace.domain.status import ALLOWED_TRANSITIONS, OrderStatus, can_transition, is_terminal
from marketplace.services.order_service import OrderService
from marketplace.services.order_state_service import OrderStateService


@pytest.fixture
def vendor(make):
    return make.vendor()


@pytest.fixture
def vendor_order(db, make, notifier, vendor):
    customer = make.user()
    make.cart_item(customer, make.product(price="30.00", stock=5, vendor=vendor), 2)
    make.cart_item(customer, make.product(price="5.00", stock=5), 1)
    order = OrderService(db, notifier).create_order(customer.id, "12 Durbar Marg, Kathmandu")
    return customer, order["id"]


def vendor_headers(vendor):
    return {"X-User-Id": str(vendor.user_id)}


def set_status(client, vendor, order_id, status):
    return client.put(
        f"/vendor/orders/{order_id}/status",
        json={"status": status},
        headers=vendor_headers(vendor),
    )


def load(db, order_id) -> OrderModel:
    db.expire_all()
    return db.get(OrderModel, order_id)


# ---- transition table ----
def test_transition_table():
    assert can_transition(OrderStatus.PENDING, OrderStatus.PROCESSING)
    assert can_transition(OrderStatus.PROCESSING, OrderStatus.SHIPPED)
    assert can_transition(OrderStatus.SHIPPED, OrderStatus.DELIVERED)
    assert can_transition(OrderStatus.PENDING, OrderStatus.CANCELLED)
    assert not can_transition(OrderStatus.SHIPPED, OrderStatus.CANCELLED)
    assert not can_transition(OrderStatus.PENDING, OrderStatus.DELIVERED)
    assert {s for s in ALLOWED_TRANSITIONS if is_terminal(s)} == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


# ---- vendor status updates ----
def test_vendor_walks_order_to_delivered(client, db, vendor, vendor_order, notifier):
    customer, order_id = vendor_order

    for status in ["processing", "shipped", "delivered"]:
        resp = set_status(client, vendor, order_id, status)
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "orderId": order_id,
            "status": status,
            "message": f"Order status updated to {status}",
        }

    order = load(db, order_id)
    assert order.status == "delivered"
    assert [h.status for h in order.history] == ["pending", "processing", "shipped", "delivered"]
    assert order.history[-1].created_by == vendor.user_id

    changes = [args for name, args in notifier.events if name == "send_status_changed_task"]
    assert changes == [
        (customer.id, order_id, "processing"),
        (customer.id, order_id, "shipped"),
        (customer.id, order_id, "delivered"),
    ]


@pytest.mark.parametrize("terminal", ["delivered", "cancelled"])
def test_terminal_states_do_not_move(client, db, vendor, vendor_order, terminal):
    _, order_id = vendor_order
    load(db, order_id).status = terminal
    db.commit()

    resp = set_status(client, vendor, order_id, "processing")

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "INVALID_STATUS_TRANSITION"
    assert error["details"] == {"currentStatus": terminal, "requestedStatus": "processing"}
    assert load(db, order_id).status == terminal


def test_skipping_ahead_is_rejected(client, vendor, vendor_order):
    _, order_id = vendor_order

    resp = set_status(client, vendor, order_id, "delivered")

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"


def test_same_status_is_a_no_op(client, db, vendor, vendor_order, notifier):
    _, order_id = vendor_order
    before = len(notifier.events)

    resp = set_status(client, vendor, order_id, "pending")

    assert resp.status_code == 200
    assert resp.json()["message"] == "Order status is already pending"
    assert len(load(db, order_id).history) == 1
    assert len(notifier.events) == before


def test_unknown_status(client, vendor, vendor_order):
    _, order_id = vendor_order

    resp = set_status(client, vendor, order_id, "lost")

    assert resp.status_code == 400
    assert "Invalid status" in resp.json()["error"]["message"]


def test_customer_cannot_update_status(client, vendor_order):
    customer, order_id = vendor_order

    resp = client.put(
        f"/vendor/orders/{order_id}/status",
        json={"status": "processing"},
        headers={"X-User-Id": str(customer.id)},
    )

    assert resp.status_code == 403


def test_unapproved_vendor_is_forbidden(client, make, vendor_order):
    _, order_id = vendor_order
    pending_vendor = make.vendor(approved=False)

    assert set_status(client, pending_vendor, order_id, "processing").status_code == 403


def test_vendor_without_items_in_order(client, make, vendor_order):
    _, order_id = vendor_order
    other_vendor = make.vendor()

    resp = set_status(client, other_vendor, order_id, "processing")

    assert resp.status_code == 403
    assert resp.json()["error"]["message"] == "Order doesn't contain your products"


def test_missing_order(client, vendor):
    assert set_status(client, vendor, 9999, "processing").status_code == 404


def test_lost_status_race_is_retryable(db, vendor, vendor_order, notifier, monkeypatch):
    _, order_id = vendor_order
    service = OrderStateService(db, notifier)
    monkeypatch.setattr(service.repo, "update_status", lambda *args: 0)

    with pytest.raises(ValidationError) as exc:
        service.update_status_by_vendor(vendor.user_id, order_id, "processing")

    assert exc.value.retryable is True
    assert load(db, order_id).status == "pending"


# ---- mark_paid ----
def test_mark_paid_transitions_once(db, vendor_order, notifier):
    _, order_id = vendor_order
    service = OrderStateService(db, notifier)

    assert service.mark_paid(order_id, "TX-1") is True
    assert service.mark_paid(order_id, "TX-2") is False

    order = load(db, order_id)
    assert order.payment_status == "paid"
    assert order.status == "processing"
    assert order.transaction_id == "TX-1"
    assert [h.status for h in order.history] == ["pending", "processing"]


def test_mark_paid_refuses_cancelled_order(db, vendor_order, notifier):
    _, order_id = vendor_order
    load(db, order_id).status = "cancelled"
    db.commit()

    assert OrderStateService(db, notifier).mark_paid(order_id, "TX-1") is False
    assert load(db, order_id).payment_status == "unpaid"


def test_one_transaction_cannot_pay_two_orders(db, make, vendor_order, notifier):
    _, first_id = vendor_order
    customer = make.user()
    make.cart_item(customer, make.product(price="30.00", stock=5), 1)
    second_id = OrderService(db, notifier).create_order(customer.id, "12 Durbar Marg, Kathmandu")["id"]
    service = OrderStateService(db, notifier)

    assert service.mark_paid(first_id, "TX-SHARED") is True
    with pytest.raises(ValidationError) as exc:
        service.mark_paid(second_id, "TX-SHARED")

    assert exc.value.details == {"orderId": second_id, "transactionId": "TX-SHARED"}
    second = load(db, second_id)
    assert second.payment_status == "unpaid"
    assert second.status == "pending"
    assert [h.status for h in second.history] == ["pending"]
    assert load(db, first_id).transaction_id == "TX-SHARED"


# ---- vendor order list ----
def test_vendor_sees_only_own_items(client, vendor, vendor_order):
    _, order_id = vendor_order

    resp = client.get("/vendor/orders", headers=vendor_headers(vendor))

    assert resp.status_code == 200
    orders = resp.json()["orders"]
    assert [o["id"] for o in orders] == [order_id]
    assert len(orders[0]["items"]) == 1
    assert orders[0]["items"][0]["quantity"] == 2


def test_vendor_orders_require_vendor(client, make):
    assert client.get("/vendor/orders", headers={"X-User-Id": str(make.user().id)}).status_code == 403
