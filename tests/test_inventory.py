import pytest

from marketplace.domain.errors import InsufficientStock, ValidationError
from marketplace.services.inventory_service import InventoryService


def test_reserve_stock_decrements_each_product(db, make):
    first = make.product(stock=10)
    second = make.product(stock=5)

    InventoryService(db).reserve_stock([(first.id, 2), (second.id, 5)])
    db.commit()

    assert make.stock(first) == 8
    assert make.stock(second) == 0


def test_reserve_stock_merges_duplicate_lines(db, make):
    product = make.product(stock=4)

    InventoryService(db).reserve_stock([(product.id, 1), (product.id, 3)])
    db.commit()

    assert make.stock(product) == 0


def test_reserve_stock_never_goes_negative(db, make):
    product = make.product(stock=3)

    with pytest.raises(InsufficientStock) as exc:
        InventoryService(db).reserve_stock([(product.id, 5)])
    db.rollback()

    assert exc.value.product_id == product.id
    assert exc.value.retryable is True
    assert exc.value.details["items"] == [
        {"productId": product.id, "requested": 5, "available": 3}
    ]
    assert make.stock(product) == 3


def test_reserve_stock_is_all_or_nothing_after_rollback(db, make):
    plenty = make.product(stock=10)
    scarce = make.product(stock=1)

    with pytest.raises(InsufficientStock):
        InventoryService(db).reserve_stock([(plenty.id, 4), (scarce.id, 2)])
    db.rollback()

    assert make.stock(plenty) == 10
    assert make.stock(scarce) == 1


def test_reserve_stock_rejects_non_positive_quantity(db, make):
    product = make.product(stock=10)

    with pytest.raises(ValidationError):
        InventoryService(db).reserve_stock([(product.id, 0)])

    assert make.stock(product) == 10


def test_sequential_reservations_stop_at_zero(db, make):
    product = make.product(stock=5)
    inventory = InventoryService(db)

    for _ in range(5):
        inventory.reserve_stock([(product.id, 1)])
        db.commit()

    with pytest.raises(InsufficientStock):
        inventory.reserve_stock([(product.id, 1)])
    db.rollback()

    assert make.stock(product) == 0


def test_check_availability_reports_every_short_line(make):
    ok = make.product(stock=10)
    short_a = make.product(stock=1)
    short_b = make.product(stock=0)

    with pytest.raises(InsufficientStock) as exc:
        InventoryService.check_availability(
            [(1, 2, ok), (2, 3, short_a), (3, 1, short_b)]
        )

    assert exc.value.retryable is False
    assert [v["productId"] for v in exc.value.details["items"]] == [short_a.id, short_b.id]
