# marketplace/domain/money.py
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Zawsze Decimal z 2 miejscami - nigdy float."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(price, quantity: int) -> Decimal:
    return to_money(to_money(price) * quantity)


def sum_lines(lines: Iterable[Tuple[Decimal, int]]) -> Decimal:
    return to_money(sum((line_total(price, qty) for price, qty in lines), ZERO))
