# marketplace/services/inventory_service.py
from typing import Dict, Iterable, Sequence, Tuple

from sqlalchemy.orm import Session

from marketplace.data.models.product import ProductModel
from marketplace.domain.errors import InsufficientStock, ValidationError
from marketplace.repos.product_repo import ProductRepo
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class InventoryService:
    """
    Ledger stanow magazynowych.

    Nic tu nie commituje - wywolujacy (OrderService) trzyma transakcje,
    wiec blad w dowolnym miejscu = rollback calej rezerwacji.
    """

    def __init__(self, db: Session):
        self.repo = ProductRepo(db)

    @staticmethod
    def check_availability(lines: Sequence[Tuple[int, int, ProductModel]]) -> None:
        """
        Odczyt-i-sprawdzenie na juz wczytanych wierszach (item_id, quantity, product).
        Zbiera wszystkie brakujace pozycje, a nie tylko pierwsza.
        """
        violations = [
            {
                "productId": product.id,
                "requested": quantity,
                "available": product.stock_quantity,
            }
            for _, quantity, product in lines
            if quantity > product.stock_quantity
        ]
        if violations:
            raise InsufficientStock(violations)

    def reserve_stock(self, items: Iterable[Tuple[int, int]]) -> None:
        """
        Zmniejsza stan dla par (product_id, quantity).

        Kazda pozycja to warunkowy update (stock >= q), wiec dwa rownolegle
        checkouty nie sprzedadza wiecej niz jest. Pierwsza pozycja ktora
        nie przejdzie przerywa cala rezerwacje.
        """
        merged: Dict[int, int] = {}
        for product_id, quantity in items:
            if quantity < 1:
                raise ValidationError(
                    "Quantity must be at least 1",
                    details={"productId": product_id, "quantity": quantity},
                )
            merged[product_id] = merged.get(product_id, 0) + quantity

        # staly porzadek blokowania wierszy
        for product_id in sorted(merged):
            quantity = merged[product_id]
            rowcount = self.repo.decrement_stock(product_id, quantity)

            if rowcount == 0:
                product = self.repo.get_product(product_id)
                available = product.stock_quantity if product else 0
                logger.info(
                    f"Stock reservation lost for product {product_id}: "
                    f"requested {quantity}, available {available}"
                )
                raise InsufficientStock(
                    [{"productId": product_id, "requested": quantity, "available": available}],
                    retryable=True,
                )

            logger.info(f"Reserved {quantity} of product {product_id}")
