# marketplace/domain/errors.py
"""
Bledy domenowe.

Kazdy blad niesie stabilny `code` (dla klienta), czytelny `message`,
status HTTP i flage `retryable` - klient wie czy ponowienie ma sens.
Warstwa API tlumaczy je na odpowiedz w jednym formacie.
"""
from typing import Any, Dict


class DomainError(Exception):
    code = "DOMAIN_ERROR"
    status_code = 400
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        details: Dict[str, Any] | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if retryable is not None:
            self.retryable = retryable
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


# ---- 400 ----
class ValidationError(DomainError):
    code = "VALIDATION_ERROR"


class InvalidStatusTransition(ValidationError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change order status from {current} to {requested}",
            details={"currentStatus": current, "requestedStatus": requested},
        )


class ProductUnavailable(ValidationError):
    code = "PRODUCT_UNAVAILABLE"

    def __init__(self, product_id: int):
        super().__init__(
            f"Product {product_id} is no longer available",
            details={"productId": product_id},
        )


class InsufficientStock(DomainError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, violations: list[Dict[str, Any]], retryable: bool = False):
        first = violations[0]
        super().__init__(
            f"Insufficient stock for product {first['productId']}",
            details={"items": violations},
            retryable=retryable,
        )
        self.product_id = first["productId"]


class EmptyCart(DomainError):
    code = "EMPTY_CART"

    def __init__(self):
        super().__init__("Cart is empty")


class AlreadyPaid(DomainError):
    code = "ALREADY_PAID"

    def __init__(self, order_id: int):
        super().__init__("Order already paid", details={"orderId": order_id})


# ---- 401 / 403 ----
class Unauthorized(DomainError):
    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class Forbidden(DomainError):
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "Access forbidden"):
        super().__init__(message)


# ---- 404 ----
class NotFound(DomainError):
    code = "NOT_FOUND"
    status_code = 404
    resource = "Resource"

    def __init__(self, resource_id: Any = None):
        details = {"id": resource_id} if resource_id is not None else None
        super().__init__(f"{self.resource} not found", details=details)


class ProductNotFound(NotFound):
    code = "PRODUCT_NOT_FOUND"
    resource = "Product"


class CartNotFound(NotFound):
    code = "CART_NOT_FOUND"
    resource = "Cart"


class CartItemNotFound(NotFound):
    code = "CART_ITEM_NOT_FOUND"
    resource = "Cart item"


class OrderNotFound(NotFound):
    code = "ORDER_NOT_FOUND"
    resource = "Order"


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"
    resource = "User"


# ---- platnosci ----
class PaymentInitiationFailed(DomainError):
    code = "PAYMENT_INITIATION_FAILED"
    status_code = 502
    retryable = True


class PaymentVerificationFailed(DomainError):
    """
    Zamowienie zostaje unpaid. 400 gdy provider odrzucil platnosc,
    502 gdy nie dalo sie z nim porozmawiac (timeout, siec).
    """
    code = "PAYMENT_VERIFICATION_FAILED"
    status_code = 400
    retryable = True


# ---- 500 ----
class InternalError(DomainError):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
