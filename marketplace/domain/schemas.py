# marketplace/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List
from decimal import Decimal
from datetime import datetime

from marketplace.domain.status import UserRole


class ApiModel(BaseModel):
    """Baza - camelCase na wejsciu/wyjsciu, snake_case w kodzie."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---- users ----
class UserCreate(ApiModel):
    """Schema dla rejestracji uzytkownika (hook z serwisu auth)."""

    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=255, description="Imie uzytkownika")
    role: UserRole = UserRole.CUSTOMER


class UserRead(ApiModel):
    id: int
    email: str
    name: str
    role: str


# ---- cart ----
class CartItemIn(ApiModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi byc > 0)")
    quantity: int = Field(..., ge=1, description="Ilosc produktu (min 1)")


class CartItemUpdate(ApiModel):
    quantity: int = Field(..., ge=1)


class CartProductOut(ApiModel):
    id: int
    name: str
    price: Decimal
    stock_quantity: int


class CartItemOut(ApiModel):
    """Schema dla produktu w koszyku (response)."""

    id: int
    quantity: int
    added_at: datetime
    line_total: Decimal
    product: CartProductOut


class CartOut(ApiModel):
    """Schema dla koszyka (response). Subtotal liczony przy kazdym odczycie."""

    id: int
    items: List[CartItemOut]
    subtotal: Decimal
    item_count: int


class MessageOut(ApiModel):
    message: str


# ---- orders ----
class OrderCreate(ApiModel):
    """Schema dla tworzenia zamowienia z koszyka."""

    shipping_address: str


class OrderSummaryOut(ApiModel):
    id: int
    total_amount: Decimal
    status: str
    created_at: datetime


class OrderCreatedOut(ApiModel):
    order: OrderSummaryOut


class OrderItemOut(ApiModel):
    id: int
    product_id: int
    product_name: str | None = None
    vendor_id: int | None = None
    quantity: int
    price_at_purchase: Decimal
    line_total: Decimal


class StatusHistoryOut(ApiModel):
    status: str
    note: str | None = None
    created_by: int | None = None
    created_at: datetime


class OrderOut(ApiModel):
    """Schema dla zamowienia (response)."""

    id: int
    user_id: int
    total_amount: Decimal
    status: str
    payment_status: str
    payment_gateway: str | None = None
    transaction_id: str | None = None
    shipping_address: str
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOut] = []
    history: List[StatusHistoryOut] = []


class OrderDetailOut(ApiModel):
    order: OrderOut


class OrderListOut(ApiModel):
    orders: List[OrderOut]


# ---- payments ----
class PaymentInitiateIn(ApiModel):
    order_id: int = Field(..., gt=0)
    gateway: str = Field(..., min_length=1)


class PaymentInitiateOut(ApiModel):
    success: bool
    gateway: str
    data: Dict[str, Any] | None = None
    payment_url: str | None = None
    pidx: str | None = None


class PaymentVerifyIn(ApiModel):
    order_id: int = Field(..., gt=0)
    gateway: str = Field(..., min_length=1)
    # zalezne od bramki: eSewa -> refId, Khalti -> pidx
    ref_id: str | None = None
    pidx: str | None = None


class PaymentVerifyOut(ApiModel):
    success: bool
    order_id: int
    transaction_id: str | None = None
    already_paid: bool = False


# ---- vendor ----
class StatusUpdateIn(ApiModel):
    status: str


class StatusUpdateOut(ApiModel):
    success: bool
    order_id: int
    status: str
    message: str


class VendorOrderItemOut(ApiModel):
    id: int
    product_id: int
    product_name: str | None = None
    quantity: int
    price_at_purchase: Decimal


class VendorOrderOut(ApiModel):
    id: int
    total_amount: Decimal
    status: str
    payment_status: str
    shipping_address: str
    created_at: datetime
    items: List[VendorOrderItemOut]


class VendorOrderListOut(ApiModel):
    orders: List[VendorOrderOut]


# ---- errors ----
class ErrorBody(ApiModel):
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = {}


class ErrorOut(ApiModel):
    error: ErrorBody
