# marketplace/services/gateways/base.py
"""
Wspolny interfejs bramek platniczych.

Kazda bramka ma dwie operacje: `initiate` (przygotowanie platnosci,
bez zmiany payment_status zamowienia) i `verify` (zapytanie providera
czy platnosc sie zakonczyla). Wynik inicjacji to unia z dyskryminatorem
`kind` - formularz do wyslania, URL do przekierowania albo nic (COD).
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Annotated, Any, Dict, Literal, Union

from pydantic import BaseModel, Field


class GatewayError(Exception):
    """Provider odpowiedzial, ale odpowiedz nie nadaje sie do uzycia."""


class RedirectForm(BaseModel):
    kind: Literal["redirect_form"] = "redirect_form"
    payment_url: str
    fields: Dict[str, str]


class RedirectUrl(BaseModel):
    kind: Literal["redirect_url"] = "redirect_url"
    payment_url: str
    pidx: str


class NoRedirect(BaseModel):
    kind: Literal["none"] = "none"


GatewayInitResult = Annotated[
    Union[RedirectForm, RedirectUrl, NoRedirect],
    Field(discriminator="kind"),
]


class CustomerInfo(BaseModel):
    name: str
    email: str
    phone: str | None = None


class PaymentReference(BaseModel):
    order_id: int
    amount: Decimal
    ref_id: str | None = None
    pidx: str | None = None


class VerificationResult(BaseModel):
    verified: bool
    transaction_id: str | None = None
    provider_status: str | None = None
    raw: Dict[str, Any] = {}


class PaymentGateway(ABC):
    name: str = ""
    # pole referencji ktore klient musi podac przy weryfikacji
    reference_field: str | None = None
    # czy da sie sprawdzic status bez klienta (reconciliation)
    supports_reconciliation: bool = False

    @abstractmethod
    def initiate(
        self,
        order_id: int,
        amount: Decimal,
        product_label: str,
        customer: CustomerInfo | None = None,
    ) -> GatewayInitResult:
        ...

    @abstractmethod
    def verify(self, reference: PaymentReference) -> VerificationResult:
        ...

    def reconciliation_reference(self, order) -> PaymentReference | None:
        return None
