# marketplace/services/gateways/cod.py
from decimal import Decimal

from marketplace.services.gateways.base import (
    CustomerInfo,
    NoRedirect,
    PaymentGateway,
    PaymentReference,
    VerificationResult,
)


class CashOnDeliveryGateway(PaymentGateway):
    """Platnosc przy odbiorze - brak przekierowania, rozliczenie poza systemem."""

    name = "cod"

    def initiate(
        self,
        order_id: int,
        amount: Decimal,
        product_label: str,
        customer: CustomerInfo | None = None,
    ) -> NoRedirect:
        return NoRedirect()

    def verify(self, reference: PaymentReference) -> VerificationResult:
        return VerificationResult(verified=False, provider_status="PAY_ON_DELIVERY")
