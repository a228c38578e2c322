# marketplace/services/gateways/registry.py
from typing import Dict, Iterable, List

from marketplace.domain.errors import ValidationError
from marketplace.services.gateways.base import PaymentGateway
from marketplace.services.gateways.cod import CashOnDeliveryGateway
from marketplace.services.gateways.esewa import EsewaGateway
from marketplace.services.gateways.khalti import KhaltiGateway
from marketplace.utils import settings


class GatewayRegistry:
    def __init__(self, gateways: Iterable[PaymentGateway]):
        self._gateways: Dict[str, PaymentGateway] = {g.name: g for g in gateways}

    def get(self, name: str) -> PaymentGateway:
        gateway = self._gateways.get((name or "").lower())
        if not gateway:
            raise ValidationError(
                "Invalid payment gateway",
                details={"gateway": name, "supported": self.names()},
            )
        return gateway

    def names(self) -> List[str]:
        return sorted(self._gateways)

    def reconcilable(self) -> List[PaymentGateway]:
        return [g for g in self._gateways.values() if g.supports_reconciliation]


def build_gateway_registry() -> GatewayRegistry:
    return GatewayRegistry(
        [
            EsewaGateway(
                secret_key=settings.ESEWA_SECRET_KEY,
                product_code=settings.ESEWA_PRODUCT_CODE,
                payment_url=settings.ESEWA_PAYMENT_URL,
                status_url=settings.ESEWA_STATUS_URL,
                success_url=settings.ESEWA_SUCCESS_URL,
                failure_url=settings.ESEWA_FAILURE_URL,
                timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            ),
            KhaltiGateway(
                secret_key=settings.KHALTI_SECRET_KEY,
                base_url=settings.KHALTI_BASE_URL,
                return_url=settings.KHALTI_RETURN_URL,
                website_url=settings.APP_URL,
                timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            ),
            CashOnDeliveryGateway(),
        ]
    )
