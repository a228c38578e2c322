# marketplace/services/gateways/khalti.py
from decimal import Decimal

import requests

from marketplace.domain.money import to_money
from marketplace.services.gateways.base import (
    CustomerInfo,
    GatewayError,
    PaymentGateway,
    PaymentReference,
    RedirectUrl,
    VerificationResult,
)
from marketplace.utils.retry import http_retry
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


def to_paisa(amount: Decimal) -> int:
    # Khalti liczy w paisa (1 Rs = 100 paisa)
    return int(to_money(amount) * 100)


class KhaltiGateway(PaymentGateway):
    """
    Khalti epayment v2 - serwer inicjuje platnosc i dostaje pidx + payment_url,
    klient jest przekierowany, weryfikacja przez lookup po pidx.
    """

    name = "khalti"
    reference_field = "pidx"
    supports_reconciliation = True

    def __init__(
        self,
        secret_key: str,
        base_url: str,
        return_url: str,
        website_url: str,
        timeout: float,
        session: requests.Session | None = None,
    ):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.return_url = return_url
        self.website_url = website_url
        self.timeout = timeout
        self.http = session or requests.Session()

    @http_retry()
    def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"Khalti POST {url}")
        resp = self.http.post(
            url,
            json=payload,
            headers={"Authorization": f"Key {self.secret_key}"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def initiate(
        self,
        order_id: int,
        amount: Decimal,
        product_label: str,
        customer: CustomerInfo | None = None,
    ) -> RedirectUrl:
        payload = {
            "return_url": f"{self.return_url}?oid={order_id}&gateway=khalti",
            "website_url": self.website_url,
            "amount": to_paisa(amount),
            "purchase_order_id": str(order_id),
            "purchase_order_name": product_label,
        }
        if customer:
            payload["customer_info"] = customer.model_dump(exclude_none=True)

        data = self._post("/epayment/initiate/", payload)

        if not data.get("payment_url") or not data.get("pidx"):
            raise GatewayError("Invalid response from Khalti")

        return RedirectUrl(payment_url=data["payment_url"], pidx=data["pidx"])

    def verify(self, reference: PaymentReference) -> VerificationResult:
        if not reference.pidx:
            raise GatewayError("Khalti pidx is required")

        data = self._post("/epayment/lookup/", {"pidx": reference.pidx})
        logger.debug(f"Khalti lookup response: {data}")

        if not data.get("pidx"):
            raise GatewayError("Invalid response from Khalti")

        status = data.get("status")
        verified = status == "Completed"

        # kwota musi sie zgadzac z zamowieniem
        if verified and data.get("total_amount") != to_paisa(reference.amount):
            logger.warning(
                f"Khalti amount mismatch for order {reference.order_id}: "
                f"{data.get('total_amount')} != {to_paisa(reference.amount)}"
            )
            verified = False
            status = "AMOUNT_MISMATCH"

        return VerificationResult(
            verified=verified,
            transaction_id=data.get("transaction_id"),
            provider_status=status,
            raw=data,
        )

    def reconciliation_reference(self, order) -> PaymentReference | None:
        if not order.payment_intent_id:
            return None
        return PaymentReference(
            order_id=order.id,
            amount=order.total_amount,
            pidx=order.payment_intent_id,
        )
