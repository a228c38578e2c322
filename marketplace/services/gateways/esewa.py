# marketplace/services/gateways/esewa.py
import base64
import hashlib
import hmac
from decimal import Decimal

import requests

from marketplace.domain.money import to_money
from marketplace.services.gateways.base import (
    CustomerInfo,
    PaymentGateway,
    PaymentReference,
    RedirectForm,
    VerificationResult,
)
from marketplace.utils.retry import http_retry
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

SIGNED_FIELD_NAMES = ("total_amount", "transaction_uuid", "product_code")


class EsewaGateway(PaymentGateway):
    """
    eSewa epay v2 - klient wysyla podpisany formularz (POST) na strone eSewa.
    Podpis: base64(HMAC-SHA256(secret, "total_amount=..,transaction_uuid=..,product_code=..")).
    """

    name = "esewa"
    reference_field = "ref_id"
    supports_reconciliation = True

    def __init__(
        self,
        secret_key: str,
        product_code: str,
        payment_url: str,
        status_url: str,
        success_url: str,
        failure_url: str,
        timeout: float,
        session: requests.Session | None = None,
    ):
        self.secret_key = secret_key
        self.product_code = product_code
        self.payment_url = payment_url
        self.status_url = status_url
        self.success_url = success_url
        self.failure_url = failure_url
        self.timeout = timeout
        self.http = session or requests.Session()

    def sign(self, fields: dict) -> str:
        message = ",".join(f"{name}={fields[name]}" for name in SIGNED_FIELD_NAMES)
        digest = hmac.new(
            self.secret_key.encode("utf-8"),
            message.encode("utf-8"),
            hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    def initiate(
        self,
        order_id: int,
        amount: Decimal,
        product_label: str,
        customer: CustomerInfo | None = None,
    ) -> RedirectForm:
        total = str(to_money(amount))

        fields = {
            "amount": total,
            "tax_amount": "0",
            "total_amount": total,
            "transaction_uuid": str(order_id),
            "product_code": self.product_code,
            "product_service_charge": "0",
            "product_delivery_charge": "0",
            "success_url": f"{self.success_url}?oid={order_id}",
            "failure_url": f"{self.failure_url}?oid={order_id}",
            "signed_field_names": ",".join(SIGNED_FIELD_NAMES),
        }
        fields["signature"] = self.sign(fields)

        logger.info(f"eSewa payment form prepared for order {order_id} ({product_label})")
        return RedirectForm(payment_url=self.payment_url, fields=fields)

    @http_retry()
    def _fetch_status(self, params: dict) -> dict:
        logger.info(f"eSewa GET {self.status_url} for transaction {params['transaction_uuid']}")
        resp = self.http.get(
            self.status_url,
            params=params,
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def verify(self, reference: PaymentReference) -> VerificationResult:
        data = self._fetch_status(
            {
                "product_code": self.product_code,
                "total_amount": str(to_money(reference.amount)),
                "transaction_uuid": str(reference.order_id),
            }
        )
        logger.debug(f"eSewa status response: {data}")

        status = data.get("status")
        provider_ref = data.get("ref_id")

        # refId z przekierowania to tylko podpowiedz klienta, wiazacy jest ten od eSewa
        if reference.ref_id and provider_ref and reference.ref_id != provider_ref:
            logger.warning(
                f"eSewa ref_id mismatch for order {reference.order_id}: "
                f"client sent {reference.ref_id}, provider has {provider_ref}"
            )
            return VerificationResult(
                verified=False,
                transaction_id=None,
                provider_status="REF_MISMATCH",
                raw=data,
            )

        return VerificationResult(
            verified=status == "COMPLETE",
            transaction_id=provider_ref,
            provider_status=status,
            raw=data,
        )

    def reconciliation_reference(self, order) -> PaymentReference | None:
        # eSewa szuka po transaction_uuid = id zamowienia
        return PaymentReference(order_id=order.id, amount=order.total_amount)
