# marketplace/services/payment_service.py
from datetime import timedelta
from typing import Any, Dict

import requests
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.data.models._common import utcnow
from marketplace.data.models.order import OrderModel
from marketplace.domain.errors import (
    AlreadyPaid,
    Forbidden,
    InternalError,
    OrderNotFound,
    PaymentInitiationFailed,
    PaymentVerificationFailed,
    ValidationError,
)
from marketplace.domain.status import PAYABLE_STATUSES, PaymentStatus
from marketplace.repos.order_repo import OrderRepo
from marketplace.repos.user_repo import UserRepo
from marketplace.services.gateways import (
    CustomerInfo,
    GatewayError,
    GatewayRegistry,
    NoRedirect,
    PaymentGateway,
    PaymentReference,
    RedirectForm,
    RedirectUrl,
)
from marketplace.services.lock_service import LockService
from marketplace.services.notification_service import NotificationService
from marketplace.services.order_state_service import OrderStateService
from marketplace.utils.settings import (
    PAYMENT_LOCK_TTL_SECONDS,
    RECONCILE_BATCH_SIZE,
    RECONCILE_MIN_AGE_SECONDS,
)
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class PaymentService:
    """
    Inicjacja i weryfikacja platnosci.

    - initiate nigdy nie zmienia payment_status, zapisuje tylko wybrana bramke
    - verify jest idempotentne: oplacone zamowienie = sukces bez pytania providera
    - timeout/blad sieci przy verify to PaymentVerificationFailed, nigdy "paid"
    """

    def __init__(
        self,
        db: Session,
        gateways: GatewayRegistry,
        lock_service: LockService,
        notifier: NotificationService,
    ):
        self.repo = OrderRepo(db)
        self.users = UserRepo(db)
        self.gateways = gateways
        self.lock_service = lock_service
        self.notifier = notifier
        self.state = OrderStateService(db, notifier)

    def initiate_payment(self, user_id: int, order_id: int, gateway_name: str) -> Dict[str, Any]:
        gateway = self.gateways.get(gateway_name)
        order = self._get_owned_order(user_id, order_id)

        if order.payment_status == PaymentStatus.PAID.value:
            raise AlreadyPaid(order.id)
        self._ensure_payable(order)

        user = self.users.get_user(user_id)
        customer = CustomerInfo(name=user.name, email=user.email) if user else None

        try:
            result = gateway.initiate(order.id, order.total_amount, f"Order #{order.id}", customer)
        except (requests.RequestException, GatewayError) as e:
            logger.warning(f"Payment initiation via {gateway.name} for order {order.id} failed: {e}")
            raise PaymentInitiationFailed(
                "Failed to initiate payment",
                details={"gateway": gateway.name, "orderId": order.id},
            ) from e

        intent_id = result.pidx if isinstance(result, RedirectUrl) else None
        try:
            self.repo.set_payment_gateway(order, gateway.name, intent_id)
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Recording gateway for order {order_id} failed: {e}")
            raise InternalError() from e

        logger.info(f"Payment for order {order_id} initiated via {gateway.name}")

        response: Dict[str, Any] = {"success": True, "gateway": gateway.name}
        if isinstance(result, RedirectForm):
            response["data"] = {"paymentUrl": result.payment_url, "params": result.fields}
        elif isinstance(result, RedirectUrl):
            response["payment_url"] = result.payment_url
            response["pidx"] = result.pidx
        elif isinstance(result, NoRedirect):
            response["data"] = {"message": "Payment will be collected on delivery"}
        return response

    def verify_payment(
        self,
        user_id: int,
        order_id: int,
        gateway_name: str,
        ref_id: str | None = None,
        pidx: str | None = None,
    ) -> Dict[str, Any]:
        gateway = self.gateways.get(gateway_name)
        order = self._get_owned_order(user_id, order_id)

        # powtorny callback - bez pytania providera
        if order.payment_status == PaymentStatus.PAID.value:
            return self._already_paid(order)

        self._ensure_payable(order)

        if order.payment_gateway and order.payment_gateway != gateway.name:
            raise ValidationError(
                "Payment was initiated with a different gateway",
                details={"expected": order.payment_gateway, "gateway": gateway.name},
            )

        reference = PaymentReference(order_id=order.id, amount=order.total_amount, ref_id=ref_id, pidx=pidx)
        self._check_reference(gateway, order, reference)

        token = self.lock_service.new_token()
        try:
            acquired = self.lock_service.acquire_order_lock(order.id, token, PAYMENT_LOCK_TTL_SECONDS)
        except RedisError as e:
            logger.error(f"Payment lock for order {order.id} unavailable: {e}")
            raise PaymentVerificationFailed(
                "Payment verification temporarily unavailable",
                status_code=502,
            ) from e

        if not acquired:
            raise PaymentVerificationFailed(
                "Payment verification already in progress",
                details={"orderId": order.id},
            )

        try:
            return self._verify_locked(user_id, order, gateway, reference)
        finally:
            try:
                self.lock_service.release_order_lock(order.id, token)
            except RedisError as e:
                # lock i tak wygasnie po TTL
                logger.warning(f"Release of payment lock for order {order.id} failed: {e}")

    def _verify_locked(
        self,
        user_id: int,
        order: OrderModel,
        gateway: PaymentGateway,
        reference: PaymentReference,
    ) -> Dict[str, Any]:
        # inny callback mogl skonczyc zanim dostalismy lock
        self.repo.refresh(order)
        if order.payment_status == PaymentStatus.PAID.value:
            return self._already_paid(order)

        try:
            result = gateway.verify(reference)
        except (requests.RequestException, GatewayError) as e:
            logger.warning(f"Verification via {gateway.name} for order {order.id} failed: {e}")
            raise PaymentVerificationFailed(
                "Payment provider unavailable, please retry",
                details={"gateway": gateway.name, "orderId": order.id},
                status_code=502,
            ) from e

        if not result.verified:
            logger.info(
                f"Payment for order {order.id} not confirmed by {gateway.name} "
                f"(status {result.provider_status})"
            )
            self.notifier.payment_result(user_id, order.id, False)
            if gateway.reference_field is None:
                raise PaymentVerificationFailed(
                    "Cash on delivery orders are settled on delivery",
                    details={"gateway": gateway.name, "orderId": order.id},
                    retryable=False,
                )
            raise PaymentVerificationFailed(
                "Payment verification failed",
                details={
                    "gateway": gateway.name,
                    "orderId": order.id,
                    "providerStatus": result.provider_status,
                },
            )

        # tylko to co potwierdzil provider, nigdy refId od klienta
        transaction_id = result.transaction_id or reference.pidx or f"{gateway.name}-{order.id}"

        if self.state.mark_paid(order.id, transaction_id, note=f"Payment verified via {gateway.name}"):
            self.notifier.payment_result(user_id, order.id, True, transaction_id)
            return {
                "success": True,
                "order_id": order.id,
                "transaction_id": transaction_id,
                "already_paid": False,
            }

        self.repo.refresh(order)
        if order.payment_status == PaymentStatus.PAID.value:
            return self._already_paid(order)

        # provider potwierdzil, ale zamowienie juz nie przyjmuje platnosci
        logger.error(
            f"Order {order.id} paid at {gateway.name} ({transaction_id}) "
            f"but is {order.status}; needs manual refund"
        )
        raise PaymentVerificationFailed(
            "Order can no longer be paid",
            details={"orderId": order.id, "status": order.status, "transactionId": transaction_id},
            retryable=False,
        )

    def reconcile_pending_payments(self) -> Dict[str, int]:
        """
        Dla starych unpaid zamowien z bramka redirect pyta providera o status
        i oznacza jako oplacone te ktore klient zaplacil, ale nie wrocil.
        """
        gateways = {g.name: g for g in self.gateways.reconcilable()}
        cutoff = utcnow() - timedelta(seconds=RECONCILE_MIN_AGE_SECONDS)
        orders = self.repo.find_unpaid_for_reconciliation(gateways, cutoff, RECONCILE_BATCH_SIZE)

        summary = {"checked": 0, "paid": 0, "failed": 0, "skipped": 0}
        for order in orders:
            gateway = gateways[order.payment_gateway]
            reference = gateway.reconciliation_reference(order)
            if reference is None:
                summary["skipped"] += 1
                continue

            summary["checked"] += 1
            try:
                result = gateway.verify(reference)
            except (requests.RequestException, GatewayError) as e:
                logger.warning(f"Reconciliation of order {order.id} via {gateway.name} failed: {e}")
                summary["failed"] += 1
                continue

            if not result.verified:
                continue

            transaction_id = result.transaction_id or reference.pidx or f"{gateway.name}-{order.id}"
            try:
                paid = self.state.mark_paid(order.id, transaction_id, note=f"Payment reconciled via {gateway.name}")
            except ValidationError as e:
                logger.warning(f"Reconciliation of order {order.id} rejected: {e.message}")
                summary["failed"] += 1
                continue
            if paid:
                summary["paid"] += 1
                self.notifier.payment_result(order.user_id, order.id, True, transaction_id)

        logger.info(f"Payment reconciliation finished: {summary}")
        return summary

    def _get_owned_order(self, user_id: int, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        if order.user_id != user_id:
            raise Forbidden("Order does not belong to you")
        return order

    @staticmethod
    def _ensure_payable(order: OrderModel) -> None:
        if order.status not in PAYABLE_STATUSES:
            raise ValidationError(
                f"Order is {order.status} and cannot be paid",
                details={"orderId": order.id, "status": order.status},
            )

    @staticmethod
    def _check_reference(gateway: PaymentGateway, order: OrderModel, reference: PaymentReference) -> None:
        field = gateway.reference_field
        if field is None:
            return
        value = getattr(reference, field)
        if not value:
            raise ValidationError(
                f"{gateway.name} reference {field} is required",
                details={"gateway": gateway.name, "field": field},
            )
        # pidx musi byc tym z inicjacji - lookup Khalti nie zwraca id zamowienia
        if field == "pidx":
            if not order.payment_intent_id:
                raise ValidationError(
                    "Payment was not initiated for this order",
                    details={"orderId": order.id, "gateway": gateway.name},
                )
            if value != order.payment_intent_id:
                raise ValidationError(
                    "Payment reference does not match this order",
                    details={"orderId": order.id},
                )

    @staticmethod
    def _already_paid(order: OrderModel) -> Dict[str, Any]:
        return {
            "success": True,
            "order_id": order.id,
            "transaction_id": order.transaction_id,
            "already_paid": True,
        }
