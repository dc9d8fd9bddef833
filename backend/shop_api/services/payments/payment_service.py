"""
Online payment workflow around a committed order.

The order and its stock reservation are committed before the gateway is
contacted. A gateway failure never undoes them: the order is left with
payment_status=failed and the customer can ask for a new payment link.
"""

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import OrderStatus, PaymentMethod, PaymentStatus
from shared.config.logging import payments_logger as logger
from shared.infrastructure.db import safe_commit, transaction
from shared.utils.exceptions import (
    DependencyFailureError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
)
from shop_api.models import Order
from shop_api.services.domain.order_service import OrderService
from shop_api.services.payments.circuit_breaker import CircuitBreakerError
from shop_api.services.payments.paymob import (
    PaymentGateway,
    PaymentLink,
    PaymobClient,
    PaymobError,
    verify_hmac,
)

GATEWAY_UNAVAILABLE = "Payment gateway temporarily unavailable, please retry the payment"
GATEWAY_ERROR = "Payment gateway error, please retry the payment"


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency. Tests override it with a fake gateway."""
    return PaymobClient()


class PaymentService:
    def __init__(self, db: Session, gateway: PaymentGateway):
        self._db = db
        self._gateway = gateway

    def _store_link(self, order: Order, link: PaymentLink) -> None:
        order.payment_token = link.token
        order.gateway_order_id = link.gateway_order_id
        order.payment_status = PaymentStatus.UNPAID
        safe_commit(self._db)

    def _mark_failed(self, order: Order, error: Exception) -> None:
        order.payment_status = PaymentStatus.FAILED
        safe_commit(self._db)
        logger.warning(
            "Payment link not issued",
            order_id=order.id,
            tracking_code=order.tracking_code,
            error=str(error),
        )

    async def request_payment(self, order: Order) -> tuple[str | None, str | None]:
        """
        Ask the gateway for a payment link right after checkout.

        Returns (payment_url, None) on success, (None, error message) when the
        gateway failed. The order stands either way.
        """
        try:
            link = await self._gateway.create_payment(order)
        except CircuitBreakerError as exc:
            self._mark_failed(order, exc)
            return None, GATEWAY_UNAVAILABLE
        except (PaymobError, httpx.HTTPError) as exc:
            self._mark_failed(order, exc)
            return None, GATEWAY_ERROR

        self._store_link(order, link)
        return link.url, None

    async def retry_payment(self, code: str, email: str) -> tuple[Order, str]:
        """
        New payment link for an unpaid online order.

        Raises:
            OrderNotFoundError: unknown code / email mismatch
            InvalidInputError: order is cash on delivery
            InvalidStateError: order cancelled or already paid
            DependencyFailureError: gateway unreachable
        """
        order = OrderService(self._db).get_by_tracking_code(code, email)

        if order.payment_method != PaymentMethod.PAYMOB:
            raise InvalidInputError("Order is paid on delivery", order_id=order.id)
        if order.status == OrderStatus.CANCELLED:
            raise InvalidStateError("Order", order.status, order_id=order.id)
        if order.payment_status == PaymentStatus.PAID:
            raise InvalidStateError(
                "Payment",
                order.payment_status,
                [PaymentStatus.UNPAID, PaymentStatus.FAILED],
                order_id=order.id,
            )

        try:
            link = await self._gateway.create_payment(order)
        except CircuitBreakerError as exc:
            raise DependencyFailureError(
                "payment",
                is_unavailable=True,
                retry_after=int(exc.retry_after) + 1,
                order_id=order.id,
            ) from exc
        except (PaymobError, httpx.HTTPError) as exc:
            raise DependencyFailureError("payment", order_id=order.id, error=str(exc)) from exc

        self._store_link(order, link)
        logger.info("Payment link reissued", order_id=order.id)
        return order, link.url

    def _find_order(self, obj: dict) -> Order | None:
        gateway_order = obj.get("order") or {}
        gateway_order_id = gateway_order.get("id") if isinstance(gateway_order, dict) else gateway_order
        if gateway_order_id is not None:
            order = self._db.scalar(select(Order).where(Order.gateway_order_id == str(gateway_order_id)))
            if order:
                return order

        merchant_order_id = obj.get("merchant_order_id") or (
            gateway_order.get("merchant_order_id") if isinstance(gateway_order, dict) else None
        )
        if merchant_order_id:
            tracking_code = str(merchant_order_id).split("-", 1)[0]
            return self._db.scalar(select(Order).where(Order.tracking_code == tracking_code))
        return None

    def process_webhook(self, payload_type: str, obj: dict, received_hmac: str | None) -> Order | None:
        """
        Apply a Paymob transaction callback. Safe to receive more than once.

        success without error/cancel/void → paid (a cancelled order stays
            cancelled and is logged for refund)
        canceled or voided → failed, order cancelled and restocked
        error → failed

        Returns the order, or None when the callback is ignored.

        Raises:
            ForbiddenError: HMAC does not match
        """
        if not verify_hmac(obj, received_hmac):
            raise ForbiddenError("deliver payment callbacks")

        if payload_type != "TRANSACTION":
            logger.info("Paymob callback ignored", type=payload_type)
            return None

        order = self._find_order(obj)
        if not order:
            logger.warning("Paymob callback for unknown order", transaction_id=obj.get("id"))
            return None

        if order.payment_status == PaymentStatus.PAID:
            logger.info("Paymob callback already applied", order_id=order.id)
            return order

        success = bool(obj.get("success"))
        error = bool(obj.get("error_occured"))
        cancelled = bool(obj.get("is_canceled")) or bool(obj.get("is_voided")) or bool(obj.get("is_void"))

        with transaction(self._db):
            if success and not error and not cancelled:
                order.payment_status = PaymentStatus.PAID
                order.gateway_transaction_id = str(obj.get("id"))
                if order.status == OrderStatus.CANCELLED:
                    logger.warning(
                        "Payment captured for cancelled order",
                        order_id=order.id,
                        transaction_id=order.gateway_transaction_id,
                        refund_required=True,
                    )
            elif cancelled:
                order.payment_status = PaymentStatus.FAILED
                order.gateway_transaction_id = str(obj.get("id"))
                if order.status not in OrderStatus.NOT_CANCELLABLE:
                    OrderService(self._db).cancel(
                        order, reason="payment cancelled", changed_by="paymob"
                    )
            elif error:
                order.payment_status = PaymentStatus.FAILED
                order.gateway_transaction_id = str(obj.get("id"))
            else:
                logger.info("Paymob transaction still pending", order_id=order.id)

        logger.info(
            "Paymob callback applied",
            order_id=order.id,
            payment_status=order.payment_status,
            order_status=order.status,
        )
        return order
